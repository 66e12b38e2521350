"""Best-effort audit trail for document actions."""
import logging
import uuid
from typing import Optional

from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docvault.errors import PersistenceFailed
from docvault.models.audit_log import AuditLog

logger = logging.getLogger(__name__)

UPLOAD = "UPLOAD"
RENAME = "RENAME"
DELETE = "DELETE"


class AuditTrail:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]):
        self._sessions = sessions

    async def record(self, document_id: uuid.UUID, action: str, details: str = "") -> None:
        """Write one entry. Failures are logged and swallowed; the user action already happened."""
        try:
            async with self._sessions() as db:
                db.add(AuditLog(document_id=document_id, action=action, details=details))
                await db.commit()
        except SQLAlchemyError as e:
            logger.error("Audit log write failed for %s %s: %r", action, document_id, e)

    async def list(self, document_id: Optional[uuid.UUID] = None, limit: int = 100) -> list[AuditLog]:
        stmt = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).limit(limit)
        if document_id is not None:
            stmt = stmt.where(AuditLog.document_id == document_id)
        try:
            async with self._sessions() as db:
                result = await db.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Audit log listing failed: %r", e)
            raise PersistenceFailed("Could not read audit log") from e
