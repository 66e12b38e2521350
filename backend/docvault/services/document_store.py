"""Metadata store for Document records.

One implementation over async SQLAlchemy; SQLite (aiosqlite) and
PostgreSQL (asyncpg) are chosen by DATABASE_URL. Each call runs in its own
session so the store can be shared by concurrent requests.
"""
import logging
import uuid
from typing import Optional

from sqlalchemy import Select, delete as sql_delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docvault.errors import PersistenceFailed
from docvault.models.document import Document

logger = logging.getLogger(__name__)


class DocumentStore:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]):
        self._sessions = sessions

    async def insert(self, document: Document) -> Document:
        try:
            async with self._sessions() as db:
                db.add(document)
                await db.commit()
                await db.refresh(document)
                return document
        except SQLAlchemyError as e:
            logger.error("Insert of document %s failed: %r", document.id, e)
            raise PersistenceFailed() from e

    async def get(self, document_id: uuid.UUID) -> Optional[Document]:
        try:
            async with self._sessions() as db:
                return await db.get(Document, document_id)
        except SQLAlchemyError as e:
            logger.error("Lookup of document %s failed: %r", document_id, e)
            raise PersistenceFailed("Could not read document metadata") from e

    async def fetch_all(self, statement: Select) -> list[Document]:
        try:
            async with self._sessions() as db:
                result = await db.execute(statement)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Document listing failed: %r", e)
            raise PersistenceFailed("Could not list documents") from e

    async def update_fields(self, document_id: uuid.UUID, **fields) -> Optional[Document]:
        """Set the given columns on one record. Returns None if it does not exist."""
        try:
            async with self._sessions() as db:
                result = await db.execute(select(Document).where(Document.id == document_id))
                document = result.scalar_one_or_none()
                if document is None:
                    return None
                for key, value in fields.items():
                    setattr(document, key, value)
                await db.commit()
                await db.refresh(document)
                return document
        except SQLAlchemyError as e:
            logger.error("Update of document %s failed: %r", document_id, e)
            raise PersistenceFailed() from e

    async def delete(self, document_id: uuid.UUID) -> bool:
        """Delete one record. False when no row matched (already gone)."""
        try:
            async with self._sessions() as db:
                result = await db.execute(sql_delete(Document).where(Document.id == document_id))
                await db.commit()
                return result.rowcount > 0
        except SQLAlchemyError as e:
            logger.error("Delete of document %s failed: %r", document_id, e)
            raise PersistenceFailed("Could not delete document metadata") from e
