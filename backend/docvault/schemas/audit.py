"""Audit log response schema."""
import uuid
from datetime import datetime

from docvault.schemas.base import ORMModel


class AuditLogResponse(ORMModel):
    id: int
    document_id: uuid.UUID
    action: str
    timestamp: datetime
    details: str = ""
