"""Document request/response schemas."""
import uuid
from datetime import datetime
from typing import Optional

from docvault.schemas.base import APIModel, ORMModel


class DocumentUpdate(APIModel):
    title: str
    description: Optional[str] = None
    doc_type: Optional[str] = None


class DocumentResponse(ORMModel):
    id: uuid.UUID
    original_name: str
    title: str
    description: str = ""
    doc_type: str
    mime_type: str
    size: int
    upload_date: datetime
    file_url: str
    storage_reference: str
