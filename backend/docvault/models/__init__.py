"""Import all models so SQLAlchemy metadata knows about them."""
from docvault.models.base import Base
from docvault.models.document import Document
from docvault.models.audit_log import AuditLog

__all__ = ["Base", "Document", "AuditLog"]
