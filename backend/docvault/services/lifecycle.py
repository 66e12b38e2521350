"""Rename, delete and download resolution for existing documents."""
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from docvault.errors import BlobMissing, InvalidInput, NotFound, ObjectStoreError
from docvault.models.document import Document
from docvault.services import audit
from docvault.services.audit import AuditTrail
from docvault.services.document_store import DocumentStore
from docvault.services.object_store import ObjectStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DownloadTarget:
    document: Document
    # Set for local storage; remote stores are reached through document.file_url.
    path: Optional[Path] = None


class DocumentLifecycle:
    def __init__(
        self,
        store: DocumentStore,
        object_store: ObjectStore,
        audit_trail: AuditTrail,
        doc_types: list[str],
    ):
        self.store = store
        self.object_store = object_store
        self.audit = audit_trail
        self.doc_types = list(doc_types)

    async def update(
        self,
        document_id: uuid.UUID,
        title: Optional[str],
        description: Optional[str] = None,
        doc_type: Optional[str] = None,
    ) -> Document:
        """Update display metadata. The stored blob is never touched."""
        title = (title or "").strip()
        if not title:
            raise InvalidInput("Title is required")
        fields = {"title": title}
        if description is not None:
            fields["description"] = description.strip()
        if doc_type is not None:
            if doc_type not in self.doc_types:
                raise InvalidInput(f"doc_type must be one of: {', '.join(self.doc_types)}")
            fields["doc_type"] = doc_type

        document = await self.store.update_fields(document_id, **fields)
        if document is None:
            raise NotFound()
        logger.info("Renamed document %s to %r", document_id, title)
        await self.audit.record(document_id, audit.RENAME, f"Renamed to: {title}")
        return document

    async def delete(self, document_id: uuid.UUID) -> None:
        """Remove blob then row. Returns once the row is gone; NotFound if it already was."""
        document = await self.store.get(document_id)
        if document is None:
            raise NotFound()

        try:
            await self.object_store.delete(document.storage_reference)
        except ObjectStoreError as e:
            logger.warning(
                "Blob delete failed for document %s (ref=%s), removing metadata anyway: %s",
                document_id, document.storage_reference, e,
            )

        if not await self.store.delete(document_id):
            # Another request removed the row between our lookup and delete.
            raise NotFound()
        logger.info("Deleted document %s (%s)", document_id, document.original_name)
        await self.audit.record(document_id, audit.DELETE, f"Deleted file: {document.original_name}")

    async def resolve_download(self, document_id: uuid.UUID) -> DownloadTarget:
        document = await self.store.get(document_id)
        if document is None:
            raise NotFound()

        try:
            path = self.object_store.local_path(document.storage_reference)
        except ObjectStoreError as e:
            logger.error("Document %s has an unusable storage reference: %s", document_id, e)
            raise BlobMissing() from e
        if path is None:
            return DownloadTarget(document=document)
        if not path.is_file():
            logger.error(
                "Inconsistent storage: document %s points at missing blob %s",
                document_id, document.storage_reference,
            )
            raise BlobMissing()
        return DownloadTarget(document=document, path=path)
