"""Upload pipeline: validate, scan, store, persist.

Each step either returns or raises a DocumentError, so a failure anywhere
stops the pipeline. Side effects are unwound in reverse:

- the temp buffer is removed on every exit path once storage is attempted
- a stored blob is deleted again if its metadata row cannot be written

A blob without a row is the only partial outcome this pipeline can leave
behind (when that compensating delete fails too). A row without a blob is
never produced here.
"""
import logging
import uuid
from pathlib import Path, PurePosixPath
from typing import Optional

import aiofiles
import aiofiles.os

from docvault.errors import (
    InvalidInput,
    ObjectStoreError,
    PersistenceFailed,
    ScannerUnavailable,
    ScanUnavailable,
    SecurityRejected,
    StorageUnavailable,
)
from docvault.models.base import utcnow
from docvault.models.document import Document
from docvault.services import audit
from docvault.services.audit import AuditTrail
from docvault.services.document_store import DocumentStore
from docvault.services.object_store import ObjectStore, StoredBlob
from docvault.services.scanner import MalwareScanner

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
})


def normalize_content_type(content_type: Optional[str]) -> str:
    """``Application/PDF; charset=binary`` -> ``application/pdf``."""
    return (content_type or "").split(";", 1)[0].strip().lower()


def clean_filename(filename: Optional[str]) -> str:
    """Drop any client-side directory part; browsers on Windows may send one."""
    name = PurePosixPath((filename or "").replace("\\", "/")).name.strip()
    return name or "unnamed"


class UploadPipeline:
    def __init__(
        self,
        store: DocumentStore,
        object_store: ObjectStore,
        audit_trail: AuditTrail,
        scanner: Optional[MalwareScanner] = None,
        *,
        temp_dir: str,
        doc_types: list[str],
        default_doc_type: str = "process",
        max_bytes: int = 25 * 1024 * 1024,
        scan_fail_open: bool = True,
    ):
        self.store = store
        self.object_store = object_store
        self.audit = audit_trail
        self.scanner = scanner
        self.temp_dir = Path(temp_dir)
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        self.doc_types = list(doc_types)
        self.default_doc_type = default_doc_type
        self.max_bytes = max_bytes
        self.scan_fail_open = scan_fail_open

    def resolve_doc_type(self, doc_type: Optional[str]) -> str:
        doc_type = (doc_type or "").strip() or self.default_doc_type
        if doc_type not in self.doc_types:
            raise InvalidInput(f"doc_type must be one of: {', '.join(self.doc_types)}")
        return doc_type

    async def upload(
        self,
        data: bytes,
        content_type: Optional[str],
        filename: Optional[str],
        title: Optional[str] = None,
        description: Optional[str] = None,
        doc_type: Optional[str] = None,
    ) -> Document:
        """Run one upload end to end and return the persisted record."""
        mime_type = normalize_content_type(content_type)
        if mime_type not in ALLOWED_MIME_TYPES:
            raise InvalidInput("Only PDF, DOC and DOCX files are allowed")
        doc_type = self.resolve_doc_type(doc_type)
        if not data:
            raise InvalidInput("Uploaded file is empty")
        if len(data) > self.max_bytes:
            raise InvalidInput(f"File exceeds the {self.max_bytes} byte upload limit")

        original_name = clean_filename(filename)
        blob = await self._scan_and_store(data, original_name, mime_type)

        document = Document(
            id=uuid.uuid4(),
            original_name=original_name,
            storage_reference=blob.reference,
            file_url=blob.url,
            mime_type=mime_type,
            size=len(data),
            upload_date=utcnow(),
            title=(title or "").strip() or original_name,
            description=(description or "").strip(),
            doc_type=doc_type,
        )
        try:
            document = await self.store.insert(document)
        except Exception as e:
            await self._discard_blob(blob)
            if isinstance(e, PersistenceFailed):
                raise
            logger.exception("Unexpected error persisting document %s", document.id)
            raise PersistenceFailed() from e

        logger.info(
            "Uploaded document %s (%s, %d bytes, ref=%s)",
            document.id, original_name, document.size, blob.reference,
        )
        await self.audit.record(document.id, audit.UPLOAD, f"Uploaded file: {original_name}")
        return document

    async def _scan_and_store(self, data: bytes, original_name: str, mime_type: str) -> StoredBlob:
        buffer = await self._write_buffer(data)
        try:
            await self._scan(buffer, original_name)
            try:
                return await self.object_store.put(buffer, original_name, mime_type)
            except ObjectStoreError as e:
                logger.error("Object store upload failed for %s: %s", original_name, e)
                raise StorageUnavailable() from e
        finally:
            await self._remove_buffer(buffer)

    async def _scan(self, buffer: Path, original_name: str) -> None:
        if self.scanner is None:
            return
        try:
            result = await self.scanner.scan(buffer)
        except ScannerUnavailable as e:
            if self.scan_fail_open:
                logger.warning("Malware scan skipped for %s, scanner unavailable: %s", original_name, e)
                return
            logger.error("Upload of %s blocked, scanner unavailable: %s", original_name, e)
            raise ScanUnavailable() from e

        if result.infected:
            logger.warning(
                "VIRUS DETECTED: %s in file %s", ", ".join(result.signatures) or "unknown", original_name
            )
            raise SecurityRejected()

    async def _write_buffer(self, data: bytes) -> Path:
        buffer = self.temp_dir / f"{uuid.uuid4()}.part"
        try:
            async with aiofiles.open(buffer, "wb") as f:
                await f.write(data)
        except OSError as e:
            logger.error("Could not write upload buffer %s: %s", buffer, e)
            await self._remove_buffer(buffer)
            raise StorageUnavailable() from e
        return buffer

    async def _remove_buffer(self, buffer: Path) -> None:
        try:
            await aiofiles.os.remove(buffer)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove upload buffer %s: %s", buffer, e)

    async def _discard_blob(self, blob: StoredBlob) -> None:
        try:
            await self.object_store.delete(blob.reference)
            logger.info("Removed blob %s after failed metadata insert", blob.reference)
        except ObjectStoreError as e:
            logger.error("Orphaned blob %s left in object store: %s", blob.reference, e)
