"""In-memory stand-ins for the external collaborators."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from docvault.errors import ObjectStoreError, ScannerUnavailable
from docvault.services.object_store import ObjectStore, StoredBlob
from docvault.services.scanner import MalwareScanner, ScanResult

PDF = "application/pdf"
DOC = "application/msword"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


class FakeObjectStore(ObjectStore):
    """In-memory object store with switchable failures."""

    def __init__(self):
        self.blobs: dict[str, bytes] = {}
        self.fail_put = False
        self.fail_delete = False
        self.deleted: list[str] = []
        self.seen_paths: list[Path] = []
        self._counter = 0

    async def put(self, path: Path, filename: str, content_type: str) -> StoredBlob:
        self.seen_paths.append(path)
        if self.fail_put:
            raise ObjectStoreError("simulated upload failure")
        self._counter += 1
        reference = f"raw/docs/{self._counter}-{filename}"
        self.blobs[reference] = path.read_bytes()
        return StoredBlob(reference=reference, url=f"https://files.example.test/{reference}")

    async def delete(self, reference: str) -> None:
        if self.fail_delete:
            raise ObjectStoreError("simulated delete failure")
        self.deleted.append(reference)
        self.blobs.pop(reference, None)


class FakeScanner(MalwareScanner):
    def __init__(self, result: Optional[ScanResult] = None, unavailable: bool = False):
        self.result = result or ScanResult(infected=False)
        self.unavailable = unavailable
        self.scanned: list[bytes] = []

    async def scan(self, path: Path) -> ScanResult:
        if self.unavailable:
            raise ScannerUnavailable("clamd unreachable")
        self.scanned.append(path.read_bytes())
        return self.result

    async def ping(self) -> bool:
        return not self.unavailable
