"""
Shared fixtures for docvault tests.

Every test gets its own SQLite database and storage directories under
tmp_path. External collaborators (object store, malware scanner) are
replaced by in-memory fakes unless a test exercises the real adapter.
"""

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from docvault.config import Settings
from docvault.database import build_engine, build_session_factory
from docvault.models import Base
from docvault.services.audit import AuditTrail
from docvault.services.document_store import DocumentStore
from docvault.services.lifecycle import DocumentLifecycle
from docvault.services.query import DocumentQueryService
from docvault.services.upload_pipeline import UploadPipeline

from tests.fakes import FakeObjectStore, FakeScanner


# =============================================================================
# SETTINGS / DATABASE
# =============================================================================


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'docvault.db'}",
        FILE_STORAGE_TYPE="local",
        FILE_STORAGE_PATH=str(tmp_path / "uploads"),
        UPLOAD_TEMP_PATH=str(tmp_path / "uploads_temp"),
        SCAN_ENABLED=False,
        CORS_ORIGINS="http://localhost:5173",
        LOG_LEVEL="DEBUG",
    )


@pytest_asyncio.fixture
async def sessions(settings):
    engine = build_engine(settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def store(sessions) -> DocumentStore:
    return DocumentStore(sessions)


@pytest.fixture
def audit_trail(sessions) -> AuditTrail:
    return AuditTrail(sessions)


# =============================================================================
# SERVICES
# =============================================================================


@pytest.fixture
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def scanner() -> FakeScanner:
    return FakeScanner()


@pytest.fixture
def pipeline(store, object_store, audit_trail, scanner, settings) -> UploadPipeline:
    return UploadPipeline(
        store,
        object_store,
        audit_trail,
        scanner,
        temp_dir=settings.UPLOAD_TEMP_PATH,
        doc_types=settings.DOC_TYPES,
        default_doc_type=settings.DEFAULT_DOC_TYPE,
        max_bytes=1024,
    )


@pytest.fixture
def query(store) -> DocumentQueryService:
    return DocumentQueryService(store)


@pytest.fixture
def lifecycle(store, object_store, audit_trail, settings) -> DocumentLifecycle:
    return DocumentLifecycle(store, object_store, audit_trail, settings.DOC_TYPES)


@pytest.fixture
def temp_files(settings):
    """Lists whatever is left in the upload temp directory."""
    return lambda: list(Path(settings.UPLOAD_TEMP_PATH).iterdir())
