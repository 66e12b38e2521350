"""Builds the service graph from settings and exposes it to routes."""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine

from docvault.config import Settings
from docvault.database import build_engine, build_session_factory
from docvault.services.audit import AuditTrail
from docvault.services.document_store import DocumentStore
from docvault.services.lifecycle import DocumentLifecycle
from docvault.services.object_store import ObjectStore, build_object_store
from docvault.services.query import DocumentQueryService
from docvault.services.scanner import ClamdScanner, MalwareScanner
from docvault.services.upload_pipeline import UploadPipeline

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    engine: AsyncEngine
    object_store: ObjectStore
    scanner: Optional[MalwareScanner]
    store: DocumentStore
    audit: AuditTrail
    pipeline: UploadPipeline
    query: DocumentQueryService
    lifecycle: DocumentLifecycle

    @classmethod
    def build(
        cls,
        settings: Settings,
        object_store: Optional[ObjectStore] = None,
        scanner: Optional[MalwareScanner] = None,
    ) -> "ServiceContainer":
        """Wire everything. ``object_store``/``scanner`` override the configured adapters."""
        engine = build_engine(settings)
        sessions = build_session_factory(engine)
        object_store = object_store or build_object_store(settings)
        if scanner is None and settings.SCAN_ENABLED:
            scanner = ClamdScanner(settings.CLAMAV_HOST, settings.CLAMAV_PORT, settings.CLAMAV_TIMEOUT)
        if scanner is None:
            logger.warning("Malware scanning is disabled")

        store = DocumentStore(sessions)
        audit_trail = AuditTrail(sessions)
        return cls(
            settings=settings,
            engine=engine,
            object_store=object_store,
            scanner=scanner,
            store=store,
            audit=audit_trail,
            pipeline=UploadPipeline(
                store,
                object_store,
                audit_trail,
                scanner,
                temp_dir=settings.UPLOAD_TEMP_PATH,
                doc_types=settings.DOC_TYPES,
                default_doc_type=settings.DEFAULT_DOC_TYPE,
                max_bytes=settings.MAX_UPLOAD_BYTES,
                scan_fail_open=settings.SCAN_FAIL_OPEN,
            ),
            query=DocumentQueryService(store),
            lifecycle=DocumentLifecycle(store, object_store, audit_trail, settings.DOC_TYPES),
        )


def get_services(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the container attached by the app factory."""
    return request.app.state.services
