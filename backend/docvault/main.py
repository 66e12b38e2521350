"""FastAPI application entry point.

Run with:
    uvicorn docvault.main:create_app --factory --port 4000
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text

from docvault.config import Settings, settings as default_settings
from docvault.errors import DocumentError
from docvault.models import Base
from docvault.routes.audit import router as audit_router
from docvault.routes.documents import legacy_router, router as documents_router
from docvault.services.container import ServiceContainer
from docvault.services.object_store import LocalObjectStore, ObjectStore
from docvault.services.scanner import MalwareScanner

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    object_store: Optional[ObjectStore] = None,
    scanner: Optional[MalwareScanner] = None,
) -> FastAPI:
    """Build the app. Adapters passed here replace the ones configured in settings."""
    settings = settings or default_settings
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    services = ServiceContainer.build(settings, object_store=object_store, scanner=scanner)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create tables on startup, release DB connections on shutdown."""
        async with services.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(
            "DocVault ready (storage=%s, scanning=%s)",
            type(services.object_store).__name__,
            "on" if services.scanner else "off",
        )
        yield
        await services.engine.dispose()

    app = FastAPI(
        title="DocVault API",
        version="1.0.0",
        description="Document repository with scanned uploads.",
        lifespan=lifespan,
    )
    app.state.services = services

    origins = [o.strip() for o in settings.CORS_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DocumentError)
    async def document_error_handler(request: Request, exc: DocumentError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.get("/", response_class=PlainTextResponse)
    async def index():
        return "DocVault backend running"

    @app.get("/api/health")
    async def health_check():
        """Verify database connectivity and, when enabled, the scanner."""
        status = {"status": "ok"}
        try:
            async with services.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            status["database"] = "connected"
        except Exception as e:
            logger.error("Health check database failure: %r", e)
            status.update(status="error", database="unavailable")
        if services.scanner is not None:
            status["scanner"] = "connected" if await services.scanner.ping() else "unavailable"
        return status

    app.include_router(documents_router)
    app.include_router(legacy_router)
    app.include_router(audit_router)

    if isinstance(services.object_store, LocalObjectStore):
        app.mount(
            services.object_store.url_prefix,
            StaticFiles(directory=services.object_store.base_path),
            name="uploads",
        )
    return app
