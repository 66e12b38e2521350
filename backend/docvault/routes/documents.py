"""Documents API routes."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File as FastAPIFile, Form, Query, UploadFile
from fastapi.responses import FileResponse, RedirectResponse

from docvault.errors import InvalidInput
from docvault.schemas.common import SuccessResponse
from docvault.schemas.document import DocumentResponse, DocumentUpdate
from docvault.services.container import ServiceContainer, get_services
from docvault.services.query import DocumentFilters

router = APIRouter(prefix="/api/documents", tags=["documents"])
legacy_router = APIRouter(prefix="/api", tags=["documents"])


def _as_int(value: Optional[str]) -> Optional[int]:
    try:
        return int(value) if value not in (None, "") else None
    except ValueError:
        return None


@router.post("", response_model=DocumentResponse)
async def upload_document(
    file: Optional[UploadFile] = FastAPIFile(None),
    title: Optional[str] = Form(None),
    doc_type: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    services: ServiceContainer = Depends(get_services),
):
    """Upload a PDF/DOC/DOCX file and create its document record."""
    if file is None:
        raise InvalidInput("No file uploaded")
    # One byte past the cap is enough for the pipeline to reject the upload.
    contents = await file.read(services.pipeline.max_bytes + 1)
    return await services.pipeline.upload(
        contents,
        content_type=file.content_type,
        filename=file.filename,
        title=title,
        description=description,
        doc_type=doc_type,
    )


legacy_router.add_api_route(
    "/upload", upload_document, methods=["POST"], response_model=DocumentResponse
)


@router.get("", response_model=list[DocumentResponse])
async def list_documents(
    search: str = Query("", description="Substring of title or original file name"),
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    doc_type: Optional[str] = Query(None, alias="type", description="Exact type, or 'all'"),
    limit: Optional[str] = Query(None),
    offset: Optional[str] = Query(None),
    services: ServiceContainer = Depends(get_services),
):
    """List documents, newest first. Unparseable filter values are ignored."""
    filters = DocumentFilters.from_params(
        search=search,
        date_from=date_from,
        date_to=date_to,
        doc_type=doc_type,
        limit=_as_int(limit),
        offset=_as_int(offset),
        max_limit=services.settings.MAX_PAGE_SIZE,
    )
    return await services.query.list(filters)


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: UUID,
    services: ServiceContainer = Depends(get_services),
):
    """Get document metadata, including the URL used for previews."""
    return await services.query.get(document_id)


@router.put("/{document_id}", response_model=DocumentResponse)
async def update_document(
    document_id: UUID,
    body: DocumentUpdate,
    services: ServiceContainer = Depends(get_services),
):
    """Rename a document. Description and type may be changed alongside."""
    return await services.lifecycle.update(
        document_id, body.title, description=body.description, doc_type=body.doc_type
    )


@router.delete("/{document_id}", response_model=SuccessResponse)
async def delete_document(
    document_id: UUID,
    services: ServiceContainer = Depends(get_services),
):
    """Delete a document's stored file and its record."""
    await services.lifecycle.delete(document_id)
    return {"success": True}


@router.get("/{document_id}/download")
async def download_document(
    document_id: UUID,
    services: ServiceContainer = Depends(get_services),
):
    """Stream a locally stored file, or redirect to the remote object URL."""
    target = await services.lifecycle.resolve_download(document_id)
    if target.path is None:
        return RedirectResponse(target.document.file_url, status_code=307)
    return FileResponse(
        path=target.path,
        filename=target.document.original_name,
        media_type=target.document.mime_type or "application/octet-stream",
    )
