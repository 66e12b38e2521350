"""Audit log API routes."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from docvault.schemas.audit import AuditLogResponse
from docvault.services.container import ServiceContainer, get_services

router = APIRouter(prefix="/api/audit-logs", tags=["audit"])


@router.get("", response_model=list[AuditLogResponse])
async def list_audit_logs(
    document_id: Optional[UUID] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    services: ServiceContainer = Depends(get_services),
):
    """List audit entries, newest first, optionally for one document."""
    return await services.audit.list(document_id=document_id, limit=limit)
