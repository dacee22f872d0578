"""Citizen complaint endpoints for Nivaran API v1.

Filing, listing and viewing one's own complaints, attaching files,
and the reference data (categories, subcategories, statuses) the
filing form needs.  Staff triage lives in :mod:`src.api.v1.admin`.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile

from src.api.errors import complaint_http_error
from src.middleware.auth import get_session
from src.models.complaint import (
    Complaint,
    ComplaintCategory,
    ComplaintCreate,
    ComplaintDetail,
    ComplaintStatusInfo,
    ComplaintSubcategory,
)
from src.services.complaints import ComplaintError, ComplaintService
from src.services.session import SessionContext

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/complaints", tags=["complaints"])

_MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024  # 10 MB


def _service(request: Request) -> ComplaintService:
    service = getattr(request.app.state, "complaints", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Complaint service not available")
    return service


async def _own_complaint(service: ComplaintService, session: SessionContext, complaint_id: int) -> ComplaintDetail:
    try:
        complaint = await service.get_complaint(complaint_id)
    except ComplaintError as exc:
        raise complaint_http_error(exc) from None
    if complaint.user_id != session.require_user().id:
        raise HTTPException(status_code=404, detail=f"Complaint {complaint_id} not found")
    return complaint


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------


@router.get("/categories", response_model=list[ComplaintCategory])
async def list_categories(request: Request) -> list[ComplaintCategory]:
    return await _service(request).get_categories()


@router.get("/categories/{category_id}/subcategories", response_model=list[ComplaintSubcategory])
async def list_subcategories(category_id: int, request: Request) -> list[ComplaintSubcategory]:
    return await _service(request).get_subcategories(category_id)


@router.get("/statuses", response_model=list[ComplaintStatusInfo])
async def list_statuses(request: Request) -> list[ComplaintStatusInfo]:
    return await _service(request).get_statuses()


# ---------------------------------------------------------------------------
# Complaints
# ---------------------------------------------------------------------------


@router.post("", response_model=Complaint, status_code=201)
async def create_complaint(
    body: ComplaintCreate,
    request: Request,
    session: SessionContext = Depends(get_session),  # noqa: B008
) -> Complaint:
    """File a complaint.  The registration number is assigned here."""
    service = _service(request)
    try:
        return await service.create_complaint(session, body)
    except ComplaintError as exc:
        raise complaint_http_error(exc) from None
    except Exception:
        logger.error("api.complaints.create_failed", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to file complaint") from None


@router.get("", response_model=list[ComplaintDetail])
async def list_my_complaints(
    request: Request,
    session: SessionContext = Depends(get_session),  # noqa: B008
) -> list[ComplaintDetail]:
    try:
        return await _service(request).list_user_complaints(session)
    except ComplaintError as exc:
        raise complaint_http_error(exc) from None


@router.get("/{complaint_id}", response_model=ComplaintDetail)
async def get_my_complaint(
    complaint_id: int,
    request: Request,
    session: SessionContext = Depends(get_session),  # noqa: B008
) -> ComplaintDetail:
    """A complaint with its responses; other users' complaints read as 404."""
    return await _own_complaint(_service(request), session, complaint_id)


@router.post("/{complaint_id}/attachments", status_code=201)
async def upload_attachment(
    complaint_id: int,
    request: Request,
    file: UploadFile = File(..., description="Supporting document or photo"),  # noqa: B008
    session: SessionContext = Depends(get_session),  # noqa: B008
) -> dict:
    service = _service(request)
    await _own_complaint(service, session, complaint_id)

    size = 0
    chunks: list[bytes] = []
    try:
        while chunk := await file.read(64 * 1024):
            size += len(chunk)
            if size > _MAX_ATTACHMENT_BYTES:
                raise HTTPException(status_code=413, detail="Attachment too large. Maximum 10 MB.")
            chunks.append(chunk)
        content = b"".join(chunks)
    except HTTPException:
        raise
    except Exception:
        logger.error("api.complaints.attachment_read_failed", exc_info=True)
        raise HTTPException(status_code=400, detail="Failed to read attachment") from None

    if not content:
        raise HTTPException(status_code=400, detail="Empty attachment")

    try:
        url = await service.upload_attachment(session, complaint_id, file.filename or "attachment", content)
    except ComplaintError as exc:
        raise complaint_http_error(exc) from None
    except Exception:
        logger.error("api.complaints.attachment_upload_failed", complaint_id=complaint_id, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to upload attachment") from None

    return {"url": url}
