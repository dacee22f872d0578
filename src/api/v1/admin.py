"""Staff endpoints for Nivaran API v1.

Complaint triage (listing, status changes, assignment, responses),
owner notifications (urgent notices, reminders), announcements,
category maintenance and staff accounts.

SECURITY: the whole router requires ``X-Admin-API-Key``; each endpoint
additionally checks the permission of the staff member named by
``X-Admin-User-Id``.  Staff-account endpoints require the super admin role.
"""

from __future__ import annotations

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from src.api.errors import complaint_http_error
from src.middleware.auth import require_admin_api_key, require_permission, require_super_admin
from src.models.complaint import (
    CategoryCreate,
    CategoryUpdate,
    ComplaintCategory,
    ComplaintDetail,
    ComplaintFilters,
    ComplaintPage,
    ComplaintResponse,
    DashboardStats,
)
from src.models.enums import NotificationCategory, NotificationType
from src.models.results import BulkDispatchResult, DispatchResult
from src.models.user import AdminUser, AdminUserCreate, AdminUserUpdate
from src.services.admin_users import AdminUserService
from src.services.complaints import ComplaintError, ComplaintService
from src.services.dispatcher import NotificationDispatcher
from src.services.session import (
    MANAGE_CATEGORIES,
    MANAGE_COMPLAINTS,
    SEND_NOTIFICATIONS,
    VIEW_DASHBOARD,
    SessionContext,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin_api_key)],
)

_can_manage = require_permission(MANAGE_COMPLAINTS)
_can_notify = require_permission(SEND_NOTIFICATIONS)
_can_view = require_permission(VIEW_DASHBOARD)
_can_edit_categories = require_permission(MANAGE_CATEGORIES)


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class StatusUpdateRequest(BaseModel):
    status_id: int = Field(..., ge=1, description="Status code, 1=Pending ... 6=Rejected")
    notes: str | None = Field(default=None, max_length=5000)


class AssignRequest(BaseModel):
    assignee: str = Field(..., min_length=1, max_length=200)
    notes: str | None = Field(default=None, max_length=5000)


class ResponseRequest(BaseModel):
    response: str = Field(..., min_length=1, max_length=5000)
    internal_notes: str | None = Field(default=None, max_length=5000)


class UrgentRequest(BaseModel):
    urgency: str = Field(..., min_length=1, max_length=1000)


class ReminderRequest(BaseModel):
    days_pending: int = Field(..., ge=0)


class BulkNotificationRequest(BaseModel):
    user_ids: list[str] = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=300)
    message: str = Field(..., min_length=1, max_length=5000)
    type: NotificationType = NotificationType.INFO
    category: NotificationCategory = NotificationCategory.GENERAL


class AnnouncementRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    message: str = Field(..., min_length=1, max_length=5000)
    type: NotificationType = NotificationType.INFO


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _complaints(request: Request) -> ComplaintService:
    service = getattr(request.app.state, "complaints", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Complaint service not available")
    return service


def _admin_users(request: Request) -> AdminUserService:
    service = getattr(request.app.state, "admin_users", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Admin user service not available")
    return service


def _dispatcher(request: Request) -> NotificationDispatcher:
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise HTTPException(status_code=503, detail="Notification dispatcher not available")
    return dispatcher


async def _complaint(request: Request, complaint_id: int) -> ComplaintDetail:
    try:
        return await _complaints(request).get_complaint(complaint_id)
    except ComplaintError as exc:
        raise complaint_http_error(exc) from None


# ---------------------------------------------------------------------------
# Dashboard and listing
# ---------------------------------------------------------------------------


@router.get("/dashboard", response_model=DashboardStats)
async def dashboard(
    request: Request,
    _: SessionContext = Depends(_can_view),  # noqa: B008
) -> DashboardStats:
    try:
        return await _complaints(request).get_dashboard_stats()
    except HTTPException:
        raise
    except Exception:
        logger.error("api.admin.dashboard_failed", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to compute dashboard") from None


@router.get("/complaints", response_model=ComplaintPage)
async def list_complaints(
    request: Request,
    status: int | None = Query(default=None, description="Filter by status code"),
    category: int | None = Query(default=None, description="Filter by category id"),
    assigned_to: str | None = Query(default=None, description="Filter by assignee"),
    date_from: datetime | None = Query(default=None, description="Filed on or after"),
    date_to: datetime | None = Query(default=None, description="Filed on or before"),
    search: str | None = Query(default=None, max_length=200, description="Subject or registration number"),
    page: int = Query(default=1, ge=1, description="Page number"),
    limit: int = Query(default=20, ge=1, le=100, description="Results per page"),
    _: SessionContext = Depends(_can_manage),  # noqa: B008
) -> ComplaintPage:
    filters = ComplaintFilters(
        status=status,
        category=category,
        assigned_to=assigned_to,
        date_from=date_from,
        date_to=date_to,
        search=search,
    )
    return await _complaints(request).list_complaints(filters, page=page, limit=limit)


@router.get("/complaints/{complaint_id}", response_model=ComplaintDetail)
async def get_complaint(
    complaint_id: int,
    request: Request,
    _: SessionContext = Depends(_can_manage),  # noqa: B008
) -> ComplaintDetail:
    return await _complaint(request, complaint_id)


# ---------------------------------------------------------------------------
# Triage
# ---------------------------------------------------------------------------


@router.post("/complaints/{complaint_id}/status", response_model=ComplaintDetail)
async def update_status(
    complaint_id: int,
    body: StatusUpdateRequest,
    request: Request,
    session: SessionContext = Depends(_can_manage),  # noqa: B008
) -> ComplaintDetail:
    """Change the status and notify the complaint's owner."""
    service = _complaints(request)
    try:
        return await service.update_status(session, complaint_id, body.status_id, body.notes)
    except ComplaintError as exc:
        raise complaint_http_error(exc) from None
    except Exception:
        logger.error("api.admin.status_update_failed", complaint_id=complaint_id, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update complaint status") from None


@router.post("/complaints/{complaint_id}/assign", response_model=ComplaintDetail)
async def assign_complaint(
    complaint_id: int,
    body: AssignRequest,
    request: Request,
    session: SessionContext = Depends(_can_manage),  # noqa: B008
) -> ComplaintDetail:
    service = _complaints(request)
    try:
        return await service.assign_complaint(session, complaint_id, body.assignee, body.notes)
    except ComplaintError as exc:
        raise complaint_http_error(exc) from None
    except Exception:
        logger.error("api.admin.assign_failed", complaint_id=complaint_id, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to assign complaint") from None


@router.post("/complaints/{complaint_id}/responses", response_model=ComplaintResponse, status_code=201)
async def add_response(
    complaint_id: int,
    body: ResponseRequest,
    request: Request,
    session: SessionContext = Depends(_can_manage),  # noqa: B008
) -> ComplaintResponse:
    service = _complaints(request)
    try:
        return await service.add_response(session, complaint_id, body.response, body.internal_notes)
    except ComplaintError as exc:
        raise complaint_http_error(exc) from None


# ---------------------------------------------------------------------------
# Owner notifications
# ---------------------------------------------------------------------------


@router.post("/complaints/{complaint_id}/urgent", response_model=DispatchResult)
async def send_urgent(
    complaint_id: int,
    body: UrgentRequest,
    request: Request,
    _: SessionContext = Depends(_can_notify),  # noqa: B008
) -> DispatchResult:
    complaint = await _complaint(request, complaint_id)
    return await _dispatcher(request).send_urgent(complaint_id, complaint.user_id, body.urgency)


@router.post("/complaints/{complaint_id}/reminder", response_model=DispatchResult)
async def send_reminder(
    complaint_id: int,
    body: ReminderRequest,
    request: Request,
    _: SessionContext = Depends(_can_notify),  # noqa: B008
) -> DispatchResult:
    complaint = await _complaint(request, complaint_id)
    return await _dispatcher(request).send_reminder(complaint_id, complaint.user_id, body.days_pending)


# ---------------------------------------------------------------------------
# Announcements
# ---------------------------------------------------------------------------


@router.post("/notifications/bulk", response_model=BulkDispatchResult)
async def send_bulk(
    body: BulkNotificationRequest,
    request: Request,
    session: SessionContext = Depends(_can_notify),  # noqa: B008
) -> BulkDispatchResult:
    """In-app notification for each listed user; partial failures are reported."""
    result = await _dispatcher(request).send_bulk(
        body.user_ids, body.title, body.message, body.type, body.category
    )
    logger.info(
        "api.admin.bulk_sent",
        by=session.require_user().id,
        requested=len(body.user_ids),
        sent=result.sent_count,
    )
    return result


@router.post("/notifications/announcement", response_model=BulkDispatchResult)
async def send_announcement(
    body: AnnouncementRequest,
    request: Request,
    session: SessionContext = Depends(_can_notify),  # noqa: B008
) -> BulkDispatchResult:
    result = await _dispatcher(request).send_system_announcement(body.title, body.message, body.type)
    logger.info("api.admin.announcement_sent", by=session.require_user().id, sent=result.sent_count)
    return result


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


@router.post("/categories", response_model=ComplaintCategory, status_code=201)
async def create_category(
    body: CategoryCreate,
    request: Request,
    session: SessionContext = Depends(_can_edit_categories),  # noqa: B008
) -> ComplaintCategory:
    try:
        return await _complaints(request).create_category(session, body)
    except ComplaintError as exc:
        raise complaint_http_error(exc) from None


@router.patch("/categories/{category_id}", response_model=ComplaintCategory)
async def update_category(
    category_id: int,
    body: CategoryUpdate,
    request: Request,
    session: SessionContext = Depends(_can_edit_categories),  # noqa: B008
) -> ComplaintCategory:
    try:
        return await _complaints(request).update_category(session, category_id, body)
    except ComplaintError as exc:
        raise complaint_http_error(exc) from None


@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: int,
    request: Request,
    session: SessionContext = Depends(_can_edit_categories),  # noqa: B008
) -> dict[str, bool]:
    try:
        await _complaints(request).delete_category(session, category_id)
    except ComplaintError as exc:
        raise complaint_http_error(exc) from None
    return {"success": True}


# ---------------------------------------------------------------------------
# Staff accounts (super admin only)
# ---------------------------------------------------------------------------


@router.get("/users", response_model=list[AdminUser])
async def list_admin_users(
    request: Request,
    session: SessionContext = Depends(require_super_admin),  # noqa: B008
) -> list[AdminUser]:
    return await _admin_users(request).list_admin_users(session)


@router.post("/users", response_model=AdminUser, status_code=201)
async def create_admin_user(
    body: AdminUserCreate,
    request: Request,
    session: SessionContext = Depends(require_super_admin),  # noqa: B008
) -> AdminUser:
    try:
        return await _admin_users(request).create_admin_user(session, body)
    except ComplaintError as exc:
        raise complaint_http_error(exc) from None


@router.patch("/users/{admin_id}", response_model=AdminUser)
async def update_admin_user(
    admin_id: str,
    body: AdminUserUpdate,
    request: Request,
    session: SessionContext = Depends(require_super_admin),  # noqa: B008
) -> AdminUser:
    try:
        return await _admin_users(request).update_admin_user(session, admin_id, body)
    except ComplaintError as exc:
        raise complaint_http_error(exc) from None


@router.delete("/users/{admin_id}")
async def delete_admin_user(
    admin_id: str,
    request: Request,
    session: SessionContext = Depends(require_super_admin),  # noqa: B008
) -> dict[str, bool]:
    try:
        await _admin_users(request).delete_admin_user(session, admin_id)
    except ComplaintError as exc:
        raise complaint_http_error(exc) from None
    return {"success": True}
