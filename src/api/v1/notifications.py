"""In-app notification endpoints for Nivaran API v1.

Citizens read, mark and delete their own notifications, edit their
delivery preferences and hold a live stream of new notifications as
Server-Sent Events.  The caller is identified by ``X-User-Id``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import orjson
import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from src.middleware.auth import get_session
from src.models.notification import Notification, NotificationPreferences
from src.services.notifications import NotificationService
from src.services.session import SessionContext

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class NotificationListResponse(BaseModel):
    notifications: list[Notification]
    unread_count: int


class UnreadCountResponse(BaseModel):
    count: int


class PreferencesUpdate(BaseModel):
    """Preference toggles; the owner comes from the session."""

    email_notifications: bool = True
    sms_notifications: bool = True
    whatsapp_notifications: bool = True
    push_notifications: bool = True
    complaint_updates: bool = True
    status_changes: bool = True
    assignments: bool = True
    general_announcements: bool = True


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _service(request: Request) -> NotificationService:
    service = getattr(request.app.state, "notifications", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Notification service not available")
    return service


async def _owned(service: NotificationService, notification_id: str, user_id: str) -> Notification:
    result = await service.get_notification(notification_id)
    if not result.success and result.error != "Notification not found":
        raise HTTPException(status_code=500, detail="Failed to load notification")
    # Someone else's notification looks exactly like a missing one.
    if result.notification is None or result.notification.user_id != user_id:
        raise HTTPException(status_code=404, detail="Notification not found")
    return result.notification


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    request: Request,
    limit: int | None = Query(default=None, ge=1, le=500, description="Maximum notifications returned"),
    session: SessionContext = Depends(get_session),  # noqa: B008
) -> NotificationListResponse:
    """Newest-first notifications for the caller, with the unread count."""
    service = _service(request)
    user_id = session.require_user().id

    listing = await service.get_user_notifications(user_id, limit)
    if listing.error:
        raise HTTPException(status_code=500, detail="Failed to load notifications")
    unread = await service.get_unread_count(user_id)
    if unread.error:
        raise HTTPException(status_code=500, detail="Failed to load unread count")

    return NotificationListResponse(notifications=listing.data, unread_count=unread.count)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    request: Request,
    session: SessionContext = Depends(get_session),  # noqa: B008
) -> UnreadCountResponse:
    result = await _service(request).get_unread_count(session.require_user().id)
    if result.error:
        raise HTTPException(status_code=500, detail="Failed to load unread count")
    return UnreadCountResponse(count=result.count)


@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    request: Request,
    session: SessionContext = Depends(get_session),  # noqa: B008
) -> dict:
    service = _service(request)
    await _owned(service, notification_id, session.require_user().id)

    result = await service.mark_as_read(notification_id)
    if not result.success:
        raise HTTPException(status_code=500, detail="Failed to mark notification as read")
    return {"success": True}


@router.post("/read-all")
async def mark_all_read(
    request: Request,
    session: SessionContext = Depends(get_session),  # noqa: B008
) -> dict:
    result = await _service(request).mark_all_as_read(session.require_user().id)
    if not result.success:
        raise HTTPException(status_code=500, detail="Failed to mark notifications as read")
    return {"success": True}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    request: Request,
    session: SessionContext = Depends(get_session),  # noqa: B008
) -> dict:
    service = _service(request)
    await _owned(service, notification_id, session.require_user().id)

    result = await service.delete_notification(notification_id)
    if not result.success:
        raise HTTPException(status_code=500, detail="Failed to delete notification")
    return {"success": True}


@router.get("/preferences", response_model=NotificationPreferences)
async def get_preferences(
    request: Request,
    session: SessionContext = Depends(get_session),  # noqa: B008
) -> NotificationPreferences:
    try:
        return await _service(request).get_preferences(session.require_user().id)
    except HTTPException:
        raise
    except Exception:
        logger.error("api.notifications.preferences_failed", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load preferences") from None


@router.put("/preferences", response_model=NotificationPreferences)
async def update_preferences(
    body: PreferencesUpdate,
    request: Request,
    session: SessionContext = Depends(get_session),  # noqa: B008
) -> NotificationPreferences:
    preferences = NotificationPreferences(user_id=session.require_user().id, **body.model_dump())
    result = await _service(request).update_preferences(preferences)
    if not result.success:
        raise HTTPException(status_code=500, detail="Failed to update preferences")
    return preferences


@router.get("/stream")
async def stream_notifications(
    request: Request,
    session: SessionContext = Depends(get_session),  # noqa: B008
) -> StreamingResponse:
    """Server-Sent Events stream of notifications created for the caller.

    Opening a second stream for the same user ends the first one.
    """
    service = _service(request)
    user_id = session.require_user().id
    feed = service.subscribe(user_id)

    async def events() -> AsyncIterator[bytes]:
        async with feed:
            async for notification in feed:
                payload = orjson.dumps(notification.model_dump(mode="json"))
                yield b"event: notification\ndata: " + payload + b"\n\n"
            if feed.error:
                yield b"event: error\ndata: " + orjson.dumps({"error": feed.error}) + b"\n\n"
        logger.info("api.notifications.stream_closed", user_id=user_id)

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
