"""In-app notification models.

A :class:`Notification` belongs to exactly one user and is mutated only
by read-flag toggles.  ``type`` and ``category`` are hints for the
client; the backend treats every value the same way.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from src.models.enums import DispatchKind, NotificationCategory, NotificationType


class NotificationCreate(BaseModel):
    """Fields supplied by the caller when creating a notification."""

    user_id: str
    title: str = Field(..., min_length=1, max_length=300)
    message: str = Field(..., min_length=1, max_length=5000)
    type: NotificationType = NotificationType.INFO
    category: NotificationCategory = NotificationCategory.GENERAL
    complaint_id: str | None = None
    action_url: str | None = None
    is_read: bool = False


class Notification(NotificationCreate):
    """A stored notification row."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Notification:
        return cls.model_validate(row)


class NotificationPreferences(BaseModel):
    """Per-user delivery toggles.  All channels are enabled by default."""

    user_id: str
    email_notifications: bool = True
    sms_notifications: bool = True
    whatsapp_notifications: bool = True
    push_notifications: bool = True
    complaint_updates: bool = True
    status_changes: bool = True
    assignments: bool = True
    general_announcements: bool = True


class PushNotification(BaseModel):
    """Payload for a local push notification."""

    title: str
    body: str
    icon: str = "/government-logo.jpg"
    badge: str = "/government-logo.jpg"
    image: str | None = None
    tag: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    actions: list[dict[str, str]] = Field(default_factory=list)
    require_interaction: bool = False
    silent: bool = False


class DispatchEvent(BaseModel):
    """A complaint event to fan out across delivery channels.

    Channel flags default to off; the dispatcher's event helpers switch
    on the channels each event kind uses.  ``status``, ``resolution``,
    ``urgency`` and ``days_pending`` feed the kind-specific templates.
    """

    complaint_id: int
    user_id: str
    message: str
    type: NotificationType = NotificationType.INFO
    category: NotificationCategory = NotificationCategory.GENERAL
    kind: DispatchKind = DispatchKind.UPDATE
    send_email: bool = False
    send_whatsapp: bool = False
    send_push: bool = False

    status: str | None = None
    resolution: str | None = None
    urgency: str | None = None
    days_pending: int | None = None
