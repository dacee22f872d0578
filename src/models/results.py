"""Result objects returned by the notification and chat layer.

Public operations in the notification core report failure as data
rather than raising.  Callers check ``success`` (or ``error``) before
trusting the payload.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from src.models.notification import Notification


class SendResult(BaseModel):
    """Outcome of one channel delivery attempt (email, WhatsApp, push)."""

    success: bool
    error: str | None = None
    provider_message_id: str | None = None


class OperationResult(BaseModel):
    """Outcome of a store mutation (mark read, delete, ...)."""

    success: bool
    error: str | None = None


class NotificationResult(BaseModel):
    success: bool
    notification: Notification | None = None
    error: str | None = None


class NotificationListResult(BaseModel):
    data: list[Notification] = Field(default_factory=list)
    error: str | None = None


class UnreadCountResult(BaseModel):
    count: int = 0
    error: str | None = None


class DispatchResult(BaseModel):
    """Outcome of a single-user dispatch.

    ``channels`` records which deliveries were attempted and whether
    each succeeded.  It never affects ``success``.
    """

    success: bool
    error: str | None = None
    channels: dict[str, bool] = Field(default_factory=dict)


class BulkDispatchResult(BaseModel):
    success: bool
    sent_count: int = 0
    error: str | None = None


class PermissionResult(BaseModel):
    granted: bool
    error: str | None = None
