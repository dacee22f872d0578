"""Per-user notification center state.

Holds what a notification bell shows for one user: the notification
list (newest first), the unread count, push opt-in and a queue of
transient toasts.  New notifications arrive through the user's live
feed while :meth:`NotificationCenter.start` is active.

Each live-feed event is applied in one synchronous step (prepend,
count, toast) so it cannot interleave with a read or delete handler
half-way.  After every operation the center performs itself, the unread
count is re-read from the store rather than adjusted locally.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from src.models.notification import Notification, PushNotification

if TYPE_CHECKING:
    from types import TracebackType

    from src.models.results import SendResult
    from src.services.notifications import NotificationFeed, NotificationService
    from src.services.push import PushNotificationClient

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class Toast:
    """A transient banner; ``variant="destructive"`` marks failures."""

    title: str
    description: str
    variant: str = "default"


class NotificationCenter:
    """Notification list, unread count and toasts for one user."""

    __slots__ = (
        "_feed",
        "_push",
        "_service",
        "_task",
        "loading",
        "notifications",
        "push_enabled",
        "toasts",
        "unread_count",
        "user_id",
    )

    def __init__(
        self,
        service: NotificationService,
        user_id: str,
        *,
        push: PushNotificationClient | None = None,
        max_toasts: int = 20,
    ) -> None:
        self._service = service
        self._push = push
        self.user_id = user_id
        self.notifications: list[Notification] = []
        self.unread_count = 0
        self.loading = False
        self.push_enabled = False
        self.toasts: deque[Toast] = deque(maxlen=max_toasts)
        self._feed: NotificationFeed | None = None
        self._task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> bool:
        """Fetch the list and the unread count from the store."""
        self.loading = True
        try:
            listing = await self._service.get_user_notifications(self.user_id)
            if listing.error:
                logger.error("notification_center.load_failed", user_id=self.user_id, error=listing.error)
                self._error("Failed to load notifications")
                return False
            self.notifications = listing.data
            await self._refresh_unread_count()
            return True
        finally:
            self.loading = False

    # ------------------------------------------------------------------
    # Live feed
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Open the live feed and apply new notifications as they arrive."""
        if self._task is not None and not self._task.done():
            return
        self._feed = self._service.subscribe(self.user_id)
        self._task = asyncio.create_task(self._feed.deliver(self._on_insert))

    async def stop(self) -> None:
        if self._feed is not None:
            self._feed.close()
        if self._task is not None:
            await self._task
        self._feed = None
        self._task = None

    @property
    def live(self) -> bool:
        return self._feed is not None and not self._feed.closed

    def _on_insert(self, notification: Notification) -> Awaitable[SendResult] | None:
        self.notifications.insert(0, notification)
        if not notification.is_read:
            self.unread_count += 1
        self.toasts.append(Toast(title=notification.title, description=notification.message))

        if self.push_enabled and self._push is not None:
            return self._push.send(
                PushNotification(
                    title=notification.title,
                    body=notification.message,
                    data={"url": notification.action_url or "/dashboard"},
                )
            )
        return None

    async def __aenter__(self) -> NotificationCenter:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    async def mark_as_read(self, notification_id: str) -> bool:
        result = await self._service.mark_as_read(notification_id)
        if not result.success:
            logger.error("notification_center.mark_read_failed", notification_id=notification_id, error=result.error)
            self._error("Failed to mark notification as read")
            return False

        for item in self.notifications:
            if item.id == notification_id:
                item.is_read = True
        await self._refresh_unread_count()
        return True

    async def mark_all_as_read(self) -> bool:
        result = await self._service.mark_all_as_read(self.user_id)
        if not result.success:
            logger.error("notification_center.mark_all_read_failed", user_id=self.user_id, error=result.error)
            self._error("Failed to mark notifications as read")
            return False

        for item in self.notifications:
            item.is_read = True
        await self._refresh_unread_count()
        return True

    async def delete(self, notification_id: str) -> bool:
        result = await self._service.delete_notification(notification_id)
        if not result.success:
            logger.error("notification_center.delete_failed", notification_id=notification_id, error=result.error)
            self._error("Failed to delete notification")
            return False

        self.notifications = [n for n in self.notifications if n.id != notification_id]
        await self._refresh_unread_count()
        return True

    async def enable_push(self) -> bool:
        """Ask for push permission on the user's behalf."""
        if self._push is None:
            self._error("Push notifications are not supported")
            return False

        result = await self._push.request_permission(user_initiated=True)
        if result.granted:
            self.push_enabled = True
            self.toasts.append(Toast(title="Success", description="Push notifications enabled!"))
            return True

        self.push_enabled = False
        if self._push.is_supported:
            self.toasts.append(
                Toast(
                    title="Permission Denied",
                    description="Please enable notifications in your browser settings",
                    variant="destructive",
                )
            )
        else:
            self._error("Failed to enable push notifications")
        return False

    # -- Helpers -----------------------------------------------------------------

    async def _refresh_unread_count(self) -> None:
        counted = await self._service.get_unread_count(self.user_id)
        if counted.error:
            logger.warning("notification_center.count_failed", user_id=self.user_id, error=counted.error)
            return
        self.unread_count = counted.count

    def _error(self, description: str) -> None:
        self.toasts.append(Toast(title="Error", description=description, variant="destructive"))
