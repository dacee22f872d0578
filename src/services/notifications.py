"""In-app notification store adapter.

Wraps the ``notifications`` table of the record store with the CRUD
operations the portal needs plus a per-user live feed of new rows.

Every public method returns a result object (see
:mod:`src.models.results`) instead of raising, so the HTTP layer and the
notification center can degrade gracefully when the store misbehaves.

Live feeds
----------
:meth:`NotificationService.subscribe` returns a :class:`NotificationFeed`
that yields each notification inserted for the user, in insert order.
It is an async iterator *and* an async context manager; leaving the
``async with`` block releases the underlying change feed::

    async with notifications.subscribe(user_id) as feed:
        async for notification in feed:
            ...

Only one live feed per user is kept.  Subscribing again closes the
previous feed first so the same insert is never delivered twice.

If the store drops the change feed, the feed logs the failure and
re-listens with exponential backoff.  When every attempt fails the feed
ends and exposes the reason on :attr:`NotificationFeed.error`; callers
may subscribe again by hand.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Final

import structlog
from tenacity import AsyncRetrying, RetryError, stop_after_attempt, wait_exponential

from src.models.notification import Notification, NotificationCreate, NotificationPreferences
from src.models.results import (
    NotificationListResult,
    NotificationResult,
    OperationResult,
    UnreadCountResult,
)
from src.services.store import ChangeFeed, ChangeFeedClosed

if TYPE_CHECKING:
    from types import TracebackType

    from src.services.store import RecordStore

logger = structlog.get_logger(__name__)

NOTIFICATIONS_TABLE: Final[str] = "notifications"
PREFERENCES_TABLE: Final[str] = "notification_preferences"


# ---------------------------------------------------------------------------
# Live feed
# ---------------------------------------------------------------------------


class NotificationFeed:
    """Live stream of notifications inserted for one user."""

    __slots__ = (
        "_backoff_max",
        "_closed",
        "_feed",
        "_on_close",
        "_resubscribe_attempts",
        "_store",
        "error",
        "user_id",
    )

    def __init__(
        self,
        store: RecordStore,
        user_id: str,
        *,
        resubscribe_attempts: int = 5,
        backoff_max: float = 30.0,
        on_close: Callable[[NotificationFeed], None] | None = None,
    ) -> None:
        self._store = store
        self.user_id = user_id
        self._resubscribe_attempts = resubscribe_attempts
        self._backoff_max = backoff_max
        self._on_close = on_close
        self._closed = False
        self.error: str | None = None
        self._feed: ChangeFeed = store.listen(NOTIFICATIONS_TABLE, filters={"user_id": user_id})

    @property
    def closed(self) -> bool:
        return self._closed

    # -- Iteration -------------------------------------------------------------

    def __aiter__(self) -> NotificationFeed:
        return self

    async def __anext__(self) -> Notification:
        while not self._closed:
            try:
                row = await self._feed.next()
            except ChangeFeedClosed:
                if self._closed:
                    break
                await self._recover("change feed closed by store")
                continue
            except Exception as exc:
                if self._closed:
                    break
                await self._recover(str(exc))
                continue
            return Notification.from_row(row)
        raise StopAsyncIteration

    async def deliver(self, on_insert: Callable[[Notification], Awaitable[None] | None]) -> None:
        """Invoke *on_insert* once per new notification until the feed ends."""
        async for notification in self:
            result = on_insert(notification)
            if result is not None:
                await result

    # -- Recovery --------------------------------------------------------------

    async def _recover(self, reason: str) -> None:
        logger.warning("notifications.feed_error", user_id=self.user_id, error=reason)
        self._feed.close()

        if self._resubscribe_attempts <= 0:
            self.error = reason
            self.close()
            return

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._resubscribe_attempts),
                wait=wait_exponential(multiplier=0.5, max=self._backoff_max),
            ):
                with attempt:
                    self._feed = self._store.listen(NOTIFICATIONS_TABLE, filters={"user_id": self.user_id})
        except RetryError as exc:
            last = exc.last_attempt.exception()
            self.error = str(last) if last is not None else reason
            logger.error("notifications.feed_resubscribe_failed", user_id=self.user_id, error=self.error)
            self.close()
            return

        logger.info("notifications.feed_resubscribed", user_id=self.user_id)

    # -- Lifecycle -------------------------------------------------------------

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._feed.close()
        if self._on_close is not None:
            self._on_close(self)
        logger.debug("notifications.feed_closed", user_id=self.user_id)

    async def __aenter__(self) -> NotificationFeed:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


# ---------------------------------------------------------------------------
# Notification service
# ---------------------------------------------------------------------------


class NotificationService:
    """CRUD and live feeds over the ``notifications`` table.

    Parameters
    ----------
    store:
        Record store holding the ``notifications`` table.
    default_limit:
        Page size for :meth:`get_user_notifications` when none is given.
    resubscribe_attempts, backoff_max:
        Recovery policy for live feeds whose change feed fails.
    """

    __slots__ = ("_backoff_max", "_default_limit", "_feeds", "_resubscribe_attempts", "_store")

    def __init__(
        self,
        store: RecordStore,
        *,
        default_limit: int = 50,
        resubscribe_attempts: int = 5,
        backoff_max: float = 30.0,
    ) -> None:
        self._store = store
        self._default_limit = default_limit
        self._resubscribe_attempts = resubscribe_attempts
        self._backoff_max = backoff_max
        self._feeds: dict[str, NotificationFeed] = {}

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def create_notification(self, notification: NotificationCreate) -> NotificationResult:
        record = Notification(**notification.model_dump())
        try:
            row = await self._store.insert(NOTIFICATIONS_TABLE, record.model_dump())
        except Exception as exc:
            logger.error("notifications.create_failed", user_id=notification.user_id, exc_info=True)
            return NotificationResult(success=False, error=str(exc))

        logger.info(
            "notifications.created",
            notification_id=record.id,
            user_id=record.user_id,
            category=record.category,
        )
        return NotificationResult(success=True, notification=Notification.from_row(row))

    async def get_user_notifications(self, user_id: str, limit: int | None = None) -> NotificationListResult:
        """Most recent first, at most *limit* rows."""
        try:
            rows = await self._store.select(
                NOTIFICATIONS_TABLE,
                filters={"user_id": user_id},
                order_by="created_at",
                descending=True,
                limit=limit or self._default_limit,
            )
        except Exception as exc:
            logger.error("notifications.list_failed", user_id=user_id, exc_info=True)
            return NotificationListResult(data=[], error=str(exc))
        return NotificationListResult(data=[Notification.from_row(r) for r in rows])

    async def get_notification(self, notification_id: str) -> NotificationResult:
        try:
            row = await self._store.select_one(NOTIFICATIONS_TABLE, filters={"id": notification_id})
        except Exception as exc:
            logger.error("notifications.get_failed", notification_id=notification_id, exc_info=True)
            return NotificationResult(success=False, error=str(exc))
        if row is None:
            return NotificationResult(success=False, error="Notification not found")
        return NotificationResult(success=True, notification=Notification.from_row(row))

    async def mark_as_read(self, notification_id: str) -> OperationResult:
        """Set ``is_read``.  Marking an already-read notification is a no-op."""
        try:
            updated = await self._store.update(
                NOTIFICATIONS_TABLE, {"is_read": True}, filters={"id": notification_id}
            )
        except Exception as exc:
            logger.error("notifications.mark_read_failed", notification_id=notification_id, exc_info=True)
            return OperationResult(success=False, error=str(exc))
        if not updated:
            return OperationResult(success=False, error="Notification not found")
        return OperationResult(success=True)

    async def mark_all_as_read(self, user_id: str) -> OperationResult:
        try:
            updated = await self._store.update(
                NOTIFICATIONS_TABLE,
                {"is_read": True},
                filters={"user_id": user_id, "is_read": False},
            )
        except Exception as exc:
            logger.error("notifications.mark_all_read_failed", user_id=user_id, exc_info=True)
            return OperationResult(success=False, error=str(exc))
        logger.info("notifications.marked_all_read", user_id=user_id, updated=len(updated))
        return OperationResult(success=True)

    async def get_unread_count(self, user_id: str) -> UnreadCountResult:
        try:
            count = await self._store.count(NOTIFICATIONS_TABLE, filters={"user_id": user_id, "is_read": False})
        except Exception as exc:
            logger.error("notifications.unread_count_failed", user_id=user_id, exc_info=True)
            return UnreadCountResult(count=0, error=str(exc))
        return UnreadCountResult(count=count)

    async def delete_notification(self, notification_id: str) -> OperationResult:
        try:
            deleted = await self._store.delete(NOTIFICATIONS_TABLE, filters={"id": notification_id})
        except Exception as exc:
            logger.error("notifications.delete_failed", notification_id=notification_id, exc_info=True)
            return OperationResult(success=False, error=str(exc))
        if deleted == 0:
            return OperationResult(success=False, error="Notification not found")
        return OperationResult(success=True)

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    async def get_preferences(self, user_id: str) -> NotificationPreferences:
        """Stored preferences, or the defaults when none are stored or the read fails."""
        try:
            row = await self._store.select_one(PREFERENCES_TABLE, filters={"user_id": user_id})
        except Exception:
            logger.error("notifications.preferences_failed", user_id=user_id, exc_info=True)
            return NotificationPreferences(user_id=user_id)
        if row is None:
            return NotificationPreferences(user_id=user_id)
        row.pop("id", None)
        return NotificationPreferences.model_validate(row)

    async def update_preferences(self, preferences: NotificationPreferences) -> OperationResult:
        values = preferences.model_dump()
        try:
            updated = await self._store.update(
                PREFERENCES_TABLE, values, filters={"user_id": preferences.user_id}
            )
            if not updated:
                await self._store.insert(PREFERENCES_TABLE, values)
        except Exception as exc:
            logger.error("notifications.preferences_update_failed", user_id=preferences.user_id, exc_info=True)
            return OperationResult(success=False, error=str(exc))
        return OperationResult(success=True)

    # ------------------------------------------------------------------
    # Live feeds
    # ------------------------------------------------------------------

    def subscribe(self, user_id: str) -> NotificationFeed:
        """Open the live feed for *user_id*, replacing any existing one.

        The replacement is opened before the existing feed is closed, so a
        store that refuses the new listener leaves the old feed running.
        """
        try:
            feed = NotificationFeed(
                self._store,
                user_id,
                resubscribe_attempts=self._resubscribe_attempts,
                backoff_max=self._backoff_max,
                on_close=self._forget,
            )
        except Exception:
            logger.error("notifications.feed_open_failed", user_id=user_id, exc_info=True)
            raise

        existing = self._feeds.get(user_id)
        self._feeds[user_id] = feed
        if existing is not None:
            logger.info("notifications.feed_replaced", user_id=user_id)
            existing.close()

        logger.info("notifications.feed_opened", user_id=user_id)
        return feed

    def unsubscribe(self, user_id: str) -> None:
        feed = self._feeds.get(user_id)
        if feed is not None:
            feed.close()

    def has_live_feed(self, user_id: str) -> bool:
        return user_id in self._feeds

    def _forget(self, feed: NotificationFeed) -> None:
        if self._feeds.get(feed.user_id) is feed:
            del self._feeds[feed.user_id]

    async def close(self) -> None:
        """Close every live feed."""
        for feed in list(self._feeds.values()):
            feed.close()
