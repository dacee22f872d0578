"""Multi-channel complaint notification dispatcher.

Given a complaint event, resolves the owner's contact details and the
complaint's display fields, then fans the message out to:

1. **In-app** -- one row in the ``notifications`` table, which reaches
   an open notification center through its live feed.
2. **Email** -- an HTML template, if requested and an address is on file.
3. **WhatsApp** -- a plain-text message, if requested and a phone is on file.
4. **Push** -- a local push notification, if requested.

Resolution failures (no profile, no complaint) fail the whole dispatch.
After that every channel is attempted concurrently and independently: a
failing channel is logged and reported in ``DispatchResult.channels``
but never affects the others or the overall ``success``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Sequence
from typing import TYPE_CHECKING, Any

import structlog

from src.models.enums import DispatchKind, NotificationCategory, NotificationType
from src.models.notification import DispatchEvent, NotificationCreate
from src.models.results import BulkDispatchResult, DispatchResult
from src.models.user import Profile

if TYPE_CHECKING:
    from src.services.email_service import EmailService
    from src.services.notifications import NotificationService
    from src.services.push import PushNotificationClient
    from src.services.store import RecordStore
    from src.services.whatsapp import WhatsAppService

logger = structlog.get_logger(__name__)

_FALLBACK_NAME = "User"


class NotificationDispatcher:
    """Fan-out of complaint events to in-app, email, WhatsApp and push.

    Parameters
    ----------
    store:
        Record store holding the ``profiles`` and ``complaints`` tables.
    notifications:
        In-app notification adapter.
    email, whatsapp, push:
        Channel senders.  Each returns a result object; exceptions they
        raise anyway are caught per channel.
    """

    __slots__ = ("_email", "_notifications", "_push", "_store", "_whatsapp")

    def __init__(
        self,
        store: RecordStore,
        notifications: NotificationService,
        email: EmailService,
        whatsapp: WhatsAppService,
        push: PushNotificationClient,
    ) -> None:
        self._store = store
        self._notifications = notifications
        self._email = email
        self._whatsapp = whatsapp
        self._push = push

    # ------------------------------------------------------------------
    # Core fan-out
    # ------------------------------------------------------------------

    async def dispatch(self, event: DispatchEvent) -> DispatchResult:
        log = logger.bind(complaint_id=event.complaint_id, user_id=event.user_id, kind=event.kind)

        try:
            profile = await self._load_profile(event.user_id)
            complaint = await self._store.select_one("complaints", filters={"id": event.complaint_id})
        except Exception as exc:
            log.error("dispatcher.resolve_failed", exc_info=True)
            return DispatchResult(success=False, error=str(exc))

        if profile is None:
            log.warning("dispatcher.profile_missing")
            return DispatchResult(success=False, error=f"Profile not found for user {event.user_id}")
        if complaint is None:
            log.warning("dispatcher.complaint_missing")
            return DispatchResult(success=False, error=f"Complaint {event.complaint_id} not found")

        registration_number = complaint.get("registration_number") or str(event.complaint_id)
        name = profile.name or _FALLBACK_NAME

        attempts: dict[str, Awaitable[Any]] = {
            "in_app": self._send_in_app(event, registration_number),
        }
        if event.send_email and profile.email:
            attempts["email"] = self._send_email(event, profile.email, name, registration_number)
        if event.send_whatsapp and profile.phone:
            attempts["whatsapp"] = self._send_whatsapp(event, profile.phone, name, registration_number)
        if event.send_push:
            attempts["push"] = self._send_push(event, registration_number)

        channels = await self._run_channels(attempts, log)
        log.info("dispatcher.dispatched", channels=channels)
        return DispatchResult(success=True, channels=channels)

    @staticmethod
    async def _run_channels(attempts: dict[str, Awaitable[Any]], log: Any) -> dict[str, bool]:
        names = list(attempts)
        outcomes = await asyncio.gather(*attempts.values(), return_exceptions=True)

        channels: dict[str, bool] = {}
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, BaseException):
                log.error("dispatcher.channel_failed", channel=name, error=str(outcome), exc_info=outcome)
                channels[name] = False
            elif not outcome.success:
                log.warning("dispatcher.channel_failed", channel=name, error=outcome.error)
                channels[name] = False
            else:
                channels[name] = True
        return channels

    async def _load_profile(self, user_id: str) -> Profile | None:
        row = await self._store.select_one("profiles", filters={"id": user_id})
        return Profile.model_validate(row) if row is not None else None

    # -- Channel renderers -------------------------------------------------------

    async def _send_in_app(self, event: DispatchEvent, registration_number: str) -> Any:
        # Validation errors on the row surface here, inside the gathered channel.
        payload = NotificationCreate(
            user_id=event.user_id,
            title=f"Complaint Update - {registration_number}",
            message=event.message,
            type=event.type,
            category=event.category,
            complaint_id=str(event.complaint_id),
            action_url=f"/dashboard/complaint/{event.complaint_id}",
            is_read=False,
        )
        return await self._notifications.create_notification(payload)

    async def _send_email(self, event: DispatchEvent, to: str, name: str, registration_number: str) -> Any:
        if event.kind == DispatchKind.RESOLUTION:
            return await self._email.send_resolution_email(
                to, name, registration_number, event.complaint_id, event.resolution or event.message
            )
        status = event.status or ("Urgent" if event.kind == DispatchKind.URGENT else "Updated")
        return await self._email.send_complaint_update_email(
            to, name, registration_number, event.complaint_id, status, event.message
        )

    async def _send_whatsapp(self, event: DispatchEvent, to: str, name: str, registration_number: str) -> Any:
        wa = self._whatsapp
        if event.kind == DispatchKind.RESOLUTION:
            text = wa.render_resolution(name, registration_number, event.complaint_id, event.resolution or "")
            template = "resolution"
        elif event.kind == DispatchKind.URGENT:
            text = wa.render_urgent(name, registration_number, event.complaint_id, event.urgency or "")
            template = "urgent"
        elif event.kind == DispatchKind.REMINDER:
            text = wa.render_reminder(name, registration_number, event.complaint_id, event.days_pending or 0)
            template = "reminder"
        else:
            text = wa.render_complaint_update(
                name, registration_number, event.complaint_id, event.status or "Updated", event.message
            )
            template = "complaint_update"
        return await wa.send(to, text, template=template)

    async def _send_push(self, event: DispatchEvent, registration_number: str) -> Any:
        push = self._push
        if event.kind == DispatchKind.RESOLUTION:
            return await push.send_resolution(event.complaint_id, registration_number, event.resolution or "")
        if event.kind == DispatchKind.URGENT:
            return await push.send_urgent(event.complaint_id, registration_number, event.urgency or "")
        if event.kind == DispatchKind.REMINDER:
            return await push.send_reminder(event.complaint_id, registration_number, event.days_pending or 0)
        return await push.send_complaint_update(
            event.complaint_id, registration_number, event.status or "Updated", event.message
        )

    # ------------------------------------------------------------------
    # Event helpers
    # ------------------------------------------------------------------

    async def send_status_update(
        self, complaint_id: int, user_id: str, new_status: str, message: str | None = None
    ) -> DispatchResult:
        return await self.dispatch(
            DispatchEvent(
                complaint_id=complaint_id,
                user_id=user_id,
                message=message or f"Your complaint status has been updated to: {new_status}",
                type=NotificationType.INFO,
                category=NotificationCategory.STATUS_CHANGE,
                status=new_status,
                send_email=True,
                send_push=True,
            )
        )

    async def send_assignment(self, complaint_id: int, user_id: str, department: str) -> DispatchResult:
        return await self.dispatch(
            DispatchEvent(
                complaint_id=complaint_id,
                user_id=user_id,
                message=f"Your complaint has been assigned to {department} for review.",
                type=NotificationType.INFO,
                category=NotificationCategory.ASSIGNMENT,
                status="Assigned",
                send_email=True,
                send_push=True,
            )
        )

    async def send_resolution(self, complaint_id: int, user_id: str, resolution: str) -> DispatchResult:
        return await self.dispatch(
            DispatchEvent(
                complaint_id=complaint_id,
                user_id=user_id,
                message=f"\U0001f389 Your complaint has been resolved! Resolution: {resolution}",
                type=NotificationType.SUCCESS,
                category=NotificationCategory.RESOLUTION,
                kind=DispatchKind.RESOLUTION,
                resolution=resolution,
                send_email=True,
                send_whatsapp=True,
                send_push=True,
            )
        )

    async def send_urgent(self, complaint_id: int, user_id: str, urgency: str) -> DispatchResult:
        return await self.dispatch(
            DispatchEvent(
                complaint_id=complaint_id,
                user_id=user_id,
                message=f"\U0001f6a8 URGENT: Your complaint requires immediate attention. Priority: {urgency}",
                type=NotificationType.ERROR,
                category=NotificationCategory.COMPLAINT_UPDATE,
                kind=DispatchKind.URGENT,
                urgency=urgency,
                send_email=True,
                send_whatsapp=True,
                send_push=True,
            )
        )

    async def send_reminder(self, complaint_id: int, user_id: str, days_pending: int) -> DispatchResult:
        return await self.dispatch(
            DispatchEvent(
                complaint_id=complaint_id,
                user_id=user_id,
                message=(
                    f"⏰ Reminder: Your complaint has been pending for {days_pending} days. "
                    "We're working on it!"
                ),
                type=NotificationType.WARNING,
                category=NotificationCategory.GENERAL,
                kind=DispatchKind.REMINDER,
                status="Pending",
                days_pending=days_pending,
                send_email=True,
                send_push=True,
            )
        )

    async def send_welcome(self, user_id: str) -> DispatchResult:
        """Greet a newly registered user on every channel with contact details."""
        log = logger.bind(user_id=user_id, kind="welcome")
        try:
            profile = await self._load_profile(user_id)
        except Exception as exc:
            log.error("dispatcher.resolve_failed", exc_info=True)
            return DispatchResult(success=False, error=str(exc))
        if profile is None:
            return DispatchResult(success=False, error=f"Profile not found for user {user_id}")

        name = profile.name or _FALLBACK_NAME
        attempts: dict[str, Awaitable[Any]] = {"push": self._push.send_welcome(name)}
        if profile.email:
            attempts["email"] = self._email.send_welcome_email(profile.email, name)
        if profile.phone:
            attempts["whatsapp"] = self._whatsapp.send(
                profile.phone, self._whatsapp.render_welcome(name), template="welcome"
            )

        channels = await self._run_channels(attempts, log)
        return DispatchResult(success=True, channels=channels)

    # ------------------------------------------------------------------
    # Announcements
    # ------------------------------------------------------------------

    async def send_bulk(
        self,
        user_ids: Sequence[str],
        title: str,
        message: str,
        type: NotificationType = NotificationType.INFO,
        category: NotificationCategory = NotificationCategory.GENERAL,
    ) -> BulkDispatchResult:
        """Create one in-app notification per user, one user at a time."""
        sent_count = 0
        errors: list[str] = []

        for user_id in user_ids:
            try:
                result = await self._notifications.create_notification(
                    NotificationCreate(
                        user_id=user_id,
                        title=title,
                        message=message,
                        type=type,
                        category=category,
                        action_url="/dashboard",
                        is_read=False,
                    )
                )
            except Exception as exc:
                errors.append(f"Error sending to user {user_id}: {exc}")
                continue

            if result.success:
                sent_count += 1
            else:
                errors.append(f"Failed to send to user {user_id}: {result.error}")

        if errors:
            logger.error("dispatcher.bulk_errors", errors=errors, sent_count=sent_count)

        return BulkDispatchResult(
            success=sent_count > 0,
            sent_count=sent_count,
            error="; ".join(errors) if errors else None,
        )

    async def send_system_announcement(
        self,
        title: str,
        message: str,
        type: NotificationType = NotificationType.INFO,
    ) -> BulkDispatchResult:
        """Bulk announcement to every registered profile."""
        try:
            rows = await self._store.select("profiles", predicate=lambda r: r.get("id") is not None)
        except Exception as exc:
            logger.error("dispatcher.announcement_failed", exc_info=True)
            return BulkDispatchResult(success=False, sent_count=0, error=str(exc))

        user_ids = [str(r["id"]) for r in rows]
        return await self.send_bulk(user_ids, title, message, type, NotificationCategory.GENERAL)
