"""Local push notifications.

A thin, capability-gated wrapper over a platform notification runtime
(the browser Notification API in the original portal).  Permission is a
three-state machine::

    default --prompt--> granted
            \\-prompt--> denied

Only the runtime's answer to :meth:`PushRuntime.prompt` moves the state.
Once denied, the client will not prompt again unless the request is
explicitly user-initiated.

The server has no display surface, so :class:`HeadlessPushRuntime` (no
support, every call reports an error) is the default.
:class:`RecordingPushRuntime` keeps what it would have shown in memory
for development and tests.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import structlog

from src.models.enums import PermissionState
from src.models.notification import PushNotification
from src.models.results import PermissionResult, SendResult

logger = structlog.get_logger(__name__)

_NOT_SUPPORTED = "Push notifications are not supported"
_PERMISSION_DENIED = "Permission denied by user"
_NOT_GRANTED = "Notification permission not granted"
_DEFAULT_CLICK_URL = "/dashboard"


# ---------------------------------------------------------------------------
# Runtimes
# ---------------------------------------------------------------------------


@runtime_checkable
class PushRuntime(Protocol):
    """Platform notification surface."""

    @property
    def supported(self) -> bool: ...

    def current_permission(self) -> PermissionState: ...

    async def prompt(self) -> PermissionState: ...

    async def show(self, notification: PushNotification) -> None: ...


class HeadlessPushRuntime:
    """Runtime for processes with no notification surface."""

    @property
    def supported(self) -> bool:
        return False

    def current_permission(self) -> PermissionState:
        return PermissionState.DENIED

    async def prompt(self) -> PermissionState:
        return PermissionState.DENIED

    async def show(self, notification: PushNotification) -> None:
        raise RuntimeError(_NOT_SUPPORTED)


class RecordingPushRuntime:
    """In-memory runtime that answers prompts with a fixed decision.

    ``shown`` collects every displayed notification and ``prompt_count``
    counts how often the user was asked.
    """

    __slots__ = ("_answer", "_permission", "prompt_count", "shown")

    def __init__(
        self,
        answer: PermissionState = PermissionState.GRANTED,
        permission: PermissionState = PermissionState.DEFAULT,
    ) -> None:
        self._answer = answer
        self._permission = permission
        self.prompt_count = 0
        self.shown: list[PushNotification] = []

    @property
    def supported(self) -> bool:
        return True

    def current_permission(self) -> PermissionState:
        return self._permission

    async def prompt(self) -> PermissionState:
        self.prompt_count += 1
        self._permission = self._answer
        return self._answer

    async def show(self, notification: PushNotification) -> None:
        self.shown.append(notification)


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------


def _complaint_data(complaint_id: int | str, **extra: Any) -> dict[str, Any]:
    return {"url": f"/dashboard/complaint/{complaint_id}", "complaint_id": str(complaint_id), **extra}


def complaint_update_notification(
    complaint_id: int | str, registration_number: str, status: str, message: str | None = None
) -> PushNotification:
    return PushNotification(
        title=f"Complaint Update - {status}",
        body=message or f"Your complaint (ID: {registration_number}) status has been updated to {status}",
        tag=f"complaint-{complaint_id}",
        data=_complaint_data(complaint_id, status=status),
        actions=[{"action": "view", "title": "View Details"}],
    )


def welcome_notification(user_name: str) -> PushNotification:
    return PushNotification(
        title="Welcome to Grievance Management System!",
        body=f"Hello {user_name}! You can now file complaints and track their status.",
        data={"url": _DEFAULT_CLICK_URL},
        actions=[{"action": "view", "title": "Go to Dashboard"}],
    )


def resolution_notification(
    complaint_id: int | str, registration_number: str, resolution: str
) -> PushNotification:
    return PushNotification(
        title="\U0001f389 Complaint Resolved!",
        body=f"Your complaint (ID: {registration_number}) has been successfully resolved.",
        tag=f"complaint-{complaint_id}",
        data=_complaint_data(complaint_id, resolution=resolution),
        actions=[{"action": "view", "title": "View Details"}],
    )


def urgent_notification(complaint_id: int | str, registration_number: str, urgency: str) -> PushNotification:
    return PushNotification(
        title="\U0001f6a8 Urgent Update Required",
        body=(
            f"Your complaint (ID: {registration_number}) requires immediate attention. "
            f"Priority: {urgency}"
        ),
        tag=f"urgent-{complaint_id}",
        data=_complaint_data(complaint_id, urgency=urgency),
        require_interaction=True,
        actions=[{"action": "view", "title": "View Now"}],
    )


def reminder_notification(
    complaint_id: int | str, registration_number: str, days_pending: int
) -> PushNotification:
    return PushNotification(
        title="⏰ Complaint Reminder",
        body=(
            f"Your complaint (ID: {registration_number}) has been pending for {days_pending} days. "
            "We're working on it!"
        ),
        tag=f"reminder-{complaint_id}",
        data=_complaint_data(complaint_id, days_pending=days_pending),
        actions=[{"action": "view", "title": "Check Status"}],
    )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class PushNotificationClient:
    """Permission handling and display of local push notifications."""

    __slots__ = ("_permission", "_runtime")

    def __init__(self, runtime: PushRuntime | None = None) -> None:
        self._runtime: PushRuntime = runtime or HeadlessPushRuntime()
        self._permission = (
            self._runtime.current_permission() if self._runtime.supported else PermissionState.DENIED
        )

    @property
    def is_supported(self) -> bool:
        return self._runtime.supported

    @property
    def permission(self) -> PermissionState:
        return self._permission

    @property
    def is_enabled(self) -> bool:
        return self.is_supported and self._permission == PermissionState.GRANTED

    async def request_permission(self, *, user_initiated: bool = False) -> PermissionResult:
        """Ask for permission to show notifications.

        A previous denial is respected unless *user_initiated* is set,
        in which case the user is asked again.
        """
        if not self.is_supported:
            return PermissionResult(granted=False, error=_NOT_SUPPORTED)

        if self._permission == PermissionState.GRANTED:
            return PermissionResult(granted=True)

        if self._permission == PermissionState.DENIED and not user_initiated:
            return PermissionResult(granted=False, error=_PERMISSION_DENIED)

        try:
            self._permission = await self._runtime.prompt()
        except Exception as exc:
            logger.error("push.permission_request_failed", error=str(exc), exc_info=True)
            return PermissionResult(granted=False, error=str(exc))

        logger.info("push.permission_answered", permission=self._permission)
        if self._permission == PermissionState.GRANTED:
            return PermissionResult(granted=True)
        return PermissionResult(granted=False, error=_PERMISSION_DENIED)

    async def send(self, notification: PushNotification) -> SendResult:
        if not self.is_supported:
            return SendResult(success=False, error=_NOT_SUPPORTED)
        if self._permission != PermissionState.GRANTED:
            return SendResult(success=False, error=_NOT_GRANTED)

        try:
            await self._runtime.show(notification)
        except Exception as exc:
            logger.error("push.show_failed", tag=notification.tag, error=str(exc), exc_info=True)
            return SendResult(success=False, error=str(exc))
        return SendResult(success=True)

    @staticmethod
    def handle_click(notification: PushNotification, action: str | None = None) -> str | None:
        """URL the app should route to when *notification* is clicked.

        A click on the body or on the ``view`` action routes to
        ``data["url"]``; other actions do not navigate.
        """
        if action not in (None, "view"):
            return None
        url = notification.data.get("url")
        return url if isinstance(url, str) and url else _DEFAULT_CLICK_URL

    # -- Event helpers -----------------------------------------------------------

    async def send_complaint_update(
        self, complaint_id: int | str, registration_number: str, status: str, message: str | None = None
    ) -> SendResult:
        return await self.send(complaint_update_notification(complaint_id, registration_number, status, message))

    async def send_welcome(self, user_name: str) -> SendResult:
        return await self.send(welcome_notification(user_name))

    async def send_resolution(self, complaint_id: int | str, registration_number: str, resolution: str) -> SendResult:
        return await self.send(resolution_notification(complaint_id, registration_number, resolution))

    async def send_urgent(self, complaint_id: int | str, registration_number: str, urgency: str) -> SendResult:
        return await self.send(urgent_notification(complaint_id, registration_number, urgency))

    async def send_reminder(self, complaint_id: int | str, registration_number: str, days_pending: int) -> SendResult:
        return await self.send(reminder_notification(complaint_id, registration_number, days_pending))
