"""Tests for the local push notification client and payload builders."""

from __future__ import annotations

import pytest

from src.models.enums import PermissionState
from src.models.notification import PushNotification
from src.services.push import (
    HeadlessPushRuntime,
    PushNotificationClient,
    PushRuntime,
    RecordingPushRuntime,
    complaint_update_notification,
    reminder_notification,
    resolution_notification,
    urgent_notification,
    welcome_notification,
)


# ---------------------------------------------------------------------------
# Permission state machine
# ---------------------------------------------------------------------------


class TestPermission:
    def test_runtimes_satisfy_protocol(self) -> None:
        assert isinstance(HeadlessPushRuntime(), PushRuntime)
        assert isinstance(RecordingPushRuntime(), PushRuntime)

    async def test_unsupported_runtime(self) -> None:
        client = PushNotificationClient()
        assert client.is_supported is False
        assert client.is_enabled is False

        result = await client.request_permission()
        assert result.granted is False
        assert result.error == "Push notifications are not supported"

    async def test_default_to_granted(self) -> None:
        runtime = RecordingPushRuntime(answer=PermissionState.GRANTED)
        client = PushNotificationClient(runtime)
        assert client.permission == PermissionState.DEFAULT

        result = await client.request_permission()
        assert result.granted is True
        assert client.is_enabled
        assert runtime.prompt_count == 1

    async def test_granted_does_not_prompt_again(self) -> None:
        runtime = RecordingPushRuntime(permission=PermissionState.GRANTED)
        client = PushNotificationClient(runtime)
        assert (await client.request_permission()).granted
        assert runtime.prompt_count == 0

    async def test_default_to_denied(self) -> None:
        runtime = RecordingPushRuntime(answer=PermissionState.DENIED)
        client = PushNotificationClient(runtime)

        result = await client.request_permission()
        assert result.granted is False
        assert result.error == "Permission denied by user"
        assert client.permission == PermissionState.DENIED

    async def test_denied_is_sticky_unless_user_initiated(self) -> None:
        runtime = RecordingPushRuntime(answer=PermissionState.GRANTED, permission=PermissionState.DENIED)
        client = PushNotificationClient(runtime)

        result = await client.request_permission()
        assert result.error == "Permission denied by user"
        assert runtime.prompt_count == 0, "a denial must not be re-prompted automatically"

        result = await client.request_permission(user_initiated=True)
        assert result.granted is True
        assert runtime.prompt_count == 1


# ---------------------------------------------------------------------------
# Sending and clicks
# ---------------------------------------------------------------------------


class TestSend:
    async def test_send_requires_permission(self) -> None:
        client = PushNotificationClient(RecordingPushRuntime())
        result = await client.send(welcome_notification("Asha"))
        assert result.success is False
        assert result.error == "Notification permission not granted"

    async def test_send_unsupported(self) -> None:
        result = await PushNotificationClient().send(welcome_notification("Asha"))
        assert result.error == "Push notifications are not supported"

    async def test_send_shows_notification(self) -> None:
        runtime = RecordingPushRuntime(permission=PermissionState.GRANTED)
        client = PushNotificationClient(runtime)
        result = await client.send_complaint_update(42, "GRV/2024/000042", "Resolved")
        assert result.success
        assert runtime.shown[0].tag == "complaint-42"

    def test_click_routes_to_complaint(self) -> None:
        notification = complaint_update_notification(42, "GRV/2024/000042", "In Progress")
        assert PushNotificationClient.handle_click(notification) == "/dashboard/complaint/42"
        assert PushNotificationClient.handle_click(notification, "view") == "/dashboard/complaint/42"
        assert PushNotificationClient.handle_click(notification, "dismiss") is None

    def test_click_without_url_goes_to_dashboard(self) -> None:
        assert PushNotificationClient.handle_click(PushNotification(title="t", body="b")) == "/dashboard"


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------


class TestBuilders:
    def test_update_mentions_status_and_message(self) -> None:
        notification = complaint_update_notification(7, "GRV/2024/000007", "In Progress", "Crew dispatched")
        assert notification.title == "Complaint Update - In Progress"
        assert notification.body == "Crew dispatched"
        assert notification.data["url"] == "/dashboard/complaint/7"

    def test_urgent_requires_interaction(self) -> None:
        notification = urgent_notification(7, "GRV/2024/000007", "High")
        assert notification.require_interaction is True
        assert notification.tag == "urgent-7"

    def test_resolution_and_reminder(self) -> None:
        assert resolution_notification(7, "GRV/2024/000007", "Fixed pothole").data["resolution"] == "Fixed pothole"
        reminder = reminder_notification(7, "GRV/2024/000007", 10)
        assert reminder.tag == "reminder-7"
        assert "10" in reminder.body

    @pytest.mark.parametrize("name", ["Asha", "Ravi Kumar"])
    def test_welcome_greets_by_name(self, name: str) -> None:
        assert name in welcome_notification(name).body
