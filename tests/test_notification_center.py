"""Tests for the per-user notification center."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.models.enums import PermissionState
from src.models.notification import NotificationCreate
from src.models.results import NotificationListResult
from src.services.notification_center import NotificationCenter
from src.services.notifications import NotificationService
from src.services.push import PushNotificationClient, RecordingPushRuntime
from src.services.store import InMemoryRecordStore


@pytest.fixture
def service(store: InMemoryRecordStore) -> NotificationService:
    return NotificationService(store)


async def _create(service: NotificationService, title: str, user_id: str = "u1") -> str:
    result = await service.create_notification(
        NotificationCreate(user_id=user_id, title=title, message=f"{title} message")
    )
    assert result.notification is not None
    return result.notification.id


async def _settle(condition, timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("notification center did not settle")
        await asyncio.sleep(0.01)


# ---------------------------------------------------------------------------
# Loading and user actions
# ---------------------------------------------------------------------------


class TestLoadAndActions:
    async def test_load_fetches_list_and_count(self, service: NotificationService) -> None:
        await _create(service, "first")
        await _create(service, "second")
        center = NotificationCenter(service, "u1")

        assert await center.load()
        assert [n.title for n in center.notifications] == ["second", "first"]
        assert center.unread_count == 2
        assert center.loading is False

    async def test_load_failure_shows_toast(self) -> None:
        broken = MagicMock(spec=NotificationService)
        broken.get_user_notifications = AsyncMock(return_value=NotificationListResult(error="store down"))
        center = NotificationCenter(broken, "u1")

        assert await center.load() is False
        assert center.toasts[-1].description == "Failed to load notifications"
        assert center.toasts[-1].variant == "destructive"

    async def test_mark_as_read_rereads_count(self, service: NotificationService) -> None:
        first = await _create(service, "first")
        await _create(service, "second")
        center = NotificationCenter(service, "u1")
        await center.load()

        assert await center.mark_as_read(first)
        assert await center.mark_as_read(first), "marking twice is harmless"
        assert center.unread_count == 1
        assert next(n for n in center.notifications if n.id == first).is_read

    async def test_mark_all_and_delete(self, service: NotificationService) -> None:
        first = await _create(service, "first")
        await _create(service, "second")
        center = NotificationCenter(service, "u1")
        await center.load()

        assert await center.delete(first)
        assert [n.title for n in center.notifications] == ["second"]
        assert center.unread_count == 1

        assert await center.mark_all_as_read()
        assert center.unread_count == 0
        assert all(n.is_read for n in center.notifications)

    async def test_delete_unknown_shows_error(self, service: NotificationService) -> None:
        center = NotificationCenter(service, "u1")
        assert await center.delete("missing") is False
        assert center.toasts[-1].description == "Failed to delete notification"


# ---------------------------------------------------------------------------
# Live updates
# ---------------------------------------------------------------------------


class TestLiveUpdates:
    async def test_new_notification_is_prepended_with_toast(self, service: NotificationService) -> None:
        await _create(service, "old")
        async with NotificationCenter(service, "u1") as center:
            await center.load()
            assert center.live

            await _create(service, "fresh")
            await _settle(lambda: center.unread_count == 2)

            assert center.notifications[0].title == "fresh"
            assert center.toasts[-1].title == "fresh"
            assert center.toasts[-1].description == "fresh message"
        assert not center.live
        assert not service.has_live_feed("u1")

    async def test_push_sent_when_enabled(self, service: NotificationService) -> None:
        runtime = RecordingPushRuntime(answer=PermissionState.GRANTED)
        center = NotificationCenter(service, "u1", push=PushNotificationClient(runtime))
        assert await center.enable_push()
        assert center.toasts[-1].description == "Push notifications enabled!"

        await center.start()
        await _create(service, "fresh")
        await _settle(lambda: len(runtime.shown) == 1)
        await center.stop()

        assert runtime.shown[0].title == "fresh"
        assert runtime.shown[0].data["url"] == "/dashboard"

    async def test_start_twice_keeps_one_feed(self, service: NotificationService, store: InMemoryRecordStore) -> None:
        center = NotificationCenter(service, "u1")
        await center.start()
        await center.start()
        assert store.listener_count("notifications") == 1
        await center.stop()
        assert store.listener_count("notifications") == 0


# ---------------------------------------------------------------------------
# Push opt-in
# ---------------------------------------------------------------------------


class TestEnablePush:
    async def test_denied_shows_destructive_toast(self, service: NotificationService) -> None:
        runtime = RecordingPushRuntime(answer=PermissionState.DENIED)
        center = NotificationCenter(service, "u1", push=PushNotificationClient(runtime))

        assert await center.enable_push() is False
        assert center.push_enabled is False
        assert center.toasts[-1].title == "Permission Denied"
        assert center.toasts[-1].variant == "destructive"

    async def test_previous_denial_is_asked_again(self, service: NotificationService) -> None:
        runtime = RecordingPushRuntime(answer=PermissionState.GRANTED, permission=PermissionState.DENIED)
        center = NotificationCenter(service, "u1", push=PushNotificationClient(runtime))
        assert await center.enable_push()
        assert runtime.prompt_count == 1

    async def test_unsupported_shows_error(self, service: NotificationService) -> None:
        center = NotificationCenter(service, "u1", push=PushNotificationClient())
        assert await center.enable_push() is False
        assert center.toasts[-1].title == "Error"
        assert center.toasts[-1].description == "Failed to enable push notifications"
