"""Tests for the signed-in user context."""

from __future__ import annotations

import pytest

from src.models.enums import AdminRole
from src.models.user import UserIdentity
from src.services.complaints import NotAuthenticatedError, PermissionDeniedError
from src.services.session import (
    MANAGE_CATEGORIES,
    MANAGE_COMPLAINTS,
    SEND_NOTIFICATIONS,
    IdentityProvider,
    SessionContext,
    StaticIdentityProvider,
)
from src.services.store import InMemoryRecordStore
from tests.helpers import CITIZEN_ID, admin_row


async def _session(store: InMemoryRecordStore, user_id: str | None) -> SessionContext:
    identity = StaticIdentityProvider(UserIdentity(id=user_id, email=f"{user_id}@example.in") if user_id else None)
    session = SessionContext(identity, store)
    await session.refresh()
    return session


class TestRefresh:
    def test_static_provider_satisfies_protocol(self) -> None:
        assert isinstance(StaticIdentityProvider(), IdentityProvider)

    async def test_anonymous(self, store: InMemoryRecordStore) -> None:
        session = await _session(store, None)
        assert session.is_authenticated is False
        assert session.profile is None
        with pytest.raises(NotAuthenticatedError):
            session.require_user()

    async def test_loads_profile(self, seeded_store: InMemoryRecordStore) -> None:
        session = await _session(seeded_store, CITIZEN_ID)
        assert session.is_authenticated
        assert session.profile is not None
        assert session.profile.name == "Asha Verma"
        assert session.is_admin is False

    async def test_loads_admin_row(self, store: InMemoryRecordStore) -> None:
        await store.insert("admin_users", admin_row(permissions=[MANAGE_COMPLAINTS]))
        session = await _session(store, "staff-1")
        assert session.is_admin
        assert session.admin is not None
        assert session.admin.role == AdminRole.ADMIN

    async def test_logout_clears_everything(self, seeded_store: InMemoryRecordStore) -> None:
        session = await _session(seeded_store, CITIZEN_ID)
        await session.logout()
        assert session.user is None
        assert session.profile is None

        await session.refresh()
        assert session.user is None, "sign-out must reach the identity provider"


class TestPermissions:
    async def test_explicit_permission(self, store: InMemoryRecordStore) -> None:
        await store.insert("admin_users", admin_row(permissions=[MANAGE_COMPLAINTS]))
        session = await _session(store, "staff-1")

        assert session.has_permission(MANAGE_COMPLAINTS)
        assert not session.has_permission(SEND_NOTIFICATIONS)
        assert session.require_permission(MANAGE_COMPLAINTS).user_id == "staff-1"
        with pytest.raises(PermissionDeniedError, match=SEND_NOTIFICATIONS):
            session.require_permission(SEND_NOTIFICATIONS)

    async def test_super_admin_passes_every_check(self, store: InMemoryRecordStore) -> None:
        await store.insert("admin_users", admin_row(role=AdminRole.SUPER_ADMIN))
        session = await _session(store, "staff-1")
        assert session.has_permission(SEND_NOTIFICATIONS)
        assert session.has_permission("anything_else")
        assert session.is_super_admin
        assert session.require_super_admin().user_id == "staff-1"

    async def test_plain_admin_is_not_super_admin(self, store: InMemoryRecordStore) -> None:
        await store.insert("admin_users", admin_row(permissions=[MANAGE_CATEGORIES]))
        session = await _session(store, "staff-1")
        assert session.has_permission(MANAGE_CATEGORIES)
        assert not session.is_super_admin
        with pytest.raises(PermissionDeniedError, match="Super admin"):
            session.require_super_admin()

    async def test_citizen_has_no_permissions(self, seeded_store: InMemoryRecordStore) -> None:
        session = await _session(seeded_store, CITIZEN_ID)
        assert not session.has_permission(MANAGE_COMPLAINTS)
        with pytest.raises(PermissionDeniedError):
            session.require_permission(MANAGE_COMPLAINTS)

    async def test_anonymous_require_permission(self, store: InMemoryRecordStore) -> None:
        session = await _session(store, None)
        with pytest.raises(NotAuthenticatedError):
            session.require_permission(MANAGE_COMPLAINTS)


class TestRegisterProfile:
    async def test_creates_profile(self, store: InMemoryRecordStore) -> None:
        session = await _session(store, "user-9")
        profile = await session.register_profile(first_name="Ravi", middle_name="K", last_name="Sharma")

        assert profile.name == "Ravi K Sharma"
        assert profile.email == "user-9@example.in", "falls back to the identity's email"
        stored = await store.select_one("profiles", filters={"id": "user-9"})
        assert stored is not None
        assert stored["last_name"] == "Sharma"

    async def test_replaces_existing_profile(self, seeded_store: InMemoryRecordStore) -> None:
        session = await _session(seeded_store, CITIZEN_ID)
        await session.register_profile(first_name="Asha", last_name="Singh", phone="9123456780")

        assert await seeded_store.count("profiles") == 1
        stored = await seeded_store.select_one("profiles", filters={"id": CITIZEN_ID})
        assert stored is not None
        assert stored["name"] == "Asha Singh"
        assert stored["phone"] == "9123456780"
