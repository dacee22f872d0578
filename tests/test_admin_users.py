"""Tests for staff account management."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from src.models.enums import AdminRole
from src.models.user import AdminUserCreate, AdminUserUpdate, UserIdentity
from src.services.admin_users import AdminUserNotFoundError, AdminUserService
from src.services.complaints import ConflictError, PermissionDeniedError
from src.services.session import MANAGE_CATEGORIES, MANAGE_COMPLAINTS, SessionContext, StaticIdentityProvider
from src.services.store import InMemoryRecordStore
from tests.helpers import admin_row


@pytest.fixture
def service(store: InMemoryRecordStore) -> AdminUserService:
    return AdminUserService(store, clock=lambda: datetime(2024, 6, 1, tzinfo=UTC))


async def _session(store: InMemoryRecordStore, user_id: str) -> SessionContext:
    session = SessionContext(StaticIdentityProvider(UserIdentity(id=user_id)), store)
    await session.refresh()
    return session


@pytest.fixture
async def root(store: InMemoryRecordStore) -> SessionContext:
    await store.insert("admin_users", admin_row("root-1", role=AdminRole.SUPER_ADMIN))
    return await _session(store, "root-1")


def _grant(user_id: str = "staff-9", **overrides: object) -> AdminUserCreate:
    data: dict[str, object] = {
        "user_id": user_id,
        "name": "Zone Officer",
        "email": "zone@grievance.gov.in",
        "permissions": [MANAGE_COMPLAINTS],
    }
    data.update(overrides)
    return AdminUserCreate(**data)


class TestSuperAdminOnly:
    async def test_plain_admin_is_refused(self, service: AdminUserService, store: InMemoryRecordStore) -> None:
        await store.insert("admin_users", admin_row(permissions=[MANAGE_COMPLAINTS, MANAGE_CATEGORIES]))
        staff = await _session(store, "staff-1")

        with pytest.raises(PermissionDeniedError, match="Super admin"):
            await service.list_admin_users(staff)
        with pytest.raises(PermissionDeniedError):
            await service.create_admin_user(staff, _grant())
        assert await store.count("admin_users") == 1

    async def test_citizen_is_refused(self, service: AdminUserService, store: InMemoryRecordStore) -> None:
        citizen = await _session(store, "user-1")
        with pytest.raises(PermissionDeniedError):
            await service.delete_admin_user(citizen, "admin-staff-1")


class TestCrud:
    async def test_create_then_sign_in(
        self, service: AdminUserService, store: InMemoryRecordStore, root: SessionContext
    ) -> None:
        created = await service.create_admin_user(root, _grant(department="Jal Nigam"))

        assert created.role == AdminRole.ADMIN
        assert created.created_at == datetime(2024, 6, 1, tzinfo=UTC)
        staff = await _session(store, "staff-9")
        assert staff.is_admin
        assert staff.has_permission(MANAGE_COMPLAINTS)
        assert staff.admin is not None
        assert staff.admin.department == "Jal Nigam"

    async def test_identity_can_only_be_granted_once(self, service: AdminUserService, root: SessionContext) -> None:
        await service.create_admin_user(root, _grant())
        with pytest.raises(ConflictError):
            await service.create_admin_user(root, _grant(name="Someone Else"))

    async def test_list_newest_first(self, service: AdminUserService, root: SessionContext) -> None:
        await service.create_admin_user(root, _grant("staff-8"))
        await service.create_admin_user(root, _grant("staff-9"))

        listed = await service.list_admin_users(root)

        assert [a.user_id for a in listed if a.user_id != "root-1"] == ["staff-9", "staff-8"]
        assert len(listed) == 3

    async def test_update_changes_role_and_permissions(
        self, service: AdminUserService, store: InMemoryRecordStore, root: SessionContext
    ) -> None:
        created = await service.create_admin_user(root, _grant())

        updated = await service.update_admin_user(
            root, created.id, AdminUserUpdate(role=AdminRole.DEPARTMENT_ADMIN, permissions=[MANAGE_CATEGORIES])
        )

        assert updated.role == AdminRole.DEPARTMENT_ADMIN
        assert updated.permissions == [MANAGE_CATEGORIES]
        assert updated.name == "Zone Officer", "unset fields are left alone"
        staff = await _session(store, "staff-9")
        assert not staff.has_permission(MANAGE_COMPLAINTS)

    async def test_delete_revokes_access(
        self, service: AdminUserService, store: InMemoryRecordStore, root: SessionContext
    ) -> None:
        created = await service.create_admin_user(root, _grant())

        await service.delete_admin_user(root, created.id)

        assert (await _session(store, "staff-9")).is_admin is False
        with pytest.raises(AdminUserNotFoundError):
            await service.delete_admin_user(root, created.id)

    async def test_update_unknown_id(self, service: AdminUserService, root: SessionContext) -> None:
        with pytest.raises(AdminUserNotFoundError):
            await service.update_admin_user(root, "missing", AdminUserUpdate(name="Nobody"))
