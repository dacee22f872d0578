"""Staff account management over the ``admin_users`` table.

Only ``super_admin`` accounts may list, grant, change or revoke staff
access.  Rows are keyed by a generated id; ``user_id`` links a row to
an identity and is unique across the table.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final
from uuid import uuid4

import structlog

from src.models.user import AdminUser, AdminUserCreate, AdminUserUpdate
from src.services.complaints import ConflictError, NotFoundError

if TYPE_CHECKING:
    from src.services.session import SessionContext
    from src.services.store import RecordStore

logger = structlog.get_logger(__name__)

ADMIN_USERS: Final[str] = "admin_users"


class AdminUserNotFoundError(NotFoundError):
    pass


class AdminUserService:
    """CRUD for staff accounts, restricted to super admins."""

    __slots__ = ("_clock", "_store")

    def __init__(self, store: RecordStore, *, clock: Callable[[], datetime] | None = None) -> None:
        self._store = store
        self._clock = clock or (lambda: datetime.now(UTC))

    async def list_admin_users(self, session: SessionContext) -> list[AdminUser]:
        session.require_super_admin()
        rows = await self._store.select(ADMIN_USERS, order_by="created_at", descending=True)
        return [AdminUser.model_validate(r) for r in rows]

    async def create_admin_user(self, session: SessionContext, data: AdminUserCreate) -> AdminUser:
        actor = session.require_super_admin()
        if await self._store.select_one(ADMIN_USERS, filters={"user_id": data.user_id}) is not None:
            raise ConflictError(f"User {data.user_id} already has staff access")

        admin = AdminUser(id=uuid4().hex, created_at=self._clock(), **data.model_dump())
        await self._store.insert(ADMIN_USERS, admin.model_dump())
        logger.info("admin_users.created", admin_id=admin.id, user_id=admin.user_id, role=admin.role, by=actor.user_id)
        return admin

    async def update_admin_user(self, session: SessionContext, admin_id: str, data: AdminUserUpdate) -> AdminUser:
        actor = session.require_super_admin()
        row = await self._get_row(admin_id)
        values = data.model_dump(exclude_unset=True)
        if values:
            row = (await self._store.update(ADMIN_USERS, values, filters={"id": admin_id}))[0]
        logger.info("admin_users.updated", admin_id=admin_id, fields=sorted(values), by=actor.user_id)
        return AdminUser.model_validate(row)

    async def delete_admin_user(self, session: SessionContext, admin_id: str) -> None:
        actor = session.require_super_admin()
        await self._get_row(admin_id)
        await self._store.delete(ADMIN_USERS, filters={"id": admin_id})
        logger.info("admin_users.deleted", admin_id=admin_id, by=actor.user_id)

    async def _get_row(self, admin_id: str) -> dict:
        row = await self._store.select_one(ADMIN_USERS, filters={"id": admin_id})
        if row is None:
            raise AdminUserNotFoundError(f"Admin user {admin_id} not found")
        return row
