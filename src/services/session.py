"""Signed-in user context.

A :class:`SessionContext` answers "who is acting?" for one caller: the
identity from the :class:`IdentityProvider`, their citizen profile and,
for staff, their ``admin_users`` row.  ``refresh()`` reloads all three
after a sign-in or token callback; ``logout()`` clears them.

Permission checks go through :meth:`SessionContext.has_permission`,
where ``super_admin`` passes every check regardless of its explicit
permission list.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final, Protocol, runtime_checkable

import structlog

from src.models.enums import AdminRole
from src.models.user import AdminUser, Profile, UserIdentity
from src.services.complaints import NotAuthenticatedError, PermissionDeniedError

if TYPE_CHECKING:
    from src.services.store import RecordStore

logger = structlog.get_logger(__name__)

# Permission flags stored on ``admin_users.permissions``.
MANAGE_COMPLAINTS: Final[str] = "manage_complaints"
SEND_NOTIFICATIONS: Final[str] = "send_notifications"
VIEW_DASHBOARD: Final[str] = "view_dashboard"
MANAGE_CATEGORIES: Final[str] = "manage_categories"


# ---------------------------------------------------------------------------
# Identity providers
# ---------------------------------------------------------------------------


@runtime_checkable
class IdentityProvider(Protocol):
    """Source of the currently authenticated identity."""

    async def get_current_user(self) -> UserIdentity | None: ...

    async def sign_out(self) -> None: ...


class StaticIdentityProvider:
    """Identity provider holding a fixed user (development and tests)."""

    __slots__ = ("_user",)

    def __init__(self, user: UserIdentity | None = None) -> None:
        self._user = user

    def sign_in(self, user: UserIdentity) -> None:
        self._user = user

    async def get_current_user(self) -> UserIdentity | None:
        return self._user

    async def sign_out(self) -> None:
        self._user = None


# ---------------------------------------------------------------------------
# Session context
# ---------------------------------------------------------------------------


class SessionContext:
    """Identity, profile and admin record of the acting user."""

    __slots__ = ("_identity", "_store", "admin", "profile", "user")

    def __init__(self, identity: IdentityProvider, store: RecordStore) -> None:
        self._identity = identity
        self._store = store
        self.user: UserIdentity | None = None
        self.profile: Profile | None = None
        self.admin: AdminUser | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        return self.admin is not None

    @property
    def is_super_admin(self) -> bool:
        return self.admin is not None and self.admin.role == AdminRole.SUPER_ADMIN

    async def refresh(self) -> None:
        """Reload identity, profile and admin row from their sources."""
        self.user = await self._identity.get_current_user()
        if self.user is None:
            self.profile = None
            self.admin = None
            return

        profile_row = await self._store.select_one("profiles", filters={"id": self.user.id})
        self.profile = Profile.model_validate(profile_row) if profile_row else None

        admin_row = await self._store.select_one("admin_users", filters={"user_id": self.user.id})
        self.admin = AdminUser.model_validate(admin_row) if admin_row else None

        logger.debug("session.refreshed", user_id=self.user.id, is_admin=self.is_admin)

    async def logout(self) -> None:
        if self.user is not None:
            logger.info("session.logout", user_id=self.user.id)
        await self._identity.sign_out()
        self.user = None
        self.profile = None
        self.admin = None

    async def register_profile(
        self,
        *,
        first_name: str,
        last_name: str,
        middle_name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        gender: str | None = None,
    ) -> Profile:
        """Create or replace the signed-in user's profile row."""
        user = self.require_user()
        profile = Profile(
            id=user.id,
            name=" ".join(part for part in (first_name, middle_name, last_name) if part),
            email=email or user.email,
            phone=phone,
            first_name=first_name,
            middle_name=middle_name,
            last_name=last_name,
            gender=gender,
        )
        values = profile.model_dump()
        if not await self._store.update("profiles", values, filters={"id": user.id}):
            await self._store.insert("profiles", values)
        self.profile = profile
        logger.info("session.profile_registered", user_id=user.id)
        return profile

    def has_permission(self, permission: str) -> bool:
        return self.admin is not None and self.admin.has_permission(permission)

    def require_user(self) -> UserIdentity:
        if self.user is None:
            raise NotAuthenticatedError("User not authenticated")
        return self.user

    def require_permission(self, permission: str) -> AdminUser:
        self.require_user()
        if self.admin is None or not self.admin.has_permission(permission):
            raise PermissionDeniedError(f"Missing permission: {permission}")
        return self.admin

    def require_super_admin(self) -> AdminUser:
        self.require_user()
        if self.admin is None or self.admin.role != AdminRole.SUPER_ADMIN:
            raise PermissionDeniedError("Super admin role required")
        return self.admin
