"""Identity, profile and admin models."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from src.models.enums import AdminRole


class UserIdentity(BaseModel):
    """What the identity provider knows about the signed-in user."""

    id: str
    email: str | None = None


class Profile(BaseModel):
    """Contact details for a registered citizen (``profiles`` table)."""

    id: str
    name: str = ""
    email: str | None = None
    phone: str | None = None
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    gender: str | None = None


class AdminUser(BaseModel):
    """A privileged actor keyed by an external identity id."""

    id: str
    user_id: str
    name: str
    email: str
    role: AdminRole = AdminRole.ADMIN
    department: str | None = None
    permissions: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_login: datetime | None = None

    def has_permission(self, permission: str) -> bool:
        # super_admin passes every check, whatever its explicit flags say.
        return self.role == AdminRole.SUPER_ADMIN or permission in self.permissions


class AdminUserCreate(BaseModel):
    """Fields supplied when granting staff access to an identity."""

    user_id: str = Field(..., min_length=1, max_length=200)
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=320)
    role: AdminRole = AdminRole.ADMIN
    department: str | None = Field(default=None, max_length=200)
    permissions: list[str] = Field(default_factory=list)


class AdminUserUpdate(BaseModel):
    """Partial update of an admin row; unset fields are left alone."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    email: str | None = Field(default=None, min_length=3, max_length=320)
    role: AdminRole | None = None
    department: str | None = Field(default=None, max_length=200)
    permissions: list[str] | None = None
