"""Authentication dependencies for protected endpoints.

Two layers:

* ``require_admin_api_key`` validates the ``X-Admin-API-Key`` header
  against ``ADMIN_API_KEY`` using constant-time comparison.  It guards
  the whole admin router.
* ``get_session`` / ``require_permission`` build a
  :class:`~src.services.session.SessionContext` for the acting user.
  Citizens identify with ``X-User-Id`` and staff with
  ``X-Admin-User-Id``; the identity provider itself sits in front of
  this service, so the headers are trusted as-is.
"""

from __future__ import annotations

import hmac
from collections.abc import Awaitable, Callable

import structlog
from fastapi import HTTPException, Request, Security
from fastapi.security import APIKeyHeader

from config.settings import settings
from src.models.user import UserIdentity
from src.services.session import SessionContext, StaticIdentityProvider

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_api_key_header = APIKeyHeader(name="X-Admin-API-Key", auto_error=False)
_user_header = APIKeyHeader(name="X-User-Id", auto_error=False)
_admin_user_header = APIKeyHeader(name="X-Admin-User-Id", auto_error=False)


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def require_admin_api_key(
    request: Request,
    api_key: str | None = Security(_api_key_header),
) -> str:
    """FastAPI dependency that enforces admin API key authentication.

    Returns the validated key on success; raises 401/403 on failure.

    Usage::

        router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin_api_key)])
    """
    configured_key = settings.admin_api_key

    if not configured_key:
        # In development without a configured key, log a warning but allow access
        if not settings.is_production:
            logger.warning(
                "auth.admin_key_not_configured",
                note="Admin API key not set; allowing request in development mode",
            )
            return ""
        logger.error("auth.admin_key_not_configured_production")
        raise HTTPException(
            status_code=503,
            detail="Admin authentication is not configured.",
        )

    if not api_key:
        logger.warning("auth.missing_api_key", path=request.url.path, client_ip=_client_ip(request))
        raise HTTPException(
            status_code=401,
            detail="Missing X-Admin-API-Key header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if not hmac.compare_digest(api_key.encode(), configured_key.encode()):
        logger.warning("auth.invalid_api_key", path=request.url.path, client_ip=_client_ip(request))
        raise HTTPException(status_code=403, detail="Invalid API key.")

    return api_key


async def _session_for(request: Request, user_id: str) -> SessionContext:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Record store not available")

    session = SessionContext(StaticIdentityProvider(UserIdentity(id=user_id)), store)
    await session.refresh()
    return session


async def get_session(
    request: Request,
    user_id: str | None = Security(_user_header),
) -> SessionContext:
    """Session of the citizen named by ``X-User-Id``."""
    if not user_id:
        raise HTTPException(
            status_code=401,
            detail="Missing X-User-Id header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )
    return await _session_for(request, user_id)


def require_permission(permission: str) -> Callable[..., Awaitable[SessionContext]]:
    """Dependency factory: staff session holding *permission*.

    ``super_admin`` accounts pass regardless of their permission list.
    """

    async def dependency(
        request: Request,
        admin_user_id: str | None = Security(_admin_user_header),
    ) -> SessionContext:
        if not admin_user_id:
            raise HTTPException(
                status_code=401,
                detail="Missing X-Admin-User-Id header.",
                headers={"WWW-Authenticate": "ApiKey"},
            )
        session = await _session_for(request, admin_user_id)
        if not session.has_permission(permission):
            logger.warning(
                "auth.permission_denied",
                admin_user_id=admin_user_id,
                permission=permission,
                path=request.url.path,
            )
            raise HTTPException(status_code=403, detail=f"Missing permission: {permission}")
        return session

    return dependency


async def require_super_admin(
    request: Request,
    admin_user_id: str | None = Security(_admin_user_header),
) -> SessionContext:
    """Dependency: staff session whose role is ``super_admin``."""
    if not admin_user_id:
        raise HTTPException(
            status_code=401,
            detail="Missing X-Admin-User-Id header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )
    session = await _session_for(request, admin_user_id)
    if not session.is_super_admin:
        logger.warning("auth.super_admin_required", admin_user_id=admin_user_id, path=request.url.path)
        raise HTTPException(status_code=403, detail="Super admin role required")
    return session
