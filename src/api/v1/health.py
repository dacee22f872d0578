"""Health check endpoints for Nivaran API v1.

Liveness and readiness probes for container deployments.  The
readiness check confirms that the record store answers and that the
notification stack was wired at startup.
"""

from __future__ import annotations

import time

import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: str
    version: str
    uptime_seconds: float


class ReadinessResponse(BaseModel):
    """Readiness check response with individual service statuses."""

    status: str
    checks: dict[str, str]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Liveness probe.  Does *not* check downstream dependencies."""
    start_time: float = getattr(request.app.state, "start_time", time.time())
    uptime = time.time() - start_time

    return HealthResponse(
        status="healthy",
        version=request.app.version,
        uptime_seconds=round(uptime, 2),
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request) -> ReadinessResponse:
    """Readiness probe.

    Reads the status table (seeded at startup) and reports which
    delivery channels run in mock mode.
    """
    checks: dict[str, str] = {}
    all_ok = True

    # -- Record store ------------------------------------------------------
    store = getattr(request.app.state, "store", None)
    if store is not None:
        try:
            statuses = await store.count("complaint_statuses")
            if statuses > 0:
                checks["store"] = f"ok ({statuses} statuses)"
            else:
                checks["store"] = "not_seeded"
                all_ok = False
        except Exception as exc:
            checks["store"] = f"error: {exc!s}"
            all_ok = False
    else:
        checks["store"] = "not_initialised"
        all_ok = False

    # -- Notification stack ------------------------------------------------
    for name in ("notifications", "dispatcher", "complaints", "chat_sessions"):
        if getattr(request.app.state, name, None) is not None:
            checks[name] = "ok"
        else:
            checks[name] = "not_initialised"
            all_ok = False

    # -- Delivery channels -------------------------------------------------
    for name in ("email", "whatsapp"):
        channel = getattr(request.app.state, name, None)
        if channel is None:
            checks[name] = "not_configured"
        else:
            checks[name] = "mock" if channel.mock_mode else "ok"

    status = "ready" if all_ok else "degraded"

    logger.info("health.readiness_check", status=status, checks=checks)

    return ReadinessResponse(status=status, checks=checks)
