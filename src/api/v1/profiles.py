"""Citizen profile endpoints for Nivaran API v1.

Registration stores the contact details the dispatcher delivers to and
sends the welcome message on every channel those details allow.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from src.middleware.auth import get_session
from src.models.user import Profile
from src.services.session import SessionContext

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/profiles", tags=["profiles"])


class RegisterProfileRequest(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    middle_name: str | None = Field(default=None, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str | None = Field(default=None, max_length=254)
    phone: str | None = Field(default=None, max_length=20)
    gender: str | None = Field(default=None, max_length=20)


@router.post("", response_model=Profile, status_code=201)
async def register_profile(
    body: RegisterProfileRequest,
    request: Request,
    session: SessionContext = Depends(get_session),  # noqa: B008
) -> Profile:
    """Create or replace the caller's profile and send the welcome message."""
    try:
        profile = await session.register_profile(**body.model_dump())
    except Exception:
        logger.error("api.profiles.register_failed", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to register profile") from None

    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is not None:
        result = await dispatcher.send_welcome(profile.id)
        if not result.success:
            logger.warning("api.profiles.welcome_failed", user_id=profile.id, error=result.error)

    return profile


@router.get("/me", response_model=Profile)
async def get_my_profile(
    session: SessionContext = Depends(get_session),  # noqa: B008
) -> Profile:
    if session.profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return session.profile
