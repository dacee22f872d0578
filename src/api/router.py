"""Main API router combining all v1 route modules.

Aggregates all routers under the ``/api/v1`` prefix so the
FastAPI application only needs to include a single router.

Includes:
    * Core: health, profiles
    * Citizen: complaints, notifications (incl. SSE stream), help chat
    * Staff: admin triage and announcements
"""

from __future__ import annotations

from fastapi import APIRouter

from src.api.v1 import admin, chat, complaints, health, notifications, profiles

api_router = APIRouter(prefix="/api/v1")

# -- Core sub-routers ------------------------------------------------------
api_router.include_router(health.router)
api_router.include_router(profiles.router)

# -- Citizen sub-routers ---------------------------------------------------
api_router.include_router(complaints.router)
api_router.include_router(notifications.router)
api_router.include_router(chat.router)

# -- Staff sub-routers -----------------------------------------------------
api_router.include_router(admin.router)
