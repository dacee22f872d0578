"""Nivaran FastAPI application entry point.

Creates the FastAPI app, configures middleware, includes routers, and
manages the lifecycle of the grievance services (record store,
notifications, delivery channels, dispatcher, complaints, help chat).
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from config.settings import settings
from src.api.router import api_router

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------


def _configure_logging() -> None:
    """Set up structlog with JSON or console rendering based on settings."""
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping()[settings.log_level.upper()],
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup and shutdown of all Nivaran services.

    On startup:
      1. Create the record store and attachment storage, seed reference data
      2. Initialise the notification store adapter
      3. Initialise delivery channels (email, WhatsApp, push)
      4. Wire the dispatcher, the complaint service and staff accounts
      5. Initialise the chat responder and session registry
      6. Store everything on ``app.state``

    On shutdown:
      - Close every live notification feed.
    """
    _configure_logging()
    logger.info("app.startup", env=settings.env, app_url=settings.app_url)

    app.state.start_time = time.time()

    # -- 1. Storage ---------------------------------------------------------
    from src.data.seed import seed_reference_data
    from src.services.store import InMemoryObjectStorage, InMemoryRecordStore

    store = InMemoryRecordStore()
    storage = InMemoryObjectStorage()
    seeded = await seed_reference_data(store)
    app.state.store = store
    app.state.storage = storage
    logger.info("app.store_initialised", seeded_rows=seeded)

    # -- 2. Notifications ---------------------------------------------------
    from src.services.notifications import NotificationService

    notifications = NotificationService(
        store,
        default_limit=settings.notification_list_limit,
        resubscribe_attempts=settings.feed_resubscribe_attempts,
        backoff_max=settings.feed_backoff_max_seconds,
    )
    app.state.notifications = notifications

    # -- 3. Delivery channels -----------------------------------------------
    from src.services.email_service import EmailService
    from src.services.push import PushNotificationClient
    from src.services.whatsapp import WhatsAppService

    email = EmailService(
        settings.email_function_url,
        settings.email_function_key,
        app_url=settings.app_url,
        sender_name=settings.email_sender_name,
    )
    whatsapp = WhatsAppService(
        settings.whatsapp_phone_number_id,
        settings.whatsapp_access_token,
        app_url=settings.app_url,
    )
    # The server has no display; push delivery belongs to the browser client.
    push = PushNotificationClient()
    app.state.email = email
    app.state.whatsapp = whatsapp
    app.state.push = push
    logger.info(
        "app.channels_initialised",
        email_mock=email.mock_mode,
        whatsapp_mock=whatsapp.mock_mode,
        push_supported=push.is_supported,
    )

    # -- 4. Dispatcher, complaints and staff accounts -----------------------
    from src.services.complaints import ComplaintService
    from src.services.dispatcher import NotificationDispatcher

    dispatcher = NotificationDispatcher(store, notifications, email, whatsapp, push)
    app.state.dispatcher = dispatcher
    app.state.complaints = ComplaintService(store, storage, dispatcher)

    from src.services.admin_users import AdminUserService

    app.state.admin_users = AdminUserService(store)

    # -- 5. Help chat -------------------------------------------------------
    from src.services.chat_session import ChatSessionRegistry
    from src.services.chatbot import ChatbotService

    chatbot = ChatbotService(helpline=settings.helpline_number, support_email=settings.support_email)
    app.state.chatbot = chatbot
    app.state.chat_sessions = ChatSessionRegistry(chatbot, reply_delay=settings.chat_reply_delay_seconds)

    logger.info("app.startup_complete")

    yield

    # -- Shutdown -----------------------------------------------------------
    logger.info("app.shutdown_start")
    await notifications.close()
    logger.info("app.shutdown_complete")


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Nivaran API",
    description=(
        "Nivaran -- public grievance portal. Citizens file and track complaints; "
        "staff triage them; owners are notified in-app, by email, WhatsApp and push."
    ),
    version="0.1.0",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

# -- CORS middleware --------------------------------------------------------
# SECURITY: allow_credentials=True must NOT be combined with allow_origins=["*"]
# per the CORS specification (browsers will reject it).
_ALLOWED_HEADERS = ["Content-Type", "Accept", "Authorization", "X-User-Id", "X-Admin-User-Id", "X-Admin-API-Key"]

if settings.is_production:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=_ALLOWED_HEADERS,
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:8000", "http://127.0.0.1:8000"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "HEAD"],
        allow_headers=_ALLOWED_HEADERS,
    )

# -- Include routers -------------------------------------------------------
app.include_router(api_router)


@app.get("/api", response_class=ORJSONResponse)
async def api_info() -> dict:
    """API information endpoint."""
    return {
        "name": "Nivaran API",
        "description": "Public grievance portal with multi-channel notifications",
        "version": app.version,
        "docs": "/docs",
        "health": "/api/v1/health",
        "endpoints": {
            "health": "/api/v1/health",
            "profiles": "/api/v1/profiles",
            "complaints": "/api/v1/complaints",
            "notifications": "/api/v1/notifications",
            "notification_stream": "/api/v1/notifications/stream",
            "chat": "/api/v1/chat",
            "admin": "/api/v1/admin",
        },
        "support": {
            "helpline": settings.helpline_number,
            "email": settings.support_email,
        },
    }
