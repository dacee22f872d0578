"""Nivaran service layer -- notifications, chat, complaints and their collaborators."""

from __future__ import annotations

from src.services.admin_users import AdminUserNotFoundError, AdminUserService
from src.services.chat_session import ChatSession, ChatSessionRegistry
from src.services.chatbot import ChatbotService
from src.services.complaints import (
    CategoryNotFoundError,
    ComplaintError,
    ComplaintNotFoundError,
    ComplaintService,
    ConflictError,
    InvalidComplaintError,
    NotAuthenticatedError,
    NotFoundError,
    PermissionDeniedError,
)
from src.services.dispatcher import NotificationDispatcher
from src.services.email_service import EmailService
from src.services.notification_center import NotificationCenter, Toast
from src.services.notifications import NotificationFeed, NotificationService
from src.services.push import (
    HeadlessPushRuntime,
    PushNotificationClient,
    PushRuntime,
    RecordingPushRuntime,
)
from src.services.session import IdentityProvider, SessionContext, StaticIdentityProvider
from src.services.store import (
    ChangeFeed,
    ChangeFeedClosed,
    InMemoryObjectStorage,
    InMemoryRecordStore,
    ObjectStorage,
    RecordStore,
    StoreError,
)
from src.services.whatsapp import WhatsAppService, sanitize_phone

__all__ = [
    "AdminUserNotFoundError",
    "AdminUserService",
    "CategoryNotFoundError",
    "ChangeFeed",
    "ChangeFeedClosed",
    "ChatSession",
    "ChatSessionRegistry",
    "ChatbotService",
    "ComplaintError",
    "ComplaintNotFoundError",
    "ComplaintService",
    "ConflictError",
    "EmailService",
    "HeadlessPushRuntime",
    "IdentityProvider",
    "InMemoryObjectStorage",
    "InMemoryRecordStore",
    "InvalidComplaintError",
    "NotAuthenticatedError",
    "NotFoundError",
    "NotificationCenter",
    "NotificationDispatcher",
    "NotificationFeed",
    "NotificationService",
    "ObjectStorage",
    "PermissionDeniedError",
    "PushNotificationClient",
    "PushRuntime",
    "RecordStore",
    "RecordingPushRuntime",
    "SessionContext",
    "StaticIdentityProvider",
    "StoreError",
    "Toast",
    "WhatsAppService",
    "sanitize_phone",
]
