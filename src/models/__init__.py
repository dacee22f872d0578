from src.models.chat import ChatAction, ChatMessage, ChatResponse
from src.models.complaint import (
    CategoryCreate,
    CategoryUpdate,
    Complaint,
    ComplaintCategory,
    ComplaintCreate,
    ComplaintDetail,
    ComplaintFilters,
    ComplaintPage,
    ComplaintResponse,
    ComplaintStatusInfo,
    ComplaintSubcategory,
    DashboardStats,
)
from src.models.enums import (
    AdminRole,
    ChatActionType,
    ChatSender,
    ChatWindowState,
    ComplaintPriority,
    ComplaintStatus,
    DispatchKind,
    NotificationCategory,
    NotificationType,
    PermissionState,
)
from src.models.notification import (
    DispatchEvent,
    Notification,
    NotificationCreate,
    NotificationPreferences,
    PushNotification,
)
from src.models.results import (
    BulkDispatchResult,
    DispatchResult,
    NotificationListResult,
    NotificationResult,
    OperationResult,
    PermissionResult,
    SendResult,
    UnreadCountResult,
)
from src.models.user import AdminUser, AdminUserCreate, AdminUserUpdate, Profile, UserIdentity

__all__ = [
    "AdminRole",
    "AdminUser",
    "AdminUserCreate",
    "AdminUserUpdate",
    "BulkDispatchResult",
    "CategoryCreate",
    "CategoryUpdate",
    "ChatAction",
    "ChatActionType",
    "ChatMessage",
    "ChatResponse",
    "ChatSender",
    "ChatWindowState",
    "Complaint",
    "ComplaintCategory",
    "ComplaintCreate",
    "ComplaintDetail",
    "ComplaintFilters",
    "ComplaintPage",
    "ComplaintPriority",
    "ComplaintResponse",
    "ComplaintStatus",
    "ComplaintStatusInfo",
    "ComplaintSubcategory",
    "DashboardStats",
    "DispatchEvent",
    "DispatchKind",
    "DispatchResult",
    "Notification",
    "NotificationCategory",
    "NotificationCreate",
    "NotificationListResult",
    "NotificationPreferences",
    "NotificationResult",
    "NotificationType",
    "OperationResult",
    "PermissionResult",
    "PermissionState",
    "Profile",
    "PushNotification",
    "SendResult",
    "UnreadCountResult",
    "UserIdentity",
]
