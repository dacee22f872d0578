from __future__ import annotations

from enum import IntEnum, StrEnum


class NotificationType(StrEnum):
    """Presentation hint only; no behavioural difference between values."""

    __slots__ = ()

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class NotificationCategory(StrEnum):
    """Routing hint for a notification."""

    __slots__ = ()

    COMPLAINT_UPDATE = "complaint_update"
    STATUS_CHANGE = "status_change"
    ASSIGNMENT = "assignment"
    RESOLUTION = "resolution"
    GENERAL = "general"


class DispatchKind(StrEnum):
    """Which channel templates a dispatch renders."""

    __slots__ = ()

    UPDATE = "update"
    RESOLUTION = "resolution"
    URGENT = "urgent"
    REMINDER = "reminder"


class ComplaintStatus(IntEnum):
    """Status codes shared with the ``complaint_statuses`` table.

    The integer values are fixed for compatibility with existing data.
    """

    PENDING = 1
    UNDER_REVIEW = 2
    IN_PROGRESS = 3
    RESOLVED = 4
    CLOSED = 5
    REJECTED = 6

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]

    @property
    def color(self) -> str:
        return STATUS_COLORS[self]


STATUS_LABELS: dict[ComplaintStatus, str] = {
    ComplaintStatus.PENDING: "Pending",
    ComplaintStatus.UNDER_REVIEW: "Under Review",
    ComplaintStatus.IN_PROGRESS: "In Progress",
    ComplaintStatus.RESOLVED: "Resolved",
    ComplaintStatus.CLOSED: "Closed",
    ComplaintStatus.REJECTED: "Rejected",
}

STATUS_COLORS: dict[ComplaintStatus, str] = {
    ComplaintStatus.PENDING: "yellow",
    ComplaintStatus.UNDER_REVIEW: "blue",
    ComplaintStatus.IN_PROGRESS: "orange",
    ComplaintStatus.RESOLVED: "green",
    ComplaintStatus.CLOSED: "gray",
    ComplaintStatus.REJECTED: "red",
}


class ComplaintPriority(StrEnum):
    __slots__ = ()

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class AdminRole(StrEnum):
    __slots__ = ()

    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"
    DEPARTMENT_ADMIN = "department_admin"


class ChatSender(StrEnum):
    __slots__ = ()

    USER = "user"
    BOT = "bot"


class ChatActionType(StrEnum):
    __slots__ = ()

    NAVIGATE = "navigate"
    SHOW_INFO = "show_info"
    CONTACT = "contact"


class PermissionState(StrEnum):
    """Browser-style notification permission states."""

    __slots__ = ()

    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


class ChatWindowState(StrEnum):
    __slots__ = ()

    CLOSED = "closed"
    OPEN = "open"
    MINIMIZED = "minimized"
