"""Complaint lifecycle: filing, lookup, triage and attachments.

Citizens file complaints and read their own; staff list, respond to,
assign and change the status of any complaint.  Status changes and
assignments notify the complaint's owner through the dispatcher.

Unlike the notification layer, this service raises: precondition
failures are :class:`ComplaintError` subclasses, which the HTTP layer
maps to status codes.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Final

import structlog

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
from src.models.enums import ComplaintStatus

if TYPE_CHECKING:
    from src.models.results import DispatchResult
    from src.services.dispatcher import NotificationDispatcher
    from src.services.session import SessionContext
    from src.services.store import ObjectStorage, RecordStore

logger = structlog.get_logger(__name__)

COMPLAINTS: Final[str] = "complaints"
RESPONSES: Final[str] = "complaint_responses"
CATEGORIES: Final[str] = "complaint_categories"
SUBCATEGORIES: Final[str] = "complaint_subcategories"
STATUSES: Final[str] = "complaint_statuses"

_RECENT_LIMIT: Final[int] = 10


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ComplaintError(Exception):
    """Base class for complaint-service precondition failures."""


class NotFoundError(ComplaintError):
    """A referenced record does not exist."""


class ComplaintNotFoundError(NotFoundError):
    pass


class CategoryNotFoundError(NotFoundError):
    pass


class ConflictError(ComplaintError):
    """The change would clash with existing records."""


class NotAuthenticatedError(ComplaintError):
    pass


class PermissionDeniedError(ComplaintError):
    pass


class InvalidComplaintError(ComplaintError):
    """Unknown category, subcategory or status code."""


def registration_number(complaint_id: int, year: int) -> str:
    """Citizen-facing complaint reference, e.g. ``GRV/2024/000042``."""
    return f"GRV/{year}/{complaint_id:06d}"


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class ComplaintService:
    """Complaint CRUD over the record store and attachment bucket.

    Parameters
    ----------
    store:
        Record store with the complaint and reference-data tables.
    storage:
        Bucket for attachments.
    dispatcher:
        Owner notifications on status change and assignment.  ``None``
        disables notifications.
    clock:
        Returns the current UTC time; injectable for tests.
    """

    __slots__ = ("_clock", "_dispatcher", "_storage", "_store")

    def __init__(
        self,
        store: RecordStore,
        storage: ObjectStorage,
        dispatcher: NotificationDispatcher | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._storage = storage
        self._dispatcher = dispatcher
        self._clock = clock or (lambda: datetime.now(UTC))

    # ------------------------------------------------------------------
    # Citizen operations
    # ------------------------------------------------------------------

    async def create_complaint(self, session: SessionContext, data: ComplaintCreate) -> Complaint:
        user = session.require_user()
        await self._validate_category(data.category_id, data.subcategory_id)

        now = self._clock()
        row = await self._store.insert(
            COMPLAINTS,
            {
                **data.model_dump(),
                "registration_number": "",
                "user_id": user.id,
                "status_id": int(ComplaintStatus.PENDING),
                "assigned_to": None,
                "assigned_at": None,
                "attachments": [],
                "created_at": now,
                "updated_at": now,
            },
        )
        reference = registration_number(row["id"], now.year)
        await self._store.update(COMPLAINTS, {"registration_number": reference}, filters={"id": row["id"]})
        row["registration_number"] = reference

        logger.info("complaints.created", complaint_id=row["id"], registration_number=reference, user_id=user.id)
        return Complaint.model_validate(row)

    async def get_complaint(self, complaint_id: int) -> ComplaintDetail:
        row = await self._get_row(complaint_id)
        return await self._detail(row, with_responses=True)

    async def list_user_complaints(self, session: SessionContext) -> list[ComplaintDetail]:
        user = session.require_user()
        rows = await self._store.select(
            COMPLAINTS, filters={"user_id": user.id}, order_by="created_at", descending=True
        )
        return [await self._detail(r) for r in rows]

    async def upload_attachment(
        self,
        session: SessionContext,
        complaint_id: int,
        filename: str,
        content: bytes,
    ) -> str:
        """Store *content* and append its public URL to the complaint."""
        session.require_user()
        row = await self._get_row(complaint_id)

        extension = filename.rsplit(".", 1)[-1]
        epoch_ms = int(self._clock().timestamp() * 1000)
        url = await self._storage.upload(f"{complaint_id}/{epoch_ms}.{extension}", content)

        attachments = [*(row.get("attachments") or []), url]
        await self._store.update(
            COMPLAINTS,
            {"attachments": attachments, "updated_at": self._clock()},
            filters={"id": complaint_id},
        )
        logger.info("complaints.attachment_uploaded", complaint_id=complaint_id, size=len(content))
        return url

    # ------------------------------------------------------------------
    # Staff operations
    # ------------------------------------------------------------------

    async def list_complaints(
        self,
        filters: ComplaintFilters | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> ComplaintPage:
        """Filtered, newest-first page of complaints with their responses."""
        f = filters or ComplaintFilters()
        search = f.search.lower() if f.search else None

        def predicate(row: dict[str, Any]) -> bool:
            if f.status and row.get("status_id") != f.status:
                return False
            if f.category and row.get("category_id") != f.category:
                return False
            if f.assigned_to and row.get("assigned_to") != f.assigned_to:
                return False
            if f.date_from and row["created_at"] < f.date_from:
                return False
            if f.date_to and row["created_at"] > f.date_to:
                return False
            if search and search not in row.get("subject", "").lower() and search not in row.get(
                "registration_number", ""
            ).lower():
                return False
            return True

        page = max(page, 1)
        total = await self._store.count(COMPLAINTS, predicate=predicate)
        rows = await self._store.select(
            COMPLAINTS,
            predicate=predicate,
            order_by="created_at",
            descending=True,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return ComplaintPage(
            complaints=[await self._detail(r, with_responses=True) for r in rows],
            total=total,
            total_pages=math.ceil(total / limit) if limit else 0,
        )

    async def update_status(
        self,
        session: SessionContext,
        complaint_id: int,
        status_id: int,
        notes: str | None = None,
    ) -> ComplaintDetail:
        """Change the status, record *notes* as a response, notify the owner."""
        user = session.require_user()
        try:
            status = ComplaintStatus(status_id)
        except ValueError:
            raise InvalidComplaintError(f"Unknown status code: {status_id}") from None

        row = await self._get_row(complaint_id)
        await self._store.update(
            COMPLAINTS,
            {"status_id": int(status), "updated_at": self._clock()},
            filters={"id": complaint_id},
        )
        if notes:
            await self._insert_response(complaint_id, user.id, notes, "Status update")

        logger.info("complaints.status_updated", complaint_id=complaint_id, status=status.label, by=user.id)

        if self._dispatcher is not None:
            if status == ComplaintStatus.RESOLVED:
                notice = self._dispatcher.send_resolution(complaint_id, row["user_id"], notes or status.label)
            else:
                notice = self._dispatcher.send_status_update(complaint_id, row["user_id"], status.label)
            await _notify_owner(complaint_id, notice)

        return await self.get_complaint(complaint_id)

    async def assign_complaint(
        self,
        session: SessionContext,
        complaint_id: int,
        assignee: str,
        notes: str | None = None,
    ) -> ComplaintDetail:
        user = session.require_user()
        row = await self._get_row(complaint_id)

        now = self._clock()
        await self._store.update(
            COMPLAINTS,
            {"assigned_to": assignee, "assigned_at": now, "updated_at": now},
            filters={"id": complaint_id},
        )
        if notes:
            await self._insert_response(complaint_id, user.id, f"Complaint assigned to {assignee}", notes)

        logger.info("complaints.assigned", complaint_id=complaint_id, assignee=assignee, by=user.id)

        if self._dispatcher is not None:
            await _notify_owner(complaint_id, self._dispatcher.send_assignment(complaint_id, row["user_id"], assignee))

        return await self.get_complaint(complaint_id)

    async def add_response(
        self,
        session: SessionContext,
        complaint_id: int,
        response: str,
        internal_notes: str | None = None,
    ) -> ComplaintResponse:
        user = session.require_user()
        await self._get_row(complaint_id)
        return await self._insert_response(complaint_id, user.id, response, internal_notes)

    async def get_dashboard_stats(self) -> DashboardStats:
        rows = await self._store.select(COMPLAINTS, order_by="created_at", descending=True)
        categories = {c.id: c.name for c in await self.get_categories()}

        by_status: Counter[int] = Counter(r["status_id"] for r in rows)
        closed_out = [r for r in rows if r["status_id"] in (ComplaintStatus.RESOLVED, ComplaintStatus.CLOSED)]
        average_hours = (
            sum((r["updated_at"] - r["created_at"]).total_seconds() for r in closed_out) / len(closed_out) / 3600
            if closed_out
            else 0.0
        )

        return DashboardStats(
            total_complaints=len(rows),
            pending_complaints=by_status[ComplaintStatus.PENDING],
            in_progress_complaints=by_status[ComplaintStatus.UNDER_REVIEW] + by_status[ComplaintStatus.IN_PROGRESS],
            resolved_complaints=by_status[ComplaintStatus.RESOLVED],
            closed_complaints=by_status[ComplaintStatus.CLOSED],
            rejected_complaints=by_status[ComplaintStatus.REJECTED],
            average_resolution_time_hours=round(average_hours, 2),
            complaints_by_category=dict(Counter(categories.get(r["category_id"], "Unknown") for r in rows)),
            complaints_by_status=dict(Counter(_status_label(r["status_id"]) for r in rows)),
            recent_complaints=[await self._detail(r) for r in rows[:_RECENT_LIMIT]],
        )

    # ------------------------------------------------------------------
    # Reference data
    # ------------------------------------------------------------------

    async def get_categories(self) -> list[ComplaintCategory]:
        rows = await self._store.select(CATEGORIES, order_by="name")
        return [ComplaintCategory.model_validate(r) for r in rows]

    async def get_subcategories(self, category_id: int) -> list[ComplaintSubcategory]:
        rows = await self._store.select(SUBCATEGORIES, filters={"category_id": category_id}, order_by="name")
        return [ComplaintSubcategory.model_validate(r) for r in rows]

    async def get_statuses(self) -> list[ComplaintStatusInfo]:
        rows = await self._store.select(STATUSES, order_by="id")
        return [ComplaintStatusInfo.model_validate(r) for r in rows]

    async def create_category(self, session: SessionContext, data: CategoryCreate) -> ComplaintCategory:
        user = session.require_user()
        await self._ensure_unique_name(data.name)
        row = await self._store.insert(CATEGORIES, data.model_dump())
        logger.info("complaints.category_created", category_id=row["id"], name=data.name, by=user.id)
        return ComplaintCategory.model_validate(row)

    async def update_category(
        self, session: SessionContext, category_id: int, data: CategoryUpdate
    ) -> ComplaintCategory:
        """Apply the fields set on *data*; an empty update returns the row unchanged."""
        user = session.require_user()
        row = await self._get_category_row(category_id)
        values = data.model_dump(exclude_unset=True)
        if values.get("name") and values["name"] != row["name"]:
            await self._ensure_unique_name(values["name"])
        if values:
            row = (await self._store.update(CATEGORIES, values, filters={"id": category_id}))[0]
        logger.info("complaints.category_updated", category_id=category_id, fields=sorted(values), by=user.id)
        return ComplaintCategory.model_validate(row)

    async def delete_category(self, session: SessionContext, category_id: int) -> None:
        """Remove a category that no complaint or subcategory refers to."""
        user = session.require_user()
        await self._get_category_row(category_id)
        in_use = await self._store.count(COMPLAINTS, filters={"category_id": category_id})
        in_use += await self._store.count(SUBCATEGORIES, filters={"category_id": category_id})
        if in_use:
            raise ConflictError(f"Category {category_id} is still in use")
        await self._store.delete(CATEGORIES, filters={"id": category_id})
        logger.info("complaints.category_deleted", category_id=category_id, by=user.id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_row(self, complaint_id: int) -> dict[str, Any]:
        row = await self._store.select_one(COMPLAINTS, filters={"id": complaint_id})
        if row is None:
            raise ComplaintNotFoundError(f"Complaint {complaint_id} not found")
        return row

    async def _get_category_row(self, category_id: int) -> dict[str, Any]:
        row = await self._store.select_one(CATEGORIES, filters={"id": category_id})
        if row is None:
            raise CategoryNotFoundError(f"Category {category_id} not found")
        return row

    async def _ensure_unique_name(self, name: str) -> None:
        wanted = name.strip().lower()
        taken = await self._store.count(CATEGORIES, predicate=lambda r: r["name"].strip().lower() == wanted)
        if taken:
            raise ConflictError(f"Category '{name}' already exists")

    async def _validate_category(self, category_id: int, subcategory_id: int | None) -> None:
        if await self._store.select_one(CATEGORIES, filters={"id": category_id}) is None:
            raise InvalidComplaintError(f"Unknown category: {category_id}")
        if subcategory_id is not None:
            sub = await self._store.select_one(SUBCATEGORIES, filters={"id": subcategory_id})
            if sub is None or sub["category_id"] != category_id:
                raise InvalidComplaintError(f"Subcategory {subcategory_id} does not belong to category {category_id}")

    async def _insert_response(
        self, complaint_id: int, responded_by: str, response: str, internal_notes: str | None
    ) -> ComplaintResponse:
        row = await self._store.insert(
            RESPONSES,
            {
                "complaint_id": complaint_id,
                "responded_by": responded_by,
                "response": response,
                "internal_notes": internal_notes,
                "created_at": self._clock(),
            },
        )
        return ComplaintResponse.model_validate(row)

    async def _detail(self, row: dict[str, Any], *, with_responses: bool = False) -> ComplaintDetail:
        category = await self._store.select_one(CATEGORIES, filters={"id": row["category_id"]})
        subcategory = (
            await self._store.select_one(SUBCATEGORIES, filters={"id": row["subcategory_id"]})
            if row.get("subcategory_id") is not None
            else None
        )
        status = await self._store.select_one(STATUSES, filters={"id": row["status_id"]})
        responses: list[dict[str, Any]] = []
        if with_responses:
            responses = await self._store.select(RESPONSES, filters={"complaint_id": row["id"]}, order_by="created_at")

        return ComplaintDetail.model_validate(
            {
                **row,
                "category": category,
                "subcategory": subcategory,
                "status": status,
                "responses": responses,
            }
        )


def _status_label(status_id: int) -> str:
    try:
        return ComplaintStatus(status_id).label
    except ValueError:
        return "Unknown"


async def _notify_owner(complaint_id: int, notice: Awaitable[DispatchResult]) -> None:
    """Await an owner notification; a failure is logged, never raised."""
    try:
        result = await notice
    except Exception:
        logger.error("complaints.notify_failed", complaint_id=complaint_id, exc_info=True)
        return
    if not result.success:
        logger.warning("complaints.notify_failed", complaint_id=complaint_id, error=result.error)
