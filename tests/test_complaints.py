"""Tests for the complaint lifecycle service."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.models.complaint import CategoryCreate, CategoryUpdate, ComplaintCreate, ComplaintFilters
from src.models.enums import ComplaintStatus
from src.models.results import DispatchResult
from src.models.user import UserIdentity
from src.services.complaints import (
    CategoryNotFoundError,
    ComplaintNotFoundError,
    ComplaintService,
    ConflictError,
    InvalidComplaintError,
    NotAuthenticatedError,
    registration_number,
)
from src.services.dispatcher import NotificationDispatcher
from src.services.session import SessionContext, StaticIdentityProvider
from src.services.store import InMemoryObjectStorage, InMemoryRecordStore
from tests.helpers import CITIZEN_ID, complaint_payload


class _Clock:
    """Manually advanced clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> _Clock:
    return _Clock(datetime(2024, 3, 1, 9, 0, tzinfo=UTC))


@pytest.fixture
def dispatcher() -> MagicMock:
    mock = MagicMock(spec=NotificationDispatcher)
    mock.send_status_update = AsyncMock()
    mock.send_resolution = AsyncMock()
    mock.send_assignment = AsyncMock()
    return mock


@pytest.fixture
def service(
    seeded_store: InMemoryRecordStore,
    storage: InMemoryObjectStorage,
    dispatcher: MagicMock,
    clock: _Clock,
) -> ComplaintService:
    return ComplaintService(seeded_store, storage, dispatcher, clock=clock)


async def _session(store: InMemoryRecordStore, user_id: str = CITIZEN_ID) -> SessionContext:
    session = SessionContext(StaticIdentityProvider(UserIdentity(id=user_id)), store)
    await session.refresh()
    return session


async def _file(service: ComplaintService, store: InMemoryRecordStore, **overrides):
    session = await _session(store)
    return await service.create_complaint(session, ComplaintCreate(**complaint_payload(**overrides)))


# ---------------------------------------------------------------------------
# Filing
# ---------------------------------------------------------------------------


class TestCreate:
    def test_registration_number_format(self) -> None:
        assert registration_number(42, 2024) == "GRV/2024/000042"

    async def test_create_assigns_registration_and_pending(
        self, service: ComplaintService, seeded_store: InMemoryRecordStore
    ) -> None:
        complaint = await _file(service, seeded_store)

        assert complaint.id == 1
        assert complaint.registration_number == "GRV/2024/000001"
        assert complaint.status_id == ComplaintStatus.PENDING
        assert complaint.user_id == CITIZEN_ID
        assert complaint.attachments == []

        stored = await seeded_store.select_one("complaints", filters={"id": 1})
        assert stored is not None
        assert stored["registration_number"] == "GRV/2024/000001"

    async def test_unknown_category_rejected(self, service: ComplaintService, seeded_store: InMemoryRecordStore) -> None:
        with pytest.raises(InvalidComplaintError):
            await _file(service, seeded_store, category_id=99, subcategory_id=None)

    async def test_subcategory_must_belong_to_category(
        self, service: ComplaintService, seeded_store: InMemoryRecordStore
    ) -> None:
        with pytest.raises(InvalidComplaintError, match="does not belong"):
            await _file(service, seeded_store, category_id=2, subcategory_id=1)

    async def test_anonymous_caller_rejected(self, service: ComplaintService, seeded_store: InMemoryRecordStore) -> None:
        anonymous = SessionContext(StaticIdentityProvider(), seeded_store)
        await anonymous.refresh()
        with pytest.raises(NotAuthenticatedError):
            await service.create_complaint(anonymous, ComplaintCreate(**complaint_payload()))

    async def test_list_user_complaints_only_own(
        self, service: ComplaintService, seeded_store: InMemoryRecordStore
    ) -> None:
        await _file(service, seeded_store)
        other = await _session(seeded_store, "user-2")
        await service.create_complaint(other, ComplaintCreate(**complaint_payload(subject="Broken streetlight")))

        mine = await service.list_user_complaints(await _session(seeded_store))
        assert [c.subject for c in mine] == ["No water supply in ward 12"]
        assert mine[0].category is not None
        assert mine[0].category.name == "Water Supply"
        assert mine[0].status is not None
        assert mine[0].status.name == "Pending"


# ---------------------------------------------------------------------------
# Staff operations
# ---------------------------------------------------------------------------


class TestTriage:
    async def test_update_status_notifies_owner(
        self, service: ComplaintService, seeded_store: InMemoryRecordStore, dispatcher: MagicMock
    ) -> None:
        complaint = await _file(service, seeded_store)
        staff = await _session(seeded_store, "staff-1")

        detail = await service.update_status(staff, complaint.id, ComplaintStatus.IN_PROGRESS)

        assert detail.status_id == ComplaintStatus.IN_PROGRESS
        assert detail.responses == [], "no notes means no response row"
        dispatcher.send_status_update.assert_awaited_once_with(complaint.id, CITIZEN_ID, "In Progress")

    async def test_resolution_uses_notes(
        self, service: ComplaintService, seeded_store: InMemoryRecordStore, dispatcher: MagicMock
    ) -> None:
        complaint = await _file(service, seeded_store)
        staff = await _session(seeded_store, "staff-1")

        detail = await service.update_status(staff, complaint.id, ComplaintStatus.RESOLVED, "Pipeline repaired")

        assert [r.response for r in detail.responses] == ["Pipeline repaired"]
        dispatcher.send_resolution.assert_awaited_once_with(complaint.id, CITIZEN_ID, "Pipeline repaired")
        dispatcher.send_status_update.assert_not_awaited()

    async def test_unknown_status_rejected(self, service: ComplaintService, seeded_store: InMemoryRecordStore) -> None:
        complaint = await _file(service, seeded_store)
        staff = await _session(seeded_store, "staff-1")
        with pytest.raises(InvalidComplaintError):
            await service.update_status(staff, complaint.id, 42)

    async def test_missing_complaint(self, service: ComplaintService, seeded_store: InMemoryRecordStore) -> None:
        staff = await _session(seeded_store, "staff-1")
        with pytest.raises(ComplaintNotFoundError):
            await service.update_status(staff, 404, ComplaintStatus.CLOSED)
        with pytest.raises(ComplaintNotFoundError):
            await service.get_complaint(404)

    async def test_assign_records_assignee(
        self, service: ComplaintService, seeded_store: InMemoryRecordStore, dispatcher: MagicMock
    ) -> None:
        complaint = await _file(service, seeded_store)
        staff = await _session(seeded_store, "staff-1")

        detail = await service.assign_complaint(staff, complaint.id, "Ward 12 Engineer", "Site visit first")

        assert detail.assigned_to == "Ward 12 Engineer"
        assert detail.assigned_at is not None
        assert detail.responses[0].response == "Complaint assigned to Ward 12 Engineer"
        assert detail.responses[0].internal_notes == "Site visit first"
        dispatcher.send_assignment.assert_awaited_once_with(complaint.id, CITIZEN_ID, "Ward 12 Engineer")

    async def test_add_response(self, service: ComplaintService, seeded_store: InMemoryRecordStore) -> None:
        complaint = await _file(service, seeded_store)
        staff = await _session(seeded_store, "staff-1")

        response = await service.add_response(staff, complaint.id, "We are looking into it", "call back")
        assert response.responded_by == "staff-1"
        assert response.internal_notes == "call back"

    async def test_status_saved_when_dispatcher_raises(
        self, service: ComplaintService, seeded_store: InMemoryRecordStore, dispatcher: MagicMock
    ) -> None:
        complaint = await _file(service, seeded_store)
        staff = await _session(seeded_store, "staff-1")
        dispatcher.send_resolution = AsyncMock(side_effect=RuntimeError("channels down"))

        detail = await service.update_status(staff, complaint.id, ComplaintStatus.RESOLVED, "Pipeline repaired")

        assert detail.status_id == ComplaintStatus.RESOLVED, "a failed notification must not undo the update"
        dispatcher.send_resolution.assert_awaited_once()

    async def test_failed_dispatch_result_is_tolerated(
        self, service: ComplaintService, seeded_store: InMemoryRecordStore, dispatcher: MagicMock
    ) -> None:
        complaint = await _file(service, seeded_store)
        staff = await _session(seeded_store, "staff-1")
        dispatcher.send_assignment = AsyncMock(return_value=DispatchResult(success=False, error="Profile not found"))

        detail = await service.assign_complaint(staff, complaint.id, "Ward 12 Engineer")

        assert detail.assigned_to == "Ward 12 Engineer"

    async def test_without_dispatcher(self, seeded_store: InMemoryRecordStore, storage: InMemoryObjectStorage) -> None:
        service = ComplaintService(seeded_store, storage)
        complaint = await _file(service, seeded_store)
        staff = await _session(seeded_store, "staff-1")
        detail = await service.update_status(staff, complaint.id, ComplaintStatus.CLOSED)
        assert detail.status_id == ComplaintStatus.CLOSED


# ---------------------------------------------------------------------------
# Listing and dashboard
# ---------------------------------------------------------------------------


class TestListing:
    async def test_filters_and_paging(
        self, service: ComplaintService, seeded_store: InMemoryRecordStore, clock: _Clock
    ) -> None:
        for subject in ("Water tank leaking", "Pothole near school", "Water pressure low"):
            await _file(service, seeded_store, subject=subject)
            clock.advance(hours=1)

        page = await service.list_complaints(page=1, limit=2)
        assert page.total == 3
        assert page.total_pages == 2
        assert [c.subject for c in page.complaints] == ["Water pressure low", "Pothole near school"]

        second = await service.list_complaints(page=2, limit=2)
        assert [c.subject for c in second.complaints] == ["Water tank leaking"]

        searched = await service.list_complaints(ComplaintFilters(search="WATER"))
        assert searched.total == 2

        by_number = await service.list_complaints(ComplaintFilters(search="000002"))
        assert [c.subject for c in by_number.complaints] == ["Pothole near school"]

    async def test_status_and_date_filters(
        self, service: ComplaintService, seeded_store: InMemoryRecordStore, clock: _Clock
    ) -> None:
        first = await _file(service, seeded_store)
        clock.advance(days=2)
        await _file(service, seeded_store, subject="Second complaint")
        staff = await _session(seeded_store, "staff-1")
        await service.update_status(staff, first.id, ComplaintStatus.UNDER_REVIEW)

        reviewed = await service.list_complaints(ComplaintFilters(status=ComplaintStatus.UNDER_REVIEW))
        assert [c.id for c in reviewed.complaints] == [first.id]

        recent = await service.list_complaints(ComplaintFilters(date_from=clock.now - timedelta(hours=1)))
        assert [c.subject for c in recent.complaints] == ["Second complaint"]

    async def test_dashboard_stats(
        self, service: ComplaintService, seeded_store: InMemoryRecordStore, clock: _Clock
    ) -> None:
        resolved = await _file(service, seeded_store)
        await _file(service, seeded_store, subject="Still waiting")
        staff = await _session(seeded_store, "staff-1")
        clock.advance(hours=6)
        await service.update_status(staff, resolved.id, ComplaintStatus.RESOLVED, "Done")

        stats = await service.get_dashboard_stats()
        assert stats.total_complaints == 2
        assert stats.pending_complaints == 1
        assert stats.resolved_complaints == 1
        assert stats.average_resolution_time_hours == 6.0
        assert stats.complaints_by_category == {"Water Supply": 2}
        assert stats.complaints_by_status == {"Resolved": 1, "Pending": 1}
        assert len(stats.recent_complaints) == 2

    async def test_reference_data(self, service: ComplaintService) -> None:
        statuses = await service.get_statuses()
        assert [s.name for s in statuses][:2] == ["Pending", "Under Review"]
        subcategories = await service.get_subcategories(1)
        assert {s.category_id for s in subcategories} == {1}
        assert len(await service.get_categories()) == 9


# ---------------------------------------------------------------------------
# Category maintenance
# ---------------------------------------------------------------------------


class TestCategories:
    async def test_create_gets_next_id(self, service: ComplaintService, seeded_store: InMemoryRecordStore) -> None:
        staff = await _session(seeded_store, "staff-1")

        category = await service.create_category(staff, CategoryCreate(name="Parks", description="Public parks"))

        assert category.id == 10, "new ids continue after the seeded categories"
        assert [c.name for c in await service.get_categories()].count("Parks") == 1

    async def test_duplicate_name_conflicts(self, service: ComplaintService, seeded_store: InMemoryRecordStore) -> None:
        staff = await _session(seeded_store, "staff-1")
        with pytest.raises(ConflictError):
            await service.create_category(staff, CategoryCreate(name=" water supply "))

    async def test_update_changes_only_given_fields(
        self, service: ComplaintService, seeded_store: InMemoryRecordStore
    ) -> None:
        staff = await _session(seeded_store, "staff-1")

        updated = await service.update_category(staff, 9, CategoryUpdate(description="Allotment and permits"))

        assert updated.name == "Housing"
        assert updated.description == "Allotment and permits"

    async def test_update_missing_category(self, service: ComplaintService, seeded_store: InMemoryRecordStore) -> None:
        staff = await _session(seeded_store, "staff-1")
        with pytest.raises(CategoryNotFoundError):
            await service.update_category(staff, 99, CategoryUpdate(name="Nothing"))

    async def test_delete_unused_category(self, service: ComplaintService, seeded_store: InMemoryRecordStore) -> None:
        staff = await _session(seeded_store, "staff-1")

        await service.delete_category(staff, 9)

        assert 9 not in {c.id for c in await service.get_categories()}
        with pytest.raises(CategoryNotFoundError):
            await service.delete_category(staff, 9)

    async def test_category_in_use_is_kept(self, service: ComplaintService, seeded_store: InMemoryRecordStore) -> None:
        staff = await _session(seeded_store, "staff-1")
        await _file(service, seeded_store, category_id=9, subcategory_id=None)

        with pytest.raises(ConflictError, match="still in use"):
            await service.delete_category(staff, 9)
        with pytest.raises(ConflictError):
            await service.delete_category(staff, 1)


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------


class TestAttachments:
    async def test_upload_appends_url(
        self,
        service: ComplaintService,
        seeded_store: InMemoryRecordStore,
        storage: InMemoryObjectStorage,
        clock: _Clock,
    ) -> None:
        complaint = await _file(service, seeded_store)
        session = await _session(seeded_store)

        url = await service.upload_attachment(session, complaint.id, "photo.jpg", b"\xff\xd8jpeg")

        epoch_ms = int(clock.now.timestamp() * 1000)
        assert url.endswith(f"/{complaint.id}/{epoch_ms}.jpg")
        assert storage.get(f"{complaint.id}/{epoch_ms}.jpg") == b"\xff\xd8jpeg"
        detail = await service.get_complaint(complaint.id)
        assert detail.attachments == [url]

    async def test_upload_to_missing_complaint(
        self, service: ComplaintService, seeded_store: InMemoryRecordStore
    ) -> None:
        session = await _session(seeded_store)
        with pytest.raises(ComplaintNotFoundError):
            await service.upload_attachment(session, 99, "a.pdf", b"%PDF")
