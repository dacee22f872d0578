"""Complaint, response and reference-data models."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from src.models.enums import ComplaintPriority, ComplaintStatus


class ComplaintCategory(BaseModel):
    id: int
    name: str
    description: str | None = None


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)


class CategoryUpdate(BaseModel):
    """Partial update of a category; unset fields are left alone."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)


class ComplaintSubcategory(BaseModel):
    id: int
    category_id: int
    name: str
    description: str | None = None


class ComplaintStatusInfo(BaseModel):
    id: int
    name: str
    color: str
    description: str | None = None


class ComplaintResponse(BaseModel):
    """Append-only reply attached to a complaint."""

    id: int
    complaint_id: int
    responded_by: str
    response: str
    internal_notes: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ComplaintCreate(BaseModel):
    """Citizen-supplied complaint fields."""

    language: str = Field(default="en", max_length=10)
    category_id: int
    subcategory_id: int | None = None
    subject: str = Field(..., min_length=5, max_length=300)
    description: str = Field(..., min_length=20, max_length=5000)

    complaint_house_no: str | None = None
    complaint_area_address: str | None = None
    complaint_zone_ward_no: str | None = None
    complaint_city: str = Field(..., min_length=1, max_length=100)
    complaint_area: str | None = None
    complaint_pincode: str = Field(..., pattern=r"^\d{6}$")

    complainant_first_name: str = Field(..., min_length=1, max_length=100)
    complainant_middle_name: str | None = None
    complainant_last_name: str = Field(..., min_length=1, max_length=100)
    complainant_house_no: str | None = None
    complainant_area_address: str | None = None
    complainant_zone_ward_no: str | None = None
    complainant_landmark: str | None = None
    complainant_state: str | None = None
    complainant_pincode: str | None = None
    complainant_country: str = "India"
    telephone_off: str | None = None
    telephone_res: str | None = None
    mobile_number: str = Field(..., min_length=10, max_length=15)
    email_address: str = Field(..., min_length=3, max_length=254)

    priority: ComplaintPriority = ComplaintPriority.MEDIUM


class Complaint(ComplaintCreate):
    """A stored complaint row."""

    id: int
    registration_number: str
    user_id: str
    status_id: int = ComplaintStatus.PENDING
    assigned_to: str | None = None
    assigned_at: datetime | None = None
    attachments: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ComplaintDetail(Complaint):
    """Complaint joined with its reference data and responses."""

    category: ComplaintCategory | None = None
    subcategory: ComplaintSubcategory | None = None
    status: ComplaintStatusInfo | None = None
    responses: list[ComplaintResponse] = Field(default_factory=list)


class ComplaintFilters(BaseModel):
    status: int | None = None
    category: int | None = None
    assigned_to: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    search: str | None = None


class ComplaintPage(BaseModel):
    complaints: list[ComplaintDetail]
    total: int
    total_pages: int


class DashboardStats(BaseModel):
    total_complaints: int
    pending_complaints: int
    in_progress_complaints: int
    resolved_complaints: int
    closed_complaints: int
    rejected_complaints: int
    average_resolution_time_hours: float
    complaints_by_category: dict[str, int]
    complaints_by_status: dict[str, int]
    recent_complaints: list[ComplaintDetail]
