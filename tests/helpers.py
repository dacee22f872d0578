"""Test data builders shared across test modules."""

from __future__ import annotations

from typing import Any

from src.models.enums import AdminRole

CITIZEN_ID = "user-1"


def complaint_payload(**overrides: Any) -> dict[str, Any]:
    """A valid complaint form for category 1 / subcategory 1."""
    payload: dict[str, Any] = {
        "category_id": 1,
        "subcategory_id": 1,
        "subject": "No water supply in ward 12",
        "description": "There has been no municipal water supply in our lane for four days.",
        "complaint_city": "Lucknow",
        "complaint_pincode": "226001",
        "complainant_first_name": "Asha",
        "complainant_last_name": "Verma",
        "mobile_number": "9876543210",
        "email_address": "asha@example.in",
    }
    payload.update(overrides)
    return payload


def admin_row(
    user_id: str = "staff-1",
    *,
    role: AdminRole = AdminRole.ADMIN,
    permissions: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "id": f"admin-{user_id}",
        "user_id": user_id,
        "name": "Ward Officer",
        "email": "officer@grievance.gov.in",
        "role": role,
        "permissions": permissions or [],
    }
