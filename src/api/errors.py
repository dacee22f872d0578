"""Mapping of complaint-service errors onto HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException

from src.services.complaints import (
    ComplaintError,
    ConflictError,
    InvalidComplaintError,
    NotAuthenticatedError,
    NotFoundError,
    PermissionDeniedError,
)

_STATUS_CODES: dict[type[ComplaintError], int] = {
    NotFoundError: 404,
    ConflictError: 409,
    InvalidComplaintError: 422,
    NotAuthenticatedError: 401,
    PermissionDeniedError: 403,
}


def complaint_http_error(exc: ComplaintError) -> HTTPException:
    for error_type, status_code in _STATUS_CODES.items():
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))
