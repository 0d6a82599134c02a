"""HTTP status mapping for reconciliation errors."""

from __future__ import annotations

from fastapi import HTTPException

from guestbridge.domain.errors import (
    CollaboratorError,
    ConflictError,
    FatalError,
    NotFoundError,
    ReconciliationError,
    ValidationError,
)

_STATUS = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (CollaboratorError, 502),
    (FatalError, 503),
)


def http_error(exc: ReconciliationError) -> HTTPException:
    for error_type, status in _STATUS:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))
