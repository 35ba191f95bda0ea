"""Typed domain errors and their HTTP rendering.

Every failure that crosses a layer boundary carries an ErrorKind so the
admin layer can branch on the outcome instead of catching bare exceptions:

- not_found: entity id invalid or missing (user-correctable)
- optimistic_lock_conflict: concurrent modification detected (reload and retry manually)
- validation_error: malformed or disallowed input
- unsupported_operation: internal defect, not shown to operators
"""

from enum import Enum
from typing import Optional

from fastapi import status
from fastapi.responses import JSONResponse


class ErrorKind(str, Enum):
    """Error taxonomy shared by repositories, services and routers."""

    NOT_FOUND = "not_found"
    OPTIMISTIC_LOCK_CONFLICT = "optimistic_lock_conflict"
    VALIDATION = "validation_error"
    UNSUPPORTED_OPERATION = "unsupported_operation"


HTTP_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.OPTIMISTIC_LOCK_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNSUPPORTED_OPERATION: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class AppError(Exception):
    """Base class for typed domain errors."""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.kind.value
        super().__init__(self.message)

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]

    def to_dict(self) -> dict:
        """Serialize for API response."""
        return {
            "error": self.kind.value,
            "detail": self.message,
            "retryable": False,
        }


class NotFoundError(AppError):
    """Raised when an entity id is missing or does not resolve."""

    kind = ErrorKind.NOT_FOUND


class OptimisticLockConflictError(AppError):
    """Raised when a conditional update matched no row.

    The stored update version no longer equals the version the caller read,
    so another writer got there first. Never retried automatically.
    """

    kind = ErrorKind.OPTIMISTIC_LOCK_CONFLICT

    def __init__(
        self,
        entity: str,
        entity_id,
        expected_version: Optional[int] = None,
    ):
        self.entity = entity
        self.entity_id = entity_id
        self.expected_version = expected_version
        super().__init__(
            f"{entity} {entity_id} was modified by someone else "
            f"(expected update version {expected_version}). Reload and try again."
        )


class ValidationError(AppError):
    """Raised for malformed input, e.g. a missing required field."""

    kind = ErrorKind.VALIDATION


class InvalidTransitionError(ValidationError):
    """Raised when a lifecycle transition is not allowed from the current status."""

    def __init__(self, from_status: str, action: str):
        self.from_status = from_status
        self.action = action
        super().__init__(f"Cannot {action} a job in status '{from_status}'")


class UnsupportedOperationError(AppError):
    """Raised for code paths that are deliberately not implemented."""

    kind = ErrorKind.UNSUPPORTED_OPERATION


def error_response(error: AppError) -> JSONResponse:
    """Render a typed error as a structured JSON response."""
    return JSONResponse(status_code=error.http_status, content=error.to_dict())
