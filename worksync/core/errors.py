"""Application error taxonomy and structured error responses."""

from enum import Enum
from typing import Any

from pydantic import BaseModel


class ErrorCategory(Enum):
    """Categories of errors surfaced to API callers."""

    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INTERNAL = "internal"


class ErrorCode:
    """Error codes for specific error conditions."""

    # Input errors
    ERR_BAD_REQUEST = "ERR_BAD_REQUEST"
    ERR_VALIDATION = "ERR_VALIDATION"
    ERR_INVALID_PATH = "ERR_INVALID_PATH"
    ERR_INVALID_TASK_TYPE = "ERR_INVALID_TASK_TYPE"

    # Permission errors
    ERR_UNAUTHORIZED = "ERR_UNAUTHORIZED"
    ERR_PERMISSION_DENIED = "ERR_PERMISSION_DENIED"

    # Lookup errors
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_NOT_A_MEMBER = "ERR_NOT_A_MEMBER"

    # State errors
    ERR_CONFLICT = "ERR_CONFLICT"
    ERR_TIMER_ALREADY_RUNNING = "ERR_TIMER_ALREADY_RUNNING"
    ERR_TIMER_NOT_RUNNING = "ERR_TIMER_NOT_RUNNING"
    ERR_ALREADY_EXISTS = "ERR_ALREADY_EXISTS"

    # Generic errors
    ERR_INTERNAL = "ERR_INTERNAL"


class ErrorResponse(BaseModel):
    """Structured error body returned by the API."""

    code: str
    message: str
    errors: list[dict[str, Any]] | None = None


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    category: ErrorCategory = ErrorCategory.INTERNAL
    default_code: str = ErrorCode.ERR_INTERNAL

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def to_response(self) -> ErrorResponse:
        """Render this error as a response body."""
        return ErrorResponse(code=self.code, message=self.message)


class BadRequestError(AppError):
    """Malformed or invalid input."""

    status_code = 400
    category = ErrorCategory.BAD_REQUEST
    default_code = ErrorCode.ERR_BAD_REQUEST


class UnauthorizedError(AppError):
    """Caller lacks the required permission or relationship."""

    status_code = 401
    category = ErrorCategory.UNAUTHORIZED
    default_code = ErrorCode.ERR_UNAUTHORIZED


class NotFoundError(AppError):
    """Referenced entity is absent or belongs elsewhere."""

    status_code = 404
    category = ErrorCategory.NOT_FOUND
    default_code = ErrorCode.ERR_NOT_FOUND


class ConflictError(AppError):
    """Operation is not allowed in the entity's current state."""

    status_code = 409
    category = ErrorCategory.CONFLICT
    default_code = ErrorCode.ERR_CONFLICT


class InternalError(AppError):
    """Unexpected failure such as a data consistency violation."""

    status_code = 500
    category = ErrorCategory.INTERNAL
    default_code = ErrorCode.ERR_INTERNAL


def validation_error_response(errors: list[dict[str, Any]]) -> ErrorResponse:
    """Build a field-level validation error body from pydantic error dicts."""
    details = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")),
            "message": error.get("msg", "Invalid value"),
        }
        for error in errors
    ]
    return ErrorResponse(code=ErrorCode.ERR_VALIDATION, message="Validation failed", errors=details)
