"""
Custom exceptions for the summer planner core
"""
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Error kinds surfaced to callers as the `kind` of an error object"""

    INVALID_INPUT = "InvalidInput"
    NOT_OWNER = "NotOwner"
    NOT_FOUND = "NotFound"
    STORE_ERROR = "StoreError"
    INVALID_DATE_RANGE = "InvalidDateRange"
    PREVIEW_CONFLICT = "PreviewConflict"
    UNKNOWN = "Unknown"


# User-facing messages for backing-store error codes
ERROR_MESSAGES = {
    # Database errors
    "PGRST116": "No data found. Please refresh and try again.",
    "23505": "This item already exists.",
    "23503": "Cannot delete - item is in use elsewhere.",
    "42P01": "Database table not found. Please contact support.",
    "42883": "This operation is not available right now.",

    # Planner errors
    "VALIDATION_FAILED": "Invalid data provided.",
    "SCHEDULE_CONFLICT": "Schedule conflict detected.",
    "NOT_OWNER": "You do not have permission to do that.",
    "NOT_FOUND": "That item no longer exists.",
    "INVALID_DATE_RANGE": "School dates are invalid.",
    "PREVIEW_CONFLICT": "The plan changed while you were previewing. Please review and try again.",

    # Transport errors
    "NETWORK_ERROR": "Network error. Check your connection.",
    "TIMEOUT": "Request timed out. Please try again.",
    "UNKNOWN": "Something went wrong. Please try again.",
}

NON_RETRYABLE_CODES = {
    "23505",  # Unique constraint violation
    "23503",  # Foreign key violation
    "VALIDATION_FAILED",
    "SCHEDULE_CONFLICT",
    "NOT_OWNER",
    "INVALID_DATE_RANGE",
}


class PlannerError(Exception):
    """Base exception for planner-related errors"""

    kind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__.upper()
        self.details = details or {}

    @property
    def field(self) -> str | None:
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to the error object handed to callers"""
        result = {
            "kind": self.kind.value,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details
        }
        if self.field is not None:
            result["field"] = self.field
        return result

    def user_message(self) -> str:
        return user_message(self.error_code)


class InvalidInputError(PlannerError):
    """Exception raised when a payload fails validation"""

    kind = ErrorKind.INVALID_INPUT

    def __init__(
        self,
        message: str,
        field: str | None = None,
        messages: list[str] | None = None,
        error_code: str = "VALIDATION_FAILED",
        details: dict[str, Any] | None = None
    ):
        super().__init__(message, error_code, details)
        self._field = field
        self.messages = messages or [message]

    @property
    def field(self) -> str | None:
        return self._field

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["messages"] = self.messages
        return result


class NotOwnerError(PlannerError):
    """Exception raised when a caller touches a row owned by someone else"""

    kind = ErrorKind.NOT_OWNER

    def __init__(
        self,
        message: str = "Row is owned by another account",
        collection: str | None = None,
        entity_id: str | None = None,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message, "NOT_OWNER", details)
        self.collection = collection
        self.entity_id = entity_id

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["entity_info"] = {
            "collection": self.collection,
            "entity_id": self.entity_id
        }
        return result


class NotFoundError(PlannerError):
    """Exception raised when a referenced id does not exist"""

    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        message: str,
        collection: str | None = None,
        entity_id: str | None = None,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message, "NOT_FOUND", details)
        self.collection = collection
        self.entity_id = entity_id

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["entity_info"] = {
            "collection": self.collection,
            "entity_id": self.entity_id
        }
        return result


class StoreError(PlannerError):
    """Transport or backend failure, surfaced verbatim"""

    kind = ErrorKind.STORE_ERROR

    def __init__(
        self,
        code: str,
        message: str,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message, code or "UNKNOWN", details)
        self.code = code or "UNKNOWN"

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["code"] = self.code
        result["retryable"] = is_retryable(self.code)
        return result


class InvalidDateRangeError(PlannerError):
    """Exception raised when school dates do not describe a season"""

    kind = ErrorKind.INVALID_DATE_RANGE

    def __init__(
        self,
        message: str,
        school_end: Any | None = None,
        school_start: Any | None = None,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message, "INVALID_DATE_RANGE", details)
        self.school_end = school_end
        self.school_start = school_start

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["date_info"] = {
            "school_end": str(self.school_end) if self.school_end is not None else None,
            "school_start": str(self.school_start) if self.school_start is not None else None
        }
        return result


class PreviewConflictError(PlannerError):
    """Exception raised when a pending preview op no longer matches the store"""

    kind = ErrorKind.PREVIEW_CONFLICT

    def __init__(
        self,
        message: str,
        op_index: int | None = None,
        entity_id: str | None = None,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message, "PREVIEW_CONFLICT", details)
        self.op_index = op_index
        self.entity_id = entity_id

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["preview_info"] = {
            "op_index": self.op_index,
            "entity_id": self.entity_id
        }
        return result


class UnknownPlannerError(PlannerError):
    """Fallback for failures that fit no other kind"""

    kind = ErrorKind.UNKNOWN

    def __init__(self, message: str = "Unexpected error", details: dict[str, Any] | None = None):
        super().__init__(message, "UNKNOWN", details)


# Exception groups for easy catching
OWNERSHIP_EXCEPTIONS = (
    NotOwnerError,
    NotFoundError
)

INPUT_EXCEPTIONS = (
    InvalidInputError,
    InvalidDateRangeError
)


def user_message(code: str | None) -> str:
    """Map an error code to a message that is safe to show users"""
    return ERROR_MESSAGES.get(code or "UNKNOWN", ERROR_MESSAGES["UNKNOWN"])


def is_retryable(code: str | None) -> bool:
    return (code or "UNKNOWN") not in NON_RETRYABLE_CODES


def to_error_object(exc: BaseException) -> dict[str, Any]:
    """Convert any exception into the `{kind, message, field?}` error object"""
    if isinstance(exc, PlannerError):
        return exc.to_dict()

    return UnknownPlannerError(
        f"Unexpected error: {exc}",
        details={"original_exception": type(exc).__name__}
    ).to_dict()
