"""
Utility modules for the Summer Camp Planner
"""

from .exceptions import (
    ErrorKind,
    InvalidDateRangeError,
    InvalidInputError,
    NotFoundError,
    NotOwnerError,
    PlannerError,
    PreviewConflictError,
    StoreError,
    UnknownPlannerError,
    is_retryable,
    to_error_object,
    user_message,
)
from .helpers import (
    format_minutes,
    parse_iso_date,
    parse_month_day,
    parse_time_range,
    parse_time_to_minutes,
)
from .validators import sanitize_text, validate_hex_color, validate_opaque_id

__all__ = [
    "ErrorKind",
    "InvalidDateRangeError",
    "InvalidInputError",
    "NotFoundError",
    "NotOwnerError",
    "PlannerError",
    "PreviewConflictError",
    "StoreError",
    "UnknownPlannerError",
    "is_retryable",
    "to_error_object",
    "user_message",
    "format_minutes",
    "parse_iso_date",
    "parse_month_day",
    "parse_time_range",
    "parse_time_to_minutes",
    "sanitize_text",
    "validate_hex_color",
    "validate_opaque_id",
]
