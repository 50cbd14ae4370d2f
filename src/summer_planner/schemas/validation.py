"""
The validation entry point: payload in, outcome out, never an exception
"""
import logging
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, ValidationError

from ..logging_config import PlannerEventLogger
from ..utils.exceptions import InvalidInputError
from .mutations import (
    ChildCreate,
    ChildUpdate,
    FavoriteCreate,
    FavoriteUpdate,
    InterestUpdate,
    InterestUpsert,
    MutationSchema,
    ProfileUpdate,
    ScheduledItemCreate,
    ScheduledItemUpdate,
    SquadCreate,
    SquadMembershipUpdate,
    SquadUpdate,
)

logger = logging.getLogger(__name__)
event_logger = PlannerEventLogger()

CREATE = "create"
UPDATE = "update"

SCHEMA_REGISTRY: Dict[Tuple[str, str], Type[MutationSchema]] = {
    ("children", CREATE): ChildCreate,
    ("children", UPDATE): ChildUpdate,
    ("scheduled_items", CREATE): ScheduledItemCreate,
    ("scheduled_items", UPDATE): ScheduledItemUpdate,
    ("interests", CREATE): InterestUpsert,
    ("interests", UPDATE): InterestUpdate,
    ("squads", CREATE): SquadCreate,
    ("squads", UPDATE): SquadUpdate,
    ("squad_members", UPDATE): SquadMembershipUpdate,
    ("profiles", UPDATE): ProfileUpdate,
    ("favorites", CREATE): FavoriteCreate,
    ("favorites", UPDATE): FavoriteUpdate,
}


class ValidationOutcome(BaseModel):
    """Either `ok` with the normalized `value`, or the error `messages`"""
    model_config = ConfigDict(frozen=True)

    ok: bool
    value: Optional[Dict[str, Any]] = None
    messages: List[str] = []
    field: Optional[str] = None
    dropped_fields: List[str] = []

    def raise_for_error(self) -> Dict[str, Any]:
        """Return the value, or raise InvalidInputError for Python callers"""
        if not self.ok:
            raise InvalidInputError(
                self.messages[0] if self.messages else "Invalid input",
                field=self.field,
                messages=list(self.messages),
            )
        return self.value

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, "value": self.value, "dropped_fields": self.dropped_fields}
        return {"error": "InvalidInput", "messages": self.messages, "field": self.field}


def get_schema(collection: str, operation: str) -> Optional[Type[MutationSchema]]:
    return SCHEMA_REGISTRY.get((collection, operation))


def _format_errors(error: ValidationError) -> Tuple[List[str], Optional[str]]:
    messages = []
    first_field = None
    for detail in error.errors():
        loc = ".".join(str(part) for part in detail.get("loc", ()))
        if first_field is None and loc:
            first_field = str(detail["loc"][0])
        msg = detail.get("msg", "Invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        messages.append(f"{loc}: {msg}" if loc else msg)
    return messages, first_field


def _failure(message: str, field: Optional[str] = None) -> ValidationOutcome:
    return ValidationOutcome(ok=False, messages=[message], field=field)


def validate(collection: str, operation: str, payload: Any) -> ValidationOutcome:
    """
    Validate and normalize a mutation payload.

    Free text is sanitized along the way. For updates, keys outside the
    schema's allow-list are dropped and logged; the remaining keys are
    validated and only the ones actually supplied are returned.
    """
    schema = get_schema(collection, operation)
    if schema is None:
        return _failure(f"No schema for {operation} on {collection}")

    if not isinstance(payload, dict):
        return _failure("Payload must be an object")

    dropped: List[str] = []
    if schema.is_update:
        allowed = schema.allowed_fields()
        dropped = sorted(key for key in payload if key not in allowed)
        if dropped:
            logger.warning(f"Dropping disallowed update fields on {collection}: {', '.join(dropped)}")
            event_logger.log_dropped_fields(collection, dropped)
            payload = {key: value for key, value in payload.items() if key in allowed}

    try:
        model = schema.model_validate(payload)
    except ValidationError as e:
        messages, field = _format_errors(e)
        return ValidationOutcome(ok=False, messages=messages, field=field, dropped_fields=dropped)

    value = model.model_dump(mode="json", exclude_unset=schema.is_update)
    return ValidationOutcome(ok=True, value=value, dropped_fields=dropped)
