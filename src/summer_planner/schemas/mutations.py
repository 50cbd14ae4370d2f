"""
Mutation schemas, one per entity and operation

Create schemas ignore unknown keys. Update schemas list exactly the fields a
caller may change; anything else is dropped (and logged) before the schema
sees it, so authority-bearing fields such as a profile's role or a squad
member's role can never be written through an update.
"""
import re
from datetime import date
from typing import Annotated, Any, ClassVar, Dict, Optional, Set

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
    model_validator,
)

from ..models import BlockType, ScheduleStatus
from ..utils.helpers import parse_time_to_minutes
from ..utils.validators import sanitize_text, validate_hex_color

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _iso_date(value: Any) -> Any:
    if isinstance(value, date):
        return value
    if isinstance(value, str) and _ISO_DATE_RE.match(value.strip()):
        return value.strip()
    raise ValueError("Date must use the YYYY-MM-DD format")


FavoriteNote = Annotated[str, BeforeValidator(sanitize_text), StringConstraints(max_length=1000)]
NoteText = Annotated[str, BeforeValidator(sanitize_text), StringConstraints(max_length=2000)]
ShortText = Annotated[
    str,
    BeforeValidator(sanitize_text),
    StringConstraints(strip_whitespace=True, min_length=1, max_length=200),
]
NameText = Annotated[
    str,
    BeforeValidator(sanitize_text),
    StringConstraints(strip_whitespace=True, min_length=1, max_length=100),
]
OpaqueId = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
IsoDate = Annotated[date, BeforeValidator(_iso_date)]
Price = Annotated[int, Field(ge=0, le=10000)]
Age = Annotated[int, Field(ge=0, le=99)]


class MutationSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    is_update: ClassVar[bool] = False

    @classmethod
    def allowed_fields(cls) -> Set[str]:
        return set(cls.model_fields)


class UpdateSchema(MutationSchema):
    """Partial update; every field optional, unknown fields forbidden"""
    model_config = ConfigDict(extra="forbid")

    is_update: ClassVar[bool] = True


def _check_date_order(start: Optional[date], end: Optional[date]):
    if start is not None and end is not None and end < start:
        raise ValueError("end_date must not be before start_date")


def _check_time_text(value: Optional[str]) -> Optional[str]:
    if value is not None and parse_time_to_minutes(value) is None:
        raise ValueError(f"Unreadable time: {value}")
    return value


def _not_null(value: Any) -> Any:
    if value is None:
        raise ValueError("may not be null")
    return value


# Children
class ChildCreate(MutationSchema):
    name: NameText
    color: str = "#3b82f6"
    age: Optional[Age] = None
    is_sample: bool = False

    @field_validator("color")
    @classmethod
    def check_color(cls, v):
        return validate_hex_color(v)


class ChildUpdate(UpdateSchema):
    name: Optional[NameText] = None
    color: Optional[str] = None
    age: Optional[Age] = None

    check_not_null = field_validator("name", "color", mode="before")(_not_null)

    @field_validator("color")
    @classmethod
    def check_color(cls, v):
        return None if v is None else validate_hex_color(v)


# Scheduled items (camps and blocks)
class ScheduledItemCreate(MutationSchema):
    child_id: OpaqueId
    camp_id: Optional[OpaqueId] = None
    block_type: Optional[BlockType] = None
    camp_name: Optional[ShortText] = None
    start_date: IsoDate
    end_date: IsoDate
    price: Optional[Price] = None
    status: ScheduleStatus = ScheduleStatus.PLANNED
    notes: Optional[NoteText] = None
    multi_week: bool = False
    is_sample: bool = False

    @model_validator(mode="after")
    def check_item(self):
        if (self.camp_id is None) == (self.block_type is None):
            raise ValueError("Provide exactly one of camp_id or block_type")
        _check_date_order(self.start_date, self.end_date)
        return self


class ScheduledItemUpdate(UpdateSchema):
    camp_name: Optional[ShortText] = None
    start_date: Optional[IsoDate] = None
    end_date: Optional[IsoDate] = None
    price: Optional[Price] = None
    status: Optional[ScheduleStatus] = None
    notes: Optional[NoteText] = None
    multi_week: Optional[bool] = None

    check_not_null = field_validator("start_date", "end_date", "status", "multi_week", mode="before")(_not_null)

    @model_validator(mode="after")
    def check_dates(self):
        _check_date_order(self.start_date, self.end_date)
        return self


# Camp interests
class InterestUpsert(MutationSchema):
    child_id: OpaqueId
    camp_id: OpaqueId
    week_number: int = Field(ge=1, le=53)
    looking_for_friends: bool = False


class InterestUpdate(UpdateSchema):
    looking_for_friends: Optional[bool] = None

    check_not_null = field_validator("looking_for_friends", mode="before")(_not_null)


# Squads
class SquadCreate(MutationSchema):
    name: NameText
    display_name: Optional[NameText] = None


class SquadUpdate(UpdateSchema):
    name: Optional[NameText] = None

    check_not_null = field_validator("name", mode="before")(_not_null)


class SquadMembershipUpdate(UpdateSchema):
    display_name: Optional[NameText] = None
    reveal_identity: Optional[bool] = None
    share_schedule: Optional[bool] = None

    check_not_null = field_validator("reveal_identity", "share_schedule", mode="before")(_not_null)


# Profile
class ProfileUpdate(UpdateSchema):
    full_name: Optional[ShortText] = None
    avatar_url: Optional[Annotated[str, StringConstraints(max_length=2000)]] = None
    preferences: Optional[Dict[str, Any]] = None
    preferred_categories: Optional[Annotated[list[Annotated[str, StringConstraints(max_length=50)]], Field(max_length=20)]] = None
    onboarding_completed: Optional[bool] = None
    tour_completed: Optional[bool] = None
    last_active_at: Optional[str] = None
    notification_preferences: Optional[Dict[str, Any]] = None
    school_year_end: Optional[IsoDate] = None
    school_year_start: Optional[IsoDate] = None
    work_hours_start: Optional[str] = None
    work_hours_end: Optional[str] = None
    summer_budget: Optional[Annotated[int, Field(ge=0)]] = None

    check_not_null = field_validator(
        "preferences", "preferred_categories", "onboarding_completed", "tour_completed", mode="before"
    )(_not_null)

    @field_validator("avatar_url")
    @classmethod
    def check_avatar_url(cls, v):
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("avatar_url must be an http(s) URL")
        return v

    @field_validator("work_hours_start", "work_hours_end")
    @classmethod
    def check_work_hours(cls, v):
        return _check_time_text(v)

    @model_validator(mode="after")
    def check_school_dates(self):
        if self.school_year_end is not None and self.school_year_start is not None:
            if self.school_year_end >= self.school_year_start:
                raise ValueError("school_year_end must be before school_year_start")
        return self


# Favorites
class FavoriteCreate(MutationSchema):
    camp_id: OpaqueId
    child_id: Optional[OpaqueId] = None
    notes: Optional[FavoriteNote] = None
    priority: Optional[int] = Field(None, ge=0, le=10)


class FavoriteUpdate(UpdateSchema):
    child_id: Optional[OpaqueId] = None
    notes: Optional[FavoriteNote] = None
    priority: Optional[int] = Field(None, ge=0, le=10)
