"""
Pydantic models for the Summer Camp Planner core

Entity records are frozen: a snapshot built from them can be shared by
reference without copying.
"""

from __future__ import annotations

from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

UNKNOWN_CAMP_NAME = "Unknown Camp"


class ScheduleStatus(str, Enum):
    PLANNED = "planned"
    REGISTERED = "registered"
    CONFIRMED = "confirmed"
    WAITLISTED = "waitlisted"
    CANCELLED = "cancelled"


class BlockType(str, Enum):
    VACATION = "vacation"
    FAMILY_TIME = "family-time"
    TRAVEL = "travel"
    OTHER = "other"


class ItemKind(str, Enum):
    CAMP = "camp"
    BLOCK = "block"


class RegistrationKind(str, Enum):
    UPCOMING = "upcoming"
    OPEN = "open"
    WAITLIST = "waitlist"
    CLOSED = "closed"
    UNKNOWN = "unknown"


class Severity(str, Enum):
    CRITICAL = "critical"
    INFO = "info"


class BudgetLevel(str, Enum):
    UNSET = "unset"
    OK = "ok"
    WARNING = "warning"
    EXCEEDED = "exceeded"


class SquadRole(str, Enum):
    OWNER = "owner"
    MEMBER = "member"


class Topic(str, Enum):
    """Invalidation topics, one per mutable collection"""
    CHILDREN = "children"
    SCHEDULED_ITEMS = "scheduled_items"
    INTERESTS = "interests"
    SQUADS = "squads"
    PROFILE = "profile"
    FAVORITES = "favorites"


class Record(BaseModel):
    """Base for immutable entity records"""
    model_config = ConfigDict(frozen=True, extra="ignore", use_enum_values=False)


# Entities
class Child(Record):
    id: str = Field(min_length=1)
    owner_id: str = Field(min_length=1)
    name: str
    color: str = "#3b82f6"
    age: Optional[int] = Field(None, ge=0, le=99)
    is_sample: bool = False


class Camp(Record):
    """Camp catalog entry, read-only inside the core"""
    id: str = Field(min_length=1)
    name: str
    category: Optional[str] = None
    min_age: Optional[int] = Field(None, ge=0)
    max_age: Optional[int] = Field(None, ge=0)
    min_price: Optional[int] = Field(None, ge=0)
    max_price: Optional[int] = Field(None, ge=0)
    hours: Optional[str] = None
    drop_off: Optional[str] = None
    pick_up: Optional[str] = None
    extended_care: Optional[str] = None
    food_included: bool = False
    transport: bool = False
    sibling_discount: bool = False
    registration_opens: Optional[date] = None
    reg_status: Optional[str] = None
    reg_date: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None

    @classmethod
    def placeholder(cls, camp_id: str) -> "Camp":
        """Stand-in for a camp that no longer exists in the catalog"""
        return cls(id=camp_id or "unknown", name=UNKNOWN_CAMP_NAME)

    def accepts_age(self, age: Optional[int]) -> bool:
        if age is None:
            return True
        if self.min_age is not None and age < self.min_age:
            return False
        if self.max_age is not None and age > self.max_age:
            return False
        return True


class WeekSlot(Record):
    week_number: int = Field(ge=1)
    start_date: date
    end_date: date
    label: str
    display: str

    @property
    def weekday_count(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def intersects(self, start: date, end: date) -> bool:
        """Inclusive overlap with `[start, end]`"""
        return start <= self.end_date and self.start_date <= end


class SeasonGap(Record):
    """Leftover days before the first slot or after the last one"""
    start_date: date
    end_date: date
    days: int = Field(ge=1)
    label: str


class ScheduledItem(Record):
    """
    A child's assignment to a camp, or to a non-camp block.

    Exactly one of `camp_id` / `block_type` is set; `kind` tells them apart.
    """
    id: str = Field(min_length=1)
    owner_id: str = Field(min_length=1)
    child_id: str = Field(min_length=1)
    camp_id: Optional[str] = None
    block_type: Optional[BlockType] = None
    camp_name: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    price: Optional[int] = Field(None, ge=0)
    status: ScheduleStatus = ScheduleStatus.PLANNED
    notes: Optional[str] = None
    multi_week: bool = False
    is_sample: bool = False

    @model_validator(mode="after")
    def check_camp_or_block(self):
        if (self.camp_id is None) == (self.block_type is None):
            raise ValueError("Scheduled item needs exactly one of camp_id or block_type")
        return self

    @property
    def kind(self) -> ItemKind:
        return ItemKind.BLOCK if self.block_type is not None else ItemKind.CAMP

    @property
    def is_active(self) -> bool:
        return self.status != ScheduleStatus.CANCELLED

    @property
    def has_dates(self) -> bool:
        return self.start_date is not None and self.end_date is not None


class CampInterest(Record):
    id: str = Field(min_length=1)
    owner_id: str = Field(min_length=1)
    child_id: str = Field(min_length=1)
    camp_id: str = Field(min_length=1)
    week_number: int = Field(ge=1)
    looking_for_friends: bool = False

    @property
    def key(self) -> Tuple[str, str, str, int]:
        return (self.owner_id, self.child_id, self.camp_id, self.week_number)


class SquadMember(Record):
    squad_id: str
    user_id: str
    display_name: Optional[str] = None
    role: SquadRole = SquadRole.MEMBER
    reveal_identity: bool = False
    share_schedule: bool = True


class Squad(Record):
    id: str = Field(min_length=1)
    name: str
    invite_code: str
    created_by: str
    members: Tuple[SquadMember, ...] = ()

    def member(self, user_id: str) -> Optional[SquadMember]:
        for member in self.members:
            if member.user_id == user_id:
                return member
        return None


class AccountProfile(Record):
    id: str = Field(min_length=1)
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    role: str = "user"
    preferences: Dict[str, Any] = Field(default_factory=dict)
    preferred_categories: Tuple[str, ...] = ()
    onboarding_completed: bool = False
    tour_completed: bool = False
    school_year_end: Optional[date] = None
    school_year_start: Optional[date] = None
    work_hours_start: Optional[str] = None
    work_hours_end: Optional[str] = None
    summer_budget: Optional[int] = Field(None, ge=0)


class Favorite(Record):
    id: str = Field(min_length=1)
    owner_id: str = Field(min_length=1)
    camp_id: str = Field(min_length=1)
    child_id: Optional[str] = None
    notes: Optional[str] = None
    priority: Optional[int] = Field(None, ge=0)


class SquadInterestRow(Record):
    """A squad peer's interest after the disclosure filter ran"""
    interest_id: str
    squad_id: str
    camp_id: str
    week_number: int
    looking_for_friends: bool = False
    reveal_identity: bool = False
    owner_id: Optional[str] = None
    member_name: str
    child_id: Optional[str] = None
    child_name: Optional[str] = None


# Snapshot
class Snapshot(Record):
    """Immutable view of every core entity for one account"""
    owner_id: Optional[str] = None
    weeks: Tuple[WeekSlot, ...] = ()
    pre_season_gap: Optional[SeasonGap] = None
    post_season_gap: Optional[SeasonGap] = None
    children: Tuple[Child, ...] = ()
    scheduled_items: Tuple[ScheduledItem, ...] = ()
    interests: Tuple[CampInterest, ...] = ()
    camps: Tuple[Camp, ...] = ()
    profile: Optional[AccountProfile] = None
    squads: Tuple[Squad, ...] = ()
    peer_interests: Tuple[SquadInterestRow, ...] = ()
    favorites: Tuple[Favorite, ...] = ()
    is_preview: bool = False

    def camp_index(self) -> Dict[str, Camp]:
        return {camp.id: camp for camp in self.camps}

    def child(self, child_id: str) -> Optional[Child]:
        for child in self.children:
            if child.id == child_id:
                return child
        return None

    def items_for_child(self, child_id: str) -> List[ScheduledItem]:
        return [item for item in self.scheduled_items if item.child_id == child_id]


# Derived outputs
class CoverageReport(Record):
    child_id: str
    total_weeks: int
    covered_weeks: Tuple[int, ...]
    gap_weeks: Tuple[int, ...]
    coverage_percent: int


class RegistrationStatus(Record):
    kind: RegistrationKind
    days_until: Optional[int] = None
    label: str
    severity: Optional[Severity] = None
    opens_on: Optional[date] = None


class WorkHourFit(Record):
    """`covers` is None when the camp's times cannot be read"""
    covers: Optional[bool] = None
    needs_extended_care: bool = False
    effective_drop_off: Optional[str] = None
    effective_pick_up: Optional[str] = None
    work_start: Optional[str] = None
    work_end: Optional[str] = None


class BudgetStatus(Record):
    budget: Optional[int] = None
    total: int
    remaining: Optional[int] = None
    fraction_used: Optional[float] = None
    level: BudgetLevel


class ScheduleEntry(Record):
    item: ScheduledItem
    camp: Optional[Camp] = None
    week_numbers: Tuple[int, ...] = ()
    in_season: bool = False


class CalendarEvent(Record):
    """All-day event; `end_date` is exclusive"""
    item_id: str
    title: str
    start_date: date
    end_date: date
    child_id: str
    child_name: Optional[str] = None
    location: Optional[str] = None
    status: ScheduleStatus
    all_day: bool = True

    @classmethod
    def from_item(cls, item: ScheduledItem, title: str, child_name: Optional[str], location: Optional[str]):
        return cls(
            item_id=item.id,
            title=title,
            start_date=item.start_date,
            end_date=item.end_date + timedelta(days=1),
            child_id=item.child_id,
            child_name=child_name,
            location=location,
            status=item.status,
        )


class FriendInterestCount(Record):
    camp_id: str
    week_number: int
    count: int = Field(ge=1)

    @property
    def flat_key(self) -> str:
        return f"{self.camp_id}-{self.week_number}"


class DerivedSnapshot(Record):
    """Everything the UI reads for one child"""
    child_id: str
    weeks: Tuple[WeekSlot, ...]
    covered_weeks: Tuple[int, ...]
    gap_weeks: Tuple[int, ...]
    coverage_percent: int
    total_cost: int
    family_total_cost: int
    conflicts_by_item_id: Dict[str, List[str]]
    registration_by_camp_id: Dict[str, RegistrationStatus]
    work_hour_by_camp_id: Dict[str, WorkHourFit]
    friend_interest_counts: Tuple[FriendInterestCount, ...]
    friend_interest_count_map: Dict[str, int]
    pre_season_gap: Optional[SeasonGap] = None
    post_season_gap: Optional[SeasonGap] = None
    budget: BudgetStatus
    schedule: Tuple[ScheduleEntry, ...] = ()
    is_preview: bool = False
