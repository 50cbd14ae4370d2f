"""
Planning core: calendar, derivation, preview, invalidation and disclosure

The service facade lives in `summer_planner.core.planner`; it is not
imported here because it depends on the store package.
"""

from .calendar import Season, build_season, iter_season_weeks, post_season_gap, pre_season_gap, season_weeks
from .derivation import (
    budget_status,
    calendar_events,
    conflicts_by_item_id,
    coverage,
    derive,
    find_conflicts_for_range,
    friend_interest_counts,
    registration_status,
    schedule_view,
    total_cost,
    work_hour_fit,
)
from .disclosure import ANONYMOUS_MEMBER_NAME, collect_peer_interests, disclose_interest, filter_squad_interests
from .events import InvalidationBus
from .preview import CommitResult, PendingOp, PreviewOverlay, materialize

__all__ = [
    "Season",
    "build_season",
    "iter_season_weeks",
    "post_season_gap",
    "pre_season_gap",
    "season_weeks",
    "budget_status",
    "calendar_events",
    "conflicts_by_item_id",
    "coverage",
    "derive",
    "find_conflicts_for_range",
    "friend_interest_counts",
    "registration_status",
    "schedule_view",
    "total_cost",
    "work_hour_fit",
    "ANONYMOUS_MEMBER_NAME",
    "collect_peer_interests",
    "disclose_interest",
    "filter_squad_interests",
    "InvalidationBus",
    "CommitResult",
    "PendingOp",
    "PreviewOverlay",
    "materialize",
]
