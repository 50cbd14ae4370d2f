"""
Season and derivation routes

Stateless: every request carries the data it is computed from.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...config import Settings
from ...core.calendar import Season, build_season, season_for_profile
from ...core.derivation import derive, registration_status
from ...models import DerivedSnapshot, RegistrationStatus
from ...schemas.requests import DeriveRequest, RegistrationStatusRequest
from ..dependencies import get_default_season, get_settings, resolve_today

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Planning"])


@router.get(
    "/season",
    response_model=Season,
    summary="Season weeks for a pair of school dates",
)
async def get_season(
    school_end: Optional[str] = Query(None, description="Last day of school (YYYY-MM-DD)"),
    school_start: Optional[str] = Query(None, description="First day of next school year (YYYY-MM-DD)"),
    defaults: tuple[date, date] = Depends(get_default_season),
) -> Season:
    """Weeks plus the pre/post season gaps; missing dates use the configured defaults"""
    return build_season(school_end or defaults[0], school_start or defaults[1])


@router.post(
    "/derive",
    response_model=DerivedSnapshot,
    summary="Derived views for one child",
)
async def derive_snapshot(
    request: DeriveRequest,
    settings: Settings = Depends(get_settings),
) -> DerivedSnapshot:
    snapshot = request.snapshot
    if not snapshot.weeks:
        season = season_for_profile(snapshot.profile, settings)
        snapshot = snapshot.model_copy(update={
            "weeks": season.weeks,
            "pre_season_gap": season.pre_season_gap,
            "post_season_gap": season.post_season_gap,
        })

    logger.info(
        f"Deriving for child {request.child_id}: {len(snapshot.scheduled_items)} items, "
        f"{len(snapshot.weeks)} weeks"
    )
    return derive(snapshot, request.child_id, resolve_today(request.today), settings)


@router.post(
    "/registration-status",
    response_model=RegistrationStatus,
    summary="Registration urgency for one camp",
)
async def get_registration_status(
    request: RegistrationStatusRequest,
    settings: Settings = Depends(get_settings),
) -> RegistrationStatus:
    return registration_status(
        request.camp, resolve_today(request.today), settings.REGISTRATION_CRITICAL_DAYS
    )
