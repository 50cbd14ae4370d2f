"""
FastAPI dependency injection for the planner API
"""
import logging
from datetime import date
from typing import Optional

from fastapi import Depends

from ..config import Settings
from ..config import get_settings as load_settings

logger = logging.getLogger(__name__)


def get_settings() -> Settings:
    """Get application settings (cached)"""
    return load_settings()


def resolve_today(today: Optional[date]) -> date:
    """Reference date for registration urgency"""
    return today or date.today()


def get_default_season(settings: Settings = Depends(get_settings)) -> tuple[date, date]:
    return settings.DEFAULT_SCHOOL_END, settings.DEFAULT_SCHOOL_START
