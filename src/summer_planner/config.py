"""
Configuration settings for the Summer Camp Planner
"""

import os
from datetime import date
from functools import lru_cache
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .utils.helpers import parse_time_to_minutes


class Settings(BaseSettings):
    """Settings for the planning core and its HTTP surface"""

    # API Settings
    app_name: str = "Summer Camp Planner"
    app_version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 8000

    # Logging
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    LOG_LEVEL: str = Field(default="INFO", description="Root log level")
    LOG_DIR: str = Field(default="logs", description="Directory for log files")
    LOG_TO_FILE: bool = Field(default=False, description="Write rotating log files")
    LOG_JSON: bool = Field(default=False, description="Write a JSON log file")

    # Season defaults for accounts without configured school dates
    DEFAULT_SCHOOL_END: date = Field(
        default=date(2026, 6, 5), description="Last day of school"
    )
    DEFAULT_SCHOOL_START: date = Field(
        default=date(2026, 8, 19), description="First day of the next school year"
    )

    # Derivation
    SEASON_BUDGET_WARN_FRACTION: float = Field(
        default=0.8, description="Fraction of the summer budget that triggers a warning"
    )
    REGISTRATION_CRITICAL_DAYS: int = Field(
        default=7, ge=0, description="Registration opening inside this many days is critical"
    )
    DEFAULT_WORK_START: str = Field(default="8:00am", description="Fallback work start")
    DEFAULT_WORK_END: str = Field(default="5:30pm", description="Fallback work end")
    ENFORCE_NO_OVERLAP: bool = Field(
        default=True, description="Reject schedule items that overlap for the same child"
    )

    # Remote object store (PostgREST style)
    STORE_URL: Optional[str] = Field(default=None, description="Base URL of the object store")
    STORE_API_KEY: Optional[str] = Field(default=None, description="API key sent with every request")
    STORE_TIMEOUT_SECONDS: Optional[float] = Field(
        default=None, description="Transport timeout; unset keeps the client default"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("SEASON_BUDGET_WARN_FRACTION")
    @classmethod
    def validate_warn_fraction(cls, v):
        if not 0 < v <= 1:
            raise ValueError("Budget warning fraction must be between 0 and 1")
        return v

    @field_validator("DEFAULT_WORK_START", "DEFAULT_WORK_END")
    @classmethod
    def validate_work_time(cls, v):
        if parse_time_to_minutes(v) is None:
            raise ValueError(f"Unreadable work time: {v}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def validate_school_dates(self):
        if self.DEFAULT_SCHOOL_END >= self.DEFAULT_SCHOOL_START:
            raise ValueError("Default school end must be before default school start")
        return self

    @property
    def work_window_minutes(self) -> tuple[int, int]:
        """Default work window as minutes since midnight"""
        return (
            parse_time_to_minutes(self.DEFAULT_WORK_START),
            parse_time_to_minutes(self.DEFAULT_WORK_END),
        )

    @property
    def store_configured(self) -> bool:
        return bool(self.STORE_URL)


class ConfigValidator:
    """Soft checks that do not prevent startup"""

    @staticmethod
    def validate_store_config(settings: Settings) -> List[str]:
        issues = []
        if settings.STORE_URL and not settings.STORE_URL.startswith(("http://", "https://")):
            issues.append("STORE_URL must be an http(s) URL")
        if settings.STORE_URL and not settings.STORE_API_KEY:
            issues.append("STORE_API_KEY is not set; requests will be anonymous")
        if settings.STORE_TIMEOUT_SECONDS is not None and settings.STORE_TIMEOUT_SECONDS <= 0:
            issues.append("STORE_TIMEOUT_SECONDS must be positive")
        return issues

    @staticmethod
    def validate_season_config(settings: Settings) -> List[str]:
        issues = []
        season_days = (settings.DEFAULT_SCHOOL_START - settings.DEFAULT_SCHOOL_END).days
        if season_days < 7:
            issues.append("Default season is shorter than one week")
        if season_days > 180:
            issues.append("Default season is longer than six months")
        work_start, work_end = settings.work_window_minutes
        if work_start >= work_end:
            issues.append("DEFAULT_WORK_START must be before DEFAULT_WORK_END")
        return issues

    @staticmethod
    def validate_all(settings: Settings) -> Dict[str, List[str]]:
        return {
            "store": ConfigValidator.validate_store_config(settings),
            "season": ConfigValidator.validate_season_config(settings),
        }


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings"""
    return Settings()


def validate_current_config() -> Dict[str, Any]:
    """Validate the current configuration and return issues"""

    current = get_settings()
    validation_results = ConfigValidator.validate_all(current)
    total_issues = sum(len(issues) for issues in validation_results.values())

    return {
        "valid": total_issues == 0,
        "total_issues": total_issues,
        "issues_by_category": validation_results,
        "settings_summary": {
            "environment": os.getenv("ENVIRONMENT", "development"),
            "default_season": f"{current.DEFAULT_SCHOOL_END} - {current.DEFAULT_SCHOOL_START}",
            "store": current.STORE_URL or "in-memory",
            "enforce_no_overlap": current.ENFORCE_NO_OVERLAP,
        },
    }


# Global settings instance
settings = get_settings()
