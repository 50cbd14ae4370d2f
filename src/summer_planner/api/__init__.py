"""
HTTP surface for the planning core
"""

from .dependencies import get_default_season, get_settings

__all__ = [
    "get_default_season",
    "get_settings",
]
