"""
API routes for the Summer Camp Planner
"""

from .health import router as health_router
from .planning import router as planning_router
from .validation import router as validation_router

__all__ = [
    "health_router",
    "planning_router",
    "validation_router",
]
