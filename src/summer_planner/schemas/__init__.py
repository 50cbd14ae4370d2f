"""
Validation schemas for every entity mutation
"""

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
    UpdateSchema,
)
from .validation import CREATE, SCHEMA_REGISTRY, UPDATE, ValidationOutcome, get_schema, validate

__all__ = [
    "ChildCreate",
    "ChildUpdate",
    "FavoriteCreate",
    "FavoriteUpdate",
    "InterestUpdate",
    "InterestUpsert",
    "MutationSchema",
    "ProfileUpdate",
    "ScheduledItemCreate",
    "ScheduledItemUpdate",
    "SquadCreate",
    "SquadMembershipUpdate",
    "SquadUpdate",
    "UpdateSchema",
    "CREATE",
    "UPDATE",
    "SCHEMA_REGISTRY",
    "ValidationOutcome",
    "get_schema",
    "validate",
]
