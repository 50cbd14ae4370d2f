"""
Request bodies for the HTTP surface
"""
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from ..models import Camp, Snapshot


class DeriveRequest(BaseModel):
    snapshot: Snapshot
    child_id: str = Field(min_length=1)
    today: Optional[date] = None


class RegistrationStatusRequest(BaseModel):
    camp: Camp
    today: Optional[date] = None
