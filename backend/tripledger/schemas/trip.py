"""
Pydantic schemas for Trip, membership and timeline entities.
"""
from datetime import date as dt_date, datetime
from typing import List, Optional
from pydantic import field_validator
from tripledger.core.money import normalize_currency
from tripledger.models.trip import SpendStatus, TripMemberRole, RsvpStatus
from tripledger.models.timeline import MilestoneTriggerType
from tripledger.schemas.base import CamelModel


class TripCreate(CamelModel):
    """Schema for trip creation."""
    name: str
    start_date: Optional[dt_date] = None
    end_date: Optional[dt_date] = None
    base_currency: Optional[str] = None  # Defaults to FX_BASE_CURRENCY
    spending_window_closes: Optional[dt_date] = None  # Date of the seeded milestone

    @field_validator("base_currency")
    @classmethod
    def check_currency(cls, v: Optional[str]) -> Optional[str]:
        return normalize_currency(v) if v is not None else v


class TripResponse(CamelModel):
    id: int
    name: str
    start_date: Optional[dt_date] = None
    end_date: Optional[dt_date] = None
    base_currency: str
    spend_status: SpendStatus
    created_at: datetime
    updated_at: datetime


class TripMemberResponse(CamelModel):
    user_id: int
    username: str
    name: str
    email: str
    role: TripMemberRole
    rsvp_status: RsvpStatus


class TripDetailResponse(TripResponse):
    """Trip with its members."""
    members: List[TripMemberResponse] = []


class MemberInvite(CamelModel):
    username: str
    role: TripMemberRole = TripMemberRole.MEMBER


class RsvpUpdate(CamelModel):
    rsvp_status: RsvpStatus


class TimelineItemCreate(CamelModel):
    title: str
    date: Optional[dt_date] = None


class TimelineItemResponse(CamelModel):
    id: int
    trip_id: int
    title: str
    date: Optional[dt_date] = None
    is_completed: bool
    completed_at: Optional[datetime] = None
    trigger_type: Optional[MilestoneTriggerType] = None
