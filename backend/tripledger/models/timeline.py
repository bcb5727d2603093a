"""
Timeline milestones for a trip.
"""
from sqlalchemy import Column, String, Date, DateTime, Boolean, Enum as SQLEnum, ForeignKey, Integer
from sqlalchemy.orm import relationship
from tripledger.db.base import BaseModel, SoftDeleteMixin
import enum

SPENDING_WINDOW_MILESTONE = "Spending Window Closes"


class MilestoneTriggerType(str, enum.Enum):
    MANUAL = "MANUAL"
    AUTOMATIC = "AUTOMATIC"


class TimelineItem(SoftDeleteMixin, BaseModel):
    """Milestone on a trip's timeline; some titles drive trip state."""
    __tablename__ = "timeline_items"

    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    date = Column(Date, nullable=True)
    is_completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    trigger_type = Column(SQLEnum(MilestoneTriggerType), nullable=True)

    trip = relationship("Trip", back_populates="timeline_items")
