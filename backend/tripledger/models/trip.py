"""
Trip and membership models.
"""
from sqlalchemy import Column, String, Date, Enum as SQLEnum, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship
from tripledger.db.base import BaseModel, SoftDeleteMixin
import enum


class SpendStatus(str, enum.Enum):
    """Spend window state, shared by trips and individual expenses."""
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class TripMemberRole(str, enum.Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class RsvpStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    MAYBE = "MAYBE"


ORGANIZER_ROLES = (TripMemberRole.OWNER, TripMemberRole.ADMIN)


class Trip(SoftDeleteMixin, BaseModel):
    """Trip model representing a group travel event."""
    __tablename__ = "trips"

    name = Column(String(200), nullable=False)
    start_date = Column(Date, nullable=True, index=True)
    end_date = Column(Date, nullable=True, index=True)
    base_currency = Column(String(3), nullable=False, default="USD")
    spend_status = Column(SQLEnum(SpendStatus), default=SpendStatus.OPEN, nullable=False)

    # Relationships
    members = relationship("TripMember", back_populates="trip", cascade="all, delete-orphan")
    expenses = relationship("Expense", back_populates="trip", cascade="all, delete-orphan")
    settlements = relationship("Settlement", back_populates="trip", cascade="all, delete-orphan")
    exchange_rates = relationship("ExchangeRate", back_populates="trip", cascade="all, delete-orphan")
    timeline_items = relationship("TimelineItem", back_populates="trip", cascade="all, delete-orphan")


class TripMember(SoftDeleteMixin, BaseModel):
    """A user's membership in a trip."""
    __tablename__ = "trip_members"

    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(SQLEnum(TripMemberRole), default=TripMemberRole.MEMBER, nullable=False)
    rsvp_status = Column(SQLEnum(RsvpStatus), default=RsvpStatus.PENDING, nullable=False)

    # Relationships
    trip = relationship("Trip", back_populates="members")
    user = relationship("User", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("trip_id", "user_id", name="uq_trip_member"),
    )

    @property
    def is_organizer(self) -> bool:
        return self.role in ORGANIZER_ROLES
