"""Models package - Import all models for SQLAlchemy registration."""
from tripledger.models.user import User
from tripledger.models.trip import Trip, TripMember, SpendStatus, TripMemberRole, RsvpStatus
from tripledger.models.expense import Expense, CostAssignment, SplitType
from tripledger.models.settlement import Settlement, Payment, SettlementStatus
from tripledger.models.exchange_rate import ExchangeRate
from tripledger.models.timeline import TimelineItem, MilestoneTriggerType

__all__ = [
    "User",
    "Trip",
    "TripMember",
    "SpendStatus",
    "TripMemberRole",
    "RsvpStatus",
    "Expense",
    "CostAssignment",
    "SplitType",
    "Settlement",
    "Payment",
    "SettlementStatus",
    "ExchangeRate",
    "TimelineItem",
    "MilestoneTriggerType",
]
