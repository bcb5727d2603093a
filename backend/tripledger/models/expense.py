"""
Expense and cost assignment models.
"""
from sqlalchemy import Column, String, Numeric, Date, Enum as SQLEnum, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from tripledger.db.base import BaseModel, SoftDeleteMixin
from tripledger.models.trip import SpendStatus
import enum


class SplitType(str, enum.Enum):
    EQUAL = "EQUAL"
    EXACT = "EXACT"
    PERCENTAGE = "PERCENTAGE"
    SHARES = "SHARES"


class Expense(SoftDeleteMixin, BaseModel):
    """A monetary event on a trip, fronted by one user."""
    __tablename__ = "expenses"

    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False, index=True)
    paid_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    description = Column(Text, nullable=True)
    amount = Column(Numeric(15, 3), nullable=False)
    currency = Column(String(3), nullable=False)
    fx_rate = Column(Numeric(15, 6), nullable=False, default=1)
    normalized_amount = Column(Numeric(24, 9), nullable=False)  # amount * fx_rate, trip base currency
    date = Column(Date, nullable=False, index=True)
    status = Column(SQLEnum(SpendStatus), default=SpendStatus.OPEN, nullable=False)
    category_id = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    # Relationships
    trip = relationship("Trip", back_populates="expenses")
    paid_by = relationship("User", foreign_keys=[paid_by_id], back_populates="expenses_paid")
    assignments = relationship("CostAssignment", back_populates="expense", cascade="all, delete-orphan")


class CostAssignment(BaseModel):
    """One user's share of an expense."""
    __tablename__ = "cost_assignments"

    expense_id = Column(Integer, ForeignKey("expenses.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    share_amount = Column(Numeric(15, 3), nullable=False)  # expense currency
    normalized_share_amount = Column(Numeric(24, 9), nullable=False)  # share_amount * fx_rate
    split_type = Column(SQLEnum(SplitType), default=SplitType.EXACT, nullable=False)
    split_value = Column(Numeric(15, 4), nullable=True)

    # Relationships
    expense = relationship("Expense", back_populates="assignments")
    user = relationship("User", back_populates="assignments")
