"""
Settlement and payment models.
"""
from sqlalchemy import Column, String, Numeric, DateTime, Enum as SQLEnum, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from tripledger.db.base import BaseModel, SoftDeleteMixin
import enum


class SettlementStatus(str, enum.Enum):
    PENDING = "PENDING"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    VERIFIED = "VERIFIED"


class Settlement(SoftDeleteMixin, BaseModel):
    """Planned transfer from a debtor to a creditor, created when spending closes."""
    __tablename__ = "settlements"

    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False, index=True)
    from_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    to_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Numeric(15, 3), nullable=False)
    status = Column(SQLEnum(SettlementStatus), default=SettlementStatus.PENDING, nullable=False)
    notes = Column(Text, nullable=True)
    payment_method = Column(String(100), nullable=True)
    payment_reference = Column(String(255), nullable=True)

    # Relationships
    trip = relationship("Trip", back_populates="settlements")
    from_user = relationship("User", foreign_keys=[from_user_id])
    to_user = relationship("User", foreign_keys=[to_user_id])
    payments = relationship(
        "Payment", back_populates="settlement", cascade="all, delete-orphan",
        order_by="Payment.paid_at.desc()"
    )


class Payment(BaseModel):
    """A recorded (possibly partial) payment towards a settlement."""
    __tablename__ = "payments"

    settlement_id = Column(Integer, ForeignKey("settlements.id"), nullable=False, index=True)
    amount = Column(Numeric(15, 3), nullable=False)
    paid_at = Column(DateTime, nullable=False)
    payment_method = Column(String(100), nullable=True)
    payment_reference = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    recorded_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    settlement = relationship("Settlement", back_populates="payments")
    recorded_by = relationship("User", foreign_keys=[recorded_by_id])
