"""
Pydantic schemas for persisted settlements and payments.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional
from pydantic import Field
from tripledger.models.settlement import SettlementStatus
from tripledger.models.trip import SpendStatus
from tripledger.schemas.base import Amount, CamelModel


class SettlementRecord(CamelModel):
    """Persisted settlement row."""
    id: int
    trip_id: int
    from_user_id: int
    to_user_id: int
    amount: Amount
    status: SettlementStatus
    notes: Optional[str] = None
    created_at: datetime


class PaymentResponse(CamelModel):
    id: int
    settlement_id: int
    amount: Amount
    paid_at: datetime
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    notes: Optional[str] = None
    recorded_by_id: int
    recorded_by_name: Optional[str] = None
    created_at: datetime


class SettlementDetail(SettlementRecord):
    """Settlement with display names and payment progress."""
    from_user_name: str
    from_user_email: str
    from_user_photo_url: Optional[str] = None
    to_user_name: str
    to_user_email: str
    to_user_photo_url: Optional[str] = None
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    updated_at: datetime
    total_paid: Amount
    remaining_amount: Amount
    payments: List[PaymentResponse] = []


class SettlementProgress(CamelModel):
    id: int
    status: SettlementStatus
    amount: Amount
    total_paid: Amount
    remaining_amount: Amount


class PaymentCreate(CamelModel):
    """Payment amount is in the trip's base currency."""
    amount: Decimal = Field(gt=0)
    paid_at: Optional[datetime] = None
    payment_method: Optional[str] = Field(default=None, max_length=100)
    payment_reference: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None


class PaymentResult(CamelModel):
    payment: PaymentResponse
    settlement: SettlementProgress


class SpendStatusChange(CamelModel):
    """Omit action to toggle."""
    action: Optional[Literal["close", "open"]] = None


class SpendStatusResponse(CamelModel):
    trip_id: int
    spend_status: SpendStatus
    settlements: List[SettlementRecord] = []
    message: str
