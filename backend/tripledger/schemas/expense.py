"""
Pydantic schemas for Expense and CostAssignment entities.
"""
from datetime import date as dt_date, datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import Field, field_validator
from tripledger.core.money import normalize_currency
from tripledger.models.expense import SplitType
from tripledger.models.trip import SpendStatus
from tripledger.schemas.base import Amount, CamelModel


class ExpenseCreate(CamelModel):
    """Schema for expense creation."""
    description: Optional[str] = None
    amount: Decimal = Field(gt=0)
    currency: str
    fx_rate: Optional[Decimal] = Field(default=None, gt=0)  # Looked up when omitted
    date: Optional[dt_date] = None  # Defaults to today
    paid_by_id: Optional[int] = None  # Defaults to the current user
    category_id: Optional[int] = None
    notes: Optional[str] = None
    participant_ids: List[int] = []  # Split equally among these users

    @field_validator("currency")
    @classmethod
    def check_currency(cls, v: str) -> str:
        return normalize_currency(v)


class ExpenseUpdate(CamelModel):
    """Schema for expense update."""
    description: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, gt=0)
    currency: Optional[str] = None
    fx_rate: Optional[Decimal] = Field(default=None, gt=0)
    date: Optional[dt_date] = None
    category_id: Optional[int] = None
    notes: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def check_currency(cls, v: Optional[str]) -> Optional[str]:
        return normalize_currency(v) if v is not None else v


class AssignmentIn(CamelModel):
    """
    One assignee. share_amount is required for EXACT splits; split_value is
    the percentage for PERCENTAGE and the weight for SHARES.
    """
    user_id: int
    share_amount: Optional[Decimal] = Field(default=None, ge=0)
    split_value: Optional[Decimal] = Field(default=None, ge=0)


class AssignmentsSet(CamelModel):
    split_type: SplitType = SplitType.EQUAL
    assignments: List[AssignmentIn]


class AssignmentUpdate(CamelModel):
    share_amount: Decimal = Field(ge=0)
    split_value: Optional[Decimal] = None


class FinalizeRequest(CamelModel):
    force: bool = False  # Close even if assignments don't total 100%


class UserSummary(CamelModel):
    id: int
    name: str
    email: str
    photo_url: Optional[str] = None


class AssignmentResponse(CamelModel):
    id: int
    user_id: int
    user: UserSummary
    share_amount: Amount
    normalized_share_amount: Amount
    split_type: SplitType
    split_value: Optional[Amount] = None


class ExpenseResponse(CamelModel):
    """Schema for expense response."""
    id: int
    trip_id: int
    description: Optional[str] = None
    amount: Amount
    currency: str
    fx_rate: Amount
    normalized_amount: Amount  # In trip's base currency
    date: dt_date
    status: SpendStatus
    notes: Optional[str] = None
    category_id: Optional[int] = None
    paid_by: UserSummary
    assignments: List[AssignmentResponse] = []
    assigned_percentage: float
    created_at: datetime
    updated_at: datetime
