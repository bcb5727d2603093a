"""
Pydantic schemas for trip balances.
"""
from datetime import date, datetime
from typing import List, Optional
from tripledger.schemas.base import Amount, CamelModel


class PersonBalanceResponse(CamelModel):
    """Per-person totals in the trip's base currency."""
    user_id: int
    user_name: str
    user_email: str
    user_photo_url: Optional[str] = None
    total_paid: Amount
    total_owed: Amount
    net_balance: Amount  # Positive = owed money, negative = owes money


class SettlementTransferResponse(CamelModel):
    """A planned transfer from a debtor to a creditor."""
    from_user_id: int
    from_user_name: str
    to_user_id: int
    to_user_name: str
    amount: Amount
    oldest_debt_date: Optional[date] = None


class TripBalanceSummary(CamelModel):
    trip_id: int
    base_currency: str
    total_spent: Amount
    balances: List[PersonBalanceResponse]
    settlements: List[SettlementTransferResponse]
    calculated_at: datetime
