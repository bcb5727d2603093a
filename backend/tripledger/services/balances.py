"""
Balance aggregation for a trip's expenses.

Pure computation over an in-memory snapshot: no database access, no
validation. Whatever expenses and assignments are handed in are counted at
face value, regardless of expense status or the members' RSVP state.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple


@dataclass(frozen=True)
class UserRef:
    """Display fields for a user appearing in a balance."""
    id: int
    name: str
    email: str
    photo_url: Optional[str] = None


@dataclass(frozen=True)
class AssignmentSnapshot:
    user: UserRef
    share_amount: Decimal
    normalized_share_amount: Decimal
    split_type: str = "EXACT"

    @property
    def user_id(self) -> int:
        return self.user.id


@dataclass(frozen=True)
class ExpenseSnapshot:
    id: int
    amount: Decimal
    currency: str
    fx_rate: Decimal
    normalized_amount: Decimal
    date: date
    status: str
    paid_by: UserRef
    assignments: Tuple[AssignmentSnapshot, ...] = ()
    category_id: Optional[int] = None


@dataclass
class PersonBalance:
    user_id: int
    user_name: str
    user_email: str
    user_photo_url: Optional[str]
    total_paid: Decimal = Decimal(0)
    total_owed: Decimal = Decimal(0)

    @property
    def net_balance(self) -> Decimal:
        """Positive: the user is owed money. Negative: the user owes money."""
        return self.total_paid - self.total_owed


@dataclass
class BalanceSheet:
    balances: List[PersonBalance]
    total_spent: Decimal
    calculated_at: datetime
    # (debtor_id, creditor_id) -> date of the oldest expense behind that debt
    debt_ages: Dict[Tuple[int, int], date] = field(default_factory=dict)

    def net_balances(self) -> Dict[int, Decimal]:
        return {b.user_id: b.net_balance for b in self.balances}

    def users(self) -> Dict[int, PersonBalance]:
        return {b.user_id: b for b in self.balances}


def _entry(accumulator: Dict[int, PersonBalance], user: UserRef) -> PersonBalance:
    entry = accumulator.get(user.id)
    if entry is None:
        entry = PersonBalance(
            user_id=user.id,
            user_name=user.name,
            user_email=user.email,
            user_photo_url=user.photo_url,
        )
        accumulator[user.id] = entry
    return entry


def aggregate_balances(
    expenses: Iterable[ExpenseSnapshot],
    now: Optional[datetime] = None,
) -> BalanceSheet:
    """
    Compute total paid, total owed and net balance per user.

    Every payer and every assignee gets exactly one entry, in order of first
    appearance. Unassigned remainder of an expense is nobody's debt, so
    under-assigned trips yield balances that do not sum to zero.
    """
    accumulator: Dict[int, PersonBalance] = {}
    debt_ages: Dict[Tuple[int, int], date] = {}
    total_spent = Decimal(0)

    for expense in expenses:
        normalized = Decimal(expense.normalized_amount)
        total_spent += normalized
        _entry(accumulator, expense.paid_by).total_paid += normalized

        for assignment in expense.assignments:
            share = Decimal(assignment.normalized_share_amount)
            _entry(accumulator, assignment.user).total_owed += share

            if assignment.user_id != expense.paid_by.id and share > 0:
                key = (assignment.user_id, expense.paid_by.id)
                oldest = debt_ages.get(key)
                if oldest is None or expense.date < oldest:
                    debt_ages[key] = expense.date

    return BalanceSheet(
        balances=list(accumulator.values()),
        total_spent=total_spent,
        calculated_at=now or datetime.now(timezone.utc),
        debt_ages=debt_ages,
    )
