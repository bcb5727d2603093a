"""
Expense service for expense and cost assignment business logic.
"""
import logging
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence, Tuple
from tripledger.core.money import Money, quantize, quantize_rate
from tripledger.models.trip import Trip, SpendStatus
from tripledger.models.expense import Expense, CostAssignment, SplitType
from tripledger.repositories.ledger import LedgerRepository
from tripledger.schemas.expense import ExpenseCreate, ExpenseUpdate, AssignmentIn
from tripledger.services.fx_service import get_exchange_rate
from tripledger.services.settlement_service import require_trip, require_member
from tripledger.services.exceptions import (
    ExpenseNotFoundError, SpendingClosedError, ExpenseLockedError, AssignmentMismatchError,
    InvalidStatusTransitionError, InvalidAssignmentError, InsufficientPermissionsError,
    NotMemberError,
)

logger = logging.getLogger(__name__)

# Percentage points of slack allowed when finalizing
FULL_ASSIGNMENT_TOLERANCE = Decimal("0.01")

# Stored precision of percentages and weights
SPLIT_VALUE_STEP = Decimal("0.0001")


def assigned_percentage(expense: Expense) -> Decimal:
    """Share of the expense covered by assignments, 0-100+."""
    normalized = Decimal(expense.normalized_amount)
    if normalized <= 0:
        return Decimal(0)
    assigned = sum((Decimal(a.normalized_share_amount) for a in expense.assignments), Decimal(0))
    return assigned / normalized * 100


def compute_shares(
    amount: Decimal,
    currency: str,
    split_type: SplitType,
    entries: Sequence[AssignmentIn],
) -> List[Tuple[int, Decimal, Optional[Decimal]]]:
    """
    Turn assignment input into (user_id, share_amount, split_value) rows in
    the expense currency. EQUAL, PERCENTAGE and SHARES splits are rounded to
    the currency's minor unit with any residue on the first assignee, so
    they sum exactly to the amount when they describe all of it.
    """
    if not entries:
        return []
    user_ids = [e.user_id for e in entries]
    if len(set(user_ids)) != len(user_ids):
        raise InvalidAssignmentError("Each user can only be assigned once per expense")

    if split_type == SplitType.EQUAL:
        shares = Money.from_decimal(amount, currency).split_evenly(len(entries))
        return [(e.user_id, s.to_decimal(), None) for e, s in zip(entries, shares)]

    if split_type == SplitType.EXACT:
        if any(e.share_amount is None for e in entries):
            raise InvalidAssignmentError("shareAmount is required for EXACT splits")
        return [(e.user_id, quantize(e.share_amount, currency), None) for e in entries]

    if any(e.split_value is None for e in entries):
        raise InvalidAssignmentError(f"splitValue is required for {split_type.value} splits")
    weights = [Decimal(e.split_value).quantize(SPLIT_VALUE_STEP, rounding=ROUND_HALF_UP) for e in entries]
    if split_type == SplitType.PERCENTAGE:
        whole = Decimal(100)
    else:
        whole = sum(weights, Decimal(0))
        if whole <= 0:
            raise InvalidAssignmentError("SHARES split needs at least one positive weight")

    shares = [quantize(amount * w / whole, currency) for w in weights]
    if sum(weights, Decimal(0)) == whole:
        shares[0] += quantize(amount, currency) - sum(shares, Decimal(0))
    return [(e.user_id, s, w) for e, s, w in zip(entries, shares, weights)]


def _assert_spending_open(trip: Trip):
    if trip.spend_status == SpendStatus.CLOSED:
        raise SpendingClosedError(
            "Cannot change expenses. The trip organizer has closed spending for this trip."
        )


def _load_expense(
    repo: LedgerRepository, expense_id: int, actor_id: int, lock: bool = True
) -> Tuple[Trip, Expense]:
    """
    Load an expense and its trip. Writers take the trip row lock so they
    queue behind (or ahead of) a spend-window close on the same trip.
    """
    expense = repo.get_expense(expense_id)
    if not expense:
        raise ExpenseNotFoundError("Expense not found")
    trip = require_trip(repo, expense.trip_id, lock=lock)
    require_member(repo, trip.id, actor_id)
    return trip, expense


def _editable_expense(repo: LedgerRepository, expense_id: int, actor_id: int) -> Tuple[Trip, Expense]:
    trip, expense = _load_expense(repo, expense_id, actor_id)
    _assert_spending_open(trip)
    if expense.status == SpendStatus.CLOSED:
        raise ExpenseLockedError("Cannot edit closed expense. Assignments are locked.")
    return trip, expense


def _require_assignees(repo: LedgerRepository, trip_id: int, user_ids):
    for user_id in user_ids:
        if not repo.get_member(trip_id, user_id):
            raise NotMemberError(f"User {user_id} is not a member of this trip")


def _add_assignments(expense: Expense, split_type: SplitType, rows):
    for user_id, share, split_value in rows:
        expense.assignments.append(CostAssignment(
            user_id=user_id,
            share_amount=share,
            normalized_share_amount=share * Decimal(expense.fx_rate),
            split_type=split_type,
            split_value=split_value,
        ))


def _resplit(expense: Expense):
    """Re-divide a uniform EQUAL, PERCENTAGE or SHARES split over the current amount."""
    ordered = sorted(expense.assignments, key=lambda a: a.id)
    split_types = {a.split_type for a in ordered}
    if len(split_types) != 1:
        return
    split_type = split_types.pop()
    if split_type == SplitType.EXACT:
        return
    entries = [AssignmentIn(user_id=a.user_id, split_value=a.split_value) for a in ordered]
    rows = compute_shares(Decimal(expense.amount), expense.currency, split_type, entries)
    for assignment, (_, share, _) in zip(ordered, rows):
        assignment.share_amount = share


def _renormalize(expense: Expense):
    """Keep normalized amounts equal to amount * fx_rate after an edit."""
    rate = Decimal(expense.fx_rate)
    expense.normalized_amount = Decimal(expense.amount) * rate
    for assignment in expense.assignments:
        assignment.normalized_share_amount = Decimal(assignment.share_amount) * rate


def get_expense(repo: LedgerRepository, expense_id: int, actor_id: int) -> Expense:
    return _load_expense(repo, expense_id, actor_id, lock=False)[1]


def list_expenses(repo: LedgerRepository, trip_id: int, actor_id: int) -> List[Expense]:
    require_trip(repo, trip_id)
    require_member(repo, trip_id, actor_id)
    return repo.list_expense_rows(trip_id)


def create_expense(repo: LedgerRepository, trip_id: int, actor_id: int, data: ExpenseCreate) -> Expense:
    """Create an expense, optionally split equally among participant_ids."""
    trip = require_trip(repo, trip_id)
    require_member(repo, trip_id, actor_id)
    _assert_spending_open(trip)

    paid_by_id = data.paid_by_id or actor_id
    _require_assignees(repo, trip_id, {paid_by_id, *data.participant_ids})

    expense_date = data.date or date.today()
    amount = quantize(data.amount, data.currency)
    fx_rate = quantize_rate(data.fx_rate if data.fx_rate is not None else get_exchange_rate(
        repo, trip, expense_date, data.currency
    ))

    # Lock after the rate lookup
    trip = require_trip(repo, trip_id, lock=True)
    _assert_spending_open(trip)

    expense = repo.add(Expense(
        trip_id=trip_id,
        paid_by_id=paid_by_id,
        description=data.description,
        amount=amount,
        currency=data.currency,
        fx_rate=fx_rate,
        normalized_amount=amount * fx_rate,
        date=expense_date,
        status=SpendStatus.OPEN,
        category_id=data.category_id,
        notes=data.notes,
    ))
    if data.participant_ids:
        entries = [AssignmentIn(user_id=uid) for uid in data.participant_ids]
        rows = compute_shares(amount, data.currency, SplitType.EQUAL, entries)
        _add_assignments(expense, SplitType.EQUAL, rows)

    repo.commit()
    logger.info(f"Created expense {expense.id} on trip {trip_id} ({amount} {data.currency})")
    return repo.get_expense(expense.id)


def update_expense(repo: LedgerRepository, expense_id: int, actor_id: int, data: ExpenseUpdate) -> Expense:
    """
    Edit an open expense. Changing amount, currency or rate renormalizes the
    expense and its assignments. Equal, percentage and weighted splits are
    re-derived from their stored split.
    """
    trip, expense = _editable_expense(repo, expense_id, actor_id)
    changes = data.model_dump(exclude_unset=True)

    for field in ("description", "category_id", "notes"):
        if field in changes:
            setattr(expense, field, changes[field])
    if changes.get("date"):
        expense.date = changes["date"]
    if changes.get("currency"):
        expense.currency = changes["currency"]
    if changes.get("amount") is not None or changes.get("currency"):
        amount = changes.get("amount")
        expense.amount = quantize(amount if amount is not None else Decimal(expense.amount), expense.currency)
        _resplit(expense)

    if changes.get("fx_rate") is not None:
        expense.fx_rate = quantize_rate(changes["fx_rate"])
    elif changes.get("currency") or changes.get("date"):
        expense.fx_rate = quantize_rate(get_exchange_rate(repo, trip, expense.date, expense.currency))

    _renormalize(expense)
    repo.commit()
    return repo.get_expense(expense.id)


def delete_expense(repo: LedgerRepository, expense_id: int, actor_id: int):
    _, expense = _editable_expense(repo, expense_id, actor_id)
    expense.soft_delete()
    repo.commit()
    logger.info(f"Deleted expense {expense_id}")


def set_assignments(
    repo: LedgerRepository,
    expense_id: int,
    actor_id: int,
    split_type: SplitType,
    entries: Sequence[AssignmentIn],
) -> Expense:
    """Replace all assignments of an open expense."""
    trip, expense = _editable_expense(repo, expense_id, actor_id)
    _require_assignees(repo, trip.id, [e.user_id for e in entries])
    rows = compute_shares(Decimal(expense.amount), expense.currency, split_type, entries)

    repo.delete_assignments(expense)
    repo.flush()
    _add_assignments(expense, split_type, rows)
    repo.commit()
    return repo.get_expense(expense.id)


def _editable_assignment(repo: LedgerRepository, assignment_id: int, actor_id: int) -> CostAssignment:
    assignment = repo.get_assignment(assignment_id)
    if not assignment:
        raise ExpenseNotFoundError("Assignment not found")
    _, expense = _editable_expense(repo, assignment.expense_id, actor_id)
    if actor_id not in (expense.paid_by_id, assignment.user_id):
        raise InsufficientPermissionsError("You do not have permission to edit this assignment")
    return assignment


def update_assignment(
    repo: LedgerRepository,
    assignment_id: int,
    actor_id: int,
    share_amount: Decimal,
    split_value: Optional[Decimal] = None,
) -> Expense:
    """Set one assignee's share explicitly; the split becomes EXACT."""
    assignment = _editable_assignment(repo, assignment_id, actor_id)
    expense = assignment.expense
    share = quantize(share_amount, expense.currency)
    assignment.share_amount = share
    assignment.normalized_share_amount = share * Decimal(expense.fx_rate)
    assignment.split_type = SplitType.EXACT
    assignment.split_value = split_value
    repo.commit()
    return repo.get_expense(expense.id)


def remove_assignment(repo: LedgerRepository, assignment_id: int, actor_id: int) -> Expense:
    assignment = _editable_assignment(repo, assignment_id, actor_id)
    expense = assignment.expense
    expense.assignments.remove(assignment)
    repo.delete(assignment)
    repo.commit()
    return repo.get_expense(expense.id)


def finalize_expense(repo: LedgerRepository, expense_id: int, actor_id: int, force: bool = False) -> Expense:
    """
    Close an expense, locking it and its assignments.

    Assignments must cover 100% of the amount unless force is set.
    """
    _, expense = _load_expense(repo, expense_id, actor_id)
    if expense.status == SpendStatus.CLOSED:
        raise InvalidStatusTransitionError("Expense is already closed")

    percentage = assigned_percentage(expense)
    if not force and abs(percentage - 100) > FULL_ASSIGNMENT_TOLERANCE:
        raise AssignmentMismatchError(
            f"Cannot close: assignments total {percentage:.1f}%, must be 100%. "
            f"Use force=true to override."
        )

    expense.status = SpendStatus.CLOSED
    repo.commit()
    logger.info(f"Closed expense {expense_id} at {percentage:.2f}% assigned (forced={force})")
    return repo.get_expense(expense.id)


def reopen_expense(repo: LedgerRepository, expense_id: int, actor_id: int) -> Expense:
    _, expense = _load_expense(repo, expense_id, actor_id)
    if expense.status != SpendStatus.CLOSED:
        raise InvalidStatusTransitionError("Expense is not closed")
    expense.status = SpendStatus.OPEN
    repo.commit()
    return repo.get_expense(expense.id)
