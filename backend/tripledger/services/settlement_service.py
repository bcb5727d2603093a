"""
Settlement service: balance summaries, spend window lifecycle and payments.

Closing a trip's spend window recomputes the whole settlement plan from the
current expenses and replaces any live settlement rows; reopening removes
them. Both transitions run inside one session transaction with the trip row
locked, and roll back completely on failure.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple
from tripledger.core.config import settings
from tripledger.core.money import quantize
from tripledger.models.trip import Trip, TripMember, SpendStatus
from tripledger.models.settlement import Settlement, Payment, SettlementStatus
from tripledger.repositories.ledger import LedgerRepository
from tripledger.schemas.balance import (
    TripBalanceSummary, PersonBalanceResponse, SettlementTransferResponse
)
from tripledger.services.balances import BalanceSheet, aggregate_balances
from tripledger.services.planner import Transfer, plan_settlements
from tripledger.services.exceptions import (
    LedgerServiceError, TripNotFoundError, NotMemberError, InsufficientPermissionsError,
    SettlementNotFoundError, PaymentNotFoundError, PaymentExceedsSettlementError,
)

logger = logging.getLogger(__name__)

# Order used when listing settlements: outstanding first
_STATUS_RANK = {
    SettlementStatus.PENDING: 0,
    SettlementStatus.PARTIALLY_PAID: 1,
    SettlementStatus.PAID: 2,
    SettlementStatus.VERIFIED: 3,
}


# ---------------------------------------------------------------------------
# Access checks
# ---------------------------------------------------------------------------

def require_trip(repo: LedgerRepository, trip_id: int, lock: bool = False) -> Trip:
    trip = repo.get_trip(trip_id, lock=lock)
    if not trip:
        raise TripNotFoundError("Trip not found")
    return trip


def require_member(repo: LedgerRepository, trip_id: int, user_id: int) -> TripMember:
    member = repo.get_member(trip_id, user_id)
    if not member:
        raise NotMemberError("Not a member of this trip")
    return member


def require_organizer(repo: LedgerRepository, trip_id: int, user_id: int, action: str) -> TripMember:
    member = repo.get_member(trip_id, user_id)
    if not member or not member.is_organizer:
        raise InsufficientPermissionsError(f"Only trip organizers can {action}")
    return member


# ---------------------------------------------------------------------------
# Balances
# ---------------------------------------------------------------------------

def calculate_trip_balances(repo: LedgerRepository, trip_id: int) -> Tuple[BalanceSheet, List[Transfer]]:
    """Aggregate live expenses and plan transfers; amounts are unrounded."""
    sheet = aggregate_balances(repo.list_expenses(trip_id))
    transfers = plan_settlements(sheet.net_balances(), sheet.debt_ages)
    return sheet, transfers


def _presentable(transfers: List[Transfer], currency: str) -> List[Tuple[Transfer, Decimal]]:
    """Round transfers to the currency, dropping any that round to nothing."""
    rounded = []
    for transfer in transfers:
        amount = quantize(transfer.amount, currency)
        if amount > 0:
            rounded.append((transfer, amount))
    return rounded


def get_balance_summary(repo: LedgerRepository, trip_id: int, user_id: int) -> TripBalanceSummary:
    """Per-person balances and the minimal settlement plan for a trip."""
    trip = require_trip(repo, trip_id)
    require_member(repo, trip_id, user_id)

    sheet, transfers = calculate_trip_balances(repo, trip_id)
    currency = trip.base_currency
    people = sheet.users()

    return TripBalanceSummary(
        trip_id=trip.id,
        base_currency=currency,
        total_spent=quantize(sheet.total_spent, currency),
        balances=[
            PersonBalanceResponse(
                user_id=b.user_id,
                user_name=b.user_name,
                user_email=b.user_email,
                user_photo_url=b.user_photo_url,
                total_paid=quantize(b.total_paid, currency),
                total_owed=quantize(b.total_owed, currency),
                net_balance=quantize(b.net_balance, currency),
            )
            for b in sheet.balances
        ],
        settlements=[
            SettlementTransferResponse(
                from_user_id=t.from_user_id,
                from_user_name=people[t.from_user_id].user_name,
                to_user_id=t.to_user_id,
                to_user_name=people[t.to_user_id].user_name,
                amount=amount,
                oldest_debt_date=t.oldest_debt_date,
            )
            for t, amount in _presentable(transfers, currency)
        ],
        calculated_at=sheet.calculated_at,
    )


# ---------------------------------------------------------------------------
# Spend window lifecycle
# ---------------------------------------------------------------------------

def apply_spend_status(repo: LedgerRepository, trip: Trip, new_status: SpendStatus) -> List[Settlement]:
    """
    Move a trip's spend window to new_status without committing.

    CLOSED always recomputes and replaces the live settlements, even when the
    trip is already closed. OPEN removes them. Shared by the explicit
    spend-status action and the milestone trigger.
    """
    if new_status == SpendStatus.CLOSED:
        _, transfers = calculate_trip_balances(repo, trip.id)
        rows = [
            {
                "from_user_id": t.from_user_id,
                "to_user_id": t.to_user_id,
                "amount": amount,
                "status": SettlementStatus.PENDING,
                "notes": f"Debt since {t.oldest_debt_date.isoformat()}" if t.oldest_debt_date else None,
            }
            for t, amount in _presentable(transfers, trip.base_currency)
        ]
        created = repo.replace_settlements(trip.id, rows)
        repo.set_spend_status(trip, SpendStatus.CLOSED)
        logger.info(f"Closed spending for trip {trip.id}: {len(created)} settlement(s) planned")
        return created

    removed = repo.clear_settlements(trip.id)
    repo.set_spend_status(trip, SpendStatus.OPEN)
    logger.info(f"Reopened spending for trip {trip.id}: {removed} settlement(s) removed")
    return []


def set_spend_status(
    repo: LedgerRepository,
    trip_id: int,
    actor_id: int,
    action: Optional[str] = None,
) -> Tuple[Trip, List[Settlement]]:
    """
    Close ("close"), reopen ("open") or toggle (None) a trip's spend window.

    Not-found and permission checks run before any computation. Any failure
    rolls the whole transition back, leaving status and settlements as they
    were.
    """
    try:
        trip = require_trip(repo, trip_id, lock=True)
        require_organizer(repo, trip_id, actor_id, "change spend status")

        if action == "close":
            new_status = SpendStatus.CLOSED
        elif action == "open":
            new_status = SpendStatus.OPEN
        elif action is None:
            new_status = SpendStatus.CLOSED if trip.spend_status == SpendStatus.OPEN else SpendStatus.OPEN
        else:
            raise ValueError(f"Unknown spend status action: {action}")

        created = apply_spend_status(repo, trip, new_status)
        repo.commit()
    except LedgerServiceError:
        repo.rollback()
        raise
    except Exception:
        repo.rollback()
        logger.error(f"Spend status change for trip {trip_id} failed, rolled back", exc_info=True)
        raise

    repo.refresh(trip)
    return trip, created


def close_spending(repo: LedgerRepository, trip_id: int, actor_id: int) -> Tuple[Trip, List[Settlement]]:
    return set_spend_status(repo, trip_id, actor_id, "close")


def reopen_spending(repo: LedgerRepository, trip_id: int, actor_id: int) -> Tuple[Trip, List[Settlement]]:
    return set_spend_status(repo, trip_id, actor_id, "open")


# ---------------------------------------------------------------------------
# Persisted settlements and payments
# ---------------------------------------------------------------------------

def total_paid(settlement: Settlement) -> Decimal:
    return sum((Decimal(p.amount) for p in settlement.payments), Decimal(0))


def list_settlements(repo: LedgerRepository, trip_id: int, user_id: int) -> List[Settlement]:
    """Live settlements, outstanding first, newest first within a status."""
    require_trip(repo, trip_id)
    require_member(repo, trip_id, user_id)
    settlements = repo.list_settlements(trip_id)
    settlements.sort(key=lambda s: s.created_at, reverse=True)
    settlements.sort(key=lambda s: _STATUS_RANK[s.status])
    return settlements


@dataclass
class PaymentOutcome:
    payment: Payment
    settlement: Settlement
    total_paid: Decimal
    remaining_amount: Decimal


def _status_for(amount: Decimal, paid: Decimal) -> SettlementStatus:
    remaining = amount - paid
    if remaining <= settings.SETTLEMENT_TOLERANCE:
        return SettlementStatus.PAID
    if paid > settings.SETTLEMENT_TOLERANCE:
        return SettlementStatus.PARTIALLY_PAID
    return SettlementStatus.PENDING


def _load_settlement(repo: LedgerRepository, settlement_id: int) -> Settlement:
    settlement = repo.get_settlement(settlement_id)
    if not settlement:
        raise SettlementNotFoundError("Settlement not found")
    return settlement


def _is_organizer(repo: LedgerRepository, trip_id: int, user_id: int) -> bool:
    member = repo.get_member(trip_id, user_id)
    return bool(member and member.is_organizer)


def record_payment(
    repo: LedgerRepository,
    settlement_id: int,
    actor_id: int,
    amount: Decimal,
    paid_at: Optional[datetime] = None,
    payment_method: Optional[str] = None,
    payment_reference: Optional[str] = None,
    notes: Optional[str] = None,
) -> PaymentOutcome:
    """
    Record a payment towards a settlement.

    Only the receiver or a trip organizer may record. The settlement becomes
    PAID once payments reach its amount (within tolerance), otherwise
    PARTIALLY_PAID.
    """
    try:
        settlement = _load_settlement(repo, settlement_id)
        require_member(repo, settlement.trip_id, actor_id)
        if settlement.to_user_id != actor_id and not _is_organizer(repo, settlement.trip_id, actor_id):
            raise InsufficientPermissionsError(
                "Only the payment receiver or trip organizer can record this payment"
            )

        amount = Decimal(amount)
        new_total = total_paid(settlement) + amount
        settlement_amount = Decimal(settlement.amount)

        payment = repo.add(Payment(
            settlement_id=settlement.id,
            amount=amount,
            paid_at=paid_at or datetime.utcnow(),
            payment_method=payment_method,
            payment_reference=payment_reference,
            notes=notes,
            recorded_by_id=actor_id,
        ))
        if new_total >= settlement_amount - settings.SETTLEMENT_TOLERANCE:
            settlement.status = SettlementStatus.PAID
        else:
            settlement.status = SettlementStatus.PARTIALLY_PAID
        repo.commit()
    except Exception:
        repo.rollback()
        raise

    repo.refresh(payment)
    repo.refresh(settlement)
    logger.info(
        f"Recorded payment {payment.id} of {amount} on settlement {settlement.id}; "
        f"status {settlement.status.value}"
    )
    return PaymentOutcome(payment, settlement, new_total, settlement_amount - new_total)


def _editable_payment(repo: LedgerRepository, settlement_id: int, payment_id: int, actor_id: int):
    settlement = _load_settlement(repo, settlement_id)
    payment = repo.get_payment(settlement_id, payment_id)
    if not payment:
        raise PaymentNotFoundError("Payment not found")
    require_member(repo, settlement.trip_id, actor_id)
    allowed = (
        payment.recorded_by_id == actor_id
        or settlement.to_user_id == actor_id
        or _is_organizer(repo, settlement.trip_id, actor_id)
    )
    if not allowed:
        raise InsufficientPermissionsError(
            "Only the payment recorder, receiver, or trip organizer can edit this payment"
        )
    return settlement, payment


def update_payment(
    repo: LedgerRepository,
    settlement_id: int,
    payment_id: int,
    actor_id: int,
    amount: Decimal,
    paid_at: Optional[datetime] = None,
    payment_method: Optional[str] = None,
    payment_reference: Optional[str] = None,
    notes: Optional[str] = None,
) -> PaymentOutcome:
    """Edit a payment; the new total may not exceed the settlement amount."""
    try:
        settlement, payment = _editable_payment(repo, settlement_id, payment_id, actor_id)
        amount = Decimal(amount)
        settlement_amount = Decimal(settlement.amount)
        new_total = total_paid(settlement) - Decimal(payment.amount) + amount
        if new_total > settlement_amount + Decimal("0.001"):
            raise PaymentExceedsSettlementError("Updated payment would exceed settlement amount")

        payment.amount = amount
        if paid_at is not None:
            payment.paid_at = paid_at
        if payment_method is not None:
            payment.payment_method = payment_method
        if payment_reference is not None:
            payment.payment_reference = payment_reference
        if notes is not None:
            payment.notes = notes
        settlement.status = _status_for(settlement_amount, new_total)
        repo.commit()
    except Exception:
        repo.rollback()
        raise

    repo.refresh(payment)
    repo.refresh(settlement)
    return PaymentOutcome(payment, settlement, new_total, settlement_amount - new_total)


def delete_payment(repo: LedgerRepository, settlement_id: int, payment_id: int, actor_id: int) -> Settlement:
    """Remove a payment and recompute the settlement status."""
    try:
        settlement, payment = _editable_payment(repo, settlement_id, payment_id, actor_id)
        settlement.payments.remove(payment)
        repo.delete(payment)
        settlement.status = _status_for(Decimal(settlement.amount), total_paid(settlement))
        repo.commit()
    except Exception:
        repo.rollback()
        raise

    repo.refresh(settlement)
    return settlement
