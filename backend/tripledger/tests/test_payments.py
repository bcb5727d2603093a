"""
Tests for recording payments against settlements.
"""
from decimal import Decimal
import pytest
from tripledger.models.settlement import SettlementStatus
from tripledger.services import settlement_service
from tripledger.services.exceptions import (
    InsufficientPermissionsError, PaymentExceedsSettlementError, PaymentNotFoundError,
    SettlementNotFoundError,
)


@pytest.fixture
def settlements(repo, trip, users, add_expense):
    """Close a trip where carol owes alice 40 and bob owes alice 10."""
    alice, bob, carol = users
    add_expense(trip, alice, "90", [alice, bob, carol])
    add_expense(trip, bob, "30", [alice, bob, carol])
    _, created = settlement_service.close_spending(repo, trip.id, alice.id)
    return {s.from_user_id: s for s in created}


def test_partial_then_full_payment(repo, users, settlements):
    alice, _, carol = users
    owed = settlements[carol.id]

    outcome = settlement_service.record_payment(repo, owed.id, alice.id, Decimal("15"), payment_method="cash")
    assert outcome.settlement.status == SettlementStatus.PARTIALLY_PAID
    assert outcome.total_paid == Decimal("15")
    assert outcome.remaining_amount == Decimal("25")
    assert outcome.payment.recorded_by_id == alice.id

    outcome = settlement_service.record_payment(repo, owed.id, alice.id, Decimal("25"))
    assert outcome.settlement.status == SettlementStatus.PAID
    assert outcome.remaining_amount == Decimal("0")


def test_payment_within_tolerance_counts_as_paid(repo, users, settlements):
    alice, bob, _ = users
    outcome = settlement_service.record_payment(repo, settlements[bob.id].id, alice.id, Decimal("9.995"))
    assert outcome.settlement.status == SettlementStatus.PAID


def test_payer_cannot_record(repo, users, settlements):
    _, bob, carol = users
    with pytest.raises(InsufficientPermissionsError):
        settlement_service.record_payment(repo, settlements[carol.id].id, bob.id, Decimal("5"))


def test_unknown_settlement(repo, users, settlements):
    with pytest.raises(SettlementNotFoundError):
        settlement_service.record_payment(repo, 9999, users[0].id, Decimal("5"))


def test_update_payment_cannot_exceed_settlement(repo, users, settlements):
    alice, bob, _ = users
    owed = settlements[bob.id]
    outcome = settlement_service.record_payment(repo, owed.id, alice.id, Decimal("4"))

    with pytest.raises(PaymentExceedsSettlementError):
        settlement_service.update_payment(repo, owed.id, outcome.payment.id, alice.id, Decimal("12"))

    outcome = settlement_service.update_payment(
        repo, owed.id, outcome.payment.id, alice.id, Decimal("10"), notes="bank transfer"
    )
    assert outcome.settlement.status == SettlementStatus.PAID
    assert outcome.payment.notes == "bank transfer"


def test_delete_payment_recomputes_status(repo, users, settlements):
    alice, _, carol = users
    owed = settlements[carol.id]
    first = settlement_service.record_payment(repo, owed.id, alice.id, Decimal("10")).payment
    second = settlement_service.record_payment(repo, owed.id, alice.id, Decimal("30")).payment

    settlement = settlement_service.delete_payment(repo, owed.id, second.id, alice.id)
    assert settlement.status == SettlementStatus.PARTIALLY_PAID

    settlement = settlement_service.delete_payment(repo, owed.id, first.id, alice.id)
    assert settlement.status == SettlementStatus.PENDING
    assert settlement.payments == []

    with pytest.raises(PaymentNotFoundError):
        settlement_service.delete_payment(repo, owed.id, first.id, alice.id)


def test_settlements_list_outstanding_first(repo, trip, users, settlements):
    alice, bob, carol = users
    settlement_service.record_payment(repo, settlements[bob.id].id, alice.id, Decimal("10"))

    listed = settlement_service.list_settlements(repo, trip.id, carol.id)
    assert [s.from_user_id for s in listed] == [carol.id, bob.id]
    assert [s.status for s in listed] == [SettlementStatus.PENDING, SettlementStatus.PAID]
