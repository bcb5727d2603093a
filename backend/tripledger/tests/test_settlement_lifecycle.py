"""
Tests for closing and reopening a trip's spend window.
"""
from decimal import Decimal
import pytest
from tripledger.models.trip import SpendStatus
from tripledger.models.settlement import Settlement, SettlementStatus
from tripledger.models.timeline import SPENDING_WINDOW_MILESTONE
from tripledger.schemas.trip import TimelineItemCreate
from tripledger.services import settlement_service, trip_service
from tripledger.services.exceptions import (
    InsufficientPermissionsError, TripNotFoundError, SpendingClosedError,
)


def live_settlements(db, trip_id):
    return (
        db.query(Settlement)
        .filter(Settlement.trip_id == trip_id, Settlement.deleted_at.is_(None))
        .order_by(Settlement.id)
        .all()
    )


def plan_of(settlements):
    return sorted((s.from_user_id, s.to_user_id, Decimal(s.amount)) for s in settlements)


@pytest.fixture
def spent_trip(trip, users, add_expense):
    alice, bob, carol = users
    add_expense(trip, alice, "90", [alice, bob, carol])
    add_expense(trip, bob, "30", [alice, bob, carol])
    return trip


def test_close_creates_pending_settlements(db, repo, spent_trip, users):
    alice, bob, carol = users
    trip, created = settlement_service.close_spending(repo, spent_trip.id, alice.id)

    assert trip.spend_status == SpendStatus.CLOSED
    assert len(created) == 2
    assert plan_of(live_settlements(db, trip.id)) == sorted([
        (carol.id, alice.id, Decimal("40")),
        (bob.id, alice.id, Decimal("10")),
    ])
    assert all(s.status == SettlementStatus.PENDING for s in created)
    assert all(s.notes == "Debt since 2024-05-01" for s in created)


def test_close_twice_gives_same_plan(db, repo, spent_trip, users):
    alice = users[0]
    settlement_service.close_spending(repo, spent_trip.id, alice.id)
    first = plan_of(live_settlements(db, spent_trip.id))

    settlement_service.close_spending(repo, spent_trip.id, alice.id)
    second = live_settlements(db, spent_trip.id)

    assert plan_of(second) == first
    assert len(second) == len(first)


def test_reopen_clears_settlements(db, repo, spent_trip, users):
    alice = users[0]
    settlement_service.close_spending(repo, spent_trip.id, alice.id)
    trip, created = settlement_service.reopen_spending(repo, spent_trip.id, alice.id)

    assert trip.spend_status == SpendStatus.OPEN
    assert created == []
    assert live_settlements(db, spent_trip.id) == []
    # Soft-deleted, not removed
    assert db.query(Settlement).filter(Settlement.trip_id == spent_trip.id).count() == 2


def test_toggle_without_action(repo, spent_trip, users):
    alice = users[0]
    trip, _ = settlement_service.set_spend_status(repo, spent_trip.id, alice.id)
    assert trip.spend_status == SpendStatus.CLOSED
    trip, _ = settlement_service.set_spend_status(repo, spent_trip.id, alice.id)
    assert trip.spend_status == SpendStatus.OPEN


def test_settled_trip_closes_with_no_settlements(db, repo, trip, users, add_expense):
    alice, bob, _ = users
    add_expense(trip, alice, "20", [alice])
    add_expense(trip, bob, "20", [bob])

    trip, created = settlement_service.close_spending(repo, trip.id, alice.id)
    assert trip.spend_status == SpendStatus.CLOSED
    assert created == []


def test_member_cannot_close(db, repo, spent_trip, users):
    bob = users[1]
    with pytest.raises(InsufficientPermissionsError):
        settlement_service.close_spending(repo, spent_trip.id, bob.id)

    db.expire_all()
    assert repo.get_trip(spent_trip.id).spend_status == SpendStatus.OPEN
    assert live_settlements(db, spent_trip.id) == []


def test_missing_trip(repo, users):
    with pytest.raises(TripNotFoundError):
        settlement_service.close_spending(repo, 9999, users[0].id)


def test_deleted_trip_is_not_found(repo, spent_trip, users):
    spent_trip.soft_delete()
    repo.commit()
    with pytest.raises(TripNotFoundError):
        settlement_service.close_spending(repo, spent_trip.id, users[0].id)


def test_failed_close_rolls_back(db, repo, spent_trip, users, monkeypatch):
    alice = users[0]

    def fail(trip, status):
        raise RuntimeError("database went away")

    # Settlements are already replaced when the status write fails
    monkeypatch.setattr(repo, "set_spend_status", fail)
    with pytest.raises(RuntimeError):
        settlement_service.close_spending(repo, spent_trip.id, alice.id)

    db.expire_all()
    assert repo.get_trip(spent_trip.id).spend_status == SpendStatus.OPEN
    assert live_settlements(db, spent_trip.id) == []


def test_failed_reclose_keeps_previous_settlements(db, repo, spent_trip, users, monkeypatch):
    alice = users[0]
    settlement_service.close_spending(repo, spent_trip.id, alice.id)
    before = [s.id for s in live_settlements(db, spent_trip.id)]

    def fail(trip_id, rows):
        repo.clear_settlements(trip_id)
        raise RuntimeError("insert failed")

    monkeypatch.setattr(repo, "replace_settlements", fail)
    with pytest.raises(RuntimeError):
        settlement_service.close_spending(repo, spent_trip.id, alice.id)

    db.expire_all()
    assert [s.id for s in live_settlements(db, spent_trip.id)] == before
    assert repo.get_trip(spent_trip.id).spend_status == SpendStatus.CLOSED


def test_closed_trip_rejects_new_expenses(repo, spent_trip, users, add_expense):
    alice = users[0]
    settlement_service.close_spending(repo, spent_trip.id, alice.id)
    with pytest.raises(SpendingClosedError):
        add_expense(spent_trip, alice, "10", [alice])


def test_milestone_closes_and_reopens_like_the_explicit_action(db, repo, spent_trip, users):
    alice = users[0]
    settlement_service.close_spending(repo, spent_trip.id, alice.id)
    explicit = plan_of(live_settlements(db, spent_trip.id))
    settlement_service.reopen_spending(repo, spent_trip.id, alice.id)

    milestone = next(
        item for item in repo.list_timeline(spent_trip.id) if item.title == SPENDING_WINDOW_MILESTONE
    )
    item = trip_service.toggle_milestone(repo, spent_trip.id, milestone.id, alice.id)

    assert item.is_completed
    assert item.completed_at is not None
    assert repo.get_trip(spent_trip.id).spend_status == SpendStatus.CLOSED
    assert plan_of(live_settlements(db, spent_trip.id)) == explicit

    item = trip_service.toggle_milestone(repo, spent_trip.id, milestone.id, alice.id)
    assert not item.is_completed
    assert repo.get_trip(spent_trip.id).spend_status == SpendStatus.OPEN
    assert live_settlements(db, spent_trip.id) == []


def test_other_milestones_leave_spending_alone(repo, spent_trip, users):
    alice = users[0]
    item = trip_service.create_timeline_item(repo, spent_trip.id, alice.id, TimelineItemCreate(title="Check out"))
    trip_service.toggle_milestone(repo, spent_trip.id, item.id, alice.id)
    assert repo.get_trip(spent_trip.id).spend_status == SpendStatus.OPEN


def test_member_cannot_toggle_milestone(repo, spent_trip, users):
    bob = users[1]
    milestone = repo.list_timeline(spent_trip.id)[0]
    with pytest.raises(InsufficientPermissionsError):
        trip_service.toggle_milestone(repo, spent_trip.id, milestone.id, bob.id)
