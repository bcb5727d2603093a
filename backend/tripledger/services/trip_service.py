"""
Trip service: trips, membership, RSVP and timeline milestones.
"""
import logging
from datetime import datetime
from typing import List
from tripledger.core.config import settings
from tripledger.models.trip import Trip, TripMember, TripMemberRole, RsvpStatus, SpendStatus
from tripledger.models.timeline import TimelineItem, MilestoneTriggerType, SPENDING_WINDOW_MILESTONE
from tripledger.repositories.ledger import LedgerRepository
from tripledger.schemas.trip import TripCreate, MemberInvite, TimelineItemCreate
from tripledger.services.settlement_service import (
    require_trip, require_member, require_organizer, apply_spend_status,
)
from tripledger.services.exceptions import (
    LedgerServiceError, UserNotFoundError, AlreadyMemberError, NotMemberError,
    InsufficientPermissionsError, TimelineItemNotFoundError,
)

logger = logging.getLogger(__name__)


def create_trip(repo: LedgerRepository, owner_id: int, data: TripCreate) -> Trip:
    """Create a trip owned by owner_id and seed its spending-window milestone."""
    trip = repo.add(Trip(
        name=data.name,
        start_date=data.start_date,
        end_date=data.end_date,
        base_currency=data.base_currency or settings.FX_BASE_CURRENCY,
        spend_status=SpendStatus.OPEN,
    ))
    repo.flush()
    repo.add(TripMember(
        trip_id=trip.id,
        user_id=owner_id,
        role=TripMemberRole.OWNER,
        rsvp_status=RsvpStatus.ACCEPTED,
    ))
    repo.add(TimelineItem(
        trip_id=trip.id,
        title=SPENDING_WINDOW_MILESTONE,
        date=data.spending_window_closes or data.end_date,
    ))
    repo.commit()
    repo.refresh(trip)
    logger.info(f"Created trip {trip.id} ({trip.base_currency}) for user {owner_id}")
    return trip


def get_trip(repo: LedgerRepository, trip_id: int, user_id: int) -> Trip:
    trip = require_trip(repo, trip_id)
    require_member(repo, trip_id, user_id)
    return trip


def list_trips(repo: LedgerRepository, user_id: int) -> List[Trip]:
    return repo.list_trips_for_user(user_id)


def list_members(repo: LedgerRepository, trip_id: int, user_id: int) -> List[TripMember]:
    get_trip(repo, trip_id, user_id)
    return repo.list_members(trip_id)


def invite_member(repo: LedgerRepository, trip_id: int, actor_id: int, invite: MemberInvite) -> TripMember:
    """Add a user as a PENDING member; a previously removed member is restored."""
    require_trip(repo, trip_id)
    require_organizer(repo, trip_id, actor_id, "invite members")
    if invite.role == TripMemberRole.OWNER:
        raise InsufficientPermissionsError("A trip can only have one owner")

    user = repo.get_user_by_username(invite.username)
    if not user:
        raise UserNotFoundError("User not found")

    member = repo.get_member(trip_id, user.id, include_deleted=True)
    if member and not member.is_deleted:
        raise AlreadyMemberError("User is already a member of this trip")
    if member:
        member.deleted_at = None
        member.role = invite.role
        member.rsvp_status = RsvpStatus.PENDING
    else:
        member = repo.add(TripMember(
            trip_id=trip_id,
            user_id=user.id,
            role=invite.role,
            rsvp_status=RsvpStatus.PENDING,
        ))
    repo.commit()
    repo.refresh(member)
    return member


def remove_member(repo: LedgerRepository, trip_id: int, actor_id: int, user_id: int):
    require_trip(repo, trip_id)
    require_organizer(repo, trip_id, actor_id, "remove members")
    member = repo.get_member(trip_id, user_id)
    if not member:
        raise NotMemberError("User is not a member of this trip")
    if member.role == TripMemberRole.OWNER:
        raise InsufficientPermissionsError("The trip owner cannot be removed")
    # Recorded expenses and assignments stay; balances keep counting them
    member.soft_delete()
    repo.commit()


def update_rsvp(repo: LedgerRepository, trip_id: int, user_id: int, rsvp_status: RsvpStatus) -> TripMember:
    require_trip(repo, trip_id)
    member = require_member(repo, trip_id, user_id)
    member.rsvp_status = rsvp_status
    repo.commit()
    repo.refresh(member)
    return member


def list_timeline(repo: LedgerRepository, trip_id: int, user_id: int) -> List[TimelineItem]:
    get_trip(repo, trip_id, user_id)
    return repo.list_timeline(trip_id)


def create_timeline_item(
    repo: LedgerRepository, trip_id: int, actor_id: int, data: TimelineItemCreate
) -> TimelineItem:
    require_trip(repo, trip_id)
    require_organizer(repo, trip_id, actor_id, "add milestones")
    item = repo.add(TimelineItem(trip_id=trip_id, title=data.title, date=data.date))
    repo.commit()
    repo.refresh(item)
    return item


def toggle_milestone(repo: LedgerRepository, trip_id: int, item_id: int, actor_id: int) -> TimelineItem:
    """
    Flip a milestone's completion. The "Spending Window Closes" milestone
    closes or reopens the trip's spend window in the same transaction,
    through the same code path as the explicit spend-status action.
    """
    try:
        trip = require_trip(repo, trip_id, lock=True)
        require_organizer(repo, trip_id, actor_id, "toggle milestones")
        item = repo.get_timeline_item(trip_id, item_id)
        if not item:
            raise TimelineItemNotFoundError("Timeline item not found")

        completed = not item.is_completed
        item.is_completed = completed
        item.completed_at = datetime.utcnow() if completed else None
        item.trigger_type = MilestoneTriggerType.MANUAL if completed else None

        if item.title == SPENDING_WINDOW_MILESTONE:
            apply_spend_status(repo, trip, SpendStatus.CLOSED if completed else SpendStatus.OPEN)
        repo.commit()
    except LedgerServiceError:
        repo.rollback()
        raise
    except Exception:
        repo.rollback()
        logger.error(f"Milestone toggle for trip {trip_id} failed, rolled back", exc_info=True)
        raise

    repo.refresh(item)
    logger.info(
        f"{'Completed' if item.is_completed else 'Uncompleted'} milestone "
        f"\"{item.title}\" for trip {trip_id}"
    )
    return item
