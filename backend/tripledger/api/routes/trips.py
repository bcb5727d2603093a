"""
Trip management routes: trips, members, spend window, balances and timeline.
"""
from fastapi import APIRouter, Depends, status
from typing import List
from tripledger.api.dependencies import get_current_user, get_repo
from tripledger.models.user import User
from tripledger.models.trip import Trip, TripMember, SpendStatus
from tripledger.repositories.ledger import LedgerRepository
from tripledger.schemas.trip import (
    TripCreate, TripResponse, TripDetailResponse, TripMemberResponse,
    MemberInvite, RsvpUpdate, TimelineItemCreate, TimelineItemResponse,
)
from tripledger.schemas.balance import TripBalanceSummary
from tripledger.schemas.settlement import (
    SettlementDetail, SettlementRecord, SpendStatusChange, SpendStatusResponse,
)
from tripledger.services import trip_service, settlement_service
from tripledger.api.routes.settlements import settlement_to_detail

router = APIRouter(prefix="/trips", tags=["trips"])


def member_to_response(member: TripMember) -> TripMemberResponse:
    return TripMemberResponse(
        user_id=member.user_id,
        username=member.user.username,
        name=member.user.name,
        email=member.user.email,
        role=member.role,
        rsvp_status=member.rsvp_status,
    )


def trip_to_detail(trip: Trip, members: List[TripMember]) -> TripDetailResponse:
    return TripDetailResponse(
        **TripResponse.model_validate(trip).model_dump(),
        members=[member_to_response(m) for m in members],
    )


@router.post("", response_model=TripDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    trip_data: TripCreate,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    """Create a new trip; the creator becomes its owner."""
    trip = trip_service.create_trip(repo, current_user.id, trip_data)
    return trip_to_detail(trip, repo.list_members(trip.id))


@router.get("", response_model=List[TripResponse])
async def list_trips(
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    """List trips the current user belongs to."""
    return trip_service.list_trips(repo, current_user.id)


@router.get("/{trip_id}", response_model=TripDetailResponse)
async def get_trip(
    trip_id: int,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    """Get trip details with members."""
    trip = trip_service.get_trip(repo, trip_id, current_user.id)
    return trip_to_detail(trip, repo.list_members(trip_id))


@router.post("/{trip_id}/members", response_model=TripMemberResponse, status_code=status.HTTP_201_CREATED)
async def invite_member(
    trip_id: int,
    invite: MemberInvite,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    """Invite a user to the trip by username."""
    member = trip_service.invite_member(repo, trip_id, current_user.id, invite)
    return member_to_response(member)


@router.delete("/{trip_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    trip_id: int,
    user_id: int,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    trip_service.remove_member(repo, trip_id, current_user.id, user_id)


@router.put("/{trip_id}/rsvp", response_model=TripMemberResponse)
async def update_rsvp(
    trip_id: int,
    update: RsvpUpdate,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    member = trip_service.update_rsvp(repo, trip_id, current_user.id, update.rsvp_status)
    return member_to_response(member)


@router.post("/{trip_id}/spend-status", response_model=SpendStatusResponse)
async def change_spend_status(
    trip_id: int,
    change: SpendStatusChange,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    """
    Close or reopen the trip's spend window (organizers only).

    Closing computes balances and replaces the trip's settlements with a
    fresh plan; reopening removes them so expenses can be edited again.
    """
    trip, created = settlement_service.set_spend_status(repo, trip_id, current_user.id, change.action)
    if created:
        message = f"Spending closed. {len(created)} settlement(s) created."
    elif trip.spend_status == SpendStatus.CLOSED:
        message = "Spending closed. Everyone is already settled up."
    else:
        message = "Spending reopened. Settlements were cleared."
    return SpendStatusResponse(
        trip_id=trip.id,
        spend_status=trip.spend_status,
        settlements=[SettlementRecord.model_validate(s) for s in created],
        message=message,
    )


@router.get("/{trip_id}/balances", response_model=TripBalanceSummary)
async def get_trip_balances(
    trip_id: int,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    """Per-person balances and the suggested settlement plan."""
    return settlement_service.get_balance_summary(repo, trip_id, current_user.id)


@router.get("/{trip_id}/settlements", response_model=List[SettlementDetail])
async def list_trip_settlements(
    trip_id: int,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    """Persisted settlements, outstanding first."""
    settlements = settlement_service.list_settlements(repo, trip_id, current_user.id)
    return [settlement_to_detail(s) for s in settlements]


@router.get("/{trip_id}/timeline", response_model=List[TimelineItemResponse])
async def list_timeline(
    trip_id: int,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    return trip_service.list_timeline(repo, trip_id, current_user.id)


@router.post("/{trip_id}/timeline", response_model=TimelineItemResponse, status_code=status.HTTP_201_CREATED)
async def create_timeline_item(
    trip_id: int,
    item: TimelineItemCreate,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    return trip_service.create_timeline_item(repo, trip_id, current_user.id, item)


@router.post("/{trip_id}/timeline/{item_id}/toggle", response_model=TimelineItemResponse)
async def toggle_timeline_item(
    trip_id: int,
    item_id: int,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    """Toggle a milestone. "Spending Window Closes" also closes or reopens spending."""
    return trip_service.toggle_milestone(repo, trip_id, item_id, current_user.id)
