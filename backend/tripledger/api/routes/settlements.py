"""
Settlement payment routes.
"""
from fastapi import APIRouter, Depends
from tripledger.api.dependencies import get_current_user, get_repo
from tripledger.models.user import User
from tripledger.models.settlement import Settlement, Payment
from tripledger.repositories.ledger import LedgerRepository
from tripledger.schemas.settlement import (
    SettlementDetail, SettlementProgress, PaymentCreate, PaymentResponse, PaymentResult,
)
from tripledger.services import settlement_service
from tripledger.services.settlement_service import PaymentOutcome

router = APIRouter(prefix="/settlements", tags=["settlements"])


def payment_to_response(payment: Payment) -> PaymentResponse:
    return PaymentResponse(
        id=payment.id,
        settlement_id=payment.settlement_id,
        amount=payment.amount,
        paid_at=payment.paid_at,
        payment_method=payment.payment_method,
        payment_reference=payment.payment_reference,
        notes=payment.notes,
        recorded_by_id=payment.recorded_by_id,
        recorded_by_name=payment.recorded_by.name if payment.recorded_by else None,
        created_at=payment.created_at,
    )


def settlement_to_detail(settlement: Settlement) -> SettlementDetail:
    paid = settlement_service.total_paid(settlement)
    return SettlementDetail(
        id=settlement.id,
        trip_id=settlement.trip_id,
        from_user_id=settlement.from_user_id,
        from_user_name=settlement.from_user.name,
        from_user_email=settlement.from_user.email,
        from_user_photo_url=settlement.from_user.photo_url,
        to_user_id=settlement.to_user_id,
        to_user_name=settlement.to_user.name,
        to_user_email=settlement.to_user.email,
        to_user_photo_url=settlement.to_user.photo_url,
        amount=settlement.amount,
        status=settlement.status,
        notes=settlement.notes,
        payment_method=settlement.payment_method,
        payment_reference=settlement.payment_reference,
        created_at=settlement.created_at,
        updated_at=settlement.updated_at,
        total_paid=paid,
        remaining_amount=settlement.amount - paid,
        payments=[payment_to_response(p) for p in settlement.payments],
    )


def outcome_to_result(outcome: PaymentOutcome) -> PaymentResult:
    settlement = outcome.settlement
    return PaymentResult(
        payment=payment_to_response(outcome.payment),
        settlement=SettlementProgress(
            id=settlement.id,
            status=settlement.status,
            amount=settlement.amount,
            total_paid=outcome.total_paid,
            remaining_amount=outcome.remaining_amount,
        ),
    )


@router.post("/{settlement_id}/payments", response_model=PaymentResult)
async def record_payment(
    settlement_id: int,
    payment: PaymentCreate,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    """
    Record a (possibly partial) payment. Only the receiver or a trip
    organizer may record payments.
    """
    outcome = settlement_service.record_payment(
        repo,
        settlement_id,
        current_user.id,
        payment.amount,
        paid_at=payment.paid_at,
        payment_method=payment.payment_method,
        payment_reference=payment.payment_reference,
        notes=payment.notes,
    )
    return outcome_to_result(outcome)


@router.patch("/{settlement_id}/payments/{payment_id}", response_model=PaymentResult)
async def update_payment(
    settlement_id: int,
    payment_id: int,
    payment: PaymentCreate,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    outcome = settlement_service.update_payment(
        repo,
        settlement_id,
        payment_id,
        current_user.id,
        payment.amount,
        paid_at=payment.paid_at,
        payment_method=payment.payment_method,
        payment_reference=payment.payment_reference,
        notes=payment.notes,
    )
    return outcome_to_result(outcome)


@router.delete("/{settlement_id}/payments/{payment_id}", response_model=SettlementDetail)
async def delete_payment(
    settlement_id: int,
    payment_id: int,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    """Delete a payment; the settlement status is recomputed."""
    settlement = settlement_service.delete_payment(repo, settlement_id, payment_id, current_user.id)
    return settlement_to_detail(settlement)
