"""
Expense and cost assignment routes.
"""
from fastapi import APIRouter, Depends, status
from typing import List
from tripledger.api.dependencies import get_current_user, get_repo
from tripledger.models.user import User
from tripledger.models.expense import Expense
from tripledger.repositories.ledger import LedgerRepository
from tripledger.schemas.expense import (
    ExpenseCreate, ExpenseUpdate, ExpenseResponse, AssignmentResponse, UserSummary,
    AssignmentsSet, AssignmentUpdate, FinalizeRequest,
)
from tripledger.services import expense_service

router = APIRouter(prefix="/expenses", tags=["expenses"])


def _user_summary(user: User) -> UserSummary:
    return UserSummary(id=user.id, name=user.name, email=user.email, photo_url=user.photo_url)


def expense_to_response(expense: Expense) -> ExpenseResponse:
    return ExpenseResponse(
        id=expense.id,
        trip_id=expense.trip_id,
        description=expense.description,
        amount=expense.amount,
        currency=expense.currency,
        fx_rate=expense.fx_rate,
        normalized_amount=expense.normalized_amount,
        date=expense.date,
        status=expense.status,
        notes=expense.notes,
        category_id=expense.category_id,
        paid_by=_user_summary(expense.paid_by),
        assignments=[
            AssignmentResponse(
                id=a.id,
                user_id=a.user_id,
                user=_user_summary(a.user),
                share_amount=a.share_amount,
                normalized_share_amount=a.normalized_share_amount,
                split_type=a.split_type,
                split_value=a.split_value,
            )
            for a in expense.assignments
        ],
        assigned_percentage=round(float(expense_service.assigned_percentage(expense)), 2),
        created_at=expense.created_at,
        updated_at=expense.updated_at,
    )


@router.get("/trip/{trip_id}", response_model=List[ExpenseResponse])
async def list_expenses(
    trip_id: int,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    """List a trip's expenses, oldest first."""
    return [expense_to_response(e) for e in expense_service.list_expenses(repo, trip_id, current_user.id)]


@router.post("/trip/{trip_id}", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def create_expense(
    trip_id: int,
    expense_data: ExpenseCreate,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    """
    Create an expense. Without an explicit fxRate the rate to the trip's
    base currency is looked up for the expense date.
    """
    expense = expense_service.create_expense(repo, trip_id, current_user.id, expense_data)
    return expense_to_response(expense)


@router.get("/{expense_id}", response_model=ExpenseResponse)
async def get_expense(
    expense_id: int,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    return expense_to_response(expense_service.get_expense(repo, expense_id, current_user.id))


@router.patch("/{expense_id}", response_model=ExpenseResponse)
async def update_expense(
    expense_id: int,
    update: ExpenseUpdate,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    expense = expense_service.update_expense(repo, expense_id, current_user.id, update)
    return expense_to_response(expense)


@router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_expense(
    expense_id: int,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    expense_service.delete_expense(repo, expense_id, current_user.id)


@router.put("/{expense_id}/assignments", response_model=ExpenseResponse)
async def set_assignments(
    expense_id: int,
    body: AssignmentsSet,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    """Replace all assignments of an open expense."""
    expense = expense_service.set_assignments(
        repo, expense_id, current_user.id, body.split_type, body.assignments
    )
    return expense_to_response(expense)


@router.patch("/assignments/{assignment_id}", response_model=ExpenseResponse)
async def update_assignment(
    assignment_id: int,
    update: AssignmentUpdate,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    """Set one share explicitly. Only the payer or the assignee may edit it."""
    expense = expense_service.update_assignment(
        repo, assignment_id, current_user.id, update.share_amount, update.split_value
    )
    return expense_to_response(expense)


@router.delete("/assignments/{assignment_id}", response_model=ExpenseResponse)
async def remove_assignment(
    assignment_id: int,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    expense = expense_service.remove_assignment(repo, assignment_id, current_user.id)
    return expense_to_response(expense)


@router.post("/{expense_id}/finalize", response_model=ExpenseResponse)
async def finalize_expense(
    expense_id: int,
    body: FinalizeRequest = FinalizeRequest(),
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    """Close an expense once its assignments total 100% (or with force)."""
    expense = expense_service.finalize_expense(repo, expense_id, current_user.id, body.force)
    return expense_to_response(expense)


@router.post("/{expense_id}/reopen", response_model=ExpenseResponse)
async def reopen_expense(
    expense_id: int,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    expense = expense_service.reopen_expense(repo, expense_id, current_user.id)
    return expense_to_response(expense)
