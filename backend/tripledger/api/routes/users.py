"""
User management routes.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from tripledger.api.dependencies import get_current_user, get_repo
from tripledger.core.security import get_password_hash
from tripledger.repositories.ledger import LedgerRepository
from tripledger.schemas.user import UserResponse, UserUpdate
from tripledger.models.user import User

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current user information."""
    return current_user


@router.patch("/me", response_model=UserResponse)
async def update_current_user(
    update: UserUpdate,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    """Update display name, photo or password."""
    changes = update.model_dump(exclude_unset=True)
    password = changes.pop("password", None)
    for field, value in changes.items():
        setattr(current_user, field, value)
    if password:
        current_user.hashed_password = get_password_hash(password)
    repo.commit()
    repo.refresh(current_user)
    return current_user


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    repo: LedgerRepository = Depends(get_repo)
):
    """Get user by ID."""
    user = repo.get_user(user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user
