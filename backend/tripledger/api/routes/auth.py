"""
Authentication routes for signup, login, and logout.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from tripledger.api.dependencies import get_repo
from tripledger.repositories.ledger import LedgerRepository
from tripledger.schemas.user import UserCreate, UserLogin, Token, UserResponse
from tripledger.models.user import User
from tripledger.core.security import verify_password, get_password_hash, create_access_token, decode_access_token

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def signup(user_data: UserCreate, repo: LedgerRepository = Depends(get_repo)):
    """Register a new user."""
    if repo.get_user_by_username(user_data.username):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username already exists"
        )
    if repo.get_user_by_email(user_data.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already exists"
        )

    new_user = repo.add(User(
        username=user_data.username,
        email=user_data.email,
        display_name=user_data.display_name,
        photo_url=user_data.photo_url,
        hashed_password=get_password_hash(user_data.password),
    ))
    repo.commit()
    repo.refresh(new_user)
    return new_user


@router.post("/login", response_model=Token)
async def login(credentials: UserLogin, repo: LedgerRepository = Depends(get_repo)):
    """Login and get JWT token."""
    user = repo.get_user_by_username(credentials.username)

    if not user or not verify_password(credentials.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )

    access_token = create_access_token(data={"sub": user.username, "user_id": user.id})
    return {"access_token": access_token, "token_type": "bearer"}


@router.post("/logout")
async def logout(token: str):
    """Logout (client-side token removal); only checks the token is valid."""
    if not decode_access_token(token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )
    return {"message": "Logged out successfully"}
