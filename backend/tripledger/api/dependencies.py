"""
Shared route dependencies: database repository and authenticated user.
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from tripledger.core.security import decode_access_token
from tripledger.db.session import get_db
from tripledger.models.user import User
from tripledger.repositories.ledger import LedgerRepository

bearer_scheme = HTTPBearer()


def get_repo(db: Session = Depends(get_db)) -> LedgerRepository:
    return LedgerRepository(db)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    repo: LedgerRepository = Depends(get_repo),
) -> User:
    """Resolve the bearer token to an active user."""
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    payload = decode_access_token(credentials.credentials)
    if not payload or payload.get("user_id") is None:
        raise unauthorized

    user = repo.get_user(payload["user_id"])
    if not user:
        raise unauthorized
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )
    return user
