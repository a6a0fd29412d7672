from typing import Optional, Tuple
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session

from .database import get_db
from .queues import EmailDispatcher, get_email_dispatcher
from .security import decode_refresh_token, verify_token
from ..models.user import User
from ..services.auth_service import AuthService

# Missing credentials are reported as 401 below rather than by HTTPBearer
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _parse_user_id(user_id: str) -> UUID:
    try:
        return UUID(user_id)
    except ValueError:
        raise _unauthorized("Invalid user ID format")


def get_auth_service(
    db: Session = Depends(get_db),
    email_dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
) -> AuthService:
    return AuthService(db, email_dispatcher)


def get_current_user(
    db: Session = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> User:
    """Get the current authenticated user from the bearer access token."""
    if credentials is None:
        raise _unauthorized("Not authenticated")

    user_id = verify_token(credentials.credentials)
    if user_id is None:
        raise _unauthorized("Could not validate credentials")

    user = db.get(User, _parse_user_id(user_id))
    if user is None:
        raise _unauthorized("User not found")

    return user


def get_refresh_token_subject(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Tuple[UUID, str]:
    """Return (user id, raw refresh token) from the bearer refresh token."""
    if credentials is None:
        raise _unauthorized("Refresh token not provided")

    payload = decode_refresh_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Invalid refresh token")

    return _parse_user_id(payload["sub"]), credentials.credentials
