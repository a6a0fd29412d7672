from typing import Tuple
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import EmailStr

from ..core.deps import get_auth_service, get_current_user, get_refresh_token_subject
from ..models.user import User
from ..schemas.auth import (
    AuthResponse,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    TokenPair,
    UserLogin,
    UserRegister,
    VerifyEmailRequest,
)
from ..schemas.user import MessageResponse, UserResponse
from ..services.auth_service import AuthService

router = APIRouter()


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    response_model_exclude_none=True,
)
def register(user_data: UserRegister, auth: AuthService = Depends(get_auth_service)):
    """Register a new user."""
    return auth.register(user_data.email, user_data.password, user_data.name)


@router.post("/login", response_model=AuthResponse, response_model_exclude_none=True)
def login(user_data: UserLogin, auth: AuthService = Depends(get_auth_service)):
    """Login user and return JWT tokens."""
    return auth.login(user_data.email, user_data.password)


@router.post("/logout", response_model=MessageResponse)
def logout(
    current_user: User = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
):
    """Revoke all sessions of the current user."""
    return auth.logout(current_user.id)


@router.post("/refresh", response_model=TokenPair)
def refresh_tokens(
    subject: Tuple[UUID, str] = Depends(get_refresh_token_subject),
    auth: AuthService = Depends(get_auth_service),
):
    """Exchange a refresh token for a new token pair."""
    user_id, refresh_token = subject
    return auth.refresh_tokens(user_id, refresh_token)


@router.post("/verify-email", response_model=MessageResponse)
def verify_email(request_data: VerifyEmailRequest, auth: AuthService = Depends(get_auth_service)):
    """Verify user email with token."""
    return auth.verify_email(request_data.token)


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    request_data: ForgotPasswordRequest, auth: AuthService = Depends(get_auth_service)
):
    """Request a password reset email."""
    return auth.forgot_password(request_data.email)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    request_data: ResetPasswordRequest, auth: AuthService = Depends(get_auth_service)
):
    """Reset password with token."""
    return auth.reset_password(request_data.token, request_data.new_password)


@router.post("/resend-verification", response_model=MessageResponse)
def resend_verification(
    email: EmailStr = Query(...), auth: AuthService = Depends(get_auth_service)
):
    """Resend verification email."""
    return auth.resend_verification_email(email)


@router.get("/me", response_model=UserResponse)
def get_current_user_info(
    current_user: User = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
):
    """Get current user information."""
    return auth.get_profile(current_user)
