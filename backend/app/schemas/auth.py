import re
from typing import Any, Optional

from pydantic import EmailStr, Field, field_validator

from .user import CamelModel, UserResponse

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128


def validate_password_strength(password: str) -> str:
    """Enforce the password policy. Raises ValueError with a readable message."""
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValueError(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
        )
    if len(password) > PASSWORD_MAX_LENGTH:
        raise ValueError(
            f"Password must be at most {PASSWORD_MAX_LENGTH} characters long"
        )
    if not (
        re.search(r"[a-z]", password)
        and re.search(r"[A-Z]", password)
        and re.search(r"\d", password)
        and re.search(r"[^A-Za-z0-9]", password)
    ):
        raise ValueError(
            "Password must contain at least 1 uppercase letter, 1 lowercase letter, "
            "1 number, and 1 special character"
        )
    return password


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


class UserRegister(CamelModel):
    """User registration request."""

    email: EmailStr
    password: str
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value: Any) -> Any:
        return _strip(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return validate_password_strength(value)


class UserLogin(CamelModel):
    """User login request."""

    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value: Any) -> Any:
        return _strip(value)


class VerifyEmailRequest(CamelModel):
    token: str = Field(min_length=1, max_length=255)


class ForgotPasswordRequest(CamelModel):
    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value: Any) -> Any:
        return _strip(value)


class ResetPasswordRequest(CamelModel):
    token: str = Field(min_length=1, max_length=255)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return validate_password_strength(value)


class TokenPair(CamelModel):
    """JWT token response."""

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int  # access token lifetime in seconds


class AuthResponse(TokenPair):
    """Tokens plus the authenticated user."""

    user: UserResponse
    message: Optional[str] = None
