from pydantic import NaiveDatetime
from sqlalchemy import Column, DateTime
from sqlmodel import SQLModel, Field
from uuid import UUID, uuid4
from typing import Optional

from ..core.timeutils import utcnow


class User(SQLModel, table=True):
    """User model for authentication and profile management."""

    __tablename__ = "users"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    email: str = Field(unique=True, index=True, max_length=255)  # stored lowercased
    name: Optional[str] = Field(default=None, max_length=100)

    # Authentication
    password_hash: str

    # Email verification
    email_verified: bool = Field(default=False)
    email_verification_token: Optional[str] = Field(
        default=None, unique=True, index=True, max_length=255
    )

    # Password reset
    password_reset_token: Optional[str] = Field(
        default=None, unique=True, index=True, max_length=255
    )
    password_reset_expires: Optional[NaiveDatetime] = Field(
        default=None, sa_column=Column(DateTime(), nullable=True)
    )

    # Lockout
    failed_login_attempts: int = Field(default=0)
    locked_until: Optional[NaiveDatetime] = Field(
        default=None, sa_column=Column(DateTime(), nullable=True)
    )

    # Timestamps (naive UTC)
    created_at: NaiveDatetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(), nullable=False)
    )
    updated_at: NaiveDatetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(), nullable=False)
    )
    last_login: Optional[NaiveDatetime] = Field(
        default=None, sa_column=Column(DateTime(), nullable=True)
    )

    def is_locked(self, now: Optional[NaiveDatetime] = None) -> bool:
        """True while ``locked_until`` lies in the future."""
        now = now or utcnow()
        return self.locked_until is not None and self.locked_until > now
