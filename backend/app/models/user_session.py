from pydantic import NaiveDatetime
from sqlalchemy import Column, DateTime, ForeignKey, Uuid
from sqlmodel import SQLModel, Field
from uuid import UUID, uuid4

from ..core.timeutils import utcnow


class UserSession(SQLModel, table=True):
    """Refresh-token session. One row per logged-in device."""

    __tablename__ = "sessions"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(
        sa_column=Column(
            Uuid,
            ForeignKey("users.id", ondelete="CASCADE", onupdate="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    refresh_token: str = Field(unique=True, index=True)
    expires_at: NaiveDatetime = Field(
        sa_column=Column(DateTime(), nullable=False, index=True)
    )
    created_at: NaiveDatetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(), nullable=False)
    )
