from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema: snake_case in Python, camelCase on the wire."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class UserResponse(CamelModel):
    """Public view of a user. Never carries the password hash or tokens."""

    id: UUID
    email: EmailStr
    name: Optional[str] = None
    email_verified: bool
    created_at: datetime
    updated_at: datetime


class MessageResponse(CamelModel):
    message: str
