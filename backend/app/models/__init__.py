"""
SQLModel models for the account service.

This module exports all database models for use with Alembic migrations
and throughout the application.
"""

from .user import User
from .user_session import UserSession

# Export all models for Alembic auto-generation
__all__ = [
    "User",
    "UserSession",
]
