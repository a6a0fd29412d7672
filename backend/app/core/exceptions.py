"""Errors raised by the auth service and rendered by the API layer."""

from fastapi import status


class AuthServiceError(Exception):
    """Base error carrying the HTTP status the caller should see."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(AuthServiceError):
    """Malformed input, or a token that does not match anything."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(AuthServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(AuthServiceError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AuthServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AuthServiceError):
    status_code = status.HTTP_409_CONFLICT


class InternalError(AuthServiceError):
    pass


class EmailDispatchError(Exception):
    """An email job could not be put on the queue."""
