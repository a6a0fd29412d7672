"""
Account lifecycle: registration, login with lockout, refresh-token rotation,
email verification and password reset.

Every operation works on one user row at a time. The steps that must be
single-use (refresh rotation, password reset) are conditional DELETE/UPDATE
statements whose rowcount decides the outcome, so concurrent requests with
the same token cannot both succeed.
"""
import logging
from datetime import timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, select

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import (
    ConflictError,
    EmailDispatchError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from ..core.queues import EmailDispatcher
from ..core.security import (
    create_access_token,
    create_refresh_token,
    generate_token,
    get_password_hash,
    verify_password,
)
from ..core.timeutils import utcnow
from ..models.user import User
from ..models.user_session import UserSession
from ..schemas.auth import AuthResponse, TokenPair
from ..schemas.user import MessageResponse, UserResponse

logger = logging.getLogger(__name__)

EMAIL_EXISTS = "User with this email already exists"
INVALID_CREDENTIALS = "Invalid credentials"
ACCOUNT_LOCKED = (
    "Account is locked due to multiple failed login attempts. Please try again later."
)
EMAIL_NOT_VERIFIED = "Please verify your email before logging in"
INVALID_REFRESH_TOKEN = "Invalid refresh token"
INVALID_VERIFICATION_TOKEN = "Invalid or expired verification token"
INVALID_RESET_TOKEN = "Invalid or expired reset token"
EMAIL_VERIFIED = "Email verified successfully"
EMAIL_ALREADY_VERIFIED = "Email already verified"
FORGOT_PASSWORD_SENT = (
    "If an account exists with this email, a password reset link has been sent."
)
REGISTRATION_SUCCESS = (
    "Registration successful. Please check your email to verify your account."
)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    """Auth business rules over the users and sessions tables."""

    def __init__(
        self,
        db: Session,
        email_dispatcher: EmailDispatcher,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.email_dispatcher = email_dispatcher
        self.settings = settings or default_settings

    # --- lookups ---

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.exec(
            select(User).where(User.email == normalize_email(email))
        ).first()

    def get_user_by_id(self, user_id: UUID) -> Optional[User]:
        return self.db.get(User, user_id)

    # --- registration ---

    def register(self, email: str, password: str, name: Optional[str] = None) -> AuthResponse:
        """Create an unverified account, queue its verification email and log it in."""
        email = normalize_email(email)
        if self.get_user_by_email(email):
            raise ConflictError(EMAIL_EXISTS)

        verification_token = generate_token()
        user = User(
            email=email,
            password_hash=get_password_hash(password),
            name=name,
            email_verified=False,
            email_verification_token=verification_token,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race against a concurrent registration for the same email
            self.db.rollback()
            raise ConflictError(EMAIL_EXISTS)
        self.db.refresh(user)

        try:
            self.email_dispatcher.send_verification_email(
                user.email, user.name or "", verification_token
            )
        except EmailDispatchError:
            self.db.delete(user)
            self._commit()
            raise InternalError("Failed to send verification email")

        logger.info(f"Registered user {user.id}")
        response = self._issue_auth_response(user)
        response.message = REGISTRATION_SUCCESS
        return response

    # --- login / logout ---

    def login(self, email: str, password: str) -> AuthResponse:
        """Check credentials, apply the lockout policy and issue tokens."""
        user = self.get_user_by_email(email)
        now = utcnow()

        if user is not None and user.locked_until is not None:
            if user.is_locked(now):
                raise ForbiddenError(ACCOUNT_LOCKED)
            # Lock has run out
            user.failed_login_attempts = 0
            user.locked_until = None

        if user is None or not verify_password(password, user.password_hash):
            if user is not None:
                self._record_failed_attempt(user)
            raise UnauthorizedError(INVALID_CREDENTIALS)

        user.failed_login_attempts = 0
        user.locked_until = None
        user.updated_at = now

        if not user.email_verified:
            self.db.add(user)
            self.db.commit()
            raise ForbiddenError(EMAIL_NOT_VERIFIED)

        user.last_login = now
        self.db.add(user)
        return self._issue_auth_response(user)

    def _record_failed_attempt(self, user: User) -> None:
        """Bump the failure counter in place and lock once it reaches the limit."""
        now = utcnow()
        # An expired lock cleared by login() must be written before the increment
        self.db.add(user)
        self.db.flush()
        self.db.exec(
            update(User)
            .where(col(User.id) == user.id)
            .values(
                failed_login_attempts=col(User.failed_login_attempts) + 1,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        attempts = self.db.exec(
            select(User.failed_login_attempts).where(User.id == user.id)
        ).one()
        if attempts >= self.settings.MAX_LOGIN_ATTEMPTS:
            self.db.exec(
                update(User)
                .where(col(User.id) == user.id)
                .values(
                    locked_until=now + timedelta(minutes=self.settings.LOCK_TIME_MINUTES)
                )
                .execution_options(synchronize_session=False)
            )
            logger.warning(f"Locking user {user.id} after {attempts} failed login attempts")
        self._commit()

    def logout(self, user_id: UUID) -> MessageResponse:
        """Revoke every session of the user. Safe to call repeatedly."""
        self._delete_sessions(user_id)
        self.db.commit()
        return MessageResponse(message="Logged out successfully")

    # --- refresh ---

    def refresh_tokens(self, user_id: UUID, refresh_token: str) -> TokenPair:
        """Consume a refresh token and hand out a fresh pair."""
        now = utcnow()
        result = self.db.exec(
            delete(UserSession)
            .where(
                col(UserSession.user_id) == user_id,
                col(UserSession.refresh_token) == refresh_token,
                col(UserSession.expires_at) > now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            raise ForbiddenError(INVALID_REFRESH_TOKEN)

        user = self.get_user_by_id(user_id)
        if user is None:
            self.db.rollback()
            raise ForbiddenError("Access denied")

        tokens = self._issue_tokens(user)
        self._commit()
        logger.info(f"Rotated refresh token for user {user_id}")
        return tokens

    # --- email verification ---

    def verify_email(self, token: str) -> MessageResponse:
        user = self.db.exec(
            select(User).where(User.email_verification_token == token)
        ).first()
        if user is None:
            raise ValidationError(INVALID_VERIFICATION_TOKEN)

        if user.email_verified:
            return MessageResponse(message=EMAIL_ALREADY_VERIFIED)

        result = self.db.exec(
            update(User)
            .where(col(User.id) == user.id, col(User.email_verified).is_(False))
            .values(email_verified=True, email_verification_token=None, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        self._commit()
        if result.rowcount != 1:
            # A concurrent request verified the account first
            return MessageResponse(message=EMAIL_ALREADY_VERIFIED)

        logger.info(f"Verified email for user {user.id}")
        return MessageResponse(message=EMAIL_VERIFIED)

    def resend_verification_email(self, email: str) -> MessageResponse:
        user = self.get_user_by_email(email)
        if user is None:
            raise NotFoundError("User not found")

        if user.email_verified:
            return MessageResponse(message=EMAIL_ALREADY_VERIFIED)

        verification_token = generate_token()
        user.email_verification_token = verification_token
        user.updated_at = utcnow()
        self.db.add(user)
        self._commit()

        self._dispatch(
            self.email_dispatcher.send_verification_email,
            user.email,
            user.name or "",
            verification_token,
        )
        return MessageResponse(message="Verification email sent successfully")

    # --- password reset ---

    def forgot_password(self, email: str) -> MessageResponse:
        """Start a reset. The reply never reveals whether the account exists."""
        user = self.get_user_by_email(email)
        if user is None:
            return MessageResponse(message=FORGOT_PASSWORD_SENT)

        reset_token = generate_token()
        now = utcnow()
        user.password_reset_token = reset_token
        user.password_reset_expires = now + timedelta(
            minutes=self.settings.PASSWORD_RESET_EXPIRE_MINUTES
        )
        user.updated_at = now
        self.db.add(user)
        self._commit()

        self._dispatch(
            self.email_dispatcher.send_password_reset_email,
            user.email,
            user.name or "",
            reset_token,
        )
        return MessageResponse(message=FORGOT_PASSWORD_SENT)

    def reset_password(self, token: str, new_password: str) -> MessageResponse:
        now = utcnow()
        user = self.db.exec(
            select(User).where(
                User.password_reset_token == token,
                col(User.password_reset_expires) > now,
            )
        ).first()
        if user is None:
            raise ValidationError(INVALID_RESET_TOKEN)
        user_id = user.id

        result = self.db.exec(
            update(User)
            .where(
                col(User.id) == user_id,
                col(User.password_reset_token) == token,
                col(User.password_reset_expires) > now,
            )
            .values(
                password_hash=get_password_hash(new_password),
                password_reset_token=None,
                password_reset_expires=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            raise ValidationError(INVALID_RESET_TOKEN)

        self._delete_sessions(user_id)
        self._commit()
        logger.info(f"Password reset for user {user_id}")
        return MessageResponse(message="Password reset successfully")

    # --- profile ---

    def get_profile(self, user: User) -> UserResponse:
        return UserResponse.model_validate(user)

    # --- helpers ---

    def _issue_tokens(self, user: User) -> TokenPair:
        """Sign a token pair and stage its session row. Caller commits."""
        claims = {"email": user.email, "name": user.name or ""}
        access_token = create_access_token(str(user.id), claims)
        refresh_token = create_refresh_token(str(user.id), claims)

        self.db.add(
            UserSession(
                user_id=user.id,
                refresh_token=refresh_token,
                expires_at=utcnow() + timedelta(days=self.settings.REFRESH_TOKEN_EXPIRE_DAYS),
            )
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        )

    def _issue_auth_response(self, user: User) -> AuthResponse:
        tokens = self._issue_tokens(user)
        self._commit()
        self.db.refresh(user)
        return AuthResponse(user=UserResponse.model_validate(user), **tokens.model_dump())

    def _delete_sessions(self, user_id: UUID) -> None:
        self.db.exec(
            delete(UserSession)
            .where(col(UserSession.user_id) == user_id)
            .execution_options(synchronize_session=False)
        )

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error: {e}")
            raise InternalError("Internal server error") from e

    def _dispatch(self, send, to: str, name: str, token: str) -> None:
        try:
            send(to, name, token)
        except EmailDispatchError:
            raise InternalError("Failed to send email")
