"""
Background jobs executed by the rq email worker.

Each job renders its template and delivers it through fastapi-mail. A raised
exception marks the job failed so rq can retry it.
"""
import asyncio
import logging
from functools import lru_cache
from typing import Any, Dict

from .core.config import settings
from .core.email import (
    EmailSender,
    PASSWORD_RESET_SUBJECT,
    VERIFICATION_SUBJECT,
    render_password_reset_email,
    render_verification_email,
)

logger = logging.getLogger(__name__)


@lru_cache()
def get_email_sender() -> EmailSender:
    """Sender shared by all jobs run in this worker process."""
    return EmailSender.from_settings(settings)


def _deliver(to: str, subject: str, html: str) -> None:
    asyncio.run(get_email_sender().send(to, subject, html))


def send_verification_email(to: str, name: str, verification_url: str) -> Dict[str, Any]:
    """Send the email-verification message."""
    html = render_verification_email(name, verification_url)
    try:
        _deliver(to, VERIFICATION_SUBJECT, html)
    except Exception as e:
        logger.error(f"Failed to send verification email to {to}: {e}")
        raise

    return {"status": "sent", "type": "verification", "to": to}


def send_password_reset_email(
    to: str, name: str, email: str, reset_url: str, expires_in: str
) -> Dict[str, Any]:
    """Send the password-reset message."""
    html = render_password_reset_email(name, email, reset_url, expires_in)
    try:
        _deliver(to, PASSWORD_RESET_SUBJECT, html)
    except Exception as e:
        logger.error(f"Failed to send password reset email to {to}: {e}")
        raise

    return {"status": "sent", "type": "password-reset", "to": to}
