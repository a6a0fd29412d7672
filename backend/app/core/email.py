import logging
from datetime import datetime
from typing import Optional

from fastapi_mail import FastMail, MessageSchema, ConnectionConfig, MessageType
from jinja2 import Environment

from .config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

# User-supplied values such as the display name end up in these bodies
template_env = Environment(autoescape=True)


# Email templates
EMAIL_VERIFICATION_TEMPLATE = """
<html>
<body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background-color: #f8f9fa; padding: 30px; border-radius: 10px;">
        <h1 style="color: #2563eb; text-align: center; margin-bottom: 30px;">
            {{ app_name }}
        </h1>

        <h2 style="color: #1f2937; margin-bottom: 20px;">
            Verify Your Email Address
        </h2>

        <p style="color: #4b5563; font-size: 16px; line-height: 1.6;">
            Hi {{ name or "there" }},
        </p>

        <p style="color: #4b5563; font-size: 16px; line-height: 1.6;">
            Thanks for signing up. Please confirm your email address to activate your account.
        </p>

        <div style="text-align: center; margin: 30px 0;">
            <a href="{{ verification_url }}"
               style="background-color: #2563eb; color: white; padding: 15px 30px;
                      text-decoration: none; border-radius: 5px; font-weight: bold;
                      display: inline-block;">
                Verify Email Address
            </a>
        </div>

        <p style="color: #6b7280; font-size: 14px; line-height: 1.6;">
            If the button does not work, paste this link into your browser:<br>
            <a href="{{ verification_url }}" style="color: #2563eb; word-break: break-all;">
                {{ verification_url }}
            </a>
        </p>

        <p style="color: #6b7280; font-size: 14px; line-height: 1.6; margin-top: 30px;">
            If you did not create an account, you can ignore this email.
        </p>

        <hr style="border: none; border-top: 1px solid #e5e7eb; margin: 30px 0;">

        <p style="color: #9ca3af; font-size: 12px; text-align: center;">
            &copy; {{ current_year }} {{ app_name }}
        </p>
    </div>
</body>
</html>
"""

PASSWORD_RESET_TEMPLATE = """
<html>
<body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background-color: #f8f9fa; padding: 30px; border-radius: 10px;">
        <h1 style="color: #2563eb; text-align: center; margin-bottom: 30px;">
            {{ app_name }}
        </h1>

        <h2 style="color: #1f2937; margin-bottom: 20px;">
            Reset Your Password
        </h2>

        <p style="color: #4b5563; font-size: 16px; line-height: 1.6;">
            Hi {{ name or "there" }},
        </p>

        <p style="color: #4b5563; font-size: 16px; line-height: 1.6;">
            We received a request to reset the password for {{ email }}.
        </p>

        <div style="text-align: center; margin: 30px 0;">
            <a href="{{ reset_url }}"
               style="background-color: #2563eb; color: white; padding: 15px 30px;
                      text-decoration: none; border-radius: 5px; font-weight: bold;
                      display: inline-block;">
                Reset Password
            </a>
        </div>

        <p style="color: #6b7280; font-size: 14px; line-height: 1.6;">
            This link expires in {{ expires_in }}. If you did not ask for a reset,
            your password stays unchanged and you can ignore this email.
        </p>

        <hr style="border: none; border-top: 1px solid #e5e7eb; margin: 30px 0;">

        <p style="color: #9ca3af; font-size: 12px; text-align: center;">
            &copy; {{ current_year }} {{ app_name }}
        </p>
    </div>
</body>
</html>
"""

VERIFICATION_SUBJECT = "Verify Your Email Address"
PASSWORD_RESET_SUBJECT = "Reset Your Password"


def render_verification_email(
    name: str, verification_url: str, app_name: Optional[str] = None
) -> str:
    """Generate HTML body for the verification email."""
    return template_env.from_string(EMAIL_VERIFICATION_TEMPLATE).render(
        name=name,
        verification_url=verification_url,
        app_name=app_name or default_settings.APP_NAME,
        current_year=datetime.now().year,
    )


def render_password_reset_email(
    name: str,
    email: str,
    reset_url: str,
    expires_in: str,
    app_name: Optional[str] = None,
) -> str:
    """Generate HTML body for the password reset email."""
    return template_env.from_string(PASSWORD_RESET_TEMPLATE).render(
        name=name,
        email=email,
        reset_url=reset_url,
        expires_in=expires_in,
        app_name=app_name or default_settings.APP_NAME,
        current_year=datetime.now().year,
    )


class EmailSender:
    """Delivers rendered emails over SMTP. Built once per worker process."""

    def __init__(self, config: ConnectionConfig):
        self.fastmail = FastMail(config)

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailSender":
        config = ConnectionConfig(
            MAIL_USERNAME=settings.MAIL_USER,
            MAIL_PASSWORD=settings.MAIL_PASSWORD,
            MAIL_FROM=settings.MAIL_FROM or settings.MAIL_USER,
            MAIL_PORT=settings.MAIL_PORT,
            MAIL_SERVER=settings.MAIL_HOST,
            MAIL_FROM_NAME=settings.MAIL_FROM_NAME,
            MAIL_STARTTLS=settings.MAIL_SECURE,
            MAIL_SSL_TLS=False,
            USE_CREDENTIALS=bool(settings.MAIL_USER),
            VALIDATE_CERTS=True,
            SUPPRESS_SEND=int(settings.MAIL_SUPPRESS_SEND),
        )
        return cls(config)

    async def send(self, to: str, subject: str, html: str) -> None:
        message = MessageSchema(
            subject=subject,
            recipients=[to],
            body=html,
            subtype=MessageType.html,
        )
        await self.fastmail.send_message(message)
        logger.info(f"Email '{subject}' sent to {to}")
