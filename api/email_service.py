"""
Outgoing email.

Only verification codes are sent today. Delivery goes through the SMTP
server in XPLAY_SMTP_HOST; with no host configured (development, tests) the
message is logged instead of sent.
"""

import asyncio
import logging
import smtplib
from email.message import EmailMessage

from config import (
    MAIL_FROM,
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_TIMEOUT,
    SMTP_USE_TLS,
    SMTP_USERNAME,
    VERIFICATION_CODE_EXPIRY_MINUTES,
)

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """The SMTP server refused the message or could not be reached."""


def build_verification_email(email: str, code: str) -> EmailMessage:
    message = EmailMessage()
    message["From"] = MAIL_FROM
    message["To"] = email
    message["Subject"] = "Your XPlay verification code"
    message.set_content(
        f"Your XPlay verification code is {code}.\n\n"
        f"It expires in {VERIFICATION_CODE_EXPIRY_MINUTES} minutes. "
        "If you did not ask for it, you can ignore this email.\n"
    )
    return message


def _send_sync(message: EmailMessage) -> None:
    with smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=SMTP_TIMEOUT) as smtp:
        if SMTP_USE_TLS:
            smtp.starttls()
        if SMTP_USERNAME:
            smtp.login(SMTP_USERNAME, SMTP_PASSWORD)
        smtp.send_message(message)


async def send_email(message: EmailMessage) -> None:
    """Send `message` without blocking the event loop. Raises EmailDeliveryError."""
    if not SMTP_HOST:
        logger.warning(f"SMTP not configured; email to {message['To']} not sent:\n{message.get_content()}")
        return
    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(None, _send_sync, message)
    except (smtplib.SMTPException, OSError) as e:
        raise EmailDeliveryError(f"Failed to send email to {message['To']}: {e}") from e


async def send_verification_email(email: str, code: str) -> None:
    await send_email(build_verification_email(email, code))
