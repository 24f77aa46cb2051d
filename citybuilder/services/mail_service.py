"""
citybuilder/services/mail_service.py

Purpose: Outgoing email over an SMTP relay

- Welcome, verification OTP, reset OTP and build-started receipts
- Delivery runs in a worker thread so the event loop never blocks
- try_send_* helpers never raise; request handlers use them
"""

import asyncio
import smtplib
import ssl
from email.message import EmailMessage
from html import escape
from typing import List, Optional

from citybuilder.core.config import settings
from citybuilder.core.exceptions import ExternalServiceError
from citybuilder.core.logging import get_logger
from citybuilder.utils.constants import (
    SUBJECT_WELCOME,
    SUBJECT_EMAIL_VERIFICATION,
    SUBJECT_RESET_PASSWORD,
    SUBJECT_BUILD_STARTED,
)

logger = get_logger(__name__)


def _deliver(message: EmailMessage) -> None:
    if settings.SMTP_SECURE:
        context = ssl.create_default_context()
        with smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, context=context, timeout=15) as server:
            if settings.SMTP_USER:
                server.login(settings.SMTP_USER, settings.SMTP_PASS or "")
            server.send_message(message)
    else:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=15) as server:
            server.starttls(context=ssl.create_default_context())
            if settings.SMTP_USER:
                server.login(settings.SMTP_USER, settings.SMTP_PASS or "")
            server.send_message(message)


async def send_mail(to: str, subject: str, text: str, html: Optional[str] = None) -> bool:
    """
    Sends one email.

    Returns:
        True if handed to the relay, False if mail is not configured

    Raises:
        ExternalServiceError: If the relay rejects or is unreachable
    """
    if not settings.mail_enabled:
        logger.warning(f"SMTP not configured, skipping mail '{subject}' to {to}")
        return False

    message = EmailMessage()
    message["From"] = settings.EMAIL_FROM
    message["To"] = to
    message["Subject"] = subject
    message.set_content(text)
    if html:
        message.add_alternative(html, subtype="html")

    try:
        await asyncio.to_thread(_deliver, message)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"SMTP delivery failed for '{subject}' to {to}: {e}")
        raise ExternalServiceError("Email delivery failed") from e

    logger.info(f"📧 Mail sent: '{subject}' to {to}")
    return True


async def try_send_mail(to: str, subject: str, text: str, html: Optional[str] = None) -> bool:
    """
    send_mail that logs failures instead of raising.
    """
    if not to:
        logger.info(f"No recipient for '{subject}', skipping")
        return False
    try:
        return await send_mail(to, subject, text, html)
    except ExternalServiceError:
        return False


async def try_send_welcome_email(to: str, name: str) -> bool:
    text = (
        f"Welcome to City Builder, {name}! We're glad to have you on board.\n"
        "Track every build step, share progress with clients, and sell homes, all in one place.\n"
        f"Questions? Contact us at {settings.SUPPORT_EMAIL}."
    )
    html = (
        f"<p>Welcome to City Builder, {escape(name)}! We're glad to have you on board.</p>"
        "<p>Track every build step, share progress with clients, and sell homes, all in one place.</p>"
        f"<p>Questions? Contact us at <a href=\"mailto:{settings.SUPPORT_EMAIL}\">{settings.SUPPORT_EMAIL}</a></p>"
        "<p>The City Builder Team</p>"
    )
    return await try_send_mail(to, SUBJECT_WELCOME, text, html)


def _otp_bodies(otp: str, purpose: str):
    minutes = settings.OTP_EXPIRE_MINUTES
    text = f"Your {purpose} OTP is: {otp}\nThis OTP will expire in {minutes} minutes."
    html = (
        f"<p>Your {purpose} OTP is: <strong>{otp}</strong></p>"
        f"<p>This OTP will expire in {minutes} minutes.</p>"
        "<p>The City Builder Team</p>"
    )
    return text, html


async def send_email_verification_otp(to: str, otp: str) -> bool:
    text, html = _otp_bodies(otp, "email verification")
    return await send_mail(to, SUBJECT_EMAIL_VERIFICATION, text, html)


async def send_reset_password_otp(to: str, otp: str) -> bool:
    text, html = _otp_bodies(otp, "reset password")
    return await send_mail(to, SUBJECT_RESET_PASSWORD, text, html)


async def try_send_build_started_email(
    to: str,
    name: str,
    project_id: str,
    lot_address: str,
    lot_size_dimensions: str,
    lot_price: str,
    terrain_type: str,
    has_old_house: bool,
    created_at: str,
    photo_urls: List[str],
) -> bool:
    """
    Receipt for a newly created build. Never fails the request.
    """
    demolition = "Yes, needs demolition" if has_old_house else "No, empty lot"
    rows = [
        ("Build Project ID", project_id),
        ("Date & Time", created_at),
        ("Lot Address", lot_address or "your lot"),
        ("Lot Size / Dimensions", lot_size_dimensions or "N/A"),
        ("Lot Price", f"${lot_price}"),
        ("Terrain", terrain_type),
        ("Old House on Lot?", demolition),
    ]

    text = "\n".join(
        [f"Hi {name or 'there'},", "Your build project has been created and saved as Active.", ""]
        + [f"{label}: {value}" for label, value in rows]
        + ["", f"Lot photos: {len(photo_urls)}"]
        + photo_urls
        + ["", f"Any concerns? Write to us at {settings.SUPPORT_EMAIL}"]
    )

    table = "".join(
        f"<tr><td><b>{escape(label)}</b></td><td>{escape(str(value))}</td></tr>"
        for label, value in rows
    )
    photos = "".join(
        f"<a href=\"{escape(url)}\"><img src=\"{escape(url)}\" width=\"120\" height=\"90\" alt=\"Lot photo {i + 1}\"/></a>"
        for i, url in enumerate(photo_urls)
    ) or "<p>No lot photos were uploaded.</p>"
    html = (
        f"<p>Hi {escape(name or 'there')},</p>"
        "<p>Your build project has been created and saved as <b>Active</b>.</p>"
        f"<table cellpadding=\"6\">{table}</table>"
        f"{photos}"
        f"<p>Any concerns? Write to us at <a href=\"mailto:{settings.SUPPORT_EMAIL}\">{settings.SUPPORT_EMAIL}</a></p>"
    )

    return await try_send_mail(to, SUBJECT_BUILD_STARTED, text, html)
