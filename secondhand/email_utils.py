import logging
import smtplib
from email.message import EmailMessage

from .config import settings

logger = logging.getLogger(__name__)


def send_otp_email(to_email: str, name: str, otp: str, purpose: str = "account verification"):
    if not settings.email_host_user:
        logger.warning("EMAIL_HOST_USER not set, skipping OTP mail to %s", to_email)
        return

    msg = EmailMessage()
    msg["Subject"] = f"Your OTP for {purpose}"
    msg["From"] = settings.email_host_user
    msg["To"] = to_email

    msg.set_content(
        f"""
Hi {name},

Your OTP for {purpose} is:

{otp}

This OTP is valid for {settings.otp_expiry_minutes} minutes.

If you did not request this, ignore this email.
"""
    )

    with smtplib.SMTP(settings.email_host, settings.email_port) as server:
        server.starttls()
        server.login(settings.email_host_user, settings.email_host_password)
        server.send_message(msg)

    logger.info("OTP mail sent to %s", to_email)
