"""
Outbound email delivery for campaign email nodes.

SmtpEmailSender sends through the SMTP server configured in settings;
LoggingEmailSender records the message instead (used when SMTP is not
configured, e.g. local development).
"""

import asyncio
import smtplib
import ssl
from datetime import datetime
from email.mime.text import MIMEText
from typing import Optional

from app.features.core.clock import utc_now
from app.features.core.config import Settings, get_settings
from app.features.core.sqlalchemy_imports import get_logger

logger = get_logger(__name__)


class EmailResult:
    """Result of email sending operation."""

    def __init__(self, success: bool, message: str, error: Optional[str] = None):
        self.success = success
        self.message = message
        self.error = error
        self.sent_at: datetime = utc_now()


class SmtpEmailSender:
    """Send plain-text campaign emails over SMTP."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    async def send(self, to_email: str, subject: str, body: str) -> EmailResult:
        message = MIMEText(body, "plain", "utf-8")
        message["Subject"] = subject
        message["From"] = self.settings.SMTP_FROM_EMAIL or self.settings.SMTP_USERNAME or ""
        message["To"] = to_email

        try:
            # smtplib is blocking; keep it off the event loop
            await asyncio.to_thread(self._send_via_smtp, message, to_email)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP sending failed", to=to_email, error=str(e))
            return EmailResult(success=False, message=f"SMTP sending failed: {e}", error="SMTP_FAILED")

        logger.info("Campaign email sent", to=to_email, host=self.settings.SMTP_HOST)
        return EmailResult(success=True, message="Email sent successfully")

    def _send_via_smtp(self, message: MIMEText, to_email: str) -> None:
        settings = self.settings
        server = smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT)
        try:
            if settings.SMTP_USE_TLS:
                server.starttls(context=ssl.create_default_context())
            if settings.SMTP_USERNAME:
                server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD or "")
            server.sendmail(message["From"], [to_email], message.as_string())
        finally:
            server.quit()


class LoggingEmailSender:
    """Record emails in the log instead of delivering them."""

    def __init__(self):
        self.sent = []

    async def send(self, to_email: str, subject: str, body: str) -> EmailResult:
        self.sent.append({"to": to_email, "subject": subject, "body": body})
        logger.info("Campaign email (not delivered, SMTP not configured)", to=to_email, subject=subject)
        return EmailResult(success=True, message="Email logged")


def get_email_sender(settings: Optional[Settings] = None):
    """SMTP sender when SMTP_HOST is configured, otherwise the logging sender."""
    settings = settings or get_settings()
    if settings.SMTP_HOST:
        return SmtpEmailSender(settings)
    return LoggingEmailSender()
