"""
Unit tests for campaign email delivery.
"""

import email
import smtplib

import pytest

from app.features.core.config import Settings
from app.features.business_automations.campaign_workflows.services import email_sender
from app.features.business_automations.campaign_workflows.services.email_sender import (
    LoggingEmailSender,
    SmtpEmailSender,
    get_email_sender,
)


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.calls = []
        self.messages = []
        FakeSMTP.instances.append(self)

    def starttls(self, context=None):
        self.calls.append("starttls")

    def login(self, username, password):
        self.calls.append(("login", username, password))

    def sendmail(self, from_addr, to_addrs, message):
        self.calls.append(("sendmail", from_addr, to_addrs))
        self.messages.append(message)

    def quit(self):
        self.calls.append("quit")


class RefusingSMTP(FakeSMTP):

    def sendmail(self, from_addr, to_addrs, message):
        raise smtplib.SMTPRecipientsRefused({to_addrs[0]: (550, b"No such user")})


@pytest.fixture
def smtp_settings():
    return Settings(
        SMTP_HOST="smtp.example.com",
        SMTP_PORT=2525,
        SMTP_USERNAME="mailer",
        SMTP_PASSWORD="secret",
        SMTP_FROM_EMAIL="sales@example.com",
    )


@pytest.mark.unit
@pytest.mark.asyncio
class TestSmtpEmailSender:

    async def test_sends_over_smtp(self, monkeypatch, smtp_settings):
        FakeSMTP.instances = []
        monkeypatch.setattr(email_sender.smtplib, "SMTP", FakeSMTP)

        result = await SmtpEmailSender(smtp_settings).send("ada@example.com", "Hello", "Body")

        assert result.success is True
        server = FakeSMTP.instances[0]
        assert (server.host, server.port) == ("smtp.example.com", 2525)
        assert server.calls == [
            "starttls",
            ("login", "mailer", "secret"),
            ("sendmail", "sales@example.com", ["ada@example.com"]),
            "quit",
        ]

    async def test_message_is_single_plain_text_part(self, monkeypatch, smtp_settings):
        FakeSMTP.instances = []
        monkeypatch.setattr(email_sender.smtplib, "SMTP", FakeSMTP)

        await SmtpEmailSender(smtp_settings).send("ada@example.com", "Hello Ada", "Grüße from the team")

        message = email.message_from_string(FakeSMTP.instances[0].messages[0])
        assert message.get_content_type() == "text/plain"
        assert not message.is_multipart()
        assert message["Subject"] == "Hello Ada"
        assert message["To"] == "ada@example.com"
        assert message.get_payload(decode=True).decode("utf-8") == "Grüße from the team"

    async def test_smtp_error_is_a_failed_result(self, monkeypatch, smtp_settings):
        monkeypatch.setattr(email_sender.smtplib, "SMTP", RefusingSMTP)

        result = await SmtpEmailSender(smtp_settings).send("ghost@example.com", "Hello", "Body")

        assert result.success is False
        assert result.error == "SMTP_FAILED"


@pytest.mark.unit
class TestGetEmailSender:

    def test_smtp_sender_when_host_configured(self, smtp_settings):
        assert isinstance(get_email_sender(smtp_settings), SmtpEmailSender)

    def test_logging_sender_without_host(self):
        assert isinstance(get_email_sender(Settings(SMTP_HOST=None)), LoggingEmailSender)
