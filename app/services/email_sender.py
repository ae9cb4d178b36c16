"""Email sender interface + SMTP implementation."""

from __future__ import annotations

import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from typing import Protocol

from app.core import runtime_config
from app.jobs.utils import mask_email

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 30


@dataclass(frozen=True)
class MailMessage:
    """Rendered envelope + bodies, independent of transport."""

    subject: str
    html: str
    text: str | None = None


class EmailSender(Protocol):
    key: str

    def send(self, to_email: str, message: MailMessage) -> bool:
        """Deliver a message. Returns False when delivery was skipped."""


class SmtpEmailSender:
    """
    SMTP delivery using the runtime mail configuration.

    Configuration is read on every send so boot-time overrides apply. With no
    host configured the message is only logged (dry run).
    """

    key = "smtp"

    def _build(self, to_email: str, message: MailMessage) -> EmailMessage:
        config = runtime_config.mail_config
        email = EmailMessage()
        email["Subject"] = message.subject
        email["From"] = formataddr((config.from_name or "", config.from_address or ""))
        email["To"] = to_email
        email.set_content(message.text or "")
        if message.html:
            email.add_alternative(message.html, subtype="html")
        return email

    def send(self, to_email: str, message: MailMessage) -> bool:
        config = runtime_config.mail_config
        if not config.is_configured:
            logger.info(
                "Mail dry run (no host configured) to=%s subject=%s",
                mask_email(to_email),
                message.subject,
            )
            return False

        email = self._build(to_email, message)
        encryption = (config.encryption or "").lower()
        if encryption == "ssl":
            client = smtplib.SMTP_SSL(
                config.host,
                config.port,
                timeout=SMTP_TIMEOUT_SECONDS,
                context=ssl.create_default_context(),
            )
        else:
            client = smtplib.SMTP(config.host, config.port, timeout=SMTP_TIMEOUT_SECONDS)

        with client:
            if encryption == "tls":
                client.starttls(context=ssl.create_default_context())
            if config.username:
                client.login(config.username, config.password)
            client.send_message(email)

        logger.info("Mail sent to=%s subject=%s", mask_email(to_email), message.subject)
        return True


_sender: EmailSender | None = None


def get_sender() -> EmailSender:
    global _sender
    if _sender is None:
        _sender = SmtpEmailSender()
    return _sender


def set_sender(sender: EmailSender | None) -> None:
    """Replace the process-wide sender (tests)."""
    global _sender
    _sender = sender


def send_email(to_email: str, message: MailMessage) -> bool:
    return get_sender().send(to_email, message)
