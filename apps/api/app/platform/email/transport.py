from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import Protocol

from app.core.config import Settings, get_settings


logger = logging.getLogger("app.email")


class EmailTransport(Protocol):
    configured: bool

    def send_email(self, to_email: str, subject: str, html_body: str) -> bool: ...


class SmtpEmailTransport:
    configured = True

    def __init__(
        self,
        *,
        host: str,
        port: int,
        sender_email: str,
        sender_name: str,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.sender_email = sender_email
        self.sender_name = sender_name
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def _build_message(self, to_email: str, subject: str, html_body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((self.sender_name, self.sender_email))
        message["To"] = to_email
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html_body, subtype="html")
        return message

    def send_email(self, to_email: str, subject: str, html_body: str) -> bool:
        message = self._build_message(to_email, subject, html_body)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("email.send_failed", extra={"error": str(exc)})
            return False

        logger.info("email.sent")
        return True


class LogEmailTransport:
    """Used when no SMTP relay is configured.

    Nothing leaves the process, so every send reports failure and callers
    record the message as undelivered.
    """

    configured = False

    def send_email(self, to_email: str, subject: str, html_body: str) -> bool:
        logger.warning("email.not_configured", extra={"event_type": subject})
        return False


class RecordingEmailTransport:
    configured = True

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[dict[str, str]] = []

    def send_email(self, to_email: str, subject: str, html_body: str) -> bool:
        if self.fail:
            return False
        self.sent.append({"to": to_email, "subject": subject, "html": html_body})
        return True


def build_email_transport(settings: Settings) -> EmailTransport:
    if not settings.smtp_host:
        return LogEmailTransport()
    return SmtpEmailTransport(
        host=settings.smtp_host,
        port=settings.smtp_port,
        sender_email=settings.sender_email,
        sender_name=settings.sender_name,
        username=settings.smtp_username,
        password=settings.smtp_password,
        use_tls=settings.smtp_use_tls,
        timeout=settings.smtp_timeout_seconds,
    )


_transport: EmailTransport | None = None


def set_email_transport(transport: EmailTransport | None) -> None:
    global _transport
    _transport = transport


def get_email_transport() -> EmailTransport:
    global _transport
    if _transport is None:
        _transport = build_email_transport(get_settings())
    return _transport
