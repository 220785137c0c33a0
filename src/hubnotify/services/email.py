"""Email sender for user notifications.

Emails are sent via SMTP with support for both self-hosted relays and
managed SMTP services. The SMTP conversation is blocking, so it runs in a
worker thread to keep the event loop responsive.

Failures are split by how they should be handled:
- SenderNotAvailableError: no SMTP relay is configured. Retrying can
  never succeed, so callers record these as final failures.
- TransientEmailError: the relay could not be reached or answered with a
  temporary (4xx) reply. Worth retrying later.
- EmailDeliveryError: the relay rejected the message permanently.

Usage:
    sender = build_email_sender(settings.smtp)
    if sender is not None:
        await sender.send_email(EmailData(to="user@example.com", subject="...", body="..."))
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import smtplib
import ssl
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hubnotify.core.config import SMTPSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EmailData:
    """A rendered email.

    Attributes:
        to: Recipient email address (empty while the data is shared between recipients).
        subject: Email subject line.
        body: HTML body.
    """

    to: str
    subject: str
    body: str


class EmailError(Exception):
    """Base exception for email operations."""


class SenderNotAvailableError(EmailError):
    """Raised when no email sender has been configured."""

    def __init__(self, message: str = "email sender not available") -> None:
        super().__init__(message)


class EmailDeliveryError(EmailError):
    """Raised when the SMTP relay rejects an email permanently."""


class TransientEmailError(EmailDeliveryError):
    """Raised when an email could not be sent for a temporary reason."""


class EmailSender:
    """Sends emails through an SMTP relay.

    Attributes:
        smtp_settings: SMTP configuration for email delivery.
    """

    def __init__(self, smtp_settings: SMTPSettings) -> None:
        """Initialize the email sender.

        Args:
            smtp_settings: SMTP configuration settings.

        Raises:
            SenderNotAvailableError: If no SMTP host is configured.
        """
        if not smtp_settings.host:
            raise SenderNotAvailableError()
        self.smtp_settings = smtp_settings

    async def send_email(self, data: EmailData) -> str:
        """Send an email.

        Args:
            data: The email to send.

        Returns:
            SMTP message ID.

        Raises:
            TransientEmailError: If sending failed for a temporary reason.
            EmailDeliveryError: If the relay rejected the email.
        """
        if not data.to:
            msg = "Email has no recipient"
            raise EmailDeliveryError(msg)

        return await asyncio.to_thread(self._send, data)

    def _send(self, data: EmailData) -> str:
        """Send an email via SMTP (blocking).

        Raises:
            TransientEmailError: On connection problems and 4xx replies.
            EmailDeliveryError: On permanent SMTP rejections.
        """
        msg = MIMEMultipart("alternative")
        msg["Subject"] = data.subject
        msg["From"] = f"{self.smtp_settings.from_name} <{self.smtp_settings.from_address}>"
        msg["To"] = data.to

        message_id = f"<{secrets.token_hex(16)}@{self._get_domain()}>"
        msg["Message-ID"] = message_id

        msg.attach(MIMEText(data.body, "html", "utf-8"))

        try:
            with self._connect() as server:
                if self.smtp_settings.username and self.smtp_settings.password:
                    server.login(
                        self.smtp_settings.username,
                        self.smtp_settings.password.get_secret_value(),
                    )

                server.sendmail(
                    self.smtp_settings.from_address,
                    [data.to],
                    msg.as_string(),
                )

        except (smtplib.SMTPServerDisconnected, smtplib.SMTPConnectError) as e:
            raise TransientEmailError(f"SMTP connection error: {e}") from e
        except smtplib.SMTPRecipientsRefused as e:
            codes = [code for code, _ in e.recipients.values()]
            if codes and all(400 <= code < 500 for code in codes):
                raise TransientEmailError(f"SMTP recipient temporarily refused: {e}") from e
            raise EmailDeliveryError(f"SMTP recipient refused: {e}") from e
        except smtplib.SMTPResponseException as e:
            if 400 <= e.smtp_code < 500:
                raise TransientEmailError(f"SMTP error: {e}") from e
            raise EmailDeliveryError(f"SMTP error: {e}") from e
        except smtplib.SMTPException as e:
            raise EmailDeliveryError(f"SMTP error: {e}") from e
        except OSError as e:
            raise TransientEmailError(f"Connection error: {e}") from e

        logger.debug("Email sent: message_id=%s", message_id)
        return message_id

    def _connect(self) -> smtplib.SMTP:
        """Open a connection to the SMTP relay."""
        if self.smtp_settings.use_ssl:
            # Implicit TLS (port 465)
            return smtplib.SMTP_SSL(
                self.smtp_settings.host,
                self.smtp_settings.port,
                timeout=self.smtp_settings.timeout,
                context=ssl.create_default_context(),
            )

        # Plain or STARTTLS
        server = smtplib.SMTP(
            self.smtp_settings.host,
            self.smtp_settings.port,
            timeout=self.smtp_settings.timeout,
        )
        if self.smtp_settings.use_tls:
            server.starttls(context=ssl.create_default_context())
        return server

    def _get_domain(self) -> str:
        """Extract domain from from_address for message ID."""
        return self.smtp_settings.from_address.split("@")[-1]


def build_email_sender(smtp_settings: SMTPSettings) -> EmailSender | None:
    """Create the email sender, or None when no SMTP relay is configured."""
    if not smtp_settings.configured:
        return None
    return EmailSender(smtp_settings)
