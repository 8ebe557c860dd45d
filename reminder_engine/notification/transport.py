"""SMTP transport: one message, one attempt.

Retries, timeouts and pacing belong to the sender and dispatcher; this
module only turns a ``Notification`` into a MIME message and hands it to
the relay.  Any failure propagates to the caller.
"""
from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass, field
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    subtype: str = "octet-stream"


@dataclass(frozen=True)
class Notification:
    recipient: str
    subject: str
    body: str
    attachments: tuple[Attachment, ...] = field(default_factory=tuple)


class NotificationTransport(Protocol):
    def deliver(self, notification: Notification) -> None: ...


class SmtpTransport:
    """Deliver notifications through an SMTP relay."""

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int = 587,
        *,
        username: str | None = None,
        password: str | None = None,
        from_address: str = "noreply@notifications.local",
        sender_name: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.sender_name = sender_name
        self.timeout = timeout

    @property
    def formatted_sender(self) -> str:
        if self.sender_name:
            return formataddr((self.sender_name, self.from_address))
        return self.from_address

    def build_message(self, notification: Notification) -> MIMEMultipart:
        msg = MIMEMultipart("mixed")
        msg["Subject"] = notification.subject
        msg["From"] = self.formatted_sender
        msg["To"] = notification.recipient
        msg.attach(MIMEText(notification.body, "html", "utf-8"))
        for attachment in notification.attachments:
            part = MIMEApplication(attachment.content, _subtype=attachment.subtype)
            part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
            msg.attach(part)
        return msg

    def deliver(self, notification: Notification) -> None:
        msg = self.build_message(notification)
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
            if self.username and self.password:
                server.starttls()
                server.login(self.username, self.password)
            server.sendmail(self.from_address, [notification.recipient], msg.as_string())
        logger.debug("Relay %s:%d accepted message %r", self.smtp_host, self.smtp_port, notification.subject)
