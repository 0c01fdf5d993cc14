"""Outbound mail transports."""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import smtplib
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.message import EmailMessage
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional, Protocol, Tuple
from uuid import uuid4

from settings import Settings, get_settings

logger = logging.getLogger(__name__)

OUTBOX_MEMORY_LIMIT = 100


class MailerError(Exception):
    """Raised when a message could not be handed to the transport."""


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class OutgoingMessage:
    sender: str
    to: Tuple[str, ...]
    subject: str
    html: str
    text: str = ""
    cc: Tuple[str, ...] = ()
    attachments: Tuple[Attachment, ...] = field(default_factory=tuple)
    priority: str = "normal"

    @property
    def all_recipients(self) -> Tuple[str, ...]:
        return self.to + self.cc


class Mailer(Protocol):
    async def send(self, message: OutgoingMessage) -> str:
        """Deliver ``message`` and return its message id; raise MailerError on failure."""
        ...


def message_to_payload(message_id: str, message: OutgoingMessage) -> Dict[str, object]:
    return {
        "message_id": message_id,
        "queued_at": datetime.now(timezone.utc).isoformat(),
        "from": message.sender,
        "to": list(message.to),
        "cc": list(message.cc),
        "subject": message.subject,
        "priority": message.priority,
        "html": message.html,
        "text": message.text,
        "attachments": [
            {
                "filename": attachment.filename,
                "content_type": attachment.content_type,
                "content_base64": base64.b64encode(attachment.content).decode("ascii"),
            }
            for attachment in message.attachments
        ],
    }


class OutboxMailer:
    """Writes every message to an outbox directory instead of a mail server.

    Only the newest ``memory_limit`` messages are kept in memory; older ones
    remain readable from their JSON files when ``root_path`` is set.
    """

    def __init__(
        self, name: str, root_path: Optional[Path] = None, memory_limit: int = OUTBOX_MEMORY_LIMIT
    ) -> None:
        if memory_limit <= 0:
            raise ValueError("Outbox memory limit must be positive.")
        self.name = name
        self.root_path = root_path
        self.memory_limit = memory_limit
        self._messages: OrderedDict[str, OutgoingMessage] = OrderedDict()
        self._lock = Lock()
        if root_path:
            root_path.mkdir(parents=True, exist_ok=True)

    async def send(self, message: OutgoingMessage) -> str:
        if not message.to and not message.cc:
            raise MailerError("Message has no recipients.")
        message_id = f"{uuid4()}@{self.name}"
        with self._lock:
            self._messages[message_id] = message
            if self.root_path:
                path = self.root_path / f"{message_id}.json"
                try:
                    path.write_text(json.dumps(message_to_payload(message_id, message), indent=2))
                except OSError as exc:
                    self._messages.pop(message_id, None)
                    raise MailerError(f"Could not write {path}: {exc}") from exc
            while len(self._messages) > self.memory_limit:
                self._messages.popitem(last=False)
        logger.info(
            "Queued message %r in outbox",
            message.subject,
            extra={"message_id": message_id, "recipient_count": len(message.all_recipients)},
        )
        return message_id

    def get_message(self, message_id: str) -> OutgoingMessage:
        with self._lock:
            message = self._messages.get(message_id)
        if message is None:
            raise KeyError(f"Message {message_id!r} not found in outbox {self.name!r}.")
        return message

    def list_messages(self) -> List[str]:
        with self._lock:
            keys = set(self._messages)
        if self.root_path:
            for path in self.root_path.glob("*.json"):
                keys.add(path.stem)
        return sorted(keys)


def build_email(message: OutgoingMessage) -> EmailMessage:
    email = EmailMessage()
    email["From"] = message.sender
    email["To"] = ", ".join(message.to)
    if message.cc:
        email["Cc"] = ", ".join(message.cc)
    email["Subject"] = message.subject
    if message.priority == "high":
        email["X-Priority"] = "1"
        email["Importance"] = "high"
    email.set_content(message.text or "This message requires an HTML-capable mail client.")
    email.add_alternative(message.html, subtype="html")
    for attachment in message.attachments:
        maintype, _, subtype = attachment.content_type.partition("/")
        email.add_attachment(
            attachment.content,
            maintype=maintype or "application",
            subtype=subtype or "octet-stream",
            filename=attachment.filename,
        )
    return email


class SmtpMailer:
    """Delivers messages through an SMTP relay using STARTTLS when credentials are set."""

    def __init__(
        self,
        host: str,
        port: int,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 15.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout = timeout

    async def send(self, message: OutgoingMessage) -> str:
        email = build_email(message)
        message_id = f"<{uuid4()}@{self.host}>"
        email["Message-ID"] = message_id
        try:
            await asyncio.to_thread(self._deliver, email, list(message.all_recipients))
        except (smtplib.SMTPException, OSError) as exc:
            raise MailerError(f"SMTP delivery via {self.host}:{self.port} failed: {exc}") from exc
        return message_id

    def _deliver(self, email: EmailMessage, recipients: List[str]) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as client:
            if self.username:
                client.starttls()
                client.login(self.username, self.password or "")
            client.send_message(email, to_addrs=recipients)


def build_default_mailer(settings: Optional[Settings] = None) -> Mailer:
    """Select the mail transport named in the settings."""

    settings = settings or get_settings()
    if settings.mailer_backend == "smtp":
        return SmtpMailer(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            timeout=settings.mailer_timeout,
        )
    if settings.mailer_backend == "outbox":
        root = Path(settings.outbox_path) if settings.outbox_path else None
        return OutboxMailer(name="outbox", root_path=root)
    raise ValueError(f"Unsupported mailer backend: {settings.mailer_backend!r}")
