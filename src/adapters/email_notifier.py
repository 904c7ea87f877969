"""SMTP email notification adapter.

Email is the "silent" channel: the router moves it to the front at night.
"""

from __future__ import annotations

import asyncio
import html
import smtplib
from email.message import EmailMessage
from typing import Any, Mapping

from adapters.notification_formatting import format_notification, headline
from core.errors import AdapterSendFailed


class EmailNotifier:
    """Notifier adapter that sends one email per notification over SMTP."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        recipient: str,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        name: str = "email",
        enabled: bool = True,
        timeout: float = 15,
    ) -> None:
        self.name = name
        self.enabled = enabled
        self._host = host
        self._port = port
        self._sender = sender
        self._recipient = recipient
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout

    def build_message(self, text: str, options: Mapping[str, Any]) -> EmailMessage:
        message = EmailMessage()
        subject = options.get("subject") or headline(options) or "Pulse notification"
        message["Subject"] = str(subject)
        message["From"] = self._sender
        message["To"] = self._recipient
        message.set_content(format_notification(text, options, mode="plain"))
        html_body = options.get("html")
        if html_body:
            if not isinstance(html_body, str):
                html_body = f"<pre>{html.escape(text)}</pre>"
            message.add_alternative(html_body, subtype="html")
        return message

    def _send_blocking(self, message: EmailMessage) -> None:
        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
                if self._use_tls:
                    smtp.starttls()
                if self._username and self._password:
                    smtp.login(self._username, self._password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise AdapterSendFailed(self.name, str(e)) from e

    async def send(self, text: str, options: Mapping[str, Any]) -> None:
        await asyncio.to_thread(self._send_blocking, self.build_message(text, options))

    async def test(self) -> dict[str, Any]:
        try:
            await self.send("🔔 Email notifier test message", {"type": "info", "html": True})
            return {"success": True, "message": "Email notifier is working"}
        except Exception as exc:
            return {"success": False, "message": str(exc)}
