from __future__ import annotations

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.mime.text import MIMEText
from typing import Protocol

from backend.app.core.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfirmationDetails:
    reservation_id: int
    reservation_code: str
    guest_name: str
    guests: int
    date: str
    time: str
    restaurant_slug: str
    restaurant_name: str | None = None
    restaurant_address: str | None = None
    restaurant_phone: str | None = None


class EmailSender(Protocol):
    async def send_confirmation(self, to: str, details: ConfirmationDetails) -> None: ...


def render_confirmation(details: ConfirmationDetails) -> tuple[str, str]:
    venue = details.restaurant_name or details.restaurant_slug
    subject = f"Your reservation at {venue} is confirmed ({details.reservation_code})"
    lines = [
        f"Hi {details.guest_name},",
        "",
        f"Your table for {details.guests} at {venue} is booked for {details.date} at {details.time}.",
        f"Reservation code: {details.reservation_code}",
        "Keep this code to view, change or cancel your reservation.",
    ]
    if details.restaurant_address:
        lines += ["", f"Address: {details.restaurant_address}"]
    if details.restaurant_phone:
        lines.append(f"Phone: {details.restaurant_phone}")
    return subject, "\n".join(lines)


class LogEmailSender:
    """Used when no SMTP host is configured."""

    async def send_confirmation(self, to: str, details: ConfirmationDetails) -> None:
        subject, _ = render_confirmation(details)
        logger.info("Confirmation email (not sent, SMTP unset) to=%s subject=%r", to, subject)


class SmtpEmailSender:
    def __init__(
        self,
        *,
        host: str,
        port: int,
        user: str | None,
        password: str | None,
        from_email: str,
        from_name: str,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_email = from_email
        self.from_name = from_name

    def _send(self, to: str, subject: str, body: str) -> None:
        msg = MIMEText(body, "plain")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to

        with smtplib.SMTP(self.host, self.port) as server:
            server.starttls()
            if self.user and self.password:
                server.login(self.user, self.password)
            server.send_message(msg)

    async def send_confirmation(self, to: str, details: ConfirmationDetails) -> None:
        subject, body = render_confirmation(details)
        await asyncio.to_thread(self._send, to, subject, body)
        logger.info("Sent confirmation for %s", details.reservation_code)


def build_email_sender(settings: Settings) -> EmailSender:
    if not settings.SMTP_HOST:
        return LogEmailSender()
    return SmtpEmailSender(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        user=settings.SMTP_USER,
        password=settings.SMTP_PASSWORD,
        from_email=settings.EMAIL_FROM,
        from_name=settings.EMAIL_FROM_NAME,
    )
