"""Google Calendar client for reservation events.

The Google API client is synchronous, so every call runs in a worker thread
and is bounded by ``timeout_seconds``. Any failure is re-raised as
``CalendarError``; deciding what a failure means is left to ``CalendarSync``.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Protocol

import httplib2
from google.oauth2 import service_account
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from backend.app.core.config import Settings

logger = logging.getLogger(__name__)

CALENDAR_SCOPES = ["https://www.googleapis.com/auth/calendar.events"]
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
EVENT_DURATION = timedelta(hours=1)


class CalendarError(Exception):
    pass


@dataclass(frozen=True)
class EventDetails:
    name: str
    email: str
    phone: str
    guests: int
    date: date
    time: str
    reservation_code: str | None = None


class CalendarProvider(Protocol):
    async def create_event(self, details: EventDetails) -> str: ...

    async def update_event(self, event_id: str, details: EventDetails) -> None: ...

    async def cancel_event(self, event_id: str) -> None: ...


def build_event_body(
    details: EventDetails,
    *,
    timezone: str = "UTC",
    invite_attendees: bool = False,
    with_reminders: bool = True,
) -> dict[str, Any]:
    """Build a one-hour event; times are wall-clock in ``timezone``."""
    hour, minute = (int(part) for part in details.time.split(":"))
    start = datetime.combine(details.date, datetime.min.time()).replace(hour=hour, minute=minute)
    end = start + EVENT_DURATION

    body: dict[str, Any] = {
        "summary": f"Reservation: {details.name} ({details.guests} guests)",
        "description": (
            f"Reservation ID: {details.reservation_code or 'N/A'}\n"
            f"Reservation for {details.guests} guest(s) made by {details.name} ({details.email}).\n"
            f"Phone: {details.phone}"
        ),
        "start": {"dateTime": start.isoformat(), "timeZone": timezone},
        "end": {"dateTime": end.isoformat(), "timeZone": timezone},
    }
    if with_reminders:
        body["reminders"] = {
            "useDefault": False,
            "overrides": [
                {"method": "email", "minutes": 24 * 60},
                {"method": "popup", "minutes": 120},
            ],
        }
    if invite_attendees:
        body["attendees"] = [{"email": details.email}]
    return body


class GoogleCalendarProvider:
    def __init__(
        self,
        *,
        service_account_email: str,
        private_key: str,
        calendar_id: str,
        timezone: str = "UTC",
        invite_attendees: bool = False,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.calendar_id = calendar_id
        self.timezone = timezone
        self.invite_attendees = invite_attendees
        self.timeout_seconds = timeout_seconds
        self._credentials = service_account.Credentials.from_service_account_info(
            {
                "client_email": service_account_email,
                # Keys pasted into env files usually carry literal "\n".
                "private_key": private_key.replace("\\n", "\n"),
                "token_uri": GOOGLE_TOKEN_URI,
            },
            scopes=CALENDAR_SCOPES,
        )
        self._service = None
        self._service_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "GoogleCalendarProvider":
        return cls(
            service_account_email=settings.GOOGLE_SERVICE_ACCOUNT_EMAIL or "",
            private_key=settings.GOOGLE_PRIVATE_KEY or "",
            calendar_id=settings.GOOGLE_CALENDAR_ID or "",
            timezone=settings.GOOGLE_CALENDAR_TIMEZONE,
            invite_attendees=settings.GOOGLE_CALENDAR_INVITE_ATTENDEES,
            timeout_seconds=settings.CALENDAR_TIMEOUT_SECONDS,
        )

    def _events(self):
        with self._service_lock:
            if self._service is None:
                self._service = build("calendar", "v3", credentials=self._credentials, cache_discovery=False)
        return self._service.events()

    def _authorized_http(self) -> AuthorizedHttp:
        # httplib2 connections are not thread-safe; every worker call gets its own.
        return AuthorizedHttp(self._credentials, http=httplib2.Http(timeout=self.timeout_seconds))

    async def _run(self, action: str, request_factory) -> dict[str, Any]:
        def execute() -> dict[str, Any]:
            return request_factory(self._events()).execute(http=self._authorized_http())

        try:
            return await asyncio.wait_for(asyncio.to_thread(execute), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise CalendarError(f"Timed out trying to {action} Google Calendar event.") from exc
        except HttpError as exc:
            logger.error(
                "Google Calendar %s failed: status=%s reason=%s",
                action,
                exc.resp.status,
                exc.reason,
            )
            raise CalendarError(f"Failed to {action} Google Calendar event.") from exc
        except Exception as exc:
            raise CalendarError(f"Failed to {action} Google Calendar event.") from exc

    async def create_event(self, details: EventDetails) -> str:
        body = build_event_body(details, timezone=self.timezone, invite_attendees=self.invite_attendees)
        created = await self._run(
            "create",
            lambda events: events.insert(calendarId=self.calendar_id, body=body),
        )
        event_id = created.get("id")
        if not event_id:
            raise CalendarError("Google Calendar returned an event without an id.")
        return event_id

    async def update_event(self, event_id: str, details: EventDetails) -> None:
        body = build_event_body(
            details,
            timezone=self.timezone,
            invite_attendees=self.invite_attendees,
            with_reminders=False,
        )
        await self._run(
            "update",
            lambda events: events.update(calendarId=self.calendar_id, eventId=event_id, body=body),
        )

    async def cancel_event(self, event_id: str) -> None:
        await self._run(
            "cancel",
            lambda events: events.delete(calendarId=self.calendar_id, eventId=event_id),
        )


class UnconfiguredCalendarProvider:
    """Stand-in when no Google credentials are set; every call fails."""

    async def create_event(self, details: EventDetails) -> str:
        raise CalendarError("Missing Google Calendar credentials in environment variables.")

    async def update_event(self, event_id: str, details: EventDetails) -> None:
        raise CalendarError("Missing Google Calendar credentials in environment variables.")

    async def cancel_event(self, event_id: str) -> None:
        raise CalendarError("Missing Google Calendar credentials in environment variables.")


def build_calendar_provider(settings: Settings) -> CalendarProvider:
    if not settings.calendar_configured:
        logger.warning("Google Calendar is not configured; reservations will be flagged calendar Error")
        return UnconfiguredCalendarProvider()
    return GoogleCalendarProvider.from_settings(settings)
