from dataclasses import replace
from datetime import date

import pytest
from google_auth_httplib2 import AuthorizedHttp

from backend.app.db.models import CalendarStatus, Reservation
from backend.app.services.calendar import (
    EventDetails,
    GoogleCalendarProvider,
    UnconfiguredCalendarProvider,
    build_event_body,
)
from backend.app.services.calendar_sync import CalendarSync, SyncOutcome

from support import FakeCalendar


DETAILS = EventDetails(
    name="Asha",
    email="asha@example.com",
    phone="+37120000000",
    guests=4,
    date=date(2026, 11, 3),
    time="19:00",
    reservation_code="AB12CD",
)


def test_event_body_is_one_hour_wall_clock():
    body = build_event_body(DETAILS, timezone="Europe/Riga")
    assert body["start"] == {"dateTime": "2026-11-03T19:00:00", "timeZone": "Europe/Riga"}
    assert body["end"] == {"dateTime": "2026-11-03T20:00:00", "timeZone": "Europe/Riga"}
    assert body["summary"] == "Reservation: Asha (4 guests)"
    assert "Reservation ID: AB12CD" in body["description"]
    assert "recurrence" not in body
    assert "attendees" not in body
    assert body["reminders"]["useDefault"] is False


def test_event_body_late_slot_crosses_midnight():
    body = build_event_body(replace(DETAILS, time="23:00"))
    assert body["end"]["dateTime"] == "2026-11-04T00:00:00"


def test_attendees_only_when_enabled():
    body = build_event_body(DETAILS, invite_attendees=True, with_reminders=False)
    assert body["attendees"] == [{"email": "asha@example.com"}]
    assert "reminders" not in body


@pytest.mark.asyncio
async def test_create_success_returns_synced_with_id():
    provider = FakeCalendar()
    outcome = await CalendarSync(provider).create(DETAILS)
    assert outcome == SyncOutcome(CalendarStatus.SYNCED, "evt-1")


@pytest.mark.asyncio
async def test_create_failure_becomes_error_status():
    outcome = await CalendarSync(FakeCalendar(fail_create=True)).create(DETAILS)
    assert outcome.status is CalendarStatus.ERROR
    assert outcome.event_id is None


@pytest.mark.asyncio
async def test_upsert_updates_existing_event():
    provider = FakeCalendar()
    outcome = await CalendarSync(provider).upsert("evt-9", DETAILS)
    assert outcome == SyncOutcome(CalendarStatus.SYNCED)
    assert provider.updated == [("evt-9", DETAILS)]
    assert provider.created == []


@pytest.mark.asyncio
async def test_upsert_creates_when_never_synced():
    provider = FakeCalendar()
    outcome = await CalendarSync(provider).upsert(None, DETAILS)
    assert outcome == SyncOutcome(CalendarStatus.SYNCED, "evt-1")


@pytest.mark.asyncio
async def test_update_failure_becomes_error_status():
    outcome = await CalendarSync(FakeCalendar(fail_update=True)).update("evt-1", DETAILS)
    assert outcome.status is CalendarStatus.ERROR


@pytest.mark.asyncio
async def test_cancel_failure_is_swallowed():
    provider = FakeCalendar(fail_cancel=True)
    assert await CalendarSync(provider).cancel("evt-1") is False
    assert provider.cancelled == ["evt-1"]


@pytest.mark.asyncio
async def test_unconfigured_provider_flags_error_and_never_raises():
    sync = CalendarSync(UnconfiguredCalendarProvider())
    assert (await sync.create(DETAILS)).status is CalendarStatus.ERROR
    assert (await sync.update("evt-1", DETAILS)).status is CalendarStatus.ERROR
    assert await sync.cancel("evt-1") is False


def test_outcome_apply_keeps_existing_event_id_on_error():
    reservation = Reservation(calendar_event_id="evt-1", calendar_status=CalendarStatus.SYNCED)
    SyncOutcome(CalendarStatus.ERROR).apply(reservation)
    assert reservation.calendar_status is CalendarStatus.ERROR
    assert reservation.calendar_event_id == "evt-1"


class RecordingRequest:
    def __init__(self, seen):
        self.seen = seen

    def execute(self, http=None):
        self.seen.append(http)
        return {"id": "evt-google"}


class RecordingEvents:
    def __init__(self):
        self.seen = []

    def insert(self, **kwargs):
        return RecordingRequest(self.seen)


def bare_google_provider(events):
    provider = GoogleCalendarProvider.__new__(GoogleCalendarProvider)
    provider.calendar_id = "primary"
    provider.timezone = "UTC"
    provider.invite_attendees = False
    provider.timeout_seconds = 5
    provider._credentials = object()
    provider._events = lambda: events
    return provider


@pytest.mark.asyncio
async def test_google_calls_each_get_their_own_http_client():
    events = RecordingEvents()
    provider = bare_google_provider(events)

    assert await provider.create_event(DETAILS) == "evt-google"
    assert await provider.create_event(DETAILS) == "evt-google"

    first, second = events.seen
    assert isinstance(first, AuthorizedHttp)
    assert isinstance(second, AuthorizedHttp)
    assert first is not second
    assert first.http is not second.http
