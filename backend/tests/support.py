"""Fakes and seed helpers shared by the test modules."""
from datetime import date, timedelta

from backend.app.db.models import CalendarStatus, Reservation
from backend.app.services.calendar import CalendarError, EventDetails
from backend.app.services.slot_policy import day_of_week


MANAGEMENT_SECRET = "mgmt-secret"


def upcoming(dow: int, weeks_ahead: int = 1) -> date:
    """First date after today falling on ``dow`` (0=Sunday), pushed ``weeks_ahead - 1`` weeks further."""
    day = date.today() + timedelta(days=1)
    while day_of_week(day) != dow:
        day += timedelta(days=1)
    return day + timedelta(weeks=weeks_ahead - 1)


class FakeCalendar:
    def __init__(self, *, fail_create=False, fail_update=False, fail_cancel=False):
        self.fail_create = fail_create
        self.fail_update = fail_update
        self.fail_cancel = fail_cancel
        self.created: list[EventDetails] = []
        self.updated: list[tuple[str, EventDetails]] = []
        self.cancelled: list[str] = []

    async def create_event(self, details):
        self.created.append(details)
        if self.fail_create:
            raise CalendarError("calendar down")
        return f"evt-{len(self.created)}"

    async def update_event(self, event_id, details):
        self.updated.append((event_id, details))
        if self.fail_update:
            raise CalendarError("calendar down")

    async def cancel_event(self, event_id):
        self.cancelled.append(event_id)
        if self.fail_cancel:
            raise CalendarError("calendar down")


class RecordingEmail:
    def __init__(self, *, fail=False):
        self.fail = fail
        self.sent = []

    async def send_confirmation(self, to, details):
        self.sent.append((to, details))
        if self.fail:
            raise ConnectionError("smtp down")


async def seed_reservations(session_factory, *, count, day, time, restaurant_slug="singhs", prefix="S"):
    async with session_factory() as session:
        for index in range(count):
            session.add(
                Reservation(
                    name=f"Seed {index}",
                    email=f"seed{index}@example.com",
                    phone="+37120000000",
                    guests=2,
                    date=day,
                    time=time,
                    reservation_code=f"{prefix}{index:05d}"[:6],
                    restaurant_slug=restaurant_slug,
                    calendar_status=CalendarStatus.SYNCED,
                )
            )
        await session.commit()
