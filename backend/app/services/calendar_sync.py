"""Calendar side of the reservation dual-write.

The reservation row is the source of truth. Calendar outcomes only ever
change ``calendar_status``/``calendar_event_id``; they never fail the
reservation operation itself.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from backend.app.db.models import CalendarStatus, Reservation
from backend.app.services.calendar import CalendarProvider, EventDetails

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncOutcome:
    status: CalendarStatus
    event_id: str | None = None

    def apply(self, reservation: Reservation) -> None:
        reservation.calendar_status = self.status
        if self.event_id is not None:
            reservation.calendar_event_id = self.event_id


def event_details(reservation: Reservation) -> EventDetails:
    return EventDetails(
        name=reservation.name,
        email=reservation.email,
        phone=reservation.phone,
        guests=reservation.guests,
        date=reservation.date,
        time=reservation.time,
        reservation_code=reservation.reservation_code,
    )


class CalendarSync:
    def __init__(self, provider: CalendarProvider) -> None:
        self.provider = provider

    async def create(self, details: EventDetails) -> SyncOutcome:
        try:
            event_id = await self.provider.create_event(details)
        except Exception:
            logger.exception("Failed to add reservation %s to calendar", details.reservation_code)
            return SyncOutcome(CalendarStatus.ERROR)
        logger.info("Added reservation %s to calendar", details.reservation_code)
        return SyncOutcome(CalendarStatus.SYNCED, event_id)

    async def update(self, event_id: str, details: EventDetails) -> SyncOutcome:
        try:
            await self.provider.update_event(event_id, details)
        except Exception:
            logger.exception("Failed to sync update of reservation %s to calendar", details.reservation_code)
            return SyncOutcome(CalendarStatus.ERROR)
        return SyncOutcome(CalendarStatus.SYNCED)

    async def upsert(self, event_id: str | None, details: EventDetails) -> SyncOutcome:
        """Update the existing event, or create one if the first sync never landed."""
        if event_id:
            return await self.update(event_id, details)
        return await self.create(details)

    async def cancel(self, event_id: str) -> bool:
        """Best effort; a failed remote cancel never blocks a delete."""
        try:
            await self.provider.cancel_event(event_id)
        except Exception:
            logger.exception("Failed to cancel calendar event %s", event_id)
            return False
        return True
