"""Reservation lifecycle: admission, persistence and calendar reconciliation.

Create, update and cancel all follow the same order: validate and check
policy before touching the store, write the reservation row, then let the
calendar catch up. Only the row decides whether the guest has a table;
calendar trouble is recorded in ``calendar_status`` and nothing else.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.errors import Internal, InvalidInput, NotFound
from backend.app.core.security import AdminIdentity
from backend.app.db.models import CalendarStatus, Reservation, Restaurant
from backend.app.services.calendar_sync import CalendarSync, SyncOutcome, event_details
from backend.app.services.capacity import MAX_BOOKINGS_PER_SLOT, ensure_capacity, fully_booked_slots
from backend.app.services.codes import generate_reservation_code
from backend.app.services.notifications import ConfirmationDetails, EmailSender
from backend.app.services.restaurants import require_restaurant
from backend.app.services.slot_guard import SlotGuard
from backend.app.services.slot_policy import (
    OPERATING_HOURS,
    OpeningHours,
    day_of_week,
    enumerate_slots,
    ensure_open,
    parse_date,
    parse_time,
)

logger = logging.getLogger(__name__)

MIN_GUESTS = 2
MAX_GUESTS = 20


@dataclass(frozen=True)
class Availability:
    restaurant_slug: str
    date: date
    fully_booked_slots: list[str]
    open_slots: list[str]


@dataclass(frozen=True)
class _Branding:
    name: str
    address: str | None
    phone: str | None

    @classmethod
    def of(cls, restaurant: Restaurant) -> "_Branding":
        return cls(restaurant.name, restaurant.address, restaurant.phone)


def _normalize_time(value: str) -> str:
    hour, minute = parse_time(value)
    return f"{hour:02d}:{minute:02d}"


def _check_guests(guests: int) -> None:
    if not MIN_GUESTS <= guests <= MAX_GUESTS:
        raise InvalidInput(f"Party size must be between {MIN_GUESTS} and {MAX_GUESTS}.")


def visit_status(reservation: Reservation, today: date | None = None) -> str:
    today = today or datetime.now(timezone.utc).date()
    return "upcoming" if reservation.date >= today else "past"


class ReservationLifecycle:
    def __init__(
        self,
        *,
        calendar: CalendarSync,
        email: EmailSender,
        slot_guard: SlotGuard,
        default_restaurant_slug: str,
        capacity: int = MAX_BOOKINGS_PER_SLOT,
        code_attempts: int = 5,
        generate_code: Callable[[], str] = generate_reservation_code,
        hours: dict[int, OpeningHours] = OPERATING_HOURS,
    ) -> None:
        self.calendar = calendar
        self.email = email
        self.slot_guard = slot_guard
        self.default_restaurant_slug = default_restaurant_slug
        self.capacity = capacity
        self.code_attempts = max(1, code_attempts)
        self.generate_code = generate_code
        self.hours = hours

    def resolve_restaurant_slug(self, admin: AdminIdentity | None, requested: str | None) -> str:
        """An admin's bound restaurant wins over whatever the client sent."""
        if admin is not None and admin.restaurant_slug:
            return admin.restaurant_slug
        return requested or self.default_restaurant_slug

    async def create(
        self,
        session: AsyncSession,
        *,
        name: str,
        email: str,
        phone: str,
        guests: int,
        date: str,
        time: str,
        restaurant_slug: str | None = None,
        admin: AdminIdentity | None = None,
    ) -> Reservation:
        day = parse_date(date)
        time = _normalize_time(time)
        _check_guests(guests)
        ensure_open(day, time, self.hours)

        slug = self.resolve_restaurant_slug(admin, restaurant_slug)
        branding = _Branding.of(await require_restaurant(session, slug))

        async with self.slot_guard.hold(slug, day, time):
            await ensure_capacity(session, restaurant_slug=slug, day=day, time=time, ceiling=self.capacity)
            reservation = await self._insert(
                session,
                name=name,
                email=email,
                phone=phone,
                guests=guests,
                date=day,
                time=time,
                restaurant_slug=slug,
            )
        logger.info("Reservation %s created for %s %s %s", reservation.reservation_code, slug, day, time)

        outcome = await self.calendar.create(event_details(reservation))
        await self._record_outcome(session, reservation, outcome)
        await self._send_confirmation(reservation, branding)
        return reservation

    async def _insert(self, session: AsyncSession, **fields) -> Reservation:
        for attempt in range(1, self.code_attempts + 1):
            reservation = Reservation(
                **fields,
                reservation_code=self.generate_code(),
                calendar_status=CalendarStatus.PENDING,
                calendar_event_id=None,
            )
            session.add(reservation)
            try:
                await session.commit()
            except IntegrityError as exc:
                # reservation_code is the only unique column we write.
                await session.rollback()
                if attempt == self.code_attempts:
                    logger.error("Gave up generating a unique reservation code after %d attempts", attempt)
                    raise Internal("Failed to save reservation") from exc
                logger.warning("Reservation code collision on %s, regenerating", reservation.reservation_code)
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.exception("Failed to insert reservation")
                raise Internal("Failed to save reservation") from exc
            else:
                return reservation
        raise Internal("Failed to save reservation")

    async def _record_outcome(self, session: AsyncSession, reservation: Reservation, outcome: SyncOutcome) -> None:
        outcome.apply(reservation)
        try:
            await session.commit()
        except SQLAlchemyError:
            # The reservation itself is stored; only its calendar bookkeeping is lost.
            logger.exception("Failed to record calendar status for %s", reservation.reservation_code)
            await session.rollback()
            try:
                await session.refresh(reservation)
            except SQLAlchemyError as exc:
                raise Internal("Failed to reload reservation") from exc

    async def _send_confirmation(self, reservation: Reservation, branding: _Branding) -> None:
        details = ConfirmationDetails(
            reservation_id=reservation.id,
            reservation_code=reservation.reservation_code,
            guest_name=reservation.name,
            guests=reservation.guests,
            date=reservation.date.isoformat(),
            time=reservation.time,
            restaurant_slug=reservation.restaurant_slug,
            restaurant_name=branding.name,
            restaurant_address=branding.address,
            restaurant_phone=branding.phone,
        )
        try:
            await self.email.send_confirmation(reservation.email, details)
        except Exception:
            logger.exception("Failed to send confirmation email for %s", reservation.reservation_code)

    async def lookup(self, session: AsyncSession, code: str) -> Reservation:
        normalized = (code or "").strip().upper()
        if not normalized:
            raise InvalidInput("Missing reservation code.")
        result = await session.execute(select(Reservation).where(Reservation.reservation_code == normalized))
        reservation = result.scalar_one_or_none()
        if reservation is None:
            raise NotFound()
        return reservation

    async def update(
        self,
        session: AsyncSession,
        code: str,
        *,
        date: str | None = None,
        time: str | None = None,
        guests: int | None = None,
        phone: str | None = None,
        restaurant_slug: str | None = None,
    ) -> Reservation:
        """Guest self-service change; holding the code is the only authorization."""
        reservation = await self.lookup(session, code)

        new_day = parse_date(date) if date is not None else reservation.date
        new_time = _normalize_time(time) if time is not None else reservation.time
        new_guests = guests if guests is not None else reservation.guests
        new_phone = phone if phone is not None else reservation.phone
        new_slug = restaurant_slug or reservation.restaurant_slug

        _check_guests(new_guests)
        ensure_open(new_day, new_time, self.hours)
        if new_slug != reservation.restaurant_slug:
            await require_restaurant(session, new_slug)

        async with self.slot_guard.hold(new_slug, new_day, new_time):
            await ensure_capacity(
                session,
                restaurant_slug=new_slug,
                day=new_day,
                time=new_time,
                exclude_id=reservation.id,
                ceiling=self.capacity,
            )
            reservation.date = new_day
            reservation.time = new_time
            reservation.guests = new_guests
            reservation.phone = new_phone
            reservation.restaurant_slug = new_slug
            try:
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.exception("Failed to update reservation %s", reservation.reservation_code)
                raise Internal("Failed to update reservation.") from exc
        logger.info("Reservation %s moved to %s %s %s", reservation.reservation_code, new_slug, new_day, new_time)

        outcome = await self.calendar.upsert(reservation.calendar_event_id, event_details(reservation))
        await self._record_outcome(session, reservation, outcome)
        return reservation

    async def cancel(self, session: AsyncSession, code: str) -> None:
        reservation = await self.lookup(session, code)
        reservation_code = reservation.reservation_code
        if reservation.calendar_event_id:
            await self.calendar.cancel(reservation.calendar_event_id)

        try:
            result = await session.execute(delete(Reservation).where(Reservation.id == reservation.id))
            if result.rowcount == 0:
                # A concurrent cancel got there first.
                await session.rollback()
                raise NotFound()
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.exception("Failed to delete reservation %s", reservation_code)
            raise Internal("Failed to cancel reservation.") from exc
        logger.info("Reservation %s cancelled", reservation_code)

    async def availability(self, session: AsyncSession, *, restaurant_slug: str | None, date: str) -> Availability:
        day = parse_date(date)
        slug = restaurant_slug or self.default_restaurant_slug
        await require_restaurant(session, slug)
        full = await fully_booked_slots(session, restaurant_slug=slug, day=day, ceiling=self.capacity)
        open_slots = [slot for slot in enumerate_slots(day_of_week(day), self.hours) if slot not in full]
        return Availability(restaurant_slug=slug, date=day, fully_booked_slots=full, open_slots=open_slots)

    async def list_reservations(self, session: AsyncSession, *, restaurant_slug: str | None = None) -> list[Reservation]:
        query = select(Reservation).order_by(Reservation.date.desc(), Reservation.time.asc())
        if restaurant_slug:
            query = query.where(Reservation.restaurant_slug == restaurant_slug)
        result = await session.execute(query)
        return list(result.scalars())
