from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.errors import CapacityExceeded
from backend.app.db.models import Reservation

MAX_BOOKINGS_PER_SLOT = 10


async def count_bookings(
    session: AsyncSession,
    *,
    restaurant_slug: str,
    day: date,
    time: str,
    exclude_id: int | None = None,
) -> int:
    """Count reservations for an exact (restaurant, date, time) slot."""
    query = select(func.count(Reservation.id)).where(
        Reservation.restaurant_slug == restaurant_slug,
        Reservation.date == day,
        Reservation.time == time,
    )
    if exclude_id is not None:
        query = query.where(Reservation.id != exclude_id)
    result = await session.execute(query)
    return int(result.scalar_one())


async def ensure_capacity(
    session: AsyncSession,
    *,
    restaurant_slug: str,
    day: date,
    time: str,
    exclude_id: int | None = None,
    ceiling: int = MAX_BOOKINGS_PER_SLOT,
) -> int:
    """Raise CapacityExceeded when the slot already holds ``ceiling`` bookings."""
    booked = await count_bookings(
        session,
        restaurant_slug=restaurant_slug,
        day=day,
        time=time,
        exclude_id=exclude_id,
    )
    if booked >= ceiling:
        raise CapacityExceeded()
    return booked


async def fully_booked_slots(
    session: AsyncSession,
    *,
    restaurant_slug: str,
    day: date,
    ceiling: int = MAX_BOOKINGS_PER_SLOT,
) -> list[str]:
    """Return the ``HH:00`` hour buckets at or over ``ceiling`` for one day."""
    rows = await session.execute(
        select(Reservation.time).where(
            Reservation.restaurant_slug == restaurant_slug,
            Reservation.date == day,
        )
    )
    counts: dict[str, int] = {}
    for (time_value,) in rows:
        bucket = f"{time_value.split(':')[0]}:00"
        counts[bucket] = counts.get(bucket, 0) + 1
    return sorted(bucket for bucket, booked in counts.items() if booked >= ceiling)
