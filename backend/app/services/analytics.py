from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.models import Reservation

WINDOW_DAYS = 90


async def reservation_analytics(
    session: AsyncSession,
    *,
    today: date,
    restaurant_slug: str | None = None,
    window_days: int = WINDOW_DAYS,
) -> dict:
    """Daily and hourly booking counts for the last ``window_days`` days, today included."""
    start = today - timedelta(days=window_days - 1)
    query = select(Reservation.date, Reservation.time, Reservation.guests, Reservation.email).where(
        Reservation.date >= start,
        Reservation.date <= today,
    )
    if restaurant_slug:
        query = query.where(Reservation.restaurant_slug == restaurant_slug)
    rows = await session.execute(query)

    daily: dict[date, dict[str, int]] = {}
    by_hour: dict[str, int] = {}
    emails: set[str] = set()
    for day, time_value, guests, email in rows:
        stats = daily.setdefault(day, {"bookings": 0, "guests": 0})
        stats["bookings"] += 1
        stats["guests"] += guests or 0
        hour = f"{(time_value or '00:00').split(':')[0].zfill(2)}:00"
        by_hour[hour] = by_hour.get(hour, 0) + 1
        if email:
            emails.add(email.lower())

    series = []
    for offset in range(window_days):
        day = start + timedelta(days=offset)
        stats = daily.get(day, {"bookings": 0, "guests": 0})
        series.append({"date": day.isoformat(), **stats})

    return {
        "window": {"start": start.isoformat(), "end": today.isoformat()},
        "daily": series,
        "by_hour": dict(sorted(by_hour.items())),
        "totals": {
            "bookings": sum(item["bookings"] for item in series),
            "guests": sum(item["guests"] for item in series),
            "unique_users": len(emails),
        },
        "today": daily.get(today, {"bookings": 0, "guests": 0}),
    }
