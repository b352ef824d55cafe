from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_session
from backend.app.routers.deps import get_lifecycle
from backend.app.routers.schemas import DATE_PATTERN, AvailabilityOut
from backend.app.services.reservations import ReservationLifecycle

router = APIRouter()


@router.get("/availability", response_model=AvailabilityOut)
async def check_availability(
    date: str = Query(pattern=DATE_PATTERN),
    restaurant: str | None = Query(default=None, min_length=1),
    session: AsyncSession = Depends(get_session),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
) -> AvailabilityOut:
    """Fully booked hour buckets and the remaining open hours for one day."""
    availability = await lifecycle.availability(session, restaurant_slug=restaurant, date=date)
    return AvailabilityOut(
        restaurant_slug=availability.restaurant_slug,
        date=availability.date,
        fully_booked_slots=availability.fully_booked_slots,
        open_slots=availability.open_slots,
    )
