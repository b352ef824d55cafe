from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.errors import Internal, InvalidInput, RateLimited
from backend.app.core.security import AdminIdentity
from backend.app.db.session import get_session
from backend.app.routers.deps import client_ip, get_lifecycle, get_rate_limiter, optional_admin, require_admin
from backend.app.routers.schemas import (
    MessageOut,
    ReservationCreatedOut,
    ReservationIn,
    ReservationListOut,
    ReservationLookupEnvelope,
    ReservationLookupOut,
    ReservationOut,
    ReservationUpdatedOut,
    ReservationUpdateIn,
)
from backend.app.services.rate_limit import RateLimiter
from backend.app.services.reservations import ReservationLifecycle, visit_status

router = APIRouter()


def _rate_limit_key(request: Request) -> str:
    return f"reservation:{client_ip(request)}"


async def _read_reservation(request: Request) -> ReservationIn:
    """Parse the body only after the rate limiter has had its say."""
    try:
        data = await request.json()
    except ValueError as exc:
        raise InvalidInput("Invalid JSON body.") from exc
    try:
        return ReservationIn.model_validate(data)
    except ValidationError as exc:
        raise InvalidInput(extra={"errors": exc.errors(include_url=False)}) from exc


@router.post(
    "/reservations",
    response_model=ReservationCreatedOut,
    status_code=status.HTTP_201_CREATED,
    openapi_extra={
        "requestBody": {
            "content": {"application/json": {"schema": ReservationIn.model_json_schema(by_alias=True)}},
            "required": True,
        },
    },
)
async def create_reservation(
    request: Request,
    session: AsyncSession = Depends(get_session),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
    limiter: RateLimiter = Depends(get_rate_limiter),
    admin: AdminIdentity | None = Depends(optional_admin),
) -> ReservationCreatedOut:
    key = _rate_limit_key(request)
    locked = await limiter.check(key)
    if locked.locked:
        raise RateLimited(locked.retry_after_ms, "Too many reservation attempts. Please wait and try again.")

    try:
        payload = await _read_reservation(request)
        reservation = await lifecycle.create(
            session,
            name=payload.name,
            email=payload.email,
            phone=payload.phone,
            guests=payload.guests,
            date=payload.date,
            time=payload.time,
            restaurant_slug=payload.restaurant_slug,
            admin=admin,
        )
    except (InvalidInput, Internal):
        await limiter.record_failure(key)
        raise

    await limiter.record_success(key)
    return ReservationCreatedOut(reservation=ReservationOut.model_validate(reservation))


@router.get("/reservations", response_model=ReservationListOut)
async def list_reservations(
    restaurant: str | None = Query(default=None, min_length=1),
    session: AsyncSession = Depends(get_session),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
    admin: AdminIdentity = Depends(require_admin),
) -> ReservationListOut:
    # Session admins default to their own location; management callers see everything.
    slug = restaurant or admin.restaurant_slug
    reservations = await lifecycle.list_reservations(session, restaurant_slug=slug)
    return ReservationListOut(reservations=[ReservationOut.model_validate(r) for r in reservations])


@router.get("/reservations/{code}", response_model=ReservationLookupEnvelope)
async def lookup_reservation(
    code: str,
    session: AsyncSession = Depends(get_session),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
) -> ReservationLookupEnvelope:
    reservation = await lifecycle.lookup(session, code)
    base = ReservationOut.model_validate(reservation).model_dump()
    return ReservationLookupEnvelope(
        reservation=ReservationLookupOut(**base, status=visit_status(reservation)),
    )


@router.put("/reservations/{code}", response_model=ReservationUpdatedOut)
async def update_reservation(
    code: str,
    payload: ReservationUpdateIn,
    session: AsyncSession = Depends(get_session),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
) -> ReservationUpdatedOut:
    reservation = await lifecycle.update(
        session,
        code,
        date=payload.date,
        time=payload.time,
        guests=payload.guests,
        phone=payload.phone,
        restaurant_slug=payload.restaurant_slug,
    )
    return ReservationUpdatedOut(reservation=ReservationOut.model_validate(reservation))


@router.delete("/reservations/{code}", response_model=MessageOut)
async def cancel_reservation(
    code: str,
    session: AsyncSession = Depends(get_session),
    lifecycle: ReservationLifecycle = Depends(get_lifecycle),
) -> MessageOut:
    await lifecycle.cancel(session, code)
    return MessageOut(message="Reservation cancelled.")
