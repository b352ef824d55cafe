from contextlib import asynccontextmanager

import redis.asyncio as redis
from fastapi import FastAPI

from backend.app.core.config import Settings, settings
from backend.app.core.errors import register_exception_handlers
from backend.app.core.logging_config import check_environment, configure_logging
from backend.app.core.redis_client import close_redis, init_redis
from backend.app.services.calendar import build_calendar_provider
from backend.app.services.calendar_sync import CalendarSync
from backend.app.services.notifications import build_email_sender
from backend.app.services.rate_limit import build_rate_limiter
from backend.app.services.reservations import ReservationLifecycle
from backend.app.services.slot_guard import LocalSlotGuard, RedisSlotGuard
import backend.app.routers.analytics as analytics
import backend.app.routers.auth as auth
import backend.app.routers.availability as availability
import backend.app.routers.health as health
import backend.app.routers.reservations as reservations
import backend.app.routers.restaurants as restaurants


def configure_services(app: FastAPI, app_settings: Settings, client: redis.Redis | None) -> None:
    """Pick the local or shared backings once and hang them on app.state."""
    if client is not None:
        slot_guard = RedisSlotGuard(
            client,
            ttl_ms=app_settings.SLOT_GUARD_TTL_MS,
            timeout_seconds=app_settings.SLOT_GUARD_TIMEOUT_SECONDS,
        )
    else:
        slot_guard = LocalSlotGuard(timeout_seconds=app_settings.SLOT_GUARD_TIMEOUT_SECONDS)

    app.state.rate_limiter = build_rate_limiter(app_settings, client)
    app.state.lifecycle = ReservationLifecycle(
        calendar=CalendarSync(build_calendar_provider(app_settings)),
        email=build_email_sender(app_settings),
        slot_guard=slot_guard,
        default_restaurant_slug=app_settings.DEFAULT_RESTAURANT_SLUG,
        capacity=app_settings.MAX_BOOKINGS_PER_SLOT,
        code_attempts=app_settings.CODE_INSERT_ATTEMPTS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings)
    check_environment(settings)
    client = await init_redis()
    configure_services(app, settings, client)
    try:
        yield
    finally:
        await close_redis()


app = FastAPI(
    title="Reservations API",
    lifespan=lifespan,
)
register_exception_handlers(app)

app.include_router(health.router, prefix=settings.API_PREFIX)
app.include_router(availability.router, prefix=settings.API_PREFIX)
app.include_router(reservations.router, prefix=settings.API_PREFIX)
app.include_router(restaurants.router, prefix=settings.API_PREFIX)
app.include_router(auth.router, prefix=settings.API_PREFIX)
app.include_router(analytics.router, prefix=settings.API_PREFIX)
