from fastapi import Depends, Request

from backend.app.core.config import Settings, settings
from backend.app.core.errors import Unauthorized
from backend.app.core.security import SECRET_HEADER, SESSION_COOKIE, AdminIdentity, resolve_admin
from backend.app.services.rate_limit import RateLimiter
from backend.app.services.reservations import ReservationLifecycle


def get_settings() -> Settings:
    return settings


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_lifecycle(request: Request) -> ReservationLifecycle:
    return request.app.state.lifecycle


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client is not None:
        return request.client.host
    return "unknown"


def optional_admin(request: Request, app_settings: Settings = Depends(get_settings)) -> AdminIdentity | None:
    return resolve_admin(
        app_settings,
        secret_header=request.headers.get(SECRET_HEADER),
        session_token=request.cookies.get(SESSION_COOKIE),
    )


def require_admin(admin: AdminIdentity | None = Depends(optional_admin)) -> AdminIdentity:
    if admin is None:
        raise Unauthorized()
    return admin
