from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import Settings
from backend.app.core.errors import RateLimited, Unauthorized, retry_after_seconds
from backend.app.core.security import SESSION_COOKIE, sign_token
from backend.app.db.session import get_session
from backend.app.routers.deps import client_ip, get_rate_limiter, get_settings
from backend.app.routers.schemas import LoginIn, MessageOut
from backend.app.services.admins import authenticate
from backend.app.services.rate_limit import RateLimiter

router = APIRouter()


@router.post("/auth/login", response_model=MessageOut)
async def login(
    payload: LoginIn,
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_session),
    limiter: RateLimiter = Depends(get_rate_limiter),
    app_settings: Settings = Depends(get_settings),
):
    key = f"login:{client_ip(request)}"
    locked = await limiter.check(key)
    if locked.locked:
        raise RateLimited(locked.retry_after_ms)

    identity = await authenticate(session, app_settings, username=payload.username, password=payload.password)
    if identity is None:
        result = await limiter.record_failure(key)
        headers = None
        if result.locked and result.retry_after_ms:
            headers = {"Retry-After": str(retry_after_seconds(result.retry_after_ms))}
        return JSONResponse(
            status_code=Unauthorized.status_code,
            content={"detail": "Invalid credentials", "error": Unauthorized.code},
            headers=headers,
        )

    await limiter.record_success(key)
    token = sign_token(app_settings, username=identity.username, restaurant_slug=identity.restaurant_slug)
    response.set_cookie(
        SESSION_COOKIE,
        token,
        httponly=True,
        samesite="lax",
        secure=app_settings.is_production,
        path="/",
        max_age=app_settings.AUTH_TOKEN_TTL_SECONDS,
    )
    return MessageOut(message="ok")


@router.post("/auth/logout", response_model=MessageOut)
async def logout(response: Response) -> MessageOut:
    response.delete_cookie(SESSION_COOKIE, path="/")
    return MessageOut(message="ok")
