from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core import redis_client as redis_module
from backend.app.core.config import Settings
from backend.app.db.session import get_session
from backend.app.routers.deps import get_settings


router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, bool]:
    """Basic liveness probe."""
    return {"ok": True}


@router.get("/readiness")
async def readiness(
    session: AsyncSession = Depends(get_session),
    app_settings: Settings = Depends(get_settings),
) -> dict[str, bool]:
    """Ensure the database, and Redis when configured, are reachable."""
    await session.execute(text("SELECT 1"))

    if app_settings.REDIS_URL:
        if redis_module.redis_client is None:
            raise HTTPException(status_code=503, detail="Redis unavailable")
        try:
            await redis_module.redis_client.ping()
        except Exception as exc:
            raise HTTPException(status_code=503, detail="Redis unavailable") from exc

    return {"ready": True}
