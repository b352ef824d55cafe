from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.security import AdminIdentity
from backend.app.db.session import get_session
from backend.app.routers.deps import require_admin
from backend.app.routers.schemas import AnalyticsOut
from backend.app.services.analytics import reservation_analytics

router = APIRouter()


@router.get("/analytics", response_model=AnalyticsOut)
async def analytics(
    restaurant: str | None = Query(default=None, min_length=1),
    session: AsyncSession = Depends(get_session),
    admin: AdminIdentity = Depends(require_admin),
) -> AnalyticsOut:
    """Ninety-day booking summary for the dashboard."""
    summary = await reservation_analytics(
        session,
        today=datetime.now(timezone.utc).date(),
        restaurant_slug=restaurant or admin.restaurant_slug,
    )
    return AnalyticsOut.model_validate(summary)
