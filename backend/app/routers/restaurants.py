from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import Settings
from backend.app.core.security import AdminIdentity
from backend.app.db.session import get_session
from backend.app.routers.deps import get_settings, require_admin
from backend.app.routers.schemas import (
    AdminUserCreatedOut,
    AdminUserIn,
    AdminUserOut,
    RestaurantCreatedOut,
    RestaurantIn,
    RestaurantListOut,
    RestaurantOut,
)
from backend.app.services.admins import create_admin_user
from backend.app.services.restaurants import create_restaurant, list_restaurants

router = APIRouter()


@router.get("/restaurants", response_model=RestaurantListOut)
async def restaurants_index(session: AsyncSession = Depends(get_session)) -> RestaurantListOut:
    restaurants = await list_restaurants(session)
    return RestaurantListOut(restaurants=[RestaurantOut.model_validate(r) for r in restaurants])


@router.post("/admin/restaurants", response_model=RestaurantCreatedOut, status_code=status.HTTP_201_CREATED)
async def add_restaurant(
    payload: RestaurantIn,
    session: AsyncSession = Depends(get_session),
    admin: AdminIdentity = Depends(require_admin),
) -> RestaurantCreatedOut:
    restaurant = await create_restaurant(
        session,
        slug=payload.slug,
        name=payload.name,
        address=payload.address,
        phone=payload.phone,
    )
    return RestaurantCreatedOut(restaurant=RestaurantOut.model_validate(restaurant))


@router.post("/admin/admin-users", response_model=AdminUserCreatedOut, status_code=status.HTTP_201_CREATED)
async def add_admin_user(
    payload: AdminUserIn,
    session: AsyncSession = Depends(get_session),
    app_settings: Settings = Depends(get_settings),
    admin: AdminIdentity = Depends(require_admin),
) -> AdminUserCreatedOut:
    user = await create_admin_user(
        session,
        app_settings,
        username=payload.username,
        password=payload.password,
        restaurant_slug=payload.restaurant_slug,
    )
    return AdminUserCreatedOut(user=AdminUserOut.model_validate(user))
