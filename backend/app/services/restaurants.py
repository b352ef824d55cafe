from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.errors import Conflict, Internal, NotFound
from backend.app.db.models import Restaurant


async def get_restaurant(session: AsyncSession, slug: str) -> Restaurant | None:
    result = await session.execute(select(Restaurant).where(Restaurant.slug == slug))
    return result.scalar_one_or_none()


async def require_restaurant(session: AsyncSession, slug: str) -> Restaurant:
    restaurant = await get_restaurant(session, slug)
    if restaurant is None:
        raise NotFound("Restaurant not found.")
    return restaurant


async def list_restaurants(session: AsyncSession) -> list[Restaurant]:
    result = await session.execute(select(Restaurant).order_by(Restaurant.name))
    return list(result.scalars())


async def create_restaurant(
    session: AsyncSession,
    *,
    slug: str,
    name: str,
    address: str | None = None,
    phone: str | None = None,
) -> Restaurant:
    if await get_restaurant(session, slug) is not None:
        raise Conflict("Restaurant already exists")

    restaurant = Restaurant(slug=slug, name=name, address=address, phone=phone)
    session.add(restaurant)
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise Internal("Failed to create restaurant") from exc
    return restaurant
