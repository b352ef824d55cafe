import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import Settings
from backend.app.core.errors import Conflict, Internal, NotFound
from backend.app.core.security import AdminIdentity, hash_password, verify_password
from backend.app.db.models import AdminUser
from backend.app.services.restaurants import get_restaurant

logger = logging.getLogger(__name__)


def _non_empty(value: str | None) -> str | None:
    return value if value and value.strip() else None


async def _env_identity(settings: Settings, username: str, password: str) -> AdminIdentity | None:
    expected_user = _non_empty(settings.ADMIN_USERNAME) or _non_empty(settings.DEV_ADMIN_USERNAME)
    if not expected_user or username != expected_user:
        return None

    password_hash = _non_empty(settings.ADMIN_PASSWORD_HASH)
    if password_hash:
        ok = await asyncio.to_thread(verify_password, password, password_hash)
    else:
        # Plain dev password is never accepted in production.
        expected_pass = _non_empty(settings.DEV_ADMIN_PASSWORD)
        ok = not settings.is_production and expected_pass is not None and password == expected_pass
    if not ok:
        return None
    slug = settings.DEV_RESTAURANT_SLUG or settings.DEFAULT_RESTAURANT_SLUG
    return AdminIdentity(username=username, restaurant_slug=slug, via="session")


async def authenticate(session: AsyncSession, settings: Settings, *, username: str, password: str) -> AdminIdentity | None:
    """Check admin_users first, then the environment-configured admin."""
    if not username:
        return None

    result = await session.execute(select(AdminUser).where(AdminUser.username == username))
    user = result.scalar_one_or_none()
    if user is not None and await asyncio.to_thread(verify_password, password, user.password_hash):
        return AdminIdentity(username=user.username, restaurant_slug=user.restaurant_slug, via="session")

    identity = await _env_identity(settings, username, password)
    if identity is None:
        logger.debug("Invalid admin credentials for %r", username)
    return identity


async def create_admin_user(
    session: AsyncSession,
    settings: Settings,
    *,
    username: str,
    password: str,
    restaurant_slug: str,
) -> AdminUser:
    if await get_restaurant(session, restaurant_slug) is None:
        raise NotFound("Restaurant not found")

    existing = await session.execute(select(AdminUser.id).where(AdminUser.username == username))
    if existing.first() is not None:
        raise Conflict("Username already exists")

    password_hash = await asyncio.to_thread(hash_password, password, settings.BCRYPT_ROUNDS)
    user = AdminUser(username=username, password_hash=password_hash, restaurant_slug=restaurant_slug)
    session.add(user)
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise Internal("Failed to create admin user") from exc
    return user
