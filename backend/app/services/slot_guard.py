"""Per-slot serialization of the capacity check and the write that follows.

Two backings: an in-process ``asyncio.Lock`` per key, and a Redis hold
(``SET NX PX``) shared across instances. The Redis hold expires on its own
so a crashed holder cannot wedge the slot.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import date
from typing import Protocol
from uuid import uuid4

import redis.asyncio as redis
from redis.exceptions import WatchError

from backend.app.core.errors import Internal

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 0.05


def slot_key(restaurant_slug: str, day: date, time: str) -> str:
    return f"slot:{restaurant_slug}:{day.strftime('%Y%m%d')}:{time.replace(':', '')}"


class SlotGuard(Protocol):
    def hold(self, restaurant_slug: str, day: date, time: str) -> AbstractAsyncContextManager[None]: ...


class LocalSlotGuard:
    def __init__(self, timeout_seconds: float = 5.0) -> None:
        self.timeout_seconds = timeout_seconds
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, restaurant_slug: str, day: date, time: str) -> AsyncIterator[None]:
        key = slot_key(restaurant_slug, day, time)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.timeout_seconds)
            except asyncio.TimeoutError as exc:
                raise Internal("The selected time is busy, please try again.") from exc
            try:
                yield
            finally:
                lock.release()
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                self._locks.pop(key, None)


class RedisSlotGuard:
    def __init__(
        self,
        client: redis.Redis,
        *,
        ttl_ms: int = 10_000,
        timeout_seconds: float = 5.0,
    ) -> None:
        self.client = client
        self.ttl_ms = ttl_ms
        self.timeout_seconds = timeout_seconds

    async def _acquire(self, key: str, token: str) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout_seconds
        while True:
            acquired = await self.client.set(key, token, nx=True, px=self.ttl_ms)
            if acquired:
                return
            if loop.time() >= deadline:
                logger.warning("Timed out waiting for slot hold %s", key)
                raise Internal("The selected time is busy, please try again.")
            await asyncio.sleep(POLL_INTERVAL_SECONDS)

    async def _release(self, key: str, token: str) -> None:
        """Delete the hold only while it still carries our token."""
        async with self.client.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                if await pipe.get(key) != token:
                    # Expired and taken over by another holder.
                    return
                pipe.multi()
                pipe.delete(key)
                await pipe.execute()
            except WatchError:
                logger.warning("Slot hold %s changed hands before release", key)

    @asynccontextmanager
    async def hold(self, restaurant_slug: str, day: date, time: str) -> AsyncIterator[None]:
        key = f"hold:{slot_key(restaurant_slug, day, time)}"
        token = str(uuid4())
        await self._acquire(key, token)
        try:
            yield
        finally:
            await self._release(key, token)
