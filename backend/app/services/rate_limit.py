"""Failure-counting rate limiter with lockout.

A key (``login:<ip>``, ``reservation:<ip>``) accumulates failures inside a
sliding window; reaching ``max_fails`` locks the key for ``lock_ms`` and
resets the counter. ``record_success`` clears everything for the key.

``InMemoryRateLimiter`` is only correct for a single process. Use
``RedisRateLimiter`` when more than one instance serves traffic.
"""
from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import redis.asyncio as redis

from backend.app.core.config import Settings


@dataclass(frozen=True)
class RateLimitConfig:
    max_fails: int = 5
    window_ms: int = 10 * 60 * 1000
    lock_ms: int = 15 * 60 * 1000

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateLimitConfig":
        return cls(
            max_fails=settings.RL_MAX_FAILS,
            window_ms=settings.RL_WINDOW_MS,
            lock_ms=settings.RL_LOCK_MS,
        )


@dataclass(frozen=True)
class RateLimitResult:
    locked: bool
    retry_after_ms: int | None = None


UNLOCKED = RateLimitResult(locked=False)


class RateLimiter(Protocol):
    async def check(self, key: str) -> RateLimitResult: ...

    async def record_failure(self, key: str) -> RateLimitResult: ...

    async def record_success(self, key: str) -> None: ...


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class _Entry:
    fails: int
    first: int
    lock_until: int | None = None


class InMemoryRateLimiter:
    def __init__(self, config: RateLimitConfig | None = None, clock: Callable[[], int] = _now_ms) -> None:
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._last_prune = clock()

    def _expired(self, entry: _Entry, now: int) -> bool:
        if entry.lock_until is not None and now < entry.lock_until:
            return False
        return now - entry.first > self.config.window_ms

    def _prune(self, now: int) -> None:
        # At most one sweep per window keeps record_failure amortized O(1).
        if now - self._last_prune < self.config.window_ms:
            return
        self._last_prune = now
        for key in [key for key, entry in self._entries.items() if self._expired(entry, now)]:
            del self._entries[key]

    def _locked(self, entry: _Entry, now: int) -> RateLimitResult | None:
        if entry.lock_until is not None and now < entry.lock_until:
            return RateLimitResult(locked=True, retry_after_ms=entry.lock_until - now)
        return None

    async def check(self, key: str) -> RateLimitResult:
        entry = self._entries.get(key)
        if entry is None:
            return UNLOCKED
        now = self._clock()
        locked = self._locked(entry, now)
        if locked:
            return locked
        if now - entry.first > self.config.window_ms:
            del self._entries[key]
        return UNLOCKED

    async def record_failure(self, key: str) -> RateLimitResult:
        now = self._clock()
        self._prune(now)
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _Entry(fails=0, first=now)
        else:
            locked = self._locked(entry, now)
            if locked:
                return locked
            if now - entry.first > self.config.window_ms:
                entry.fails = 0
                entry.first = now
                entry.lock_until = None

        entry.fails += 1
        if entry.fails >= self.config.max_fails:
            entry.lock_until = now + self.config.lock_ms
            entry.fails = 0
            entry.first = now
            return RateLimitResult(locked=True, retry_after_ms=self.config.lock_ms)
        return UNLOCKED

    async def record_success(self, key: str) -> None:
        self._entries.pop(key, None)


class RedisRateLimiter:
    """Shared backing: INCR counts failures, the lock key lives for lock_ms."""

    def __init__(self, client: redis.Redis, config: RateLimitConfig | None = None) -> None:
        self.client = client
        self.config = config or RateLimitConfig()

    @staticmethod
    def _count_key(key: str) -> str:
        return f"rl:{key}:count"

    @staticmethod
    def _lock_key(key: str) -> str:
        return f"rl:{key}:lock"

    async def check(self, key: str) -> RateLimitResult:
        remaining = await self.client.pttl(self._lock_key(key))
        # -2: no key, -1: no expiry
        if remaining is not None and remaining > 0:
            return RateLimitResult(locked=True, retry_after_ms=int(remaining))
        return UNLOCKED

    async def record_failure(self, key: str) -> RateLimitResult:
        locked = await self.check(key)
        if locked.locked:
            return locked

        count_key = self._count_key(key)
        count = await self.client.incr(count_key)
        if count == 1:
            # Window starts at the first failure and is never extended.
            await self.client.pexpire(count_key, self.config.window_ms)
        if count >= self.config.max_fails:
            until = _now_ms() + self.config.lock_ms
            await self.client.set(self._lock_key(key), str(until), px=self.config.lock_ms)
            await self.client.delete(count_key)
            return RateLimitResult(locked=True, retry_after_ms=self.config.lock_ms)
        return UNLOCKED

    async def record_success(self, key: str) -> None:
        await self.client.delete(self._count_key(key), self._lock_key(key))


def build_rate_limiter(settings: Settings, client: redis.Redis | None) -> RateLimiter:
    config = RateLimitConfig.from_settings(settings)
    if client is not None:
        return RedisRateLimiter(client, config)
    return InMemoryRateLimiter(config)
