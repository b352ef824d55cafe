import asyncio
from datetime import date

import pytest
from fakeredis import FakeAsyncRedis, FakeServer

from backend.app.core.errors import Internal
from backend.app.services.slot_guard import LocalSlotGuard, RedisSlotGuard, slot_key


DAY = date(2026, 11, 3)


def test_slot_key_is_per_restaurant_day_and_hour():
    assert slot_key("singhs", DAY, "19:00") == "slot:singhs:20261103:1900"
    assert slot_key("downtown", DAY, "19:00") != slot_key("singhs", DAY, "19:00")


@pytest.mark.asyncio
async def test_local_guard_serializes_same_slot():
    guard = LocalSlotGuard(timeout_seconds=1)
    order = []

    async def worker(label):
        async with guard.hold("singhs", DAY, "19:00"):
            order.append(f"{label}-in")
            await asyncio.sleep(0.01)
            order.append(f"{label}-out")

    await asyncio.gather(worker("a"), worker("b"))
    assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])


@pytest.mark.asyncio
async def test_local_guard_times_out_and_cleans_up():
    guard = LocalSlotGuard(timeout_seconds=0.05)
    async with guard.hold("singhs", DAY, "19:00"):
        with pytest.raises(Internal):
            async with guard.hold("singhs", DAY, "19:00"):
                pass
        # other slots are unaffected
        async with guard.hold("singhs", DAY, "20:00"):
            pass
    assert guard._locks == {}


@pytest.mark.asyncio
async def test_redis_guard_blocks_until_released():
    client = FakeAsyncRedis(decode_responses=True)
    guard = RedisSlotGuard(client, ttl_ms=5_000, timeout_seconds=0.2)
    key = "hold:slot:singhs:20261103:1900"

    async with guard.hold("singhs", DAY, "19:00"):
        assert await client.exists(key) == 1
        with pytest.raises(Internal):
            async with guard.hold("singhs", DAY, "19:00"):
                pass
    assert await client.exists(key) == 0

    async with guard.hold("singhs", DAY, "19:00"):
        pass
    await client.aclose()


@pytest.mark.asyncio
async def test_redis_guard_leaves_foreign_hold_alone():
    client = FakeAsyncRedis(decode_responses=True)
    guard = RedisSlotGuard(client, ttl_ms=5_000, timeout_seconds=0.2)
    key = "hold:slot:singhs:20261103:1900"

    async with guard.hold("singhs", DAY, "19:00"):
        # simulate expiry followed by another instance taking the hold
        await client.set(key, "someone-else")
    assert await client.get(key) == "someone-else"
    await client.aclose()


@pytest.mark.asyncio
async def test_redis_guard_release_does_not_clobber_a_hold_taken_mid_release(monkeypatch):
    server = FakeServer()
    client = FakeAsyncRedis(server=server, decode_responses=True)
    other = FakeAsyncRedis(server=server, decode_responses=True)
    guard = RedisSlotGuard(client, ttl_ms=5_000, timeout_seconds=0.2)
    key = "hold:slot:singhs:20261103:1900"

    real_pipeline = client.pipeline

    def pipeline(*args, **kwargs):
        pipe = real_pipeline(*args, **kwargs)
        real_get = pipe.get

        async def get(name):
            value = await real_get(name)
            # another instance grabs the slot between the read and the delete
            await other.set(name, "someone-else")
            return value

        pipe.get = get
        return pipe

    async with guard.hold("singhs", DAY, "19:00"):
        monkeypatch.setattr(client, "pipeline", pipeline)

    assert await other.get(key) == "someone-else"
    await client.aclose()
    await other.aclose()
