"""
Finalization lock tests

In-process and Redis-backed locks, using an in-memory stand-in for the
redis.asyncio calls the lock relies on (SET NX EX and a compare-and-delete
script).
"""

import asyncio
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest

from merit_bot.services.finalization_lock import InMemoryFinalizationLock, RedisFinalizationLock
from merit_bot.utils.finalization_exceptions import FinalizationInProgressError


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.expiries = {}
        self.script_calls = []

    async def set(self, key, value, ex=None, nx=False):
        if nx and key in self.store:
            return None
        self.store[key] = value.encode() if isinstance(value, str) else value
        self.expiries[key] = ex
        return True

    def register_script(self, script):
        async def run(keys, args):
            self.script_calls.append((keys, args))
            key, token = keys[0], args[0].encode()
            if self.store.get(key) == token:
                del self.store[key]
                return 1
            return 0
        return run

    def expire_now(self, key):
        self.store.pop(key, None)


def test_in_memory_lock_is_exclusive_per_game():
    async def scenario():
        lock = InMemoryFinalizationLock()
        assert await lock.acquire(1)
        assert not await lock.acquire(1)
        assert await lock.acquire(2)
        await lock.release(1)
        assert await lock.acquire(1)

    asyncio.run(scenario())


def test_hold_releases_after_error():
    async def scenario():
        lock = InMemoryFinalizationLock()
        with pytest.raises(RuntimeError):
            async with lock.hold(7):
                assert lock.is_held(7)
                raise RuntimeError("boom")
        assert not lock.is_held(7)

    asyncio.run(scenario())


def test_hold_raises_when_already_held():
    async def scenario():
        lock = InMemoryFinalizationLock()
        async with lock.hold(3):
            with pytest.raises(FinalizationInProgressError) as excinfo:
                async with lock.hold(3):
                    pass
            assert excinfo.value.game_id == 3
        assert not lock.is_held(3)

    asyncio.run(scenario())


def test_redis_lock_uses_set_nx_with_expiry():
    async def scenario():
        client = FakeRedis()
        first = RedisFinalizationLock(client, ttl_seconds=30)
        second = RedisFinalizationLock(client, ttl_seconds=30)

        assert await first.acquire(5)
        assert client.expiries['game_finalization_lock:5'] == 30
        assert not await second.acquire(5)

        await first.release(5)
        assert 'game_finalization_lock:5' not in client.store
        assert await second.acquire(5)

    asyncio.run(scenario())


def test_redis_lock_does_not_release_foreign_token():
    async def scenario():
        client = FakeRedis()
        first = RedisFinalizationLock(client, ttl_seconds=30)
        second = RedisFinalizationLock(client, ttl_seconds=30)

        assert await first.acquire(9)
        # The lock expired and another process took it over
        client.expire_now('game_finalization_lock:9')
        assert await second.acquire(9)

        await first.release(9)
        assert 'game_finalization_lock:9' in client.store

    asyncio.run(scenario())


def test_redis_release_is_a_single_compare_and_delete():
    async def scenario():
        client = FakeRedis()
        lock = RedisFinalizationLock(client, ttl_seconds=30)

        assert await lock.acquire(4)
        token = client.store['game_finalization_lock:4'].decode()
        await lock.release(4)

        assert client.script_calls == [(['game_finalization_lock:4'], [token])]
        # Releasing again is a no-op once the token is gone
        await lock.release(4)
        assert len(client.script_calls) == 1

    asyncio.run(scenario())
