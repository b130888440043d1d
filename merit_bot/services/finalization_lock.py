"""
Per-game finalization locks.

A lock is held for the whole finalize_game call so that two concurrent
first-time invocations for the same game cannot both pass the
"already finalized" check. The unique constraint on
game_achievements.game_id remains the guard of record; the lock keeps the
losing invocation from doing any work at all.

Acquisition never waits: a second caller gets FinalizationInProgressError.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Dict, Hashable, Set

from merit_bot.config import Config
from merit_bot.constants import LockConstants
from merit_bot.utils.finalization_exceptions import FinalizationInProgressError
from merit_bot.utils.redis_utils import RedisUtils

logger = logging.getLogger(__name__)


class FinalizationLock(ABC):
    """Non-blocking mutual exclusion keyed by game id."""

    @abstractmethod
    async def acquire(self, game_id: Hashable) -> bool:
        """Try to take the lock. Returns False when someone else holds it."""
        pass

    @abstractmethod
    async def release(self, game_id: Hashable) -> None:
        pass

    @asynccontextmanager
    async def hold(self, game_id: Hashable):
        """Hold the lock for the duration of the block."""
        if not await self.acquire(game_id):
            logger.info(f"Finalization lock for game {game_id} is already held")
            raise FinalizationInProgressError(game_id)
        try:
            yield
        finally:
            await self.release(game_id)


class InMemoryFinalizationLock(FinalizationLock):
    """Lock shared by all callers in one process (one event loop)."""

    def __init__(self):
        self._held: Set[Hashable] = set()

    async def acquire(self, game_id: Hashable) -> bool:
        # No await between the check and the add, so this is atomic under asyncio
        if game_id in self._held:
            return False
        self._held.add(game_id)
        return True

    async def release(self, game_id: Hashable) -> None:
        self._held.discard(game_id)

    def is_held(self, game_id: Hashable) -> bool:
        return game_id in self._held


# Delete the key only while it still holds our token
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class RedisFinalizationLock(FinalizationLock):
    """
    Lock shared across processes through Redis SET NX with expiry.

    Release is a compare-and-delete script, so a holder whose key expired
    never removes a lock another process has taken since.
    """

    def __init__(self, redis_client, ttl_seconds: int = None):
        self.redis_client = redis_client
        self._release_script = redis_client.register_script(RELEASE_SCRIPT)
        self.ttl_seconds = ttl_seconds or Config.FINALIZATION_LOCK_TTL
        self._tokens: Dict[Hashable, str] = {}

    @staticmethod
    def _key(game_id: Hashable) -> str:
        return f"{LockConstants.REDIS_KEY_PREFIX}:{game_id}"

    async def acquire(self, game_id: Hashable) -> bool:
        token = uuid.uuid4().hex
        # Expiry frees the lock if the holder dies mid-run
        acquired = await self.redis_client.set(self._key(game_id), token, ex=self.ttl_seconds, nx=True)
        if not acquired:
            return False
        self._tokens[game_id] = token
        return True

    async def release(self, game_id: Hashable) -> None:
        token = self._tokens.pop(game_id, None)
        if token is None:
            return
        deleted = await self._release_script(keys=[self._key(game_id)], args=[token])
        if not deleted:
            logger.warning(f"Finalization lock for game {game_id} expired before release")


async def create_finalization_lock() -> FinalizationLock:
    """Build the lock backend selected by Config.FINALIZATION_LOCK_BACKEND."""
    if Config.FINALIZATION_LOCK_BACKEND == 'redis':
        redis_client = await RedisUtils.create_redis_client()
        if redis_client is not None:
            logger.info("Using Redis finalization lock")
            return RedisFinalizationLock(redis_client)
        logger.error("Redis finalization lock unavailable, falling back to in-process lock. "
                     "Concurrent finalization from other processes is only stopped by the store constraint.")
    return InMemoryFinalizationLock()
