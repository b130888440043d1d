"""
Base service class for the merit bot.

Session scope for catalog services, plus a retry helper for reads. Only
transient database failures (a locked SQLite file, a dropped connection)
are retried; anything else is a real error and propagates at once.
Finalization writes never go through execute_with_retry: a blind retry of
a write with an unknown outcome can duplicate a summary or a merit batch.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable, Any
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

class BaseService:
    """Catalog services share one session factory with the Database."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Commit on success, roll back on any error."""
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def execute_with_retry(self, read: Callable, max_attempts: int = 3,
                                 base_delay: float = 0.1) -> Any:
        """
        Run an idempotent read, retrying on OperationalError.

        Args:
            read: Zero-argument coroutine function
            max_attempts: Total attempts before the last error is raised
            base_delay: First backoff in seconds, doubled after each attempt
        """
        for attempt in range(1, max_attempts + 1):
            try:
                return await read()
            except OperationalError as e:
                if attempt == max_attempts:
                    logger.error(f"{read.__name__} failed after {attempt} attempts: {e}")
                    raise
                logger.warning(f"{read.__name__} attempt {attempt} hit a transient database error: {e}")
                await asyncio.sleep(base_delay * (2 ** (attempt - 1)))
