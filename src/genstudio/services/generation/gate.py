"""Bounded in-flight job gate.

Caps how many predictions a process drives at once, independent of inbound
request volume. Requests beyond the limit wait for a free slot.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog

logger = structlog.get_logger(__name__)


class ConcurrencyGate:
    """Semaphore-backed limit on concurrently running generation jobs."""

    def __init__(self, limit: int):
        if limit < 1:
            raise ValueError("Concurrency limit must be at least 1")
        self.limit = limit
        self._semaphore = asyncio.Semaphore(limit)
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold one slot for the duration of the block."""
        if self._semaphore.locked():
            logger.info("generation.gate.waiting", in_flight=self._in_flight, limit=self.limit)

        async with self._semaphore:
            self._in_flight += 1
            try:
                yield
            finally:
                self._in_flight -= 1
