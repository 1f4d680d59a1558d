# inventory_pulse/throttle.py
"""
Bounded-concurrency gate for database writes.

The pool is small; capping mutations leaves connections free for reads.
"""
from __future__ import annotations
import asyncio
from typing import Any, Awaitable, Callable, TypeVar

T = TypeVar("T")

DEFAULT_MAX_CONCURRENT_WRITES = 8


class WriteThrottle:
    """
    Usage:
        throttle = WriteThrottle(8)
        async with throttle:
            await session.execute(stmt)
        # or
        await throttle.run(upsert_row, session, node)
    """

    def __init__(self, max_concurrent: int = DEFAULT_MAX_CONCURRENT_WRITES):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.max_concurrent = max_concurrent
        self._sem = asyncio.Semaphore(max_concurrent)
        self._active = 0

    @property
    def active(self) -> int:
        """Writes currently holding a slot."""
        return self._active

    async def __aenter__(self) -> "WriteThrottle":
        await self._sem.acquire()
        self._active += 1
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self._active -= 1
        self._sem.release()

    async def run(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        async with self:
            return await fn(*args, **kwargs)
