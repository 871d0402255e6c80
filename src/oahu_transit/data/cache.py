"""Single-value TTL cache for realtime feeds."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class FeedCache(Generic[T]):
    """Holds one fetched value until its TTL lapses.

    ``get_or_fetch`` is the normal entry point: callers that find the cache
    empty queue on one lock, and only the first of them runs the fetch.
    """

    def __init__(self, ttl: float = 30.0):
        self._ttl = ttl
        self._value: T | None = None
        self._expires_at: float = 0
        self._lock = asyncio.Lock()

    @property
    def ttl(self) -> float:
        return self._ttl

    def get(self) -> T | None:
        """Return the cached value, or None once it has expired."""
        if self._value is not None and time.monotonic() < self._expires_at:
            return self._value
        return None

    def set(self, value: T) -> None:
        self._value = value
        self._expires_at = time.monotonic() + self._ttl

    def clear(self) -> None:
        self._value = None
        self._expires_at = 0

    async def get_or_fetch(
        self, fetch: Callable[[], Awaitable[T]], force_refresh: bool = False
    ) -> T:
        """Return the live cached value, fetching a new one if needed.

        Exceptions from ``fetch`` propagate and leave the cache untouched,
        so the next caller retries.
        """
        if not force_refresh:
            cached = self.get()
            if cached is not None:
                return cached

        async with self._lock:
            # another waiter may have refreshed it while we queued
            if not force_refresh:
                cached = self.get()
                if cached is not None:
                    return cached
            value = await fetch()
            self.set(value)
            return value
