"""In-process LRU cache with per-entry TTL."""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from utxo_tracker.config.settings import CacheConfig


@dataclass
class _Entry:
    value: str
    inserted_at: float
    ttl: float | None

    def expired(self, now: float) -> bool:
        return self.ttl is not None and now - self.inserted_at > self.ttl


class MemoryCache:
    """LRU cache with TTL, for a single process.

    An entry stays valid until ``now - inserted_at > ttl``. The clock is
    injectable so expiry can be tested without sleeping.
    """

    def __init__(
        self,
        config: CacheConfig,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the in-memory cache.

        Args:
            config: Cache configuration; ``max_size`` bounds the entry count.
            clock: Returns the current time in seconds.
        """
        self._config = config
        self._max_size = config.max_size
        self._clock = clock
        self._entries: OrderedDict[str, _Entry] = OrderedDict()

    async def connect(self) -> None:  # noqa: ASYNC910
        """Connect (no-op for in-memory)."""

    async def close(self) -> None:  # noqa: ASYNC910
        """Close and drop every entry."""
        self._entries.clear()

    def _live(self, key: str) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expired(self._clock()):
            del self._entries[key]
            return None
        return entry

    async def get(self, key: str) -> str | None:  # noqa: ASYNC910
        """Return the value for *key*, or None if missing or expired."""
        entry = self._live(key)
        if entry is None:
            return None
        self._entries.move_to_end(key)
        return entry.value

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:  # noqa: ASYNC910
        """Store *value* under *key*, evicting the least recently used entry when full.

        Args:
            key: Cache key.
            value: Value to store.
            ttl: Time-to-live in seconds. None = no expiry.
        """
        self._entries.pop(key, None)
        self._entries[key] = _Entry(value=value, inserted_at=self._clock(), ttl=ttl)
        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)

    async def delete(self, key: str) -> None:  # noqa: ASYNC910
        self._entries.pop(key, None)

    async def exists(self, key: str) -> bool:  # noqa: ASYNC910
        return self._live(key) is not None

    async def flush(self) -> None:  # noqa: ASYNC910
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
