"""Cache client with Redis and in-memory backends.

One client is built per process and handed to the collaborators that cache
(blockchain and price services). Keys are namespaced as ``<prefix>:<key>``.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from utxo_tracker.config.settings import CacheConfig

logger = logging.getLogger(__name__)


class CacheClient:
    """Cache abstraction that delegates to Redis or in-memory LRU backend."""

    def __init__(self, config: CacheConfig, *, backend: CacheBackend | None = None) -> None:
        """Initialize cache client with configuration.

        Args:
            config: Cache configuration with engine type and connection params.
            backend: Pre-built backend to use instead of the configured engine.
        """
        self._config = config
        self._backend: CacheBackend | None = backend
        self._connected = False

    async def connect(self) -> None:
        """Connect to the cache backend.

        Raises:
            ValueError: If cache engine type is invalid.
        """
        if self._backend is None:
            from utxo_tracker.cache.memory import MemoryCache
            from utxo_tracker.cache.redis import RedisCache

            engine = self._config.engine.lower()
            if engine == "redis":
                self._backend = RedisCache(self._config)
            elif engine == "memory":
                self._backend = MemoryCache(self._config)
            else:
                msg = f"Unsupported cache engine: {engine}"
                raise ValueError(msg)

        await self._backend.connect()
        self._connected = True
        logger.debug("Cache connected (%s)", type(self._backend).__name__)

    async def close(self) -> None:
        """Close the cache connection (idempotent)."""
        if self._backend is not None:
            await self._backend.close()
            self._backend = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected and self._backend is not None

    @property
    def default_ttl(self) -> int:
        return self._config.ttl_seconds

    def key(self, key: str) -> str:
        """Apply the namespace prefix to *key*."""
        prefix = self._config.key_prefix
        return f"{prefix}:{key}" if prefix else key

    async def get(self, key: str) -> str | None:
        """Get a value from the cache.

        Raises:
            RuntimeError: If not connected.
        """
        backend = self._ensure_connected()
        return await backend.get(self.key(key))

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        """Set a value in the cache.

        Args:
            key: Cache key.
            value: Value to store (string).
            ttl: Time-to-live in seconds. None = no expiry.

        Raises:
            RuntimeError: If not connected.
        """
        backend = self._ensure_connected()
        await backend.set(self.key(key), value, ttl=ttl)

    async def delete(self, key: str) -> None:
        backend = self._ensure_connected()
        await backend.delete(self.key(key))

    async def exists(self, key: str) -> bool:
        backend = self._ensure_connected()
        return await backend.exists(self.key(key))

    async def flush(self) -> None:
        """Drop every cached entry (development/testing only)."""
        backend = self._ensure_connected()
        await backend.flush()

    async def get_json(self, key: str) -> Any | None:
        """Get and decode a JSON value. Undecodable entries are dropped and read as missing."""
        raw = await self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Dropping undecodable cache entry %s", key)
            await self.delete(key)
            return None

    async def set_json(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Encode *value* as JSON and store it; *ttl* defaults to ``ttl_seconds``."""
        await self.set(key, json.dumps(value), ttl=ttl if ttl is not None else self.default_ttl)

    def _ensure_connected(self) -> CacheBackend:
        if not self._connected or self._backend is None:
            msg = "Cache not connected. Call connect() first."
            raise RuntimeError(msg)
        return self._backend


class CacheBackend(Protocol):
    """Protocol for cache backend implementations."""

    async def connect(self) -> None: ...
    async def close(self) -> None: ...
    async def get(self, key: str) -> str | None: ...
    async def set(self, key: str, value: str, ttl: int | None = None) -> None: ...
    async def delete(self, key: str) -> None: ...
    async def exists(self, key: str) -> bool: ...
    async def flush(self) -> None: ...
