"""Redis cache backend, shared between tracker processes.

Keys arrive already namespaced by :class:`~utxo_tracker.cache.client.CacheClient`
(``<prefix>:tx:<txid>``, ``<prefix>:price:<symbol>:<day>``), so several
trackers can share one database without clobbering each other's entries.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from utxo_tracker.config.settings import CacheConfig

# Keys removed per DEL round-trip during a scoped flush
_FLUSH_BATCH = 500


class RedisCache:
    """Cache backed by ``redis.asyncio``; expiry is left to Redis TTLs."""

    def __init__(self, config: CacheConfig) -> None:
        """Initialize the Redis backend.

        Args:
            config: Cache configuration; ``url``, ``max_connections`` and
                ``key_prefix`` are used here.
        """
        self._config = config
        self._redis: Any = None

    @property
    def is_connected(self) -> bool:
        return self._redis is not None

    async def connect(self) -> None:
        """Connect to Redis and check the connection.

        Raises:
            ImportError: If the redis package is not installed.
            ConnectionError: If Redis does not answer the ping.
        """
        try:
            from redis.asyncio import Redis
        except ImportError as e:
            msg = "redis package not installed. Install with: pip install utxo-tracker[redis]"
            raise ImportError(msg) from e

        client = Redis.from_url(
            self._config.url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=self._config.max_connections,
        )
        try:
            await client.ping()
        except Exception as e:
            await client.aclose()
            msg = f"Failed to connect to Redis at {self._config.url}"
            raise ConnectionError(msg) from e
        self._redis = client

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def get(self, key: str) -> str | None:
        """Return the JSON text stored under *key*.

        Args:
            key: Fully prefixed cache key.

        Returns:
            The stored text, or None when the key is absent or has expired.
        """
        return await self._ensure_connected().get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        """Store *value* under *key*.

        Args:
            key: Fully prefixed cache key.
            value: JSON text of a raw transaction or a daily close.
            ttl: Seconds until Redis drops the key. None = no expiry.
        """
        await self._ensure_connected().set(key, value, ex=ttl)

    async def delete(self, key: str) -> None:
        await self._ensure_connected().delete(key)

    async def exists(self, key: str) -> bool:
        return bool(await self._ensure_connected().exists(key))

    async def flush(self) -> None:
        """Delete every key under the configured prefix.

        Keys written by other applications in the same database are left alone.
        Without a prefix the whole database is flushed.
        """
        redis = self._ensure_connected()
        if not self._config.key_prefix:
            await redis.flushdb()
            return
        batch: list[str] = []
        async for key in redis.scan_iter(match=f"{self._config.key_prefix}:*"):
            batch.append(key)
            if len(batch) >= _FLUSH_BATCH:
                await redis.delete(*batch)
                batch.clear()
        if batch:
            await redis.delete(*batch)

    def _ensure_connected(self) -> Any:
        if self._redis is None:
            msg = "RedisCache is not connected — call connect() first"
            raise RuntimeError(msg)
        return self._redis
