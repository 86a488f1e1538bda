"""Blockchain data service — cached, provider-failover transaction lookup.

Lookup order for one txid: cache, store, mempool.space, blockstream.info.
Provider answers are written back to the cache and the store with the name
of the provider that served them.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

from utxo_tracker.chain.esplora.client import EsploraClient
from utxo_tracker.chain.esplora.models import RawTransaction
from utxo_tracker.errors.definitions import ErrProviderUnavailable, ErrTransactionNotFound
from utxo_tracker.errors.provider_errors import NotFoundError, ProviderError, UnavailableError

if TYPE_CHECKING:
    from utxo_tracker.cache.client import CacheClient
    from utxo_tracker.config.settings import ProviderConfig
    from utxo_tracker.metrics.collector import TrackerMetrics
    from utxo_tracker.store.base import TransactionStore

logger = logging.getLogger(__name__)


def _batches(items: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class BlockchainService:
    """Transaction lookup over a chain of Esplora providers.

    Usage::

        chain = BlockchainService(config.provider, cache=cache, store=store)
        await chain.connect()
        try:
            raw = await chain.fetch_raw_transaction(txid)
        finally:
            await chain.close()
    """

    def __init__(
        self,
        config: ProviderConfig,
        *,
        cache: CacheClient | None = None,
        store: TransactionStore | None = None,
        metrics: TrackerMetrics | None = None,
        providers: list[EsploraClient] | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            config: Provider URLs, timeout and batching policy.
            cache: Shared cache client; skipped when None.
            store: Persistence collaborator holding raw documents; skipped when None.
            metrics: Optional collector for provider skip counters.
            providers: Clients to try in order. Defaults to mempool.space then
                blockstream.info from *config*.
        """
        self._config = config
        self._cache = cache
        self._store = store
        self._metrics = metrics
        self._providers = providers or [
            EsploraClient("mempool", config.mempool_url, timeout=config.timeout),
            EsploraClient("blockstream", config.blockstream_url, timeout=config.timeout),
        ]

    async def connect(self) -> None:
        for provider in self._providers:
            await provider.connect()

    async def close(self) -> None:
        for provider in self._providers:
            await provider.close()

    @property
    def is_connected(self) -> bool:
        return all(p.is_connected for p in self._providers)

    @property
    def providers(self) -> list[EsploraClient]:
        return list(self._providers)

    @staticmethod
    def _cache_key(txid: str) -> str:
        return f"tx:{txid}"

    async def fetch_raw_transaction(self, txid: str) -> RawTransaction:
        """Fetch one transaction, trying cache, store and then each provider.

        Raises:
            NotFoundError: Every reachable provider answered "not found".
            UnavailableError: No provider could be reached.
        """
        if self._cache is not None:
            cached = await self._cache.get_json(self._cache_key(txid))
            if cached is not None:
                logger.debug("Cache hit for %s", txid)
                return RawTransaction.from_dict(cached)

        if self._store is not None:
            stored = await self._store.get_cached_raw_transaction(txid)
            if stored is not None:
                logger.debug("Store hit for %s", txid)
                if self._cache is not None:
                    await self._cache.set_json(self._cache_key(txid), stored)
                return RawTransaction.from_dict(stored)

        not_found = False
        for provider in self._providers:
            try:
                data = await provider.get_transaction_json(txid)
            except NotFoundError:
                not_found = True
                logger.debug("%s does not know %s", provider.name, txid)
                continue
            except UnavailableError as exc:
                logger.warning(
                    "Provider %s unavailable for %s: %s", provider.name, txid, exc.message
                )
                continue

            if self._cache is not None:
                await self._cache.set_json(self._cache_key(txid), data)
            if self._store is not None:
                await self._store.put_cached_raw_transaction(txid, data, provider.name)
            return RawTransaction.from_dict(data)

        raise ErrTransactionNotFound if not_found else ErrProviderUnavailable

    async def _fetch_or_skip(self, txid: str) -> RawTransaction | None:
        try:
            return await self.fetch_raw_transaction(txid)
        except ProviderError as exc:
            reason = "not_found" if isinstance(exc, NotFoundError) else "unavailable"
            logger.warning("Skipping %s: %s", txid, exc.message)
            if self._metrics is not None:
                self._metrics.provider_skip(reason)
            return None

    async def fetch_many(self, txids: Iterable[str]) -> dict[str, RawTransaction]:
        """Fetch many transactions in rate-limited batches.

        Ids are de-duplicated. Each batch of ``batch_size`` runs concurrently
        with ``batch_delay`` seconds between batches. Ids that fail with
        :class:`NotFoundError` or :class:`UnavailableError` are left out.

        Returns:
            Transactions keyed by txid, in request order.
        """
        unique = list(dict.fromkeys(t for t in txids if t))
        results: dict[str, RawTransaction] = {}
        for index, batch in enumerate(_batches(unique, self._config.batch_size)):
            if index and self._config.batch_delay:
                await asyncio.sleep(self._config.batch_delay)
            fetched = await asyncio.gather(*(self._fetch_or_skip(t) for t in batch))
            for txid, raw in zip(batch, fetched, strict=True):
                if raw is not None:
                    results[txid] = raw
        logger.info("Fetched %d of %d transactions", len(results), len(unique))
        return results
