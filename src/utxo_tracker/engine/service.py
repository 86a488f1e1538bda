"""Tracker service — wires the store and providers to the pure tracing core.

The core functions stay synchronous and I/O free; this service gathers their
inputs (records from the store, provider documents, daily prices) and hands
them over. An empty store yields empty results; malformed input surfaces as
:class:`~utxo_tracker.errors.ParseError` from the normalizer.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

from utxo_tracker.engine.chains import build_flow_chains
from utxo_tracker.engine.tracer import TraceOptions, trace_ancestry, trace_relationships
from utxo_tracker.engine.trees import build_trees
from utxo_tracker.engine.wallet_flows import (
    build_utxo_flows,
    build_wallet_flow_trees,
    wallet_address_book,
)

if TYPE_CHECKING:
    from datetime import date

    from utxo_tracker.chain.esplora.models import RawTransaction
    from utxo_tracker.chain.service import BlockchainService
    from utxo_tracker.config.settings import AppConfig
    from utxo_tracker.engine.models import (
        EdgeSet,
        NormalizedTransaction,
        TransactionTree,
        UTXOFlow,
    )
    from utxo_tracker.metrics.collector import TrackerMetrics
    from utxo_tracker.pricing.service import PriceService
    from utxo_tracker.store.base import TransactionStore

logger = logging.getLogger(__name__)


class TrackerService:
    """Builds spend trees, flow graphs and wallet trees from stored records.

    Usage::

        service = TrackerService(config, store=store, blockchain=chain, prices=prices)
        trees = await service.build_spend_trees(wallet="savings")
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        store: TransactionStore,
        blockchain: BlockchainService | None = None,
        prices: PriceService | None = None,
        metrics: TrackerMetrics | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._blockchain = blockchain
        self._prices = prices
        self._metrics = metrics

    # ------------------------------------------------------------------
    # Collaborator access
    # ------------------------------------------------------------------

    async def _records(self, wallet: str | None) -> list[NormalizedTransaction]:
        if wallet:
            return await self._store.list_transactions_for_wallet(wallet)
        return await self._store.list_all_transactions()

    async def _raw_transactions(
        self, transactions: Sequence[NormalizedTransaction], *extra: str
    ) -> dict[str, RawTransaction]:
        if self._blockchain is None:
            msg = "blockchain service is not configured"
            raise RuntimeError(msg)
        return await self._blockchain.fetch_many([*extra, *(tx.txid for tx in transactions)])

    async def resolve_prices(
        self, transactions: Iterable[NormalizedTransaction]
    ) -> dict[date, float]:
        """Daily closes for the record dates. Empty without a price service."""
        if self._prices is None:
            return {}
        return await self._prices.get_prices(tx.date for tx in transactions)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def build_spend_trees(
        self,
        wallet: str | None = None,
        options: TraceOptions | None = None,
    ) -> list[TransactionTree]:
        """Trace and build spend-chain trees for one wallet, or all records.

        Exact tracing fetches provider data for every txid first; ids the
        providers cannot serve are skipped.
        """
        transactions = await self._records(wallet)
        if not transactions:
            logger.info("No transactions stored%s", f" for wallet {wallet}" if wallet else "")
            return []

        options = options or TraceOptions.from_config(self._config.tracer)
        raw = None
        if options.use_real_blockchain_data:
            raw = await self._raw_transactions(transactions)

        tracker = self._metrics.track_build() if self._metrics else contextlib.nullcontext()
        prices = await self.resolve_prices(transactions) if self._prices else None
        with tracker:
            edges = trace_relationships(
                transactions, options, raw_transactions=raw, metrics=self._metrics
            )
            return build_trees(
                transactions,
                edges,
                raw_transactions=raw,
                prices=prices,
                allow_overlapping_roots=self._config.tracer.allow_overlapping_roots,
                metrics=self._metrics,
            )

    async def trace_transaction(self, txid: str, options: TraceOptions | None = None) -> EdgeSet:
        """Exact ancestry of *txid*, fetched from the providers when not stored."""
        transactions = await self._records(None)
        raw = await self._raw_transactions(transactions, txid)
        options = options or TraceOptions.from_config(self._config.tracer)
        edges = trace_ancestry(txid, transactions, raw, options)
        if self._metrics is not None:
            self._metrics.record_edges(edges)
        return edges

    async def build_flow_graph(self) -> list[UTXOFlow]:
        """Flows between the stored wallets, from provider data."""
        transactions = await self._records(None)
        if not transactions:
            return []
        book = wallet_address_book(transactions)
        raw = await self._raw_transactions(transactions)
        return build_utxo_flows(raw.values(), book)

    async def build_wallet_trees(self) -> list[TransactionTree]:
        """One tree per wallet over the flow graph."""
        return build_wallet_flow_trees(await self.build_flow_graph())

    async def build_chains(self, max_depth: int | None = None) -> list[TransactionTree]:
        """Linear UTXO chains over the flow graph."""
        depth = self._config.tracer.max_depth if max_depth is None else max_depth
        return build_flow_chains(await self.build_flow_graph(), max_depth=depth)
