"""UTXO relationship tracer — infer parent -> child spend edges.

Two strategies:

- **heuristic** (default): an output address of ``S`` reappearing as an input
  address of ``T`` links ``S -> T`` when ``S`` is strictly older than ``T``.
  Equal timestamps never link.
- **exact**: an input of ``T`` whose ``vin.txid`` names ``P`` links
  ``P -> T`` when ``P`` is in the working set. Walks backwards from each
  seed over an explicit worklist, bounded by ``max_depth`` hops and
  ``max_path_length`` txids per path, with a per-path cycle guard.

Neither strategy raises when no relationship is found; bound overruns are
counted in :attr:`EdgeSet.truncated`.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from utxo_tracker.engine.models import (
    Direction,
    Edge,
    EdgeSet,
    EdgeSource,
    NormalizedTransaction,
    TransactionGroup,
    TransactionNode,
    TxInputRef,
    TxOutputRef,
    group_by_txid,
)

if TYPE_CHECKING:
    from utxo_tracker.chain.esplora.models import RawTransaction
    from utxo_tracker.config.settings import TracerConfig
    from utxo_tracker.metrics.collector import TrackerMetrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TraceOptions:
    """Tracing strategy and traversal bounds."""

    use_real_blockchain_data: bool = False
    max_depth: int = 10
    max_path_length: int = 10

    @classmethod
    def from_config(cls, config: TracerConfig) -> TraceOptions:
        return cls(
            use_real_blockchain_data=config.use_real_blockchain_data,
            max_depth=config.max_depth,
            max_path_length=config.max_path_length,
        )


# ---------------------------------------------------------------------------
# Node construction and address indexes
# ---------------------------------------------------------------------------


def transaction_io(
    group: TransactionGroup,
    raw: RawTransaction | None = None,
) -> tuple[list[TxInputRef], list[TxOutputRef]]:
    """Inputs and outputs of one transaction.

    Provider data gives the real ``vin``/``vout`` address lists. Without it,
    received legs are taken as inputs and sent legs as outputs. Legs without
    an address are left out.
    """
    if raw is not None:
        inputs = [TxInputRef(address=i.address, amount=i.value) for i in raw.vin if i.address]
        outputs = [TxOutputRef(address=o.address, amount=o.value) for o in raw.vout if o.address]
        return inputs, outputs

    inputs = []
    outputs = []
    for record in group.records:
        if not record.address:
            continue
        if record.direction == Direction.INPUT:
            inputs.append(TxInputRef(address=record.address, amount=record.amount))
        else:
            outputs.append(TxOutputRef(address=record.address, amount=record.amount))
    return inputs, outputs


def build_nodes(
    transactions: Iterable[NormalizedTransaction],
    raw_transactions: Mapping[str, RawTransaction] | None = None,
) -> dict[str, TransactionNode]:
    """Create one node per distinct txid, in first-seen order."""
    raw_transactions = raw_transactions or {}
    nodes: dict[str, TransactionNode] = {}
    for txid, group in group_by_txid(transactions).items():
        inputs, outputs = transaction_io(group, raw_transactions.get(txid))
        nodes[txid] = TransactionNode(
            id=txid,
            date=group.date,
            confirmed=group.confirmed,
            inputs=inputs,
            outputs=outputs,
            total_amount=sum(r.amount for r in group.records),
        )
    return nodes


def index_output_addresses(nodes: Mapping[str, TransactionNode]) -> dict[str, list[str]]:
    """Output address -> txids that produced an output there."""
    index: dict[str, list[str]] = {}
    for txid, node in nodes.items():
        for output in node.outputs:
            txids = index.setdefault(output.address, [])
            if txid not in txids:
                txids.append(txid)
    return index


def index_input_addresses(nodes: Mapping[str, TransactionNode]) -> dict[str, list[str]]:
    """Input address -> txids that spent from it."""
    index: dict[str, list[str]] = {}
    for txid, node in nodes.items():
        for inp in node.inputs:
            txids = index.setdefault(inp.address, [])
            if txid not in txids:
                txids.append(txid)
    return index


# ---------------------------------------------------------------------------
# Heuristic strategy
# ---------------------------------------------------------------------------


def _trace_heuristic(nodes: Mapping[str, TransactionNode]) -> EdgeSet:
    edges = EdgeSet()
    address_index = index_output_addresses(nodes)
    for txid, node in nodes.items():
        edges.visits += 1
        for inp in node.inputs:
            for source_id in address_index.get(inp.address, ()):
                if source_id == txid:
                    continue
                if nodes[source_id].date < node.date:
                    edge = Edge(source_id, txid, EdgeSource.HEURISTIC, inp.address)
                    if edges.add(edge):
                        logger.debug(
                            "Found relationship: %s -> %s (via %s)", source_id, txid, inp.address
                        )
    return edges


# ---------------------------------------------------------------------------
# Exact strategy
# ---------------------------------------------------------------------------


def _walk_back(
    seed: str,
    working_set: Mapping[str, object],
    raw_transactions: Mapping[str, RawTransaction],
    options: TraceOptions,
    edges: EdgeSet,
    seen: set[str],
) -> None:
    """Breadth-first backward walk from *seed* over vin references.

    Nodes already in *seen* gain edges but are not expanded again.
    """
    seen.add(seed)
    queue: deque[tuple[str, tuple[str, ...]]] = deque([(seed, (seed,))])
    while queue:
        txid, path = queue.popleft()
        edges.visits += 1
        raw = raw_transactions.get(txid)
        if raw is None:
            logger.debug("No provider data for %s, not expanding", txid)
            continue
        for vin in raw.vin:
            parent = vin.txid
            if not parent or parent not in working_set or parent in path:
                continue
            # path + parent would exceed a bound
            if len(path) > options.max_depth or len(path) + 1 > options.max_path_length:
                edges.truncated += 1
                logger.debug("Truncated branch at %s (path length %d)", txid, len(path))
                continue
            if edges.add(Edge(parent, txid, EdgeSource.EXACT, vin.address)):
                logger.debug("Found exact relationship: %s -> %s", parent, txid)
            if parent not in seen:
                seen.add(parent)
                queue.append((parent, (*path, parent)))


def trace_ancestry(
    txid: str,
    transactions: Sequence[NormalizedTransaction],
    raw_transactions: Mapping[str, RawTransaction],
    options: TraceOptions | None = None,
) -> EdgeSet:
    """Exact ancestry of a single transaction, bounded by *options*."""
    options = options or TraceOptions(use_real_blockchain_data=True)
    working_set = {tx.txid: None for tx in transactions}
    working_set.setdefault(txid, None)
    edges = EdgeSet()
    _walk_back(txid, working_set, raw_transactions, options, edges, set())
    return edges


def _trace_exact(
    nodes: Mapping[str, TransactionNode],
    raw_transactions: Mapping[str, RawTransaction],
    options: TraceOptions,
) -> EdgeSet:
    edges = EdgeSet()
    referenced = {
        vin.txid
        for txid in nodes
        if (raw := raw_transactions.get(txid)) is not None
        for vin in raw.vin
        if vin.txid in nodes and vin.txid != txid
    }
    # Tips first, then whatever is left from the newest backwards, so each
    # truncated segment is walked from its own tip.
    tips = [txid for txid in nodes if txid not in referenced]
    rest = sorted(
        (txid for txid in nodes if txid in referenced),
        key=lambda t: nodes[t].date,
        reverse=True,
    )
    seen: set[str] = set()
    for seed in (*tips, *rest):
        if seed not in seen:
            _walk_back(seed, nodes, raw_transactions, options, edges, seen)
    return edges


def trace_relationships(
    transactions: Sequence[NormalizedTransaction],
    options: TraceOptions | None = None,
    *,
    raw_transactions: Mapping[str, RawTransaction] | None = None,
    metrics: TrackerMetrics | None = None,
) -> EdgeSet:
    """Infer spend edges between transactions.

    Args:
        transactions: Normalized records; grouped by txid internally.
        options: Strategy and bounds. Defaults to the heuristic strategy.
        raw_transactions: Provider data keyed by txid. Required for exact
            tracing; also supplies real input/output addresses to the
            heuristic.
        metrics: Optional collector for edge and truncation counters.

    Returns:
        The de-duplicated edge set.
    """
    options = options or TraceOptions()
    nodes = build_nodes(transactions, raw_transactions)

    if options.use_real_blockchain_data and raw_transactions:
        edges = _trace_exact(nodes, raw_transactions, options)
    else:
        if options.use_real_blockchain_data:
            logger.warning("Exact tracing requested without provider data, using heuristic")
        edges = _trace_heuristic(nodes)

    logger.info(
        "Found %d parent-child relationships across %d transactions (%d truncated)",
        len(edges),
        len(nodes),
        edges.truncated,
    )
    if metrics is not None:
        metrics.record_edges(edges)
    return edges
