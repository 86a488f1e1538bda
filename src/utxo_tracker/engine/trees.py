"""Spend-chain tree builder.

Turns normalized records plus a traced :class:`EdgeSet` into
:class:`TransactionTree` objects:

1. one node per txid, aggregating same-txid records;
2. ``children``/``parent`` attached per edge, first edge wins the parent;
3. outputs classified as change, reused-own or external;
4. roots selected (no parent, or an externally funded input);
5. each tree assembled by depth-first traversal from its root;
6. trees sorted by node count, largest first.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import date as Date
from typing import TYPE_CHECKING

from utxo_tracker.engine.models import (
    DateRange,
    EdgeSet,
    NormalizedTransaction,
    TransactionNode,
    TransactionTree,
)
from utxo_tracker.engine.tracer import build_nodes, index_input_addresses, index_output_addresses

if TYPE_CHECKING:
    from utxo_tracker.chain.esplora.models import RawTransaction
    from utxo_tracker.metrics.collector import TrackerMetrics

logger = logging.getLogger(__name__)


def attach_edges(nodes: Mapping[str, TransactionNode], edges: EdgeSet) -> int:
    """Attach edges to nodes. Returns the number of edges attached.

    A node keeps the first parent it is offered; later candidates are
    ignored so that every node sits under exactly one parent.
    """
    attached = 0
    for edge in edges:
        parent = nodes.get(edge.parent)
        child = nodes.get(edge.child)
        if parent is None or child is None:
            continue
        if child.parent is not None:
            if child.parent != edge.parent:
                logger.debug(
                    "Ignoring second parent %s for %s (kept %s)",
                    edge.parent,
                    edge.child,
                    child.parent,
                )
            continue
        child.parent = edge.parent
        parent.add_child(edge.child)
        attached += 1
    return attached


def classify_outputs(
    node: TransactionNode,
    input_index: Mapping[str, list[str]],
    nodes: Mapping[str, TransactionNode],
) -> None:
    """Mark each output of *node* as change, reused-own or external.

    - an address repeated among the node's own outputs is change;
    - an address spent by a later transaction is a reused own address,
      neither change nor external;
    - anything else is external.
    """
    counts: dict[str, int] = {}
    for output in node.outputs:
        counts[output.address] = counts.get(output.address, 0) + 1

    for output in node.outputs:
        if counts[output.address] > 1:
            output.is_change = True
            output.is_external = False
            continue
        reused = any(
            nodes[txid].date > node.date
            for txid in input_index.get(output.address, ())
            if txid != node.id
        )
        output.is_change = False
        output.is_external = not reused


def select_roots(
    nodes: Mapping[str, TransactionNode],
    output_index: Mapping[str, list[str]],
    *,
    allow_overlapping_roots: bool = True,
) -> list[str]:
    """Root candidates in node order.

    A node without a parent is always a root. With *allow_overlapping_roots*
    a node that has a parent but spends from an address no transaction in the
    set produced is a root too, and its subtree then also appears inside its
    parent's tree.
    """
    roots: list[str] = []
    for txid, node in nodes.items():
        if node.parent is None:
            roots.append(txid)
        elif allow_overlapping_roots and any(
            inp.address not in output_index for inp in node.inputs
        ):
            roots.append(txid)
    return roots


def _collect(root_id: str, nodes: Mapping[str, TransactionNode]) -> dict[str, TransactionNode]:
    """Depth-first traversal over ``children`` with a visited set."""
    members: dict[str, TransactionNode] = {}
    stack = [root_id]
    while stack:
        txid = stack.pop()
        if txid in members:
            continue
        node = nodes[txid]
        members[txid] = node
        # reversed so children are visited in their stored order
        stack.extend(c for c in reversed(node.children) if c not in members)
    return members


def make_tree(root_id: str, members: dict[str, TransactionNode]) -> TransactionTree:
    """Assemble a tree and its aggregates from member nodes."""
    return TransactionTree(
        root_id=root_id,
        nodes=members,
        total_amount=sum(n.total_amount for n in members.values()),
        total_value_usd=sum(n.price_usd for n in members.values() if n.price_usd is not None),
        date_range=DateRange.of(n.date for n in members.values()),
    )


def build_trees(
    transactions: Sequence[NormalizedTransaction],
    edges: EdgeSet,
    *,
    raw_transactions: Mapping[str, RawTransaction] | None = None,
    prices: Mapping[Date, float | None] | None = None,
    allow_overlapping_roots: bool = True,
    metrics: TrackerMetrics | None = None,
) -> list[TransactionTree]:
    """Group transactions into spend-chain trees.

    Every input txid ends up in at least one tree. Nodes that no root
    reaches (edge cycles) start trees of their own.

    Args:
        transactions: Normalized records.
        edges: Edges from :func:`~utxo_tracker.engine.tracer.trace_relationships`.
        raw_transactions: Provider data keyed by txid, for real input/output addresses.
        prices: BTC/USD close keyed by calendar day. Missing or None leaves
            the node unpriced.
        allow_overlapping_roots: Also start trees at externally funded nodes
            that have a parent. False gives an exclusive partition.
        metrics: Optional collector for the trees-built gauge.

    Returns:
        Trees sorted by node count, largest first.
    """
    nodes = build_nodes(transactions, raw_transactions)
    if not nodes:
        return []

    attach_edges(nodes, edges)

    output_index = index_output_addresses(nodes)
    input_index = index_input_addresses(nodes)
    for node in nodes.values():
        classify_outputs(node, input_index, nodes)
        if prices is not None:
            node.set_price(prices.get(node.date.date()))

    roots = select_roots(nodes, output_index, allow_overlapping_roots=allow_overlapping_roots)

    trees: list[TransactionTree] = []
    covered: set[str] = set()
    for root_id in roots:
        members = _collect(root_id, nodes)
        covered.update(members)
        trees.append(make_tree(root_id, members))

    for txid in nodes:
        if txid not in covered:
            logger.debug("Node %s unreachable from any root, starting its own tree", txid)
            members = _collect(txid, nodes)
            covered.update(members)
            trees.append(make_tree(txid, members))

    trees.sort(key=lambda t: t.node_count, reverse=True)
    logger.info("Built %d transaction trees from %d transactions", len(trees), len(nodes))
    if metrics is not None:
        metrics.set_trees_built(len(trees))
    return trees
