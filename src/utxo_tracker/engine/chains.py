"""Linear UTXO chains built from flows.

Starting from each unprocessed transaction, the chain is extended backwards
through the transaction that paid into one of its input addresses and
forwards through the transaction that spent from one of its output
addresses, one step at a time and at most ``max_depth`` steps each way.
Every transaction joins at most one chain.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Literal

from utxo_tracker.engine.models import (
    DateRange,
    FlowType,
    TransactionNode,
    TransactionTree,
    TxInputRef,
    TxOutputRef,
    UTXOFlow,
)
from utxo_tracker.engine.wallet_flows import CHANGE_THRESHOLD_SATS, group_flows_by_txid

logger = logging.getLogger(__name__)

_Side = Literal["input", "output"]


def _address_index(flows: Iterable[UTXOFlow]) -> dict[str, list[tuple[_Side, str]]]:
    """Address -> (side, txid) for every flow touching it."""
    index: dict[str, list[tuple[_Side, str]]] = {}
    for flow in flows:
        index.setdefault(flow.from_address, []).append(("input", flow.txid))
        index.setdefault(flow.to_address, []).append(("output", flow.txid))
    return index


def _step(
    current: str,
    by_txid: dict[str, list[UTXOFlow]],
    index: dict[str, list[tuple[_Side, str]]],
    claimed: set[str],
    *,
    backwards: bool,
) -> str | None:
    for flow in by_txid.get(current, ()):
        address = flow.from_address if backwards else flow.to_address
        wanted: _Side = "output" if backwards else "input"
        for side, txid in index.get(address, ()):
            if side == wanted and txid != current and txid not in claimed:
                return txid
    return None


def _chain_node(txid: str, tx_flows: list[UTXOFlow], next_txid: str | None) -> TransactionNode:
    return TransactionNode(
        id=txid,
        date=min(f.date for f in tx_flows),
        inputs=[
            TxInputRef(address=f.from_address, amount=f.amount) for f in tx_flows if f.from_wallet
        ],
        outputs=[
            TxOutputRef(
                address=f.to_address,
                amount=f.amount,
                is_change=f.flow_type == FlowType.INTERNAL and f.amount < CHANGE_THRESHOLD_SATS,
                is_external=False,
            )
            for f in tx_flows
            if f.to_wallet
        ],
        children=[next_txid] if next_txid else [],
        total_amount=sum(f.amount for f in tx_flows),
        wallet_flows=list(tx_flows),
    )


def build_flow_chains(flows: Iterable[UTXOFlow], max_depth: int = 10) -> list[TransactionTree]:
    """Build linear chain trees from flows.

    Chains of a single transaction are dropped.

    Returns:
        Trees rooted at ``chain_<first txid>``, sorted by chain length, longest first.
    """
    flows = list(flows)
    by_txid = group_flows_by_txid(flows)
    index = _address_index(flows)
    claimed: set[str] = set()
    chains: list[list[str]] = []

    for txid in by_txid:
        if txid in claimed:
            continue
        chain = [txid]
        claimed.add(txid)

        current = txid
        for _ in range(max_depth):
            parent = _step(current, by_txid, index, claimed, backwards=True)
            if parent is None:
                break
            chain.insert(0, parent)
            claimed.add(parent)
            current = parent

        current = txid
        for _ in range(max_depth):
            child = _step(current, by_txid, index, claimed, backwards=False)
            if child is None:
                break
            chain.append(child)
            claimed.add(child)
            current = child

        if len(chain) > 1:
            chains.append(chain)

    trees: list[TransactionTree] = []
    for chain in chains:
        nodes: dict[str, TransactionNode] = {}
        for pos, txid in enumerate(chain):
            next_txid = chain[pos + 1] if pos + 1 < len(chain) else None
            node = _chain_node(txid, by_txid[txid], next_txid)
            if pos > 0:
                node.parent = chain[pos - 1]
            nodes[txid] = node
        trees.append(
            TransactionTree(
                root_id=f"chain_{chain[0]}",
                nodes=nodes,
                total_amount=sum(n.total_amount for n in nodes.values()),
                total_value_usd=0.0,
                date_range=DateRange.of(n.date for n in nodes.values()),
                chain_length=len(chain),
                description=(
                    f"UTXO Chain: {len(chain)} transactions showing coin movement between wallets"
                ),
            )
        )

    trees.sort(key=lambda t: t.chain_length or 0, reverse=True)
    logger.info("Built %d UTXO chains from %d transactions", len(trees), len(by_txid))
    return trees
