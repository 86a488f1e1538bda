"""Tree summaries and per-wallet statistics."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from utxo_tracker.engine.models import (
    DateRange,
    Direction,
    NormalizedTransaction,
    TransactionTree,
    WalletStats,
)


@dataclass
class TreeSummary:
    """Listing view of one tree."""

    id: str
    root_id: str
    total_amount: int
    total_value_usd: float
    date_range: DateRange
    transaction_count: int
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "root_id": self.root_id,
            "total_amount": self.total_amount,
            "total_value_usd": self.total_value_usd,
            "date_range": self.date_range.to_dict(),
            "transaction_count": self.transaction_count,
            "description": self.description,
        }


def describe_tree(tree: TransactionTree) -> str:
    """Human description from the root node's outputs, or the chain length."""
    if tree.chain_length:
        text = f"UTXO Chain: {tree.chain_length} transactions showing coin movement between wallets"
    else:
        root = tree.nodes.get(tree.root_id) or next(iter(tree.nodes.values()), None)
        if root is None:
            return f"Tree with {tree.node_count} transactions"
        external = sum(1 for o in root.outputs if o.is_external)
        change = sum(1 for o in root.outputs if o.is_change)
        text = f"Tree with {len(root.inputs)} inputs and {len(root.outputs)} outputs"
        if external:
            text += f" ({external} external)"
        if change:
            text += f" ({change} change)"
    return f"{text} on {tree.date_range.start.date().isoformat()}"


def summarize_trees(trees: Iterable[TransactionTree]) -> list[TreeSummary]:
    """Summaries ordered by node count, largest first, with ids ``tree-<index>``."""
    ordered = sorted(trees, key=lambda t: t.node_count, reverse=True)
    return [
        TreeSummary(
            id=f"tree-{index}",
            root_id=tree.root_id,
            total_amount=tree.total_amount,
            total_value_usd=tree.total_value_usd,
            date_range=tree.date_range,
            transaction_count=tree.node_count,
            description=tree.description or describe_tree(tree),
        )
        for index, tree in enumerate(ordered)
    ]


def wallet_stats(transactions: Iterable[NormalizedTransaction], wallet: str) -> WalletStats:
    """Received, sent and fee totals of one wallet's records.

    ``balance`` is received minus sent minus fees.
    """
    records = [tx for tx in transactions if tx.wallet == wallet]
    received = sum(tx.amount for tx in records if tx.direction == Direction.INPUT)
    sent = sum(tx.amount for tx in records if tx.direction == Direction.OUTPUT)
    fees = sum(tx.fee for tx in records)
    return WalletStats(
        total_received=received,
        total_sent=sent,
        total_fees=fees,
        balance=received - sent - fees,
        transaction_count=len(records),
    )
