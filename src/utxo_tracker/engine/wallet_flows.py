"""Wallet-flow aggregation — flows between known wallets and per-wallet trees.

A :class:`UTXOFlow` is one input×output pairing of a transaction attributed
to the wallets owning the two addresses. Trees built here are keyed by wallet,
not by spend chain: a transaction touching wallets ``A`` and ``B`` appears in
both wallets' trees.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from utxo_tracker.engine.models import (
    DateRange,
    FlowType,
    NormalizedTransaction,
    TransactionNode,
    TransactionTree,
    TxInputRef,
    TxOutputRef,
    UTXOFlow,
    WalletStats,
    WalletTxType,
    sats_to_btc,
)

if TYPE_CHECKING:
    from utxo_tracker.chain.esplora.models import RawTransaction

logger = logging.getLogger(__name__)

# Internal flows below this many sats are treated as change.
CHANGE_THRESHOLD_SATS = 100_000


def wallet_address_book(transactions: Iterable[NormalizedTransaction]) -> dict[str, set[str]]:
    """Wallet name -> addresses, from records carrying both."""
    book: dict[str, set[str]] = {}
    for tx in transactions:
        if tx.wallet and tx.address:
            book.setdefault(tx.wallet, set()).add(tx.address)
    return book


def _owner_index(wallet_addresses: Mapping[str, Iterable[str]]) -> dict[str, str]:
    owners: dict[str, str] = {}
    for wallet, addresses in wallet_addresses.items():
        for address in addresses:
            owners.setdefault(address, wallet)
    return owners


def flow_type_for(from_wallet: str | None, to_wallet: str | None, consolidation: bool) -> FlowType:
    """Same known wallet on both sides is internal (or consolidation); anything else is external."""
    if from_wallet and to_wallet and from_wallet == to_wallet:
        return FlowType.CONSOLIDATION if consolidation else FlowType.INTERNAL
    return FlowType.EXTERNAL


def build_utxo_flows(
    raw_transactions: Iterable[RawTransaction],
    wallet_addresses: Mapping[str, Iterable[str]],
    *,
    now: datetime | None = None,
) -> list[UTXOFlow]:
    """Build the flow edge list from provider transactions.

    Every input with a known prevout address is paired with every output.
    A pair is kept when the two sides belong to different wallets, or when
    the transaction is a consolidation. Flows are unique on
    ``(txid, from_address, to_address)``.

    Args:
        raw_transactions: Provider transactions.
        wallet_addresses: Wallet name -> owned addresses.
        now: Date given to flows of unconfirmed transactions.
    """
    owners = _owner_index(wallet_addresses)
    flows: list[UTXOFlow] = []
    seen: set[tuple[str, str, str]] = set()
    for raw in raw_transactions:
        consolidation = raw.is_consolidation
        date = raw.date or now or datetime.now(UTC)
        for vin in raw.vin:
            if not vin.address:
                continue
            from_wallet = owners.get(vin.address)
            for vout in raw.vout:
                to_wallet = owners.get(vout.address)
                if from_wallet == to_wallet and not consolidation:
                    continue
                key = (raw.txid, vin.address, vout.address)
                if key in seen:
                    continue
                seen.add(key)
                flow_type = flow_type_for(from_wallet, to_wallet, consolidation)
                flows.append(
                    UTXOFlow(
                        from_address=vin.address,
                        to_address=vout.address,
                        amount=vout.value,
                        txid=raw.txid,
                        date=date,
                        from_wallet=from_wallet,
                        to_wallet=to_wallet,
                        fee=raw.fee,
                        block_height=raw.block_height,
                        flow_type=flow_type,
                        is_change=flow_type == FlowType.INTERNAL
                        and vout.value < CHANGE_THRESHOLD_SATS,
                    )
                )
    logger.info("Built UTXO flow graph with %d flows", len(flows))
    return flows


def group_flows_by_txid(flows: Iterable[UTXOFlow]) -> dict[str, list[UTXOFlow]]:
    grouped: dict[str, list[UTXOFlow]] = {}
    for flow in flows:
        grouped.setdefault(flow.txid, []).append(flow)
    return grouped


def wallet_names(flows: Iterable[UTXOFlow]) -> list[str]:
    """Distinct wallet names in first-seen order."""
    names: dict[str, None] = {}
    for flow in flows:
        for wallet in (flow.from_wallet, flow.to_wallet):
            if wallet:
                names.setdefault(wallet, None)
    return list(names)


def transaction_type_for(legs: Iterable[UTXOFlow], wallet: str) -> WalletTxType:
    legs = list(legs)
    receives = any(f.to_wallet == wallet for f in legs)
    sends = any(f.from_wallet == wallet for f in legs)
    if receives and sends:
        return WalletTxType.INTERNAL
    if receives:
        return WalletTxType.RECEIVED
    if sends:
        return WalletTxType.SENT
    return WalletTxType.UNKNOWN


def related_wallets(legs: Iterable[UTXOFlow], wallet: str) -> list[str]:
    """Counterparty wallets of *legs*, excluding *wallet* and unknown owners."""
    related: dict[str, None] = {}
    for flow in legs:
        for other in (flow.from_wallet, flow.to_wallet):
            if other and other != wallet:
                related.setdefault(other, None)
    return list(related)


def _wallet_node(
    txid: str, tx_flows: list[UTXOFlow], legs: list[UTXOFlow], wallet: str
) -> TransactionNode:
    return TransactionNode(
        id=txid,
        date=min(f.date for f in tx_flows),
        confirmed=all(f.block_height is not None for f in tx_flows),
        inputs=[
            TxInputRef(address=f.to_address, amount=f.amount) for f in legs if f.to_wallet == wallet
        ],
        outputs=[
            TxOutputRef(
                address=f.from_address,
                amount=f.amount,
                is_change=f.is_change,
                is_external=not f.to_wallet,
            )
            for f in legs
            if f.from_wallet == wallet
        ],
        total_amount=sum(f.amount for f in tx_flows),
        transaction_type=transaction_type_for(legs, wallet),
        related_wallets=related_wallets(legs, wallet),
        wallet_flows=list(tx_flows),
    )


def build_wallet_flow_trees(flows: Iterable[UTXOFlow]) -> list[TransactionTree]:
    """Build one tree per wallet holding every transaction that touches it.

    Node inputs are the legs paying into the wallet, node outputs the legs
    paying out of it. Received/sent totals use those legs only, and
    ``total_amount`` of the tree is the resulting balance.

    Returns:
        Trees rooted at ``wallet_<name>``, sorted by transaction count, largest first.
    """
    flows = list(flows)
    by_txid = group_flows_by_txid(flows)
    trees: list[TransactionTree] = []

    for wallet in wallet_names(flows):
        nodes: dict[str, TransactionNode] = {}
        received = sent = 0
        selected = [
            (txid, tx_flows, legs)
            for txid, tx_flows in by_txid.items()
            if (legs := [f for f in tx_flows if wallet in (f.from_wallet, f.to_wallet)])
        ]
        selected.sort(key=lambda item: min(f.date for f in item[1]))
        for txid, tx_flows, legs in selected:
            node = _wallet_node(txid, tx_flows, legs, wallet)
            nodes[txid] = node
            received += sum(i.amount for i in node.inputs)
            sent += sum(o.amount for o in node.outputs)

        balance = received - sent
        count = len(nodes)
        trees.append(
            TransactionTree(
                root_id=f"wallet_{wallet}",
                nodes=nodes,
                total_amount=balance,
                total_value_usd=0.0,
                date_range=DateRange.of(n.date for n in nodes.values()),
                chain_length=count,
                description=(
                    f"{wallet} Wallet: {count} transactions "
                    f"({sats_to_btc(received):.8f} BTC received, {sats_to_btc(sent):.8f} BTC sent)"
                ),
                wallet_name=wallet,
                wallet_stats=WalletStats(
                    total_received=received,
                    total_sent=sent,
                    balance=balance,
                    transaction_count=count,
                ),
            )
        )

    trees.sort(key=lambda t: t.node_count, reverse=True)
    logger.info("Built %d wallet trees", len(trees))
    return trees


@dataclass
class WalletFlowSummary:
    """Flow totals for one wallet, in sats."""

    wallet: str
    total_received: int = 0
    total_sent: int = 0
    balance: int = 0
    flow_count: int = 0
    consolidations: int = 0
    external_transfers: int = 0

    def to_dict(self) -> dict[str, int | str]:
        return {
            "wallet": self.wallet,
            "total_received": self.total_received,
            "total_sent": self.total_sent,
            "balance": self.balance,
            "flow_count": self.flow_count,
            "consolidations": self.consolidations,
            "external_transfers": self.external_transfers,
        }


def wallet_summary(flows: Iterable[UTXOFlow], wallet: str) -> WalletFlowSummary:
    """Totals over the flows that touch *wallet*."""
    summary = WalletFlowSummary(wallet=wallet)
    for flow in flows:
        if wallet not in (flow.from_wallet, flow.to_wallet):
            continue
        summary.flow_count += 1
        if flow.to_wallet == wallet:
            summary.total_received += flow.amount
        if flow.from_wallet == wallet:
            summary.total_sent += flow.amount
        if flow.flow_type == FlowType.CONSOLIDATION:
            summary.consolidations += 1
        elif flow.flow_type == FlowType.EXTERNAL:
            summary.external_transfers += 1
    summary.balance = summary.total_received - summary.total_sent
    return summary
