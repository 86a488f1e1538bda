"""Core records — normalized transactions, tree nodes, edges and flows.

All amounts are integer satoshis unless noted otherwise; prices are USD per
BTC as ``float``. Dates are timezone-aware UTC ``datetime`` values.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

SATS_PER_BTC = 100_000_000


def sats_to_btc(sats: int) -> float:
    """Convert satoshis to BTC."""
    return sats / SATS_PER_BTC


def parse_datetime(value: Any) -> datetime:
    """Parse an ISO-8601 string, unix timestamp or datetime into an aware UTC datetime."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, int | float):
        return datetime.fromtimestamp(value, tz=UTC)
    else:
        dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


# ---------------------------------------------------------------------------
# Normalized wallet records
# ---------------------------------------------------------------------------


class Direction(enum.StrEnum):
    """Value direction relative to the owning wallet."""

    INPUT = "input"  # received
    OUTPUT = "output"  # sent

    @classmethod
    def from_value(cls, value: int) -> Direction:
        """Non-negative values are received, negative values are sent."""
        return cls.INPUT if value >= 0 else cls.OUTPUT


@dataclass
class NormalizedTransaction:
    """One (txid, wallet, direction) leg of a transaction.

    ``txid`` is not unique across a record set: a transaction appears once per
    wallet and once per input/output leg.

    Attributes:
        txid: Transaction ID.
        date: Timestamp used only for ordering.
        direction: ``input`` when value flows into the wallet, ``output`` when it leaves.
        value: Signed amount in sats. The sign is informational.
        label: Free-form label from the wallet export.
        fee: Fee hint from the source, in sats.
        confirmed: Confirmation flag from the source.
        balance: Running balance hint from the source, in sats.
        address: Address of the leg, when the export carries one.
        wallet: Owning wallet name, when known.
    """

    txid: str
    date: datetime
    direction: Direction
    value: int
    label: str = ""
    fee: int = 0
    confirmed: bool = True
    balance: int | None = None
    address: str = ""
    wallet: str = ""

    @property
    def amount(self) -> int:
        """Magnitude of the transacted value."""
        return abs(self.value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "txid": self.txid,
            "date": self.date.isoformat(),
            "direction": self.direction.value,
            "value": self.value,
            "label": self.label,
            "fee": self.fee,
            "confirmed": self.confirmed,
            "balance": self.balance,
            "address": self.address,
            "wallet": self.wallet,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NormalizedTransaction:
        value = int(data.get("value", 0))
        direction = data.get("direction")
        return cls(
            txid=data.get("txid", ""),
            date=parse_datetime(data["date"]),
            direction=Direction(direction) if direction else Direction.from_value(value),
            value=value,
            label=data.get("label", ""),
            fee=int(data.get("fee", 0) or 0),
            confirmed=bool(data.get("confirmed", True)),
            balance=data.get("balance"),
            address=data.get("address", ""),
            wallet=data.get("wallet", ""),
        )


@dataclass
class TransactionGroup:
    """All records sharing one txid."""

    txid: str
    records: list[NormalizedTransaction] = field(default_factory=list)

    @property
    def received(self) -> int:
        return sum(r.amount for r in self.records if r.direction == Direction.INPUT)

    @property
    def sent(self) -> int:
        return sum(r.amount for r in self.records if r.direction == Direction.OUTPUT)

    @property
    def fee(self) -> int:
        return max((r.fee for r in self.records), default=0)

    @property
    def date(self) -> datetime:
        return self.records[0].date

    @property
    def confirmed(self) -> bool:
        return self.records[0].confirmed

    def is_balanced(self, tolerance: int = 0) -> bool:
        """Check that both sides agree within the fee plus *tolerance*.

        A group seen from only one side (a single wallet's export) cannot be
        checked and counts as balanced.
        """
        received, sent = self.received, self.sent
        if received == 0 or sent == 0:
            return True
        return abs(received - sent) <= self.fee + tolerance


def group_by_txid(transactions: Iterable[NormalizedTransaction]) -> dict[str, TransactionGroup]:
    """Group records by txid, preserving first-seen order."""
    groups: dict[str, TransactionGroup] = {}
    for tx in transactions:
        group = groups.get(tx.txid)
        if group is None:
            group = groups[tx.txid] = TransactionGroup(txid=tx.txid)
        group.records.append(tx)
    return groups


# ---------------------------------------------------------------------------
# Tree nodes
# ---------------------------------------------------------------------------


@dataclass
class TxInputRef:
    """An address and amount consumed by a transaction."""

    address: str
    amount: int

    def to_dict(self) -> dict[str, Any]:
        return {"address": self.address, "amount": self.amount}


@dataclass
class TxOutputRef:
    """An address and amount produced by a transaction."""

    address: str
    amount: int
    is_change: bool = False
    is_external: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "amount": self.amount,
            "is_change": self.is_change,
            "is_external": self.is_external,
        }


class WalletTxType(enum.StrEnum):
    """Transaction type relative to one wallet."""

    INTERNAL = "internal"
    RECEIVED = "received"
    SENT = "sent"
    UNKNOWN = "unknown"


@dataclass
class TransactionNode:
    """The unit of a constructed tree.

    ``children`` is authoritative for traversal. ``parent`` is a back-reference
    only and holds at most one txid.
    """

    id: str
    date: datetime
    confirmed: bool = True
    inputs: list[TxInputRef] = field(default_factory=list)
    outputs: list[TxOutputRef] = field(default_factory=list)
    children: list[str] = field(default_factory=list)
    parent: str | None = None
    total_amount: int = 0
    price: float | None = None
    price_usd: float | None = None
    transaction_type: WalletTxType | None = None
    related_wallets: list[str] = field(default_factory=list)
    wallet_flows: list[UTXOFlow] = field(default_factory=list)

    def add_child(self, txid: str) -> bool:
        """Append *txid* to children unless already present."""
        if txid in self.children:
            return False
        self.children.append(txid)
        return True

    def set_price(self, price: float | None) -> None:
        """Backfill the BTC price and the derived USD value of ``total_amount``."""
        self.price = price
        self.price_usd = None if price is None else sats_to_btc(self.total_amount) * price

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "date": self.date.isoformat(),
            "confirmed": self.confirmed,
            "inputs": [i.to_dict() for i in self.inputs],
            "outputs": [o.to_dict() for o in self.outputs],
            "children": list(self.children),
            "parent": self.parent,
            "total_amount": self.total_amount,
            "price": self.price,
            "price_usd": self.price_usd,
        }
        if self.transaction_type is not None:
            data["transaction_type"] = self.transaction_type.value
            data["related_wallets"] = list(self.related_wallets)
            data["wallet_flows"] = [f.to_dict() for f in self.wallet_flows]
        return data


@dataclass
class DateRange:
    start: datetime
    end: datetime

    @classmethod
    def of(cls, dates: Iterable[datetime]) -> DateRange:
        ordered = sorted(dates)
        return cls(start=ordered[0], end=ordered[-1])

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


@dataclass
class WalletStats:
    """Aggregate received/sent totals for one wallet, in sats."""

    total_received: int = 0
    total_sent: int = 0
    total_fees: int = 0
    balance: int = 0
    transaction_count: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total_received": self.total_received,
            "total_sent": self.total_sent,
            "total_fees": self.total_fees,
            "balance": self.balance,
            "transaction_count": self.transaction_count,
        }


@dataclass
class TransactionTree:
    """A rooted set of transaction nodes with aggregates.

    In the spend-chain variant no node is shared across trees (except through
    overlapping roots). The wallet-flow variant lets one txid appear in several
    per-wallet trees.
    """

    root_id: str
    nodes: dict[str, TransactionNode]
    total_amount: int
    total_value_usd: float
    date_range: DateRange
    chain_length: int | None = None
    description: str = ""
    wallet_name: str | None = None
    wallet_stats: WalletStats | None = None

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "root_id": self.root_id,
            "nodes": {txid: node.to_dict() for txid, node in self.nodes.items()},
            "total_amount": self.total_amount,
            "total_value_usd": self.total_value_usd,
            "date_range": self.date_range.to_dict(),
            "chain_length": self.chain_length,
            "description": self.description,
        }
        if self.wallet_name is not None:
            data["wallet_name"] = self.wallet_name
        if self.wallet_stats is not None:
            data["wallet_stats"] = self.wallet_stats.to_dict()
        return data


# ---------------------------------------------------------------------------
# Edges
# ---------------------------------------------------------------------------


class EdgeSource(enum.StrEnum):
    """How an edge was discovered."""

    EXACT = "exact"  # vin back-reference from provider data
    HEURISTIC = "heuristic"  # address reuse plus temporal ordering


@dataclass(frozen=True)
class Edge:
    """``parent`` produced a UTXO that ``child`` consumed."""

    parent: str
    child: str
    source: EdgeSource
    address: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "parent": self.parent,
            "child": self.child,
            "source": self.source.value,
            "address": self.address,
        }


class EdgeSet:
    """Ordered, de-duplicated set of spend edges.

    A ``(parent, child)`` pair is stored once, keeping the first edge seen.
    ``truncated`` counts branches cut by traversal bounds and ``visits``
    counts node expansions performed while tracing.
    """

    def __init__(self) -> None:
        self._edges: list[Edge] = []
        self._pairs: set[tuple[str, str]] = set()
        self._parents: dict[str, list[str]] = {}
        self._children: dict[str, list[str]] = {}
        self.truncated = 0
        self.visits = 0

    def add(self, edge: Edge) -> bool:
        """Add *edge*. Returns False if the pair was already present."""
        pair = (edge.parent, edge.child)
        if pair in self._pairs:
            return False
        self._pairs.add(pair)
        self._edges.append(edge)
        self._children.setdefault(edge.parent, []).append(edge.child)
        self._parents.setdefault(edge.child, []).append(edge.parent)
        return True

    def parents_of(self, txid: str) -> list[str]:
        return list(self._parents.get(txid, ()))

    def children_of(self, txid: str) -> list[str]:
        return list(self._children.get(txid, ()))

    def __iter__(self) -> Iterator[Edge]:
        return iter(self._edges)

    def __len__(self) -> int:
        return len(self._edges)

    def __contains__(self, pair: object) -> bool:
        return pair in self._pairs

    def pairs(self) -> list[tuple[str, str]]:
        return [(e.parent, e.child) for e in self._edges]


# ---------------------------------------------------------------------------
# Wallet flows
# ---------------------------------------------------------------------------


class FlowType(enum.StrEnum):
    INTERNAL = "internal"
    EXTERNAL = "external"
    CONSOLIDATION = "consolidation"


@dataclass
class UTXOFlow:
    """One input×output pairing of a transaction, attributed to wallets.

    ``from_wallet``/``to_wallet`` are None when the address belongs to no
    known wallet.
    """

    from_address: str
    to_address: str
    amount: int
    txid: str
    date: datetime
    from_wallet: str | None = None
    to_wallet: str | None = None
    fee: int = 0
    block_height: int | None = None
    flow_type: FlowType = FlowType.EXTERNAL
    is_change: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "from_wallet": self.from_wallet,
            "to_wallet": self.to_wallet,
            "from_address": self.from_address,
            "to_address": self.to_address,
            "amount": self.amount,
            "txid": self.txid,
            "date": self.date.isoformat(),
            "fee": self.fee,
            "block_height": self.block_height,
            "flow_type": self.flow_type.value,
            "is_change": self.is_change,
        }


# ---------------------------------------------------------------------------
# Cost basis records
# ---------------------------------------------------------------------------


class TransactionType(enum.StrEnum):
    """Economic classification used by the cost-basis fold."""

    PURCHASE = "purchase"
    SELL = "sell"
    MOVE = "move"


@dataclass
class Transaction:
    """A priced transaction for cost-basis accounting.

    Amounts are BTC as ``float``. ``cost_basis`` and ``profit_loss`` stay None
    when they cannot be computed.
    """

    id: str
    date: datetime
    type: TransactionType
    amount: float
    price: float | None = None
    fee: float = 0.0
    wallet: str = ""
    label: str = ""
    cost_basis: float | None = None
    profit_loss: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "type": self.type.value,
            "amount": self.amount,
            "price": self.price,
            "fee": self.fee,
            "wallet": self.wallet,
            "label": self.label,
            "cost_basis": self.cost_basis,
            "profit_loss": self.profit_loss,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Transaction:
        price = data.get("price")
        return cls(
            id=str(data.get("id", "")),
            date=parse_datetime(data["date"]),
            type=TransactionType(str(data.get("type", "move")).lower()),
            amount=float(data.get("amount", 0.0)),
            price=None if price is None else float(price),
            fee=float(data.get("fee", 0.0) or 0.0),
            wallet=data.get("wallet", ""),
            label=data.get("label", ""),
        )
