"""Esplora data models — the per-input/per-output view of a transaction.

Mirrors the ``GET /tx/{txid}`` response shared by mempool.space and
blockstream.info. Only the fields the tracer needs are kept.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


@dataclass
class RawInput:
    """A transaction input and the previous output it spends.

    Attributes:
        txid: ID of the transaction that produced the spent output.
        vout: Index of the spent output.
        address: ``prevout.scriptpubkey_address`` (empty for coinbase/non-standard).
        value: ``prevout.value`` in sats.
        is_coinbase: True for the coinbase input.
    """

    txid: str = ""
    vout: int = 0
    address: str = ""
    value: int = 0
    is_coinbase: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawInput:
        prevout = data.get("prevout") or {}
        return cls(
            txid=data.get("txid", ""),
            vout=data.get("vout", 0),
            address=prevout.get("scriptpubkey_address", ""),
            value=prevout.get("value", 0),
            is_coinbase=bool(data.get("is_coinbase", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "txid": self.txid,
            "vout": self.vout,
            "prevout": {"scriptpubkey_address": self.address, "value": self.value},
            "is_coinbase": self.is_coinbase,
        }


@dataclass
class RawOutput:
    """A transaction output."""

    address: str = ""
    value: int = 0
    script_hex: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawOutput:
        return cls(
            address=data.get("scriptpubkey_address", ""),
            value=data.get("value", 0),
            script_hex=data.get("scriptpubkey", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "scriptpubkey_address": self.address,
            "value": self.value,
            "scriptpubkey": self.script_hex,
        }


@dataclass
class RawTransaction:
    """Provider view of one transaction.

    Attributes:
        txid: Transaction ID.
        vin: Inputs in order.
        vout: Outputs in order.
        fee: Fee in sats.
        confirmed: Whether the transaction is mined.
        block_height: Height of the mining block, if mined.
        block_time: Unix timestamp of the mining block, if mined.
    """

    txid: str
    vin: list[RawInput] = field(default_factory=list)
    vout: list[RawOutput] = field(default_factory=list)
    fee: int = 0
    confirmed: bool = False
    block_height: int | None = None
    block_time: int | None = None

    @property
    def date(self) -> datetime | None:
        if self.block_time is None:
            return None
        return datetime.fromtimestamp(self.block_time, tz=UTC)

    @property
    def input_addresses(self) -> list[str]:
        return [i.address for i in self.vin if i.address]

    @property
    def output_addresses(self) -> list[str]:
        return [o.address for o in self.vout if o.address]

    @property
    def is_consolidation(self) -> bool:
        """More inputs than outputs."""
        return len(self.vin) > len(self.vout)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawTransaction:
        status = data.get("status") or {}
        return cls(
            txid=data.get("txid", ""),
            vin=[RawInput.from_dict(i) for i in data.get("vin", [])],
            vout=[RawOutput.from_dict(o) for o in data.get("vout", [])],
            fee=data.get("fee", 0),
            confirmed=bool(status.get("confirmed", False)),
            block_height=status.get("block_height"),
            block_time=status.get("block_time"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "txid": self.txid,
            "vin": [i.to_dict() for i in self.vin],
            "vout": [o.to_dict() for o in self.vout],
            "fee": self.fee,
            "status": {
                "confirmed": self.confirmed,
                "block_height": self.block_height,
                "block_time": self.block_time,
            },
        }
