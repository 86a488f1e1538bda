"""Persistence interface consumed by the tracker service."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from utxo_tracker.engine.models import NormalizedTransaction


@runtime_checkable
class TransactionStore(Protocol):
    """Read access to normalized records plus a raw provider-data cache.

    Implementations own read consistency: a single trace or build sees one
    snapshot of what these methods return.
    """

    async def list_transactions_for_wallet(self, wallet: str) -> list[NormalizedTransaction]: ...

    async def list_all_transactions(self) -> list[NormalizedTransaction]: ...

    async def get_cached_raw_transaction(self, txid: str) -> dict[str, Any] | None: ...

    async def put_cached_raw_transaction(
        self, txid: str, data: dict[str, Any], source: str
    ) -> None: ...
