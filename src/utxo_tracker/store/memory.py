"""In-process transaction store."""

from __future__ import annotations

import copy
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from utxo_tracker.engine.models import NormalizedTransaction


class MemoryTransactionStore:
    """Keeps normalized records and raw provider documents in memory.

    Used by the CLI and tests. Records are returned in insertion order.
    """

    def __init__(self, transactions: Iterable[NormalizedTransaction] = ()) -> None:
        self._transactions: list[NormalizedTransaction] = list(transactions)
        self._raw: dict[str, tuple[dict[str, Any], str]] = {}

    def add_transactions(self, transactions: Iterable[NormalizedTransaction]) -> int:
        """Append records. Returns the number added."""
        before = len(self._transactions)
        self._transactions.extend(transactions)
        return len(self._transactions) - before

    def wallets(self) -> list[str]:
        """Distinct wallet names in first-seen order."""
        return list(dict.fromkeys(tx.wallet for tx in self._transactions if tx.wallet))

    async def list_transactions_for_wallet(  # noqa: ASYNC910
        self, wallet: str
    ) -> list[NormalizedTransaction]:
        return [tx for tx in self._transactions if tx.wallet == wallet]

    async def list_all_transactions(self) -> list[NormalizedTransaction]:  # noqa: ASYNC910
        return list(self._transactions)

    async def get_cached_raw_transaction(  # noqa: ASYNC910
        self, txid: str
    ) -> dict[str, Any] | None:
        entry = self._raw.get(txid)
        return None if entry is None else copy.deepcopy(entry[0])

    async def put_cached_raw_transaction(  # noqa: ASYNC910
        self, txid: str, data: dict[str, Any], source: str
    ) -> None:
        self._raw[txid] = (copy.deepcopy(data), source)

    def raw_source(self, txid: str) -> str | None:
        """Provider name a cached document came from."""
        entry = self._raw.get(txid)
        return None if entry is None else entry[1]
