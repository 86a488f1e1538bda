"""Esplora provider client (mempool.space, blockstream.info)."""

from __future__ import annotations

from utxo_tracker.chain.esplora.client import EsploraClient
from utxo_tracker.chain.esplora.models import RawInput, RawOutput, RawTransaction

__all__ = ["EsploraClient", "RawInput", "RawOutput", "RawTransaction"]
