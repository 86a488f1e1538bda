"""Blockchain data — Esplora clients and the failover service."""

from __future__ import annotations

from utxo_tracker.chain.service import BlockchainService

__all__ = ["BlockchainService"]
