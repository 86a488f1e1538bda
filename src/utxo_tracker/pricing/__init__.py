"""Historical price lookup."""

from __future__ import annotations

from utxo_tracker.pricing.service import PriceService

__all__ = ["PriceService"]
