"""Shared test fixtures for the utxo-tracker test suite."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from utxo_tracker.chain.esplora.models import RawInput, RawOutput, RawTransaction
from utxo_tracker.engine.models import Direction, NormalizedTransaction

BASE_DATE = datetime(2023, 1, 1, tzinfo=UTC)


@pytest.fixture
def app_config():
    """Provide a test AppConfig with safe defaults."""
    from utxo_tracker.config.settings import AppConfig, CacheConfig, CacheEngine, ProviderConfig

    return AppConfig(
        debug=True,
        cache=CacheConfig(engine=CacheEngine.MEMORY),
        provider=ProviderConfig(
            mempool_url="https://mempool.test/api",
            blockstream_url="https://blockstream.test/api",
            batch_delay=0.0,
        ),
    )


@pytest.fixture
def make_record() -> Callable[..., NormalizedTransaction]:
    """Factory for normalized records; ``day`` offsets from 2023-01-01."""

    def _make(
        txid: str,
        *,
        day: float = 0,
        value: int = 50_000,
        address: str = "",
        wallet: str = "",
        fee: int = 0,
        direction: Direction | None = None,
    ) -> NormalizedTransaction:
        return NormalizedTransaction(
            txid=txid,
            date=BASE_DATE + timedelta(days=day),
            direction=direction or Direction.from_value(value),
            value=value,
            fee=fee,
            address=address,
            wallet=wallet,
        )

    return _make


@pytest.fixture
def make_raw() -> Callable[..., RawTransaction]:
    """Factory for provider transactions.

    ``inputs`` are ``(prev_txid, address, value)`` and ``outputs`` are
    ``(address, value)`` tuples.
    """

    def _make(
        txid: str,
        *,
        inputs: list[tuple[str, str, int]] = (),
        outputs: list[tuple[str, int]] = (),
        day: float | None = 0,
        height: int | None = 800_000,
        fee: int = 200,
    ) -> RawTransaction:
        block_time = None if day is None else int((BASE_DATE + timedelta(days=day)).timestamp())
        return RawTransaction(
            txid=txid,
            vin=[RawInput(txid=p, vout=0, address=a, value=v) for p, a, v in inputs],
            vout=[RawOutput(address=a, value=v) for a, v in outputs],
            fee=fee,
            confirmed=block_time is not None,
            block_height=height if block_time is not None else None,
            block_time=block_time,
        )

    return _make


@pytest.fixture
def esplora_tx_json() -> Callable[..., dict[str, Any]]:
    """Factory for an Esplora ``/tx/<txid>`` document."""

    def _make(txid: str, *, prev: str = "00" * 32, address: str = "bc1qsource") -> dict[str, Any]:
        return {
            "txid": txid,
            "vin": [
                {
                    "txid": prev,
                    "vout": 1,
                    "prevout": {"scriptpubkey_address": address, "value": 150_000},
                    "is_coinbase": False,
                }
            ],
            "vout": [
                {"scriptpubkey_address": "bc1qdest", "value": 100_000, "scriptpubkey": "0014ab"},
                {"scriptpubkey_address": "bc1qchange", "value": 49_800, "scriptpubkey": "0014cd"},
            ],
            "fee": 200,
            "status": {"confirmed": True, "block_height": 800_123, "block_time": 1_672_531_200},
        }

    return _make
