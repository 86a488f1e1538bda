"""Tests for the configuration system."""

from __future__ import annotations

import textwrap
from typing import TYPE_CHECKING

import pytest

from utxo_tracker.config.settings import (
    AppConfig,
    CacheConfig,
    CacheEngine,
    LogLevel,
    MetricsConfig,
    PriceConfig,
    ProviderConfig,
    TracerConfig,
    _load_yaml,
)
from utxo_tracker.engine.tracer import TraceOptions

if TYPE_CHECKING:
    from pathlib import Path

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


class TestDefaults:
    """Verify all default values are correct."""

    def test_tracer_defaults(self) -> None:
        cfg = TracerConfig()
        assert cfg.use_real_blockchain_data is False
        assert cfg.max_depth == 10
        assert cfg.max_path_length == 10
        assert cfg.allow_overlapping_roots is True

    def test_cache_defaults(self) -> None:
        cfg = CacheConfig()
        assert cfg.engine == CacheEngine.MEMORY
        assert cfg.url == "redis://localhost:6379/0"
        assert cfg.ttl_seconds == 3600
        assert cfg.max_size == 10000
        assert cfg.key_prefix == "utxo"

    def test_provider_defaults(self) -> None:
        cfg = ProviderConfig()
        assert cfg.mempool_url == "https://mempool.space/api"
        assert cfg.blockstream_url == "https://blockstream.info/api"
        assert cfg.batch_size == 10
        assert cfg.batch_delay == 0.1

    def test_price_defaults(self) -> None:
        cfg = PriceConfig()
        assert cfg.symbol == "BTC-USD"
        assert cfg.url.endswith("/v8/finance/chart")
        assert cfg.price_ttl_seconds == 86400

    def test_app_config_defaults(self) -> None:
        cfg = AppConfig()
        assert cfg.debug is False
        assert cfg.log_level == LogLevel.INFO
        assert cfg.config_path == ""
        assert isinstance(cfg.tracer, TracerConfig)
        assert isinstance(cfg.metrics, MetricsConfig)

    def test_trace_options_from_config(self) -> None:
        options = TraceOptions.from_config(TracerConfig(max_depth=3, use_real_blockchain_data=True))
        assert options == TraceOptions(use_real_blockchain_data=True, max_depth=3)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    def test_cache_engine_invalid(self) -> None:
        with pytest.raises(Exception):  # noqa: B017
            CacheConfig(engine="memcached")  # type: ignore[arg-type]

    def test_batch_size_must_be_positive(self) -> None:
        with pytest.raises(Exception):  # noqa: B017
            ProviderConfig(batch_size=0)

    def test_max_path_length_must_be_positive(self) -> None:
        with pytest.raises(Exception):  # noqa: B017
            TracerConfig(max_path_length=0)

    def test_log_level_is_case_insensitive(self) -> None:
        assert AppConfig(log_level="debug").log_level == LogLevel.DEBUG


# ---------------------------------------------------------------------------
# Environment variable override
# ---------------------------------------------------------------------------


class TestEnvOverride:
    """Verify environment variables override defaults."""

    def test_top_level_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("UTXOTRACKER_DEBUG", "true")
        monkeypatch.setenv("UTXOTRACKER_LOG_LEVEL", "warning")
        cfg = AppConfig()
        assert cfg.debug is True
        assert cfg.log_level == LogLevel.WARNING

    def test_nested_tracer_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("UTXOTRACKER_TRACER__MAX_DEPTH", "25")
        monkeypatch.setenv("UTXOTRACKER_TRACER__USE_REAL_BLOCKCHAIN_DATA", "true")
        cfg = AppConfig()
        assert cfg.tracer.max_depth == 25
        assert cfg.tracer.use_real_blockchain_data is True

    def test_nested_cache_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("UTXOTRACKER_CACHE__ENGINE", "redis")
        monkeypatch.setenv("UTXOTRACKER_CACHE__TTL_SECONDS", "600")
        cfg = AppConfig()
        assert cfg.cache.engine == CacheEngine.REDIS
        assert cfg.cache.ttl_seconds == 600


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------


class TestYAML:
    """YAML config file loading."""

    def test_load_yaml_nonexistent(self, tmp_path: Path) -> None:
        assert _load_yaml(tmp_path / "nonexistent.yaml") == {}

    def test_load_yaml_non_dict(self, tmp_path: Path) -> None:
        f = tmp_path / "list.yaml"
        f.write_text("- item1\n- item2\n")
        assert _load_yaml(f) == {}

    def test_from_yaml(self, tmp_path: Path) -> None:
        f = tmp_path / "app.yaml"
        f.write_text(
            textwrap.dedent("""\
                debug: true
                tracer:
                  max_depth: 4
                  allow_overlapping_roots: false
                provider:
                  batch_size: 3
            """)
        )
        cfg = AppConfig.from_yaml(f)
        assert cfg.debug is True
        assert cfg.tracer.max_depth == 4
        assert cfg.tracer.allow_overlapping_roots is False
        assert cfg.provider.batch_size == 3

    def test_env_overrides_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Env vars have higher priority than YAML values."""
        f = tmp_path / "app.yaml"
        f.write_text("log_level: error\n")
        monkeypatch.setenv("UTXOTRACKER_LOG_LEVEL", "debug")
        cfg = AppConfig.from_yaml(f)
        assert cfg.log_level == LogLevel.DEBUG
