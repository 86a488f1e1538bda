"""Application settings loaded from environment variables and config files.

Configuration is loaded from (highest priority first):
1. Environment variables (prefix: ``UTXOTRACKER_``, nested via ``__``)
2. YAML config file (``--config path`` or ``UTXOTRACKER_CONFIG_PATH`` env var)
3. Defaults defined here
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Enums for validated choices
# ---------------------------------------------------------------------------


class CacheEngine(enum.StrEnum):
    """Supported cache backends."""

    MEMORY = "memory"
    REDIS = "redis"


class LogLevel(enum.StrEnum):
    """Logging levels accepted by ``logging.basicConfig``."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class TracerConfig(BaseSettings):
    """Relationship tracing and tree building settings."""

    model_config = SettingsConfigDict(
        env_prefix="UTXOTRACKER_TRACER__",
        case_sensitive=False,
    )

    use_real_blockchain_data: bool = Field(
        default=False,
        description="Link transactions through provider vin references instead of address reuse",
    )
    max_depth: int = Field(default=10, ge=0, description="Maximum ancestor hops per traced branch")
    max_path_length: int = Field(
        default=10, ge=1, description="Maximum number of txids in one traversal path"
    )
    allow_overlapping_roots: bool = Field(
        default=True,
        description="Also enumerate externally funded transactions that have a parent as roots",
    )


class CacheConfig(BaseSettings):
    """Cache settings."""

    model_config = SettingsConfigDict(
        env_prefix="UTXOTRACKER_CACHE__",
        case_sensitive=False,
    )

    engine: CacheEngine = Field(
        default=CacheEngine.MEMORY,
        description="Cache backend: memory or redis",
    )
    url: str = "redis://localhost:6379/0"
    max_connections: int = 10
    ttl_seconds: int = 3600
    max_size: int = 10000
    key_prefix: str = "utxo"


class ProviderConfig(BaseSettings):
    """Esplora blockchain provider settings (mempool.space, blockstream.info)."""

    model_config = SettingsConfigDict(
        env_prefix="UTXOTRACKER_PROVIDER__",
        case_sensitive=False,
    )

    mempool_url: str = "https://mempool.space/api"
    blockstream_url: str = "https://blockstream.info/api"
    timeout: float = 30.0
    batch_size: int = Field(default=10, ge=1)
    batch_delay: float = Field(default=0.1, ge=0.0)


class PriceConfig(BaseSettings):
    """Historical price provider settings."""

    model_config = SettingsConfigDict(
        env_prefix="UTXOTRACKER_PRICE__",
        case_sensitive=False,
    )

    url: str = "https://query1.finance.yahoo.com/v8/finance/chart"
    symbol: str = "BTC-USD"
    timeout: float = 30.0
    price_ttl_seconds: int = 24 * 60 * 60
    user_agent: str = "Mozilla/5.0 (compatible; utxo-tracker/0.1)"


class MetricsConfig(BaseSettings):
    """Prometheus metrics settings."""

    model_config = SettingsConfigDict(
        env_prefix="UTXOTRACKER_METRICS__",
        case_sensitive=False,
    )

    enabled: bool = True


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


def _load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file and return its contents as a dict.

    Returns an empty dict if the file doesn't exist or is empty.
    """
    p = Path(path)
    if not p.exists():
        return {}
    text = p.read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    return data if isinstance(data, dict) else {}


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Loads settings from environment variables (``UTXOTRACKER_`` prefix),
    an optional YAML file, and built-in defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="UTXOTRACKER_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    debug: bool = False
    version: str = "0.1.0"
    log_level: LogLevel = LogLevel.INFO
    config_path: str = ""

    tracer: TracerConfig = Field(default_factory=TracerConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    price: PriceConfig = Field(default_factory=PriceConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @model_validator(mode="before")
    @classmethod
    def _merge_yaml(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Merge YAML config file contents under the env var overrides."""
        config_path = values.get("config_path", "")
        if not config_path:
            return values
        yaml_data = _load_yaml(config_path)
        # YAML values serve as defaults; env vars (already in *values*) win.
        for key, val in yaml_data.items():
            if key not in values or values[key] is None:
                values[key] = val
            elif isinstance(val, dict) and isinstance(values.get(key), dict):
                merged = {**val, **values[key]}
                values[key] = merged
        return values

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Construct ``AppConfig`` loading defaults from a YAML file.

        Environment variables still override YAML values.
        """
        return cls(config_path=str(path))
