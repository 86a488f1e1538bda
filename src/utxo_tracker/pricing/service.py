"""Historical BTC/USD daily close from the Yahoo Finance chart API.

GET <url>/<symbol>?period1=<day start>&period2=<day start + 86400>&interval=1d

Every failure (transport, HTTP status, chart error, empty series, zero or
null close) yields None. Prices are never substituted.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from datetime import UTC, date, datetime, time
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from utxo_tracker.cache.client import CacheClient
    from utxo_tracker.config.settings import PriceConfig

logger = logging.getLogger(__name__)

_DAY_SECONDS = 24 * 60 * 60


def _as_day(value: date | datetime) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.date()
    return value


class _PriceLookupError(Exception):
    """The chart response carried no usable close."""


def _close_from_chart(data: Any) -> float:
    chart = data.get("chart") if isinstance(data, dict) else None
    if not isinstance(chart, dict):
        msg = "response carried no chart object"
        raise _PriceLookupError(msg)
    if chart.get("error"):
        msg = f"chart error: {chart['error']}"
        raise _PriceLookupError(msg)
    results = chart.get("result") or []
    if not isinstance(results, list) or not results or not isinstance(results[0], dict):
        msg = "no chart result"
        raise _PriceLookupError(msg)
    indicators = results[0].get("indicators") or {}
    quotes = indicators.get("quote") if isinstance(indicators, dict) else None
    if not isinstance(quotes, list) or not quotes or not isinstance(quotes[0], dict):
        msg = "no quote series"
        raise _PriceLookupError(msg)
    closes = quotes[0].get("close") or []
    if not isinstance(closes, list) or not closes or not closes[0]:
        msg = "no close for the day"
        raise _PriceLookupError(msg)
    try:
        return float(closes[0])
    except (TypeError, ValueError) as exc:
        msg = f"unusable close {closes[0]!r}"
        raise _PriceLookupError(msg) from exc


class PriceService:
    """Daily BTC/USD close lookup with a per-day cache.

    Usage::

        prices = PriceService(config.price, cache=cache)
        await prices.connect()
        try:
            close = await prices.get_price(date(2024, 1, 1))
        finally:
            await prices.close()
    """

    def __init__(
        self,
        config: PriceConfig,
        *,
        cache: CacheClient | None = None,
        batch_size: int = 10,
        batch_delay: float = 0.1,
    ) -> None:
        self._config = config
        self._cache = cache
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Create the underlying HTTP client."""
        self._client = httpx.AsyncClient(
            base_url=self._config.url.rstrip("/"),
            headers={"User-Agent": self._config.user_agent, "Accept": "application/json"},
            timeout=self._config.timeout,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def _cache_key(self, day: date) -> str:
        return f"price:{self._config.symbol}:{day.isoformat()}"

    async def get_price(self, when: date | datetime) -> float | None:
        """Close price for the calendar day of *when*, or None when unavailable."""
        day = _as_day(when)
        if self._cache is not None:
            cached = await self._cache.get_json(self._cache_key(day))
            if cached is not None:
                return float(cached)

        client = self._ensure_connected()
        start = int(datetime.combine(day, time.min, tzinfo=UTC).timestamp())
        params = {"period1": start, "period2": start + _DAY_SECONDS, "interval": "1d"}
        try:
            resp = await client.get(f"/{self._config.symbol}", params=params)
            resp.raise_for_status()
            price = _close_from_chart(resp.json())
        except (httpx.HTTPError, ValueError, _PriceLookupError) as exc:
            logger.warning("No %s price for %s: %s", self._config.symbol, day, exc)
            return None

        if self._cache is not None:
            await self._cache.set_json(
                self._cache_key(day), price, ttl=self._config.price_ttl_seconds
            )
        return price

    async def get_prices(self, dates: Iterable[date | datetime]) -> dict[date, float]:
        """Close prices for many dates, de-duplicated by day.

        Days without a price are absent from the result.
        """
        days = list(dict.fromkeys(_as_day(d) for d in dates))
        prices: dict[date, float] = {}
        for start in range(0, len(days), self._batch_size):
            if start and self._batch_delay:
                await asyncio.sleep(self._batch_delay)
            batch = days[start : start + self._batch_size]
            closes = await asyncio.gather(*(self.get_price(d) for d in batch))
            for day, close in zip(batch, closes, strict=True):
                if close is not None:
                    prices[day] = close
        logger.info("Resolved %d of %d daily prices", len(prices), len(days))
        return prices

    def _ensure_connected(self) -> httpx.AsyncClient:
        if self._client is None:
            msg = "PriceService is not connected — call connect() first"
            raise RuntimeError(msg)
        return self._client
