"""Esplora REST client — transaction lookup on mempool.space / blockstream.info.

Both providers expose the same API:
- GET /tx/<txid>

A 404 (or a 400 "invalid" answer for a malformed id) raises
:class:`NotFoundError`; transport failures and other non-2xx responses raise
:class:`UnavailableError`.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from utxo_tracker.chain.esplora.models import RawTransaction
from utxo_tracker.errors.provider_errors import NotFoundError, UnavailableError

logger = logging.getLogger(__name__)


class EsploraClient:
    """Async HTTP client for one Esplora provider.

    Usage::

        client = EsploraClient("mempool", "https://mempool.space/api")
        await client.connect()
        try:
            tx = await client.get_transaction(txid)
        finally:
            await client.close()
    """

    def __init__(self, name: str, base_url: str, *, timeout: float = 30.0) -> None:
        """Initialize the client.

        Args:
            name: Provider name recorded as the data source.
            base_url: API root, e.g. ``https://mempool.space/api``.
            timeout: Request timeout in seconds.
        """
        self._name = name
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Create the underlying HTTP client."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Accept": "application/json"},
            timeout=self._timeout,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    @property
    def name(self) -> str:
        return self._name

    async def get_transaction_json(self, txid: str) -> dict[str, Any]:
        """Fetch the raw ``/tx/<txid>`` JSON document.

        Raises:
            NotFoundError: The provider does not know *txid*.
            UnavailableError: The provider could not be reached or failed.
        """
        client = self._ensure_connected()
        try:
            resp = await client.get(f"/tx/{txid}")
        except httpx.HTTPError as exc:
            msg = f"{self._name} request for {txid} failed: {exc}"
            raise UnavailableError(msg, provider=self._name) from exc

        if resp.status_code == 404 or (resp.status_code == 400 and "invalid" in resp.text.lower()):
            msg = f"transaction {txid} not found on {self._name}"
            raise NotFoundError(msg, provider=self._name)
        if resp.status_code >= 400:
            msg = f"{self._name} returned HTTP {resp.status_code} for {txid}"
            raise UnavailableError(msg, provider=self._name)

        try:
            data = resp.json()
        except ValueError as exc:
            msg = f"{self._name} returned a non-JSON body for {txid}"
            raise UnavailableError(msg, provider=self._name) from exc
        if not isinstance(data, dict):
            msg = f"{self._name} returned a non-object body for {txid}"
            raise UnavailableError(msg, provider=self._name)
        return data

    async def get_transaction(self, txid: str) -> RawTransaction:
        """Fetch and parse one transaction."""
        data = await self.get_transaction_json(txid)
        logger.debug("Fetched %s from %s", txid, self._name)
        return RawTransaction.from_dict(data)

    def _ensure_connected(self) -> httpx.AsyncClient:
        if self._client is None:
            msg = "EsploraClient is not connected — call connect() first"
            raise RuntimeError(msg)
        return self._client
