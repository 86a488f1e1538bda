"""Blockchain and price provider errors."""

from __future__ import annotations

from utxo_tracker.errors.tracker_errors import TrackerError


class ProviderError(TrackerError):
    """Error from an external data provider (Esplora, Yahoo Finance)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 502,
        code: str = "provider-error",
        provider: str = "",
    ) -> None:
        super().__init__(message, status_code=status_code, code=code)
        self.provider = provider


class NotFoundError(ProviderError):
    """The provider does not know the requested transaction id."""

    def __init__(self, message: str, *, provider: str = "") -> None:
        super().__init__(message, status_code=404, code="not-found", provider=provider)


class UnavailableError(ProviderError):
    """The provider could not be reached or answered with a server error."""

    def __init__(self, message: str, *, provider: str = "") -> None:
        super().__init__(message, status_code=503, code="unavailable", provider=provider)
