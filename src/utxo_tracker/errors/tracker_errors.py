"""TrackerError — base exception class for all utxo-tracker errors."""

from __future__ import annotations


class TrackerError(Exception):
    """Base error for all tracker operations.

    Attributes:
        message: Human-readable error description.
        status_code: Suggested HTTP status code for the application layer.
        code: Machine-readable error code string.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 500,
        code: str = "tracker-error",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class ParseError(TrackerError):
    """Malformed input that cannot be normalized (missing or empty CSV header)."""

    def __init__(self, message: str, *, code: str = "parse-error") -> None:
        super().__init__(message, status_code=400, code=code)
