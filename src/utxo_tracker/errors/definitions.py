"""Pre-built error instances raised across the tracker."""

from __future__ import annotations

from utxo_tracker.errors.provider_errors import NotFoundError, UnavailableError
from utxo_tracker.errors.tracker_errors import ParseError

# -- CSV normalization -----------------------------------------------------

ErrHeaderMissing = ParseError("csv header row is missing or empty", code="header-missing")
ErrNoRecognizedColumns = ParseError(
    "csv header has no recognized transaction id column", code="header-unrecognized"
)

# -- Blockchain provider ---------------------------------------------------

ErrTransactionNotFound = NotFoundError("transaction not found on any provider")
ErrProviderUnavailable = UnavailableError("no blockchain provider is reachable")
