"""CSV record normalizer — wallet exports and network transaction lists.

Two export layouts are recognised by header name (case-sensitive):

Wallet export::

    Date (UTC),Label,Value,Balance,Fee,Txid

Network transaction list::

    Confirmed,Date,Type,Label,Address,Amount (BTC),ID

Fields are split on commas and surrounding quote characters are stripped.
Embedded delimiters inside quoted fields are NOT supported: such a row is
mis-split and usually skipped as malformed.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from pathlib import Path

from utxo_tracker.engine.models import (
    SATS_PER_BTC,
    Direction,
    NormalizedTransaction,
    parse_datetime,
)
from utxo_tracker.errors.tracker_errors import ParseError
from utxo_tracker.errors.definitions import ErrHeaderMissing, ErrNoRecognizedColumns

logger = logging.getLogger(__name__)

DELIMITER = ","

# Canonical field -> accepted header names, first match wins.
COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "date": ("Date (UTC)", "Date"),
    "label": ("Label",),
    "value": ("Value",),
    "amount_btc": ("Amount (BTC)",),
    "balance": ("Balance",),
    "fee": ("Fee",),
    "txid": ("Txid", "ID"),
    "confirmed": ("Confirmed",),
    "type": ("Type",),
    "address": ("Address",),
}

_TYPE_DIRECTIONS: dict[str, Direction] = {
    "Received with": Direction.INPUT,
    "Sent to": Direction.OUTPUT,
}


class _MalformedRowError(ValueError):
    """A data row that cannot be normalized."""


def _split(line: str) -> list[str]:
    return [cell.replace('"', "").strip() for cell in line.split(DELIMITER)]


def _resolve_columns(headers: list[str]) -> dict[str, int]:
    columns: dict[str, int] = {}
    for name, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in headers:
                columns[name] = headers.index(alias)
                break
    return columns


def _int_cell(raw: str, field_name: str) -> int:
    try:
        return int(Decimal(raw))
    except (InvalidOperation, ValueError, OverflowError) as exc:
        msg = f"non-numeric {field_name}: {raw!r}"
        raise _MalformedRowError(msg) from exc


def _btc_to_sats(raw: str) -> int:
    try:
        return int(Decimal(raw) * SATS_PER_BTC)
    except (InvalidOperation, ValueError, OverflowError) as exc:
        msg = f"non-numeric amount: {raw!r}"
        raise _MalformedRowError(msg) from exc


def _parse_row(
    cells: list[str], columns: dict[str, int], wallet: str
) -> NormalizedTransaction | None:
    def cell(name: str) -> str:
        idx = columns.get(name)
        if idx is None or idx >= len(cells):
            return ""
        return cells[idx]

    txid = cell("txid")
    if not txid:
        return None

    raw_date = cell("date")
    if not raw_date:
        msg = "missing date"
        raise _MalformedRowError(msg)
    try:
        date = parse_datetime(raw_date)
    except ValueError as exc:
        msg = f"unparseable date: {raw_date!r}"
        raise _MalformedRowError(msg) from exc

    if cell("value"):
        value = _int_cell(cell("value"), "value")
    elif cell("amount_btc"):
        value = _btc_to_sats(cell("amount_btc"))
    else:
        msg = "missing value"
        raise _MalformedRowError(msg)

    direction = _TYPE_DIRECTIONS.get(cell("type")) or Direction.from_value(value)
    balance = _int_cell(cell("balance"), "balance") if cell("balance") else None
    fee = abs(_int_cell(cell("fee"), "fee")) if cell("fee") else 0
    confirmed = cell("confirmed").lower() != "false" if cell("confirmed") else True

    return NormalizedTransaction(
        txid=txid,
        date=date,
        direction=direction,
        value=value,
        label=cell("label"),
        fee=fee,
        confirmed=confirmed,
        balance=balance,
        address=cell("address"),
        wallet=wallet,
    )


def normalize_csv(raw_text: str, *, wallet: str | None = None) -> list[NormalizedTransaction]:
    """Parse delimited wallet/network export text into normalized records.

    Rows with an empty transaction id are dropped. Malformed rows (bad date,
    non-numeric amount) are skipped and parsing continues.

    Args:
        raw_text: Full CSV text including the header row.
        wallet: Owning wallet name to stamp on every record.

    Returns:
        Normalized records in file order.

    Raises:
        ParseError: If the header row is absent/empty or lacks the txid,
            date or amount columns.
    """
    lines = raw_text.lstrip("\ufeff").strip().splitlines()
    if not lines:
        raise ErrHeaderMissing
    headers = _split(lines[0])
    if not any(headers):
        raise ErrHeaderMissing

    columns = _resolve_columns(headers)
    if "txid" not in columns:
        raise ErrNoRecognizedColumns
    missing = [name for name in ("date",) if name not in columns]
    if "value" not in columns and "amount_btc" not in columns:
        missing.append("value")
    if missing:
        msg = f"csv header is missing required column(s): {', '.join(missing)}"
        raise ParseError(msg, code="header-unrecognized")

    records: list[NormalizedTransaction] = []
    skipped = 0
    for lineno, line in enumerate(lines[1:], start=2):
        if not line.strip():
            continue
        try:
            record = _parse_row(_split(line), columns, wallet or "")
        except _MalformedRowError as exc:
            skipped += 1
            logger.debug("Skipping malformed row %d: %s", lineno, exc)
            continue
        if record is not None:
            records.append(record)

    logger.info(
        "Normalized %d records%s (%d malformed rows skipped)",
        len(records),
        f" for wallet {wallet}" if wallet else "",
        skipped,
    )
    return records


def wallet_name_from_filename(path: str | Path) -> str:
    """Derive a wallet name from an export file name: the part before the last ``-``.

    ``cold-storage-2024.csv`` -> ``cold-storage``; ``savings.csv`` -> ``savings``.
    """
    stem = Path(path).stem
    head, sep, _ = stem.rpartition("-")
    return head if sep and head else stem


def load_csv_file(path: str | Path, *, wallet: str | None = None) -> list[NormalizedTransaction]:
    """Read and normalize one export file, deriving the wallet name from the file name."""
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    return normalize_csv(text, wallet=wallet or wallet_name_from_filename(p))
