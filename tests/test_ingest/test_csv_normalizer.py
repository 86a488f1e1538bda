"""Tests for the CSV record normalizer — ingest/csv_normalizer.py."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from utxo_tracker.engine.models import Direction
from utxo_tracker.errors.tracker_errors import ParseError
from utxo_tracker.ingest.csv_normalizer import (
    load_csv_file,
    normalize_csv,
    wallet_name_from_filename,
)

_WALLET_HEADER = "Date (UTC),Label,Value,Balance,Fee,Txid"
_NETWORK_HEADER = "Confirmed,Date,Type,Label,Address,Amount (BTC),ID"


def _wallet_csv(*rows: str) -> str:
    return "\n".join([_WALLET_HEADER, *rows])


# ---------------------------------------------------------------------------
# Wallet export layout
# ---------------------------------------------------------------------------


class TestWalletExport:
    def test_basic_row(self) -> None:
        records = normalize_csv(_wallet_csv("2023-01-01 10:00:00,Salary,50000,50000,0,aa11"))
        assert len(records) == 1
        rec = records[0]
        assert rec.txid == "aa11"
        assert rec.date == datetime(2023, 1, 1, 10, 0, tzinfo=UTC)
        assert rec.value == 50_000
        assert rec.label == "Salary"
        assert rec.balance == 50_000
        assert rec.fee == 0
        assert rec.confirmed is True

    def test_date_alias_and_id_alias(self) -> None:
        text = "Date,Label,Value,Balance,Fee,ID\n2023-01-01T00:00:00Z,,100,100,0,bb22"
        assert normalize_csv(text)[0].txid == "bb22"

    def test_quotes_are_stripped(self) -> None:
        text = (
            '"Date (UTC)","Label","Value","Balance","Fee","Txid"\n'
            '"2023-01-01","rent","-2000","0","150","cc33"'
        )
        rec = normalize_csv(text)[0]
        assert rec.label == "rent"
        assert rec.value == -2000
        assert rec.fee == 150

    def test_negative_fee_is_made_positive(self) -> None:
        rec = normalize_csv(_wallet_csv("2023-01-01,x,-5000,0,-120,dd44"))[0]
        assert rec.fee == 120

    def test_wallet_is_stamped(self) -> None:
        rec = normalize_csv(_wallet_csv("2023-01-01,x,1,1,0,ee55"), wallet="savings")[0]
        assert rec.wallet == "savings"

    def test_bom_is_ignored(self) -> None:
        text = "﻿" + _wallet_csv("2023-01-01,x,1,1,0,ff66")
        assert normalize_csv(text)[0].txid == "ff66"


# ---------------------------------------------------------------------------
# Direction inference
# ---------------------------------------------------------------------------


class TestDirectionInference:
    @pytest.mark.parametrize(
        ("value", "direction"),
        [(-50_000, Direction.OUTPUT), (50_000, Direction.INPUT), (0, Direction.INPUT)],
    )
    def test_sign_rule(self, value: int, direction: Direction) -> None:
        rec = normalize_csv(_wallet_csv(f"2023-01-01,x,{value},0,0,tx1"))[0]
        assert rec.direction == direction

    def test_explicit_type_column_wins(self) -> None:
        text = f"{_NETWORK_HEADER}\ntrue,2023-01-01T00:00:00,Sent to,,bc1qdest,0.5,tx2"
        rec = normalize_csv(text)[0]
        assert rec.direction == Direction.OUTPUT


# ---------------------------------------------------------------------------
# Network transaction layout
# ---------------------------------------------------------------------------


class TestNetworkExport:
    def test_amount_btc_converted_to_sats(self) -> None:
        row = "true,2023-01-01T00:00:00,Received with,gift,bc1qabc,0.00012345,tx3"
        text = f"{_NETWORK_HEADER}\n{row}"
        rec = normalize_csv(text)[0]
        assert rec.value == 12_345
        assert rec.address == "bc1qabc"
        assert rec.direction == Direction.INPUT

    def test_unconfirmed_flag(self) -> None:
        text = f"{_NETWORK_HEADER}\nfalse,2023-01-01T00:00:00,Received with,,bc1qabc,1,tx4"
        assert normalize_csv(text)[0].confirmed is False

    def test_negative_amount(self) -> None:
        text = f"{_NETWORK_HEADER}\ntrue,2023-01-01T00:00:00,Sent to,,1Abc,-0.1,tx5"
        rec = normalize_csv(text)[0]
        assert rec.value == -10_000_000
        assert rec.amount == 10_000_000


# ---------------------------------------------------------------------------
# Lenient parsing and errors
# ---------------------------------------------------------------------------


class TestLenientParsing:
    def test_empty_txid_dropped(self) -> None:
        records = normalize_csv(_wallet_csv("2023-01-01,x,1,1,0,", "2023-01-02,y,2,3,0,tx6"))
        assert [r.txid for r in records] == ["tx6"]

    def test_malformed_rows_skipped(self) -> None:
        records = normalize_csv(
            _wallet_csv(
                "not-a-date,x,1,1,0,bad1",
                "2023-01-01,x,abc,1,0,bad2",
                "2023-01-01,x,,1,0,bad3",
                "2023-01-02,ok,7,7,0,good",
            )
        )
        assert [r.txid for r in records] == ["good"]

    def test_blank_lines_skipped(self) -> None:
        records = normalize_csv(_wallet_csv("", "2023-01-02,ok,7,7,0,tx7", "   "))
        assert len(records) == 1

    def test_embedded_delimiter_row_is_missplit(self) -> None:
        # Quoted commas are not supported; the shifted row no longer parses.
        records = normalize_csv(_wallet_csv('2023-01-01,"a, b",7,7,0,tx8'))
        assert records == []

    def test_header_only_returns_empty(self) -> None:
        assert normalize_csv(_WALLET_HEADER) == []


class TestParseErrors:
    @pytest.mark.parametrize("text", ["", "   \n  \n", ",,,"])
    def test_missing_header(self, text: str) -> None:
        with pytest.raises(ParseError) as exc_info:
            normalize_csv(text)
        assert exc_info.value.code == "header-missing"
        assert exc_info.value.status_code == 400

    def test_no_txid_column(self) -> None:
        with pytest.raises(ParseError, match="transaction id"):
            normalize_csv("Date,Label,Value\n2023-01-01,x,1")

    def test_header_is_case_sensitive(self) -> None:
        with pytest.raises(ParseError):
            normalize_csv("date,label,value,txid\n2023-01-01,x,1,tx")

    def test_missing_amount_column(self) -> None:
        with pytest.raises(ParseError, match="value"):
            normalize_csv("Date,Txid\n2023-01-01,tx")


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


class TestFiles:
    @pytest.mark.parametrize(
        ("name", "wallet"),
        [
            ("cold-storage-2024.csv", "cold-storage"),
            ("savings.csv", "savings"),
            ("/tmp/exports/hot-1.csv", "hot"),
            ("-x.csv", "-x"),
        ],
    )
    def test_wallet_name_from_filename(self, name: str, wallet: str) -> None:
        assert wallet_name_from_filename(name) == wallet

    def test_load_csv_file(self, tmp_path) -> None:
        path = tmp_path / "spending-export.csv"
        path.write_text(_wallet_csv("2023-01-01,x,-10,0,1,tx9"), encoding="utf-8")
        records = load_csv_file(path)
        assert records[0].wallet == "spending"
        assert records[0].direction == Direction.OUTPUT
