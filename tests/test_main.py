"""Tests for the utxo_tracker.main command line."""

from __future__ import annotations

import json

import pytest

from utxo_tracker.main import main

_HEADER = "Date (UTC),Label,Value,Balance,Fee,Txid"


def _item(tx_id: str, day: str, kind: str, price: int) -> dict:
    return {"id": tx_id, "date": day, "type": kind, "amount": 1, "price": price}


def _run(capsys, *argv: str) -> str:
    main(list(argv))
    return capsys.readouterr().out


class TestUsage:
    def test_no_arguments(self, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 1
        assert "utxo-tracker classify" in capsys.readouterr().out

    def test_unknown_command(self, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["bogus"])
        assert exc_info.value.code == 1
        assert "Unknown command: bogus" in capsys.readouterr().out

    def test_missing_operand(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["normalize"])
        assert exc_info.value.code == 1


class TestClassify:
    def test_prints_json(self, capsys) -> None:
        out = json.loads(_run(capsys, "classify", "bc1qxyz", "nonsense"))
        assert out[0]["type"] == "single-sig"
        assert out[0]["script_type"] == "Native SegWit"
        assert out[1]["type"] == "unknown"


class TestNormalize:
    def test_prints_records(self, capsys, tmp_path) -> None:
        path = tmp_path / "savings-2023.csv"
        path.write_text(f"{_HEADER}\n2023-01-01,pay,-5000,0,100,tx1\n", encoding="utf-8")
        (record,) = json.loads(_run(capsys, "normalize", str(path)))
        assert record["txid"] == "tx1"
        assert record["direction"] == "output"
        assert record["wallet"] == "savings"

    def test_parse_error_exit_code(self, capsys, tmp_path) -> None:
        path = tmp_path / "empty.csv"
        path.write_text("", encoding="utf-8")
        with pytest.raises(SystemExit) as exc_info:
            main(["normalize", str(path)])
        assert exc_info.value.code == 2
        assert "header-missing" in capsys.readouterr().err


class TestTrees:
    def test_heuristic_trees(self, capsys, tmp_path) -> None:
        path = tmp_path / "hot-1.csv"
        path.write_text(
            f"{_HEADER}\n2023-01-01,a,100,100,0,tx1\n2023-01-02,b,-50,50,0,tx2\n",
            encoding="utf-8",
        )
        summaries = json.loads(_run(capsys, "trees", str(path)))
        assert [s["id"] for s in summaries] == ["tree-0", "tree-1"]
        assert {s["root_id"] for s in summaries} == {"tx1", "tx2"}


class TestCostBasis:
    def test_average_cost(self, capsys, tmp_path) -> None:
        path = tmp_path / "txs.json"
        path.write_text(
            json.dumps(
                [
                    _item("s1", "2023-01-03", "sell", 40_000),
                    _item("b1", "2023-01-01", "purchase", 20_000),
                    _item("b2", "2023-01-02", "purchase", 30_000),
                ]
            ),
            encoding="utf-8",
        )
        out = json.loads(_run(capsys, "cost-basis", str(path)))
        sell = out["transactions"][-1]
        assert sell["id"] == "s1"
        assert sell["cost_basis"] == pytest.approx(25_000)
        assert sell["profit_loss"] == pytest.approx(15_000)
        assert out["summary"]["remaining_balance"] == pytest.approx(1.0)
