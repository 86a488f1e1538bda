"""Tests for average-cost basis accounting."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from utxo_tracker.engine.cost_basis import (
    CostBasisCalculator,
    compute_cost_basis,
    summarize_cost_basis,
)
from utxo_tracker.engine.models import Transaction, TransactionType

_T0 = datetime(2023, 1, 1, tzinfo=UTC)


def _tx(
    tx_id: str,
    kind: TransactionType,
    amount: float,
    price: float | None = None,
    day: int = 0,
) -> Transaction:
    return Transaction(
        id=tx_id, date=_T0 + timedelta(days=day), type=kind, amount=amount, price=price
    )


@pytest.fixture
def buy_buy_sell() -> list[Transaction]:
    return [
        _tx("b1", TransactionType.PURCHASE, 1.0, 20_000, day=0),
        _tx("b2", TransactionType.PURCHASE, 1.0, 30_000, day=1),
        _tx("s1", TransactionType.SELL, 1.0, 40_000, day=2),
    ]


class TestAverageCost:
    def test_realised_profit(self, buy_buy_sell) -> None:
        result = compute_cost_basis(buy_buy_sell)
        sell = result[-1]
        assert sell.cost_basis == pytest.approx(25_000)
        assert sell.profit_loss == pytest.approx(15_000)
        assert result[0].cost_basis is None
        assert result[0].profit_loss is None

    def test_state_after_sell(self, buy_buy_sell) -> None:
        calc = CostBasisCalculator()
        for tx in buy_buy_sell[:2]:
            calc.apply(tx)
        assert calc.average_cost == pytest.approx(25_000)
        calc.apply(buy_buy_sell[2])
        assert calc.running_balance == pytest.approx(1.0)
        assert calc.total_cost == pytest.approx(25_000)

    def test_input_is_sorted_by_date(self, buy_buy_sell) -> None:
        result = compute_cost_basis(list(reversed(buy_buy_sell)))
        assert [t.id for t in result] == ["b1", "b2", "s1"]
        assert result[-1].profit_loss == pytest.approx(15_000)

    def test_inputs_are_not_mutated(self, buy_buy_sell) -> None:
        compute_cost_basis(buy_buy_sell)
        assert buy_buy_sell[-1].cost_basis is None

    def test_moves_change_nothing(self) -> None:
        txs = [
            _tx("b1", TransactionType.PURCHASE, 2.0, 10_000, day=0),
            _tx("m1", TransactionType.MOVE, 1.5, 50_000, day=1),
            _tx("s1", TransactionType.SELL, 1.0, 20_000, day=2),
        ]
        result = compute_cost_basis(txs)
        assert result[1].cost_basis is None
        assert result[2].cost_basis == pytest.approx(10_000)
        assert result[2].profit_loss == pytest.approx(10_000)

    def test_sell_without_price(self) -> None:
        txs = [
            _tx("b1", TransactionType.PURCHASE, 1.0, 10_000, day=0),
            _tx("s1", TransactionType.SELL, 0.5, None, day=1),
        ]
        result = compute_cost_basis(txs)
        assert result[1].cost_basis is None
        assert result[1].profit_loss is None

    def test_sell_with_nothing_held(self) -> None:
        result = compute_cost_basis([_tx("s1", TransactionType.SELL, 1.0, 30_000)])
        assert result[0].profit_loss is None

    def test_unpriced_purchase_adds_units_only(self) -> None:
        calc = CostBasisCalculator()
        calc.apply(_tx("b1", TransactionType.PURCHASE, 1.0, None))
        assert calc.running_balance == 1.0
        assert calc.total_cost == 0.0

    def test_empty(self) -> None:
        assert compute_cost_basis([]) == []
        assert CostBasisCalculator().average_cost is None


class TestSummary:
    def test_totals(self, buy_buy_sell) -> None:
        summary = summarize_cost_basis(compute_cost_basis(buy_buy_sell))
        assert summary.purchase_count == 2
        assert summary.sell_count == 1
        assert summary.total_purchases == pytest.approx(2.0)
        assert summary.total_sells == pytest.approx(1.0)
        assert summary.average_purchase_price == pytest.approx(25_000)
        assert summary.average_sell_price == pytest.approx(40_000)
        assert summary.total_profit_loss == pytest.approx(15_000)
        assert summary.remaining_balance == pytest.approx(1.0)

    def test_weighted_average_price(self) -> None:
        txs = [
            _tx("b1", TransactionType.PURCHASE, 3.0, 10_000),
            _tx("b2", TransactionType.PURCHASE, 1.0, 30_000),
        ]
        assert summarize_cost_basis(txs).average_purchase_price == pytest.approx(15_000)

    def test_unpriced_averages_are_none(self) -> None:
        summary = summarize_cost_basis([_tx("m1", TransactionType.MOVE, 1.0)])
        assert summary.average_purchase_price is None
        assert summary.average_sell_price is None
        assert summary.move_count == 1
        assert summary.to_dict()["total_moves"] == 1.0


class TestTransactionRecord:
    def test_from_dict(self) -> None:
        tx = Transaction.from_dict(
            {"id": 7, "date": "2023-01-02T00:00:00Z", "type": "SELL", "amount": "0.5", "price": 1}
        )
        assert tx.id == "7"
        assert tx.type == TransactionType.SELL
        assert tx.amount == 0.5
        assert tx.price == 1.0
        assert tx.to_dict()["date"] == "2023-01-02T00:00:00+00:00"
