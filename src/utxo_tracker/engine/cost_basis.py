"""Average-cost basis accounting over priced transactions.

The fold keeps two numbers: the units held and the cost paid for them.
Purchases add to both. A sell realises ``price * amount - average_cost *
amount`` and removes the sold share of the cost. Moves between own wallets
change nothing. When a sell has no price, or nothing is held, its
``cost_basis`` and ``profit_loss`` stay None.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from utxo_tracker.engine.models import Transaction, TransactionType

logger = logging.getLogger(__name__)


class CostBasisCalculator:
    """Running average-cost state.

    Example::

        calc = CostBasisCalculator()
        for tx in transactions:
            done = calc.apply(tx)
    """

    def __init__(self) -> None:
        self.running_balance = 0.0
        self.total_cost = 0.0

    @property
    def average_cost(self) -> float | None:
        if self.running_balance <= 0:
            return None
        return self.total_cost / self.running_balance

    def apply(self, tx: Transaction) -> Transaction:
        """Fold one transaction in and return a copy carrying its cost basis."""
        amount = abs(tx.amount)
        cost_basis: float | None = None
        profit_loss: float | None = None

        if tx.type == TransactionType.PURCHASE:
            self.running_balance += amount
            if tx.price is not None:
                self.total_cost += amount * tx.price
        elif tx.type == TransactionType.SELL:
            if self.running_balance > 0 and tx.price is not None:
                average_cost = self.total_cost / self.running_balance
                cost_basis = average_cost * amount
                profit_loss = tx.price * amount - cost_basis
                sell_ratio = amount / self.running_balance
                self.total_cost -= self.total_cost * sell_ratio
                self.running_balance -= amount
            else:
                logger.debug(
                    "Cannot compute cost basis for sell %s (balance %s, price %s)",
                    tx.id,
                    self.running_balance,
                    tx.price,
                )

        return dataclasses.replace(tx, cost_basis=cost_basis, profit_loss=profit_loss)


def compute_cost_basis(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Run the average-cost fold over *transactions* in date order.

    Returns:
        New records, one per input, sorted by date, with ``cost_basis`` and
        ``profit_loss`` filled where computable.
    """
    calc = CostBasisCalculator()
    ordered = sorted(transactions, key=lambda t: t.date)
    return [calc.apply(tx) for tx in ordered]


@dataclass
class TransactionSummary:
    """Totals over a cost-basis run. Amounts in BTC, prices in USD."""

    total_purchases: float = 0.0
    total_sells: float = 0.0
    total_moves: float = 0.0
    total_fees: float = 0.0
    purchase_count: int = 0
    sell_count: int = 0
    move_count: int = 0
    average_purchase_price: float | None = None
    average_sell_price: float | None = None
    total_profit_loss: float = 0.0
    remaining_balance: float = 0.0

    def to_dict(self) -> dict[str, float | int | None]:
        return dataclasses.asdict(self)


def _weighted_price(txs: list[Transaction]) -> float | None:
    priced = [(abs(t.amount), t.price) for t in txs if t.price is not None]
    units = sum(amount for amount, _ in priced)
    if units <= 0:
        return None
    return sum(amount * price for amount, price in priced) / units


def summarize_cost_basis(transactions: Iterable[Transaction]) -> TransactionSummary:
    """Summarise computed transactions.

    Average prices are amount-weighted over priced records only and None when
    none are priced. ``total_profit_loss`` sums the realised profit/loss of
    the sells that had one.
    """
    txs = list(transactions)
    purchases = [t for t in txs if t.type == TransactionType.PURCHASE]
    sells = [t for t in txs if t.type == TransactionType.SELL]
    moves = [t for t in txs if t.type == TransactionType.MOVE]

    total_purchases = sum(abs(t.amount) for t in purchases)
    total_sells = sum(abs(t.amount) for t in sells)
    return TransactionSummary(
        total_purchases=total_purchases,
        total_sells=total_sells,
        total_moves=sum(abs(t.amount) for t in moves),
        total_fees=sum(t.fee for t in txs),
        purchase_count=len(purchases),
        sell_count=len(sells),
        move_count=len(moves),
        average_purchase_price=_weighted_price(purchases),
        average_sell_price=_weighted_price(sells),
        total_profit_loss=sum(t.profit_loss for t in sells if t.profit_loss is not None),
        remaining_balance=total_purchases - total_sells,
    )
