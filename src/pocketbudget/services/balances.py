"""Opening and closing balance computation.

Opening balances are either set manually or derived from the previous
month's closing balance. Derived values are cached in
``BudgetState.opening_balances``; manual ones are also recorded in
``BudgetState.manual_opening_balances`` and never re-derived.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from ..domain.state import BudgetState
from ..models.period import Period
from ..models.transaction import EXPENSE, INCOME, TRANSFER, Transaction

logger = logging.getLogger(__name__)


class BalanceStatus(str, Enum):
    NO_BALANCE = "no_balance"
    AUTO_DERIVED = "auto_derived"
    MANUALLY_OVERRIDDEN = "manually_overridden"


@dataclass(frozen=True, slots=True)
class PeriodTotals:
    income: float = 0.0
    expenses: float = 0.0
    transfers: float = 0.0

    @property
    def net_change(self) -> float:
        return self.income - self.expenses + self.transfers


@dataclass(frozen=True, slots=True)
class MonthlyBalance:
    """Balance summary for one period."""

    period: Period
    status: BalanceStatus
    opening: float
    income: float
    expenses: float
    transfers: float
    closing: float
    note: str = ""

    @property
    def net_change(self) -> float:
        return self.closing - self.opening


def totals_for(transactions: Iterable[Transaction]) -> PeriodTotals:
    income = expenses = transfers = 0.0
    for txn in transactions:
        if txn.type == INCOME:
            income += txn.amount
        elif txn.type == EXPENSE:
            expenses += abs(txn.amount)
        elif txn.type == TRANSFER:
            transfers += txn.amount
    return PeriodTotals(income=income, expenses=expenses, transfers=transfers)


def period_totals(state: BudgetState, period: Period) -> PeriodTotals:
    return totals_for(state.transactions_for(period))


def calculate_closing_balance(state: BudgetState, period: Period) -> float:
    """Closing balance of ``period`` from its stored opening balance (or 0).

    Pure: nothing is derived or cached here.
    """

    opening = state.opening_balances.get(period, 0.0)
    return opening + period_totals(state, period).net_change


def balance_status(state: BudgetState, period: Period) -> BalanceStatus:
    if period in state.manual_opening_balances:
        return BalanceStatus.MANUALLY_OVERRIDDEN
    if period in state.opening_balances:
        return BalanceStatus.AUTO_DERIVED
    return BalanceStatus.NO_BALANCE


def opening_balance(state: BudgetState, period: Period) -> float:
    """Return the opening balance, deriving and caching it when unset.

    January never chains from the previous year. A derived value of zero is
    returned but not cached, so the period stays unset.
    """

    stored = state.opening_balances.get(period)
    if stored is not None:
        return stored
    if period.month == 1:
        return 0.0

    derived = calculate_closing_balance(state, period.previous())
    if derived != 0:
        state.opening_balances[period] = derived
        logger.debug(f"Derived opening balance for {period}: {derived:.2f}")
    return derived


def set_opening_balance(state: BudgetState, period: Period, amount: float) -> None:
    state.opening_balances[period] = float(amount)
    state.manual_opening_balances.add(period)
    logger.info(f"Opening balance for {period} set manually to {float(amount):.2f}")


def clear_opening_balance_override(state: BudgetState, period: Period) -> bool:
    """Drop a manual opening balance so the period can be derived again."""

    if period not in state.manual_opening_balances:
        return False
    state.manual_opening_balances.discard(period)
    state.opening_balances.pop(period, None)
    logger.info(f"Manual opening balance for {period} cleared")
    return True


def refresh_auto_balances(state: BudgetState, year: int) -> list[Period]:
    """Re-derive every non-manual opening balance of ``year`` in month order.

    Returns the periods whose cached value changed (including removals).
    """

    changed: list[Period] = []
    for month in range(2, 13):
        period = Period(year, month)
        if period in state.manual_opening_balances:
            continue
        previous_value = state.opening_balances.pop(period, None)
        derived = opening_balance(state, period)
        new_value = derived if derived != 0 else None
        if new_value != previous_value:
            changed.append(period)
    if changed:
        logger.debug(f"Refreshed {len(changed)} derived opening balances for {year}")
    return changed


def summarize_month(state: BudgetState, period: Period) -> MonthlyBalance:
    opening = opening_balance(state, period)
    totals = period_totals(state, period)
    return MonthlyBalance(
        period=period,
        status=balance_status(state, period),
        opening=opening,
        income=totals.income,
        expenses=totals.expenses,
        transfers=totals.transfers,
        closing=opening + totals.net_change,
        note=state.monthly_notes.get(period, ""),
    )


__all__ = [
    "BalanceStatus",
    "MonthlyBalance",
    "PeriodTotals",
    "balance_status",
    "calculate_closing_balance",
    "clear_opening_balance_override",
    "opening_balance",
    "period_totals",
    "refresh_auto_balances",
    "set_opening_balance",
    "summarize_month",
    "totals_for",
]
