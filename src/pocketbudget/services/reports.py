"""Read-side projections used by the summary commands and CSV exports."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

import pandas as pd

from ..constants.categories import MISC_CATEGORY, UNCATEGORIZED
from ..domain.state import BudgetState
from ..models.mapping import MappingEntry
from ..models.period import Period
from ..models.transaction import CHECK, EXPENSE, INCOME, ImportedCheckItem, Transaction
from .balances import MonthlyBalance, summarize_month
from .classification import should_include_in_monthly_expenses

INCOME_COLUMN = "Income"
NET_COLUMN = "Net"


@dataclass(frozen=True, slots=True)
class CategoryTotal:
    category: str
    total: float
    count: int


@dataclass(frozen=True, slots=True)
class ItemTotal:
    item: str
    total: float


@dataclass(frozen=True, slots=True)
class MappingUsage:
    item: str
    entry: MappingEntry
    usage_count: int


@dataclass(slots=True)
class MonthlyReport:
    """Everything the monthly summary shows for one period."""

    balance: MonthlyBalance
    categories: list[CategoryTotal] = field(default_factory=list)
    actual_expenses: list[ItemTotal] = field(default_factory=list)
    check_payments: list[Transaction] = field(default_factory=list)
    check_items: list[ImportedCheckItem] = field(default_factory=list)

    @property
    def actual_expenses_total(self) -> float:
        return sum(entry.total for entry in self.actual_expenses)

    @property
    def checks_total(self) -> float:
        return sum(abs(t.amount) for t in self.check_payments) + sum(
            abs(c.amount) for c in self.check_items
        )


def category_totals(transactions: Iterable[Transaction]) -> list[CategoryTotal]:
    """Signed totals per category, largest magnitude first."""

    totals: dict[str, float] = {}
    counts: dict[str, int] = {}
    for txn in transactions:
        category = txn.category or UNCATEGORIZED
        totals[category] = totals.get(category, 0.0) + txn.amount
        counts[category] = counts.get(category, 0) + 1
    breakdown = [CategoryTotal(c, totals[c], counts[c]) for c in totals]
    breakdown.sort(key=lambda entry: abs(entry.total), reverse=True)
    return breakdown


def actual_expenses(state: BudgetState, period: Period) -> list[ItemTotal]:
    """Expenses that count toward the month, grouped by item.

    Check payments are listed separately and items whose mapping excludes them
    from monthly expenses are left out.
    """

    totals: dict[str, float] = {}
    for txn in state.transactions_for(period):
        if txn.type != EXPENSE or txn.payment_method == CHECK:
            continue
        if not should_include_in_monthly_expenses(txn.item, state.mappings):
            continue
        totals[txn.item] = totals.get(txn.item, 0.0) + abs(txn.amount)
    return sorted(
        (ItemTotal(item, total) for item, total in totals.items()),
        key=lambda entry: entry.total,
        reverse=True,
    )


def check_payments(state: BudgetState, period: Period) -> list[Transaction]:
    return [t for t in state.transactions_for(period) if t.payment_method == CHECK]


def color_totals(state: BudgetState, period: Optional[Period] = None) -> dict[str, float]:
    """Sum of amounts per color tag, check items included."""

    if period is None:
        records: list = [*state.transactions, *state.imported_check_items]
    else:
        records = [*state.transactions_for(period), *state.check_items_for(period)]
    totals: dict[str, float] = {}
    for record in records:
        if record.color:
            totals[record.color] = totals.get(record.color, 0.0) + record.amount
    return totals


def mapping_usage(state: BudgetState) -> list[MappingUsage]:
    """Mappings sorted by item text with how many transactions use each."""

    usage = [
        MappingUsage(item=item, entry=entry, usage_count=state.usage_count(item))
        for item, entry in state.mappings.items()
    ]
    usage.sort(key=lambda entry: entry.item.casefold())
    return usage


def monthly_report(state: BudgetState, period: Period) -> MonthlyReport:
    return MonthlyReport(
        balance=summarize_month(state, period),
        categories=category_totals(state.transactions_for(period)),
        actual_expenses=actual_expenses(state, period),
        check_payments=check_payments(state, period),
        check_items=state.check_items_for(period),
    )


def annual_balances(state: BudgetState, year: int) -> list[MonthlyBalance]:
    return [summarize_month(state, Period(year, month)) for month in range(1, 13)]


def _grid_column(state: BudgetState, txn: Transaction) -> str:
    if txn.type == INCOME:
        return INCOME_COLUMN
    if txn.category in state.categories and txn.category != UNCATEGORIZED:
        return txn.category
    return MISC_CATEGORY


def annual_grid(state: BudgetState, year: int) -> pd.DataFrame:
    """Month-by-category table for one year.

    Income is collected in one column, expenses by category (unknown ones
    under the miscellaneous column), and ``Net`` is income minus expenses.
    Transfers are not shown.
    """

    records = [
        {"month": t.month, "column": _grid_column(state, t), "amount": abs(t.amount)}
        for t in state.transactions_for_year(year)
        if t.type in (INCOME, EXPENSE)
    ]
    expense_columns = [
        c for c in state.categories if c not in (MISC_CATEGORY, UNCATEGORIZED)
    ]

    if records:
        frame = pd.DataFrame.from_records(records)
        grid = frame.pivot_table(
            index="month", columns="column", values="amount", aggfunc="sum", fill_value=0.0
        )
        expense_columns = [c for c in expense_columns if c in grid.columns]
    else:
        grid = pd.DataFrame()
        expense_columns = []

    columns = [INCOME_COLUMN, *expense_columns, MISC_CATEGORY]
    grid = grid.reindex(index=range(1, 13), columns=columns, fill_value=0.0).astype(float)
    grid.index.name = "month"
    grid.columns.name = None
    grid[NET_COLUMN] = grid[INCOME_COLUMN] - grid[columns[1:]].sum(axis=1)
    return grid


def annual_totals(grid: pd.DataFrame) -> pd.Series:
    return grid.sum(axis=0)


__all__ = [
    "CategoryTotal",
    "INCOME_COLUMN",
    "ItemTotal",
    "MappingUsage",
    "MonthlyReport",
    "NET_COLUMN",
    "actual_expenses",
    "annual_balances",
    "annual_grid",
    "annual_totals",
    "category_totals",
    "check_payments",
    "color_totals",
    "mapping_usage",
    "monthly_report",
]
