"""Budget session aggregate."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from ..models.period import Period
from ..models.transaction import ImportedCheckItem, Transaction
from .mapping_table import MappingTable


@dataclass
class BudgetState:
    """Everything that is saved as one budget document.

    Services mutate this object in place; ``pocketbudget.context.AppContext``
    persists it after each command.
    """

    current_year: int = field(default_factory=lambda: date.today().year)
    transactions: list[Transaction] = field(default_factory=list)
    imported_check_items: list[ImportedCheckItem] = field(default_factory=list)
    mappings: MappingTable = field(default_factory=MappingTable)
    income_items: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    opening_balances: dict[Period, float] = field(default_factory=dict)
    manual_opening_balances: set[Period] = field(default_factory=set)
    monthly_notes: dict[Period, str] = field(default_factory=dict)
    last_selected_month: Optional[int] = None
    last_selected_year: Optional[int] = None
    last_selected_color: Optional[str] = None

    def transaction_year(self, txn: Transaction) -> int:
        """Year a transaction counts toward; legacy rows without one use the current year."""
        return txn.year or self.current_year

    def transactions_for(self, period: Period) -> list[Transaction]:
        return [
            t
            for t in self.transactions
            if t.month == period.month and self.transaction_year(t) == period.year
        ]

    def transactions_for_year(self, year: int) -> list[Transaction]:
        return [t for t in self.transactions if self.transaction_year(t) == year]

    def check_items_for(self, period: Period) -> list[ImportedCheckItem]:
        return [
            c for c in self.imported_check_items if c.month == period.month and c.year == period.year
        ]

    def find_transaction(self, transaction_id: float) -> Optional[Transaction]:
        return next((t for t in self.transactions if t.id == transaction_id), None)

    def find_check_item(self, item_id: float) -> Optional[ImportedCheckItem]:
        return next((c for c in self.imported_check_items if c.id == item_id), None)

    def usage_count(self, item: str) -> int:
        """Number of transactions whose item text equals ``item`` exactly."""
        return sum(1 for t in self.transactions if t.item == item)
