"""Item → category mapping entries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..constants.categories import UNCATEGORIZED


@dataclass(frozen=True, slots=True)
class MappingEntry:
    """Category assigned to an item and whether it counts as a monthly expense."""

    category: str
    include_in_monthly_expenses: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "includeInMonthlyExpenses": self.include_in_monthly_expenses,
        }

    @classmethod
    def from_value(cls, value: Any, *, legacy_include: bool = True) -> "MappingEntry":
        """Build an entry from either saved shape.

        Legacy documents stored a bare category string; newer ones store an
        object. Anything else becomes an uncategorized, included entry.
        """

        if isinstance(value, str):
            return cls(category=value or UNCATEGORIZED, include_in_monthly_expenses=legacy_include)
        if isinstance(value, dict):
            return cls(
                category=str(value.get("category") or UNCATEGORIZED),
                include_in_monthly_expenses=value.get("includeInMonthlyExpenses") is not False,
            )
        return cls(category=UNCATEGORIZED, include_in_monthly_expenses=True)
