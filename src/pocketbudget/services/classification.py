"""Item normalization, category lookup and income/expense classification.

Every function here is total: unknown items fall back to the
``uncategorized`` category and the ``expense`` type instead of raising.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from ..constants.categories import (
    CHECK_MARKERS,
    CHECK_PLACEHOLDERS,
    DEPOSIT_CATEGORY,
    DEPOSIT_MARKERS,
    DEPOSIT_PLACEMENT_MARKERS,
    DEPOSIT_WITHDRAWAL_MARKERS,
    ITEM_QUOTE_CHARS,
    NATIONAL_INSURANCE_CATEGORY,
    NATIONAL_INSURANCE_TOKENS,
    UNCATEGORIZED,
)
from ..domain.mapping_table import MappingTable
from ..models.transaction import CASH, CHECK, EXPENSE, INCOME


@dataclass(frozen=True, slots=True)
class ItemClassification:
    """Outcome of classifying one item.

    ``forced_type`` is set only when a deposit rule dictates the type (and
    therefore the sign) regardless of which column or form it came from.
    """

    category: str
    include_in_monthly_expenses: bool
    transaction_type: str
    forced_type: Optional[str] = None


def normalize_item(item: object) -> str:
    """Trim whitespace and strip quote-like characters from item text."""

    text = "" if item is None else str(item)
    for char in ITEM_QUOTE_CHARS:
        text = text.replace(char, "")
    return text.strip()


def _contains_any(text: str, markers: Iterable[str]) -> bool:
    folded = text.casefold()
    return any(marker.casefold() in folded for marker in markers)


def is_deposit_item(item: str) -> bool:
    return _contains_any(item, DEPOSIT_MARKERS)


def deposit_override(item: str) -> Optional[str]:
    """Return the type forced by a deposit rule, or ``None``.

    Withdrawals, redemptions and interest on a deposit are income; a
    placement into a deposit is an expense.
    """

    if not is_deposit_item(item):
        return None
    if _contains_any(item, DEPOSIT_WITHDRAWAL_MARKERS):
        return INCOME
    if _contains_any(item, DEPOSIT_PLACEMENT_MARKERS):
        return EXPENSE
    return None


def is_national_insurance_item(item: str) -> bool:
    folded = item.casefold()
    return any(
        folded == token.casefold() or folded.startswith(token.casefold())
        for token in NATIONAL_INSURANCE_TOKENS
    )


def _special_category(item: str) -> Optional[str]:
    if is_deposit_item(item):
        return DEPOSIT_CATEGORY
    if is_national_insurance_item(item):
        return NATIONAL_INSURANCE_CATEGORY
    return None


def category_for_item(item: object, mappings: MappingTable) -> str:
    normalized = normalize_item(item)
    special = _special_category(normalized)
    if special:
        return special
    entry = mappings.lookup(normalized)
    return entry.category if entry else UNCATEGORIZED


def should_include_in_monthly_expenses(item: object, mappings: MappingTable) -> bool:
    """Whether an item counts toward the monthly expenses view.

    Unmapped items are included so new spending never disappears silently.
    """

    normalized = normalize_item(item)
    if is_deposit_item(normalized):
        return True
    entry = mappings.lookup(normalized)
    return entry.include_in_monthly_expenses if entry else True


def classify_transaction_type(item: object, income_items: Iterable[str]) -> str:
    normalized = normalize_item(item)
    forced = deposit_override(normalized)
    if forced:
        return forced

    known = [i for i in income_items if i]
    if normalized in known:
        return INCOME
    if normalized:
        needle = normalized.casefold()
        for income_item in known:
            folded = income_item.casefold()
            if folded in needle or needle in folded:
                return INCOME
    return EXPENSE


def classify_item(
    item: object, mappings: MappingTable, income_items: Iterable[str]
) -> ItemClassification:
    """Classify an item into category, monthly-expense flag and transaction type."""

    normalized = normalize_item(item)
    return ItemClassification(
        category=category_for_item(normalized, mappings),
        include_in_monthly_expenses=should_include_in_monthly_expenses(normalized, mappings),
        transaction_type=classify_transaction_type(normalized, income_items),
        forced_type=deposit_override(normalized),
    )


def apply_sign(amount: float, transaction_type: str) -> float:
    """Return ``amount`` with the sign its type requires."""

    magnitude = abs(float(amount))
    return -magnitude if transaction_type == EXPENSE else magnitude


def is_check_placeholder(item: object) -> bool:
    """True for the exact bracketed placeholder bank exports use for checks."""

    normalized = normalize_item(item).casefold()
    return any(normalized == placeholder.casefold() for placeholder in CHECK_PLACEHOLDERS)


def payment_method_for(item: object) -> str:
    return CHECK if _contains_any(normalize_item(item), CHECK_MARKERS) else CASH


__all__ = [
    "ItemClassification",
    "apply_sign",
    "category_for_item",
    "classify_item",
    "classify_transaction_type",
    "deposit_override",
    "is_check_placeholder",
    "is_deposit_item",
    "is_national_insurance_item",
    "normalize_item",
    "payment_method_for",
    "should_include_in_monthly_expenses",
]
