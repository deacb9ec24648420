"""Commands that mutate the budget's transactions, mappings and side tables."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from ..constants.categories import CHECK_ITEM_COLOR, CHECK_ITEM_LABEL, CHECK_MARKERS
from ..constants.months import month_name
from ..domain.state import BudgetState
from ..models.mapping import MappingEntry
from ..models.period import Period
from ..models.transaction import (
    CASH,
    CHECK,
    PAYMENT_METHODS,
    TRANSACTION_TYPES,
    CheckDetails,
    ImportedCheckItem,
    Transaction,
)
from .classification import (
    apply_sign,
    classify_item,
    deposit_override,
    is_check_placeholder,
    normalize_item,
)

logger = logging.getLogger(__name__)

_UNSET = object()


class LedgerValidationError(ValueError):
    """Direct-entry input was rejected."""


@dataclass(frozen=True, slots=True)
class MappingDeletion:
    item: str
    deleted: bool
    usage_count: int = 0


def _require_item(item: object) -> str:
    normalized = normalize_item(item)
    if not normalized:
        raise LedgerValidationError("Item must not be empty")
    return normalized


def _require_amount(amount: object) -> float:
    try:
        value = float(amount)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise LedgerValidationError(f"Amount {amount!r} is not a number") from None
    if not math.isfinite(value):
        raise LedgerValidationError(f"Amount {amount!r} is not a number")
    return value


def _require_type(transaction_type: str) -> str:
    if transaction_type not in TRANSACTION_TYPES:
        raise LedgerValidationError(f"Unknown transaction type {transaction_type!r}")
    return transaction_type


def _check_details_for(
    payment_method: str, check_details: Optional[CheckDetails]
) -> Optional[CheckDetails]:
    if payment_method not in PAYMENT_METHODS:
        raise LedgerValidationError(f"Unknown payment method {payment_method!r}")
    if payment_method == CHECK:
        if check_details is None or not check_details.check_number.strip():
            raise LedgerValidationError("Check payments need a check number")
        return check_details
    return None


def is_bare_check_marker(item: str) -> bool:
    folded = item.casefold()
    return is_check_placeholder(item) or any(folded == m.casefold() for m in CHECK_MARKERS)


def _auto_note(item: str, note: str, check_details: Optional[CheckDetails]) -> str:
    if note or not is_bare_check_marker(item):
        return note
    if check_details:
        payee = f" to {check_details.payee_name}" if check_details.payee_name else ""
        return f"Check #{check_details.check_number}{payee}"
    return "Check payment"


def is_known_item(state: BudgetState, item: object) -> bool:
    """True when the mapping table already governs ``item``."""

    return state.mappings.lookup(normalize_item(item)) is not None


def add_category(state: BudgetState, category: str) -> bool:
    name = str(category or "").strip()
    if not name or name in state.categories:
        return False
    state.categories.append(name)
    return True


def add_income_item(state: BudgetState, item: str) -> bool:
    name = normalize_item(item)
    if not name or name in state.income_items:
        return False
    state.income_items.append(name)
    logger.info(f"Added income item {name!r}")
    return True


def set_mapping(
    state: BudgetState, item: object, category: str, *, include_in_monthly_expenses: bool = True
) -> MappingEntry:
    """Add or replace a mapping and recategorize transactions with exactly that item."""

    key = _require_item(item)
    category = str(category or "").strip()
    if not category:
        raise LedgerValidationError("Category must not be empty")

    entry = MappingEntry(category=category, include_in_monthly_expenses=include_in_monthly_expenses)
    state.mappings.set(key, entry)
    add_category(state, category)

    for txn in state.transactions:
        if txn.item == key:
            txn.category = classify_item(key, state.mappings, state.income_items).category
    logger.info(f"Mapping {key!r} -> {category!r}")
    return entry


def confirm_new_item(
    state: BudgetState, item: object, category: str, *, include_in_monthly_expenses: bool = True
) -> MappingEntry:
    """Record the category the user chose for an item seen for the first time."""

    return set_mapping(
        state, item, category, include_in_monthly_expenses=include_in_monthly_expenses
    )


def delete_mapping(state: BudgetState, item: str) -> MappingDeletion:
    """Delete a mapping unless transactions still use its item."""

    item = normalize_item(item)
    usage = state.usage_count(item)
    if usage > 0:
        logger.info(f"Refused to delete mapping {item!r}: used by {usage} transactions")
        return MappingDeletion(item=item, deleted=False, usage_count=usage)
    deleted = state.mappings.delete(item)
    return MappingDeletion(item=item, deleted=deleted, usage_count=0)


def add_transaction(
    state: BudgetState,
    *,
    period: Period,
    item: object,
    amount: object,
    transaction_type: Optional[str] = None,
    category: Optional[str] = None,
    include_in_monthly_expenses: bool = True,
    note: str = "",
    payment_method: str = CASH,
    check_details: Optional[CheckDetails] = None,
    color: Optional[str] = None,
) -> Transaction:
    """Record a transaction entered by hand.

    The type comes from the income classifier unless given; deposit rules
    override both. Passing ``category`` for an unmapped item also stores the
    mapping so later entries of the same item are classified automatically.
    """

    normalized = _require_item(item)
    value = _require_amount(amount)
    details = _check_details_for(payment_method, check_details)

    if category and not is_known_item(state, normalized):
        confirm_new_item(
            state, normalized, category, include_in_monthly_expenses=include_in_monthly_expenses
        )

    classification = classify_item(normalized, state.mappings, state.income_items)
    txn_type = _require_type(
        classification.forced_type or transaction_type or classification.transaction_type
    )
    txn = Transaction(
        month=period.month,
        year=period.year,
        item=normalized,
        amount=apply_sign(value, txn_type),
        type=txn_type,
        category=category if category and not classification.forced_type else classification.category,
        note=_auto_note(normalized, str(note or "").strip(), details),
        payment_method=payment_method,
        check_details=details,
        color=color or None,
    )
    state.transactions.append(txn)
    select_period(state, period, color=color)
    logger.debug(f"Added {txn.type} {txn.item!r} {txn.amount:.2f} to {period}")
    return txn


def edit_transaction(
    state: BudgetState,
    transaction_id: float,
    *,
    item: Optional[object] = None,
    amount: Optional[object] = None,
    transaction_type: Optional[str] = None,
    category: Optional[str] = None,
    note: Optional[str] = None,
    payment_method: Optional[str] = None,
    check_details: Optional[CheckDetails] = None,
    color: object = _UNSET,
) -> Transaction:
    """Update a transaction in place; its month and year never change."""

    txn = state.find_transaction(transaction_id)
    if txn is None:
        raise LedgerValidationError(f"No transaction with id {transaction_id}")

    new_item = _require_item(item) if item is not None else txn.item
    new_amount = _require_amount(amount) if amount is not None else txn.amount
    new_method = payment_method or txn.payment_method
    details = _check_details_for(new_method, check_details or txn.check_details)

    forced = deposit_override(new_item)
    new_type = _require_type(forced or transaction_type or txn.type)
    if category:
        new_category = category
    elif new_item != txn.item:
        new_category = classify_item(new_item, state.mappings, state.income_items).category
    else:
        new_category = txn.category

    txn.item = new_item
    txn.type = new_type
    txn.amount = apply_sign(new_amount, new_type)
    txn.category = new_category
    txn.payment_method = new_method
    txn.check_details = details
    if note is not None:
        txn.note = _auto_note(new_item, note.strip(), details)
    if color is not _UNSET:
        txn.color = color or None  # type: ignore[assignment]
    return txn


def delete_transaction(state: BudgetState, transaction_id: float) -> Transaction:
    txn = state.find_transaction(transaction_id)
    if txn is None:
        raise LedgerValidationError(f"No transaction with id {transaction_id}")
    state.transactions.remove(txn)
    return txn


def add_check_item(
    state: BudgetState,
    *,
    period: Period,
    amount: object,
    item: Optional[str] = None,
    note: str = "",
    check_number: str = "",
    payee_name: str = "",
    color: Optional[str] = CHECK_ITEM_COLOR,
) -> ImportedCheckItem:
    """Manual entry path for a check placeholder kept out of balances."""

    check_item = ImportedCheckItem(
        month=period.month,
        year=period.year,
        item=normalize_item(item) or f"{CHECK_ITEM_LABEL} {month_name(period.month)}",
        amount=_require_amount(amount),
        note=note,
        check_number=check_number,
        payee_name=payee_name,
        color=color,
    )
    state.imported_check_items.append(check_item)
    return check_item


def edit_check_item(
    state: BudgetState,
    item_id: float,
    *,
    item: Optional[str] = None,
    amount: Optional[object] = None,
    note: Optional[str] = None,
    check_number: Optional[str] = None,
    payee_name: Optional[str] = None,
    color: object = _UNSET,
) -> ImportedCheckItem:
    check_item = state.find_check_item(item_id)
    if check_item is None:
        raise LedgerValidationError(f"No check item with id {item_id}")
    if item is not None:
        check_item.item = _require_item(item)
    if amount is not None:
        check_item.amount = -abs(_require_amount(amount))
    if note is not None:
        check_item.note = note
    if check_number is not None:
        check_item.check_number = check_number
    if payee_name is not None:
        check_item.payee_name = payee_name
    if color is not _UNSET:
        check_item.color = color or None  # type: ignore[assignment]
    return check_item


def delete_check_item(state: BudgetState, item_id: float) -> ImportedCheckItem:
    check_item = state.find_check_item(item_id)
    if check_item is None:
        raise LedgerValidationError(f"No check item with id {item_id}")
    state.imported_check_items.remove(check_item)
    return check_item


def set_monthly_note(state: BudgetState, period: Period, text: str) -> None:
    text = str(text or "").strip()
    if text:
        state.monthly_notes[period] = text
    else:
        state.monthly_notes.pop(period, None)


def select_period(state: BudgetState, period: Period, *, color: Optional[str] = None) -> None:
    """Remember the month (and color) used last so the next entry defaults to it."""

    state.last_selected_month = period.month
    state.last_selected_year = period.year
    if color:
        state.last_selected_color = color


__all__ = [
    "LedgerValidationError",
    "MappingDeletion",
    "add_category",
    "add_check_item",
    "add_income_item",
    "add_transaction",
    "confirm_new_item",
    "delete_check_item",
    "delete_mapping",
    "delete_transaction",
    "edit_check_item",
    "edit_transaction",
    "is_bare_check_marker",
    "is_known_item",
    "select_period",
    "set_mapping",
    "set_monthly_note",
]
