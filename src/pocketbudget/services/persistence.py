"""Budget document serialization and load-time migrations.

The whole budget is saved as one JSON document. Documents written by older
versions are upgraded on load by a fixed sequence of idempotent migrations;
each migration that changed something is reported by name so the caller can
save the upgraded document right away.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional

from ..constants.categories import (
    DEFAULT_CATEGORIES,
    DEFAULT_INCOME_ITEMS,
    DEFAULT_MAPPINGS,
    NATIONAL_INSURANCE_CATEGORY,
)
from ..constants.months import resolve_month
from ..domain.mapping_table import MappingTable
from ..domain.state import BudgetState
from ..models.mapping import MappingEntry
from ..models.period import Period
from ..models.transaction import ImportedCheckItem, Transaction
from .classification import apply_sign, deposit_override, is_national_insurance_item, normalize_item

logger = logging.getLogger(__name__)

DOCUMENT_VERSION = "1.3"

Migration = Callable[[BudgetState, Mapping[str, Any]], bool]


@dataclass(slots=True)
class LoadResult:
    """A loaded budget plus the names of the migrations that changed it."""

    state: BudgetState
    migrations: list[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def needs_save(self) -> bool:
        return bool(self.migrations)


def default_state(current_year: int) -> BudgetState:
    """A fresh budget seeded with the default categories, income items and mappings."""

    return BudgetState(
        current_year=current_year,
        mappings=MappingTable(
            (item, MappingEntry(category, include)) for item, category, include in DEFAULT_MAPPINGS
        ),
        income_items=list(DEFAULT_INCOME_ITEMS),
        categories=list(DEFAULT_CATEGORIES),
    )


# -- serialization ---------------------------------------------------------


def dump_state(state: BudgetState, *, exported_at: Optional[datetime] = None) -> dict[str, Any]:
    stamp = exported_at or datetime.now(timezone.utc)
    return {
        "transactions": [t.to_dict() for t in state.transactions],
        "importedCheckItems": [c.to_dict() for c in state.imported_check_items],
        "mappings": [[item, entry.to_dict()] for item, entry in state.mappings.items()],
        "incomeItems": list(state.income_items),
        "categories": list(state.categories),
        "openingBalances": [[p.key, value] for p, value in sorted(state.opening_balances.items())],
        "manualOpeningBalances": [p.key for p in sorted(state.manual_opening_balances)],
        "monthlyNotes": [[p.key, text] for p, text in sorted(state.monthly_notes.items())],
        "lastSelectedMonth": state.last_selected_month,
        "lastSelectedYear": state.last_selected_year,
        "lastSelectedColor": state.last_selected_color,
        "currentYear": state.current_year,
        "exportDate": stamp.isoformat(),
        "version": DOCUMENT_VERSION,
    }


def dumps_state(state: BudgetState, *, indent: Optional[int] = 2) -> str:
    return json.dumps(dump_state(state), ensure_ascii=False, indent=indent)


# -- loading ---------------------------------------------------------------


def _pairs(raw: Any) -> Iterable[tuple[Any, Any]]:
    """Accept both ``[[key, value], ...]`` and ``{key: value}`` shapes."""

    if isinstance(raw, Mapping):
        return list(raw.items())
    pairs = []
    for pair in raw or []:
        if isinstance(pair, (list, tuple)) and len(pair) == 2:
            pairs.append((pair[0], pair[1]))
        else:
            logger.warning(f"Ignoring malformed entry {pair!r}")
    return pairs


def _period_map(raw: Any, label: str) -> dict[Period, Any]:
    result: dict[Period, Any] = {}
    for key, value in _pairs(raw):
        try:
            result[Period.from_key(key)] = value
        except ValueError:
            logger.warning(f"Ignoring {label} entry with invalid period key {key!r}")
    return result


def _list(data: Mapping[str, Any], key: str) -> list[Any]:
    raw = data.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list):
        logger.warning(f"Ignoring {key}: expected a list, got {type(raw).__name__}")
        return []
    return raw


def _records(data: Mapping[str, Any], key: str) -> list[Mapping[str, Any]]:
    records = []
    for raw in _list(data, key):
        if isinstance(raw, Mapping):
            records.append(raw)
        else:
            logger.warning(f"Ignoring malformed {key} record {raw!r}")
    return records


def _build_state(data: Mapping[str, Any], current_year: int) -> BudgetState:
    state = BudgetState(current_year=current_year)
    state.transactions = [Transaction.from_dict(raw) for raw in _records(data, "transactions")]
    state.imported_check_items = [
        ImportedCheckItem.from_dict(raw) for raw in _records(data, "importedCheckItems")
    ]
    state.mappings = MappingTable(
        (str(item), MappingEntry.from_value(value)) for item, value in _pairs(data.get("mappings"))
    )
    state.income_items = [str(i) for i in _list(data, "incomeItems")]
    state.categories = [str(c) for c in _list(data, "categories")]
    state.opening_balances = {
        period: float(value)
        for period, value in _period_map(data.get("openingBalances"), "opening balance").items()
        if value is not None
    }
    for key in _list(data, "manualOpeningBalances"):
        try:
            state.manual_opening_balances.add(Period.from_key(key))
        except ValueError:
            logger.warning(f"Ignoring manual opening balance with invalid key {key!r}")
    state.monthly_notes = {
        period: str(text or "")
        for period, text in _period_map(data.get("monthlyNotes"), "monthly note").items()
    }
    state.last_selected_month = data.get("lastSelectedMonth") or None
    state.last_selected_year = data.get("lastSelectedYear") or None
    state.last_selected_color = data.get("lastSelectedColor") or None
    return state


def backfill_year(state: BudgetState, raw: Mapping[str, Any]) -> bool:
    changed = False
    for record in [*state.transactions, *state.imported_check_items]:
        if not record.year:
            record.year = state.current_year
            changed = True
    return changed


def _month_number(value: Any) -> Optional[int]:
    text = str(value).strip() if value is not None else ""
    if text.isdigit():
        return int(text)
    try:
        number = float(text)
    except ValueError:
        return resolve_month(text)
    return int(number) if number.is_integer() else None


def coerce_month(state: BudgetState, raw: Mapping[str, Any]) -> bool:
    """Turn string months into integers; records with no usable month are dropped."""

    changed = False
    for records in (state.transactions, state.imported_check_items):
        kept = []
        for record in records:
            month = record.month
            if not isinstance(month, int) or isinstance(month, bool):
                month = _month_number(month)
                changed = True
            if month is None or not 1 <= month <= 12:
                logger.warning(f"Dropping record {record.id} with invalid month {record.month!r}")
                changed = True
                continue
            record.month = month
            kept.append(record)
        records[:] = kept
    return changed


def strip_item_quotes(state: BudgetState, raw: Mapping[str, Any]) -> bool:
    """Normalize item text everywhere it is stored, including mapping keys.

    When two keys collapse to the same text the first one keeps its entry.
    """

    changed = False
    for record in [*state.transactions, *state.imported_check_items]:
        cleaned = normalize_item(record.item)
        if cleaned != record.item:
            record.item = cleaned
            changed = True

    entries: list[tuple[str, MappingEntry]] = []
    seen: set[str] = set()
    for item, entry in state.mappings.items():
        key = normalize_item(item)
        if key != item:
            changed = True
        if not key or key in seen:
            changed = True
            continue
        seen.add(key)
        entries.append((key, entry))
    state.mappings = MappingTable(entries)

    income_items: list[str] = []
    for income_item in state.income_items:
        cleaned = normalize_item(income_item)
        if cleaned != income_item:
            changed = True
        if not cleaned or cleaned in income_items:
            changed = True
            continue
        income_items.append(cleaned)
    state.income_items = income_items
    return changed


def national_insurance_category(state: BudgetState, raw: Mapping[str, Any]) -> bool:
    changed = False
    for txn in state.transactions:
        if is_national_insurance_item(txn.item) and txn.category != NATIONAL_INSURANCE_CATEGORY:
            txn.category = NATIONAL_INSURANCE_CATEGORY
            changed = True
    return changed


def legacy_mapping_shape(state: BudgetState, raw: Mapping[str, Any]) -> bool:
    """Legacy documents stored bare category strings; those become included entries.

    The entries were already converted while building the state, so this only
    reports whether the saved document still had the old shape.
    """

    return any(not isinstance(value, Mapping) for _, value in _pairs(raw.get("mappings")))


def merge_defaults(state: BudgetState, raw: Mapping[str, Any]) -> bool:
    changed = False
    for category in DEFAULT_CATEGORIES:
        if category not in state.categories:
            state.categories.append(category)
            changed = True
    for income_item in DEFAULT_INCOME_ITEMS:
        if income_item not in state.income_items:
            state.income_items.append(income_item)
            changed = True
    for item, category, include in DEFAULT_MAPPINGS:
        if item not in state.mappings:
            state.mappings.set(item, MappingEntry(category, include))
            changed = True
    return changed


def deposit_type_and_sign(state: BudgetState, raw: Mapping[str, Any]) -> bool:
    changed = False
    for txn in state.transactions:
        forced = deposit_override(txn.item)
        if forced is None:
            continue
        signed = apply_sign(txn.amount, forced)
        if txn.type != forced or txn.amount != signed:
            txn.type = forced
            txn.amount = signed
            changed = True
    return changed


MIGRATIONS: tuple[tuple[str, Migration], ...] = (
    ("backfill_year", backfill_year),
    ("coerce_month", coerce_month),
    ("strip_item_quotes", strip_item_quotes),
    ("national_insurance_category", national_insurance_category),
    ("legacy_mapping_shape", legacy_mapping_shape),
    ("merge_defaults", merge_defaults),
    ("deposit_type_and_sign", deposit_type_and_sign),
)


def load_document(data: Mapping[str, Any], *, current_year: int) -> LoadResult:
    """Build a budget from a parsed document and upgrade it in place."""

    state = _build_state(data, current_year)
    applied = [name for name, migration in MIGRATIONS if migration(state, data)]
    if applied:
        logger.info(f"Applied document migrations: {', '.join(applied)}")
    logger.debug(
        f"Loaded {len(state.transactions)} transactions (document version {data.get('version')})"
    )
    return LoadResult(state=state, migrations=applied)


def loads_state(text: Optional[str], *, current_year: int) -> LoadResult:
    """Parse a saved document; unreadable documents fall back to the default budget."""

    if not text:
        return LoadResult(state=default_state(current_year))
    try:
        data = json.loads(text)
        if not isinstance(data, Mapping):
            raise ValueError("document root is not an object")
        return load_document(data, current_year=current_year)
    except (ValueError, TypeError, KeyError, AttributeError) as exc:
        logger.exception("Could not load saved budget document")
        return LoadResult(state=default_state(current_year), error=str(exc))


# -- mappings file ---------------------------------------------------------


def export_mappings(state: BudgetState) -> dict[str, Any]:
    return {
        "categories": list(state.categories),
        "incomeItems": list(state.income_items),
        "mappings": {item: entry.to_dict() for item, entry in state.mappings.items()},
    }


def import_mappings(state: BudgetState, data: Mapping[str, Any]) -> int:
    """Merge a mappings file into the budget; returns how many mappings were written.

    Bare category strings in the file are treated as not counting toward
    monthly expenses.
    """

    for category in data.get("categories") or []:
        if category not in state.categories:
            state.categories.append(str(category))
    for income_item in data.get("incomeItems") or []:
        if income_item not in state.income_items:
            state.income_items.append(str(income_item))
    written = 0
    for item, value in _pairs(data.get("mappings")):
        key = normalize_item(item)
        if not key:
            continue
        state.mappings.set(key, MappingEntry.from_value(value, legacy_include=False))
        written += 1
    logger.info(f"Imported {written} mappings")
    return written


__all__ = [
    "DOCUMENT_VERSION",
    "LoadResult",
    "MIGRATIONS",
    "default_state",
    "dump_state",
    "dumps_state",
    "export_mappings",
    "import_mappings",
    "load_document",
    "loads_state",
]
