"""Validation and merge of imported transaction batches.

A batch is a header plus rows shaped ``year,month,item,debit,credit`` (from a
CSV file or a flattened spreadsheet). The whole batch is validated before
anything touches the budget: any fatal problem aborts the import and nothing
is written.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Sequence

from ..constants.categories import CHECK_ITEM_COLOR, CHECK_ITEM_LABEL
from ..constants.months import month_name, resolve_month
from ..domain.state import BudgetState
from ..models.period import Period
from ..models.transaction import EXPENSE, INCOME, ImportedCheckItem, Transaction
from .classification import (
    apply_sign,
    classify_item,
    is_check_placeholder,
    normalize_item,
    payment_method_for,
)
from .import_csv import CsvReadError, read_csv_text

logger = logging.getLogger(__name__)

EXPECTED_HEADER = ["year", "month", "item", "debit", "credit"]
AMOUNT_TOLERANCE = 0.01
CHECK_ITEM_NOTE = "Imported check"


class ImportValidationError(ValueError):
    """A batch failed validation; the message is shown to the user."""


@dataclass(slots=True)
class ImportBatch:
    """Validated rows of one period, ready to merge."""

    period: Period
    transactions: list[Transaction] = field(default_factory=list)
    check_items: list[ImportedCheckItem] = field(default_factory=list)
    skipped_rows: int = 0


@dataclass(slots=True)
class ImportResult:
    """Counts reported back after an import attempt."""

    source: str = "csv"
    period: Optional[Period] = None
    added: int = 0
    duplicates: int = 0
    check_items_added: int = 0
    check_item_duplicates: int = 0
    skipped_rows: int = 0
    dropped_rows: dict[Period, int] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def changed(self) -> bool:
        return self.ok and (self.added + self.check_items_added) > 0

    def summary(self) -> str:
        if self.error:
            return f"Import failed: {self.error}"
        parts = [f"{self.added} transactions added"]
        if self.check_items_added:
            parts.append(f"{self.check_items_added} check items added")
        duplicates = self.duplicates + self.check_item_duplicates
        if duplicates:
            parts.append(f"{duplicates} duplicates skipped")
        if self.skipped_rows:
            parts.append(f"{self.skipped_rows} rows without a single amount skipped")
        for period, count in sorted(self.dropped_rows.items()):
            parts.append(f"{count} rows from {period} dropped")
        label = f" for {self.period}" if self.period else ""
        return f"Imported{label}: " + ", ".join(parts)


def _describe(period: Period) -> str:
    return f"{month_name(period.month)} {period.year}"


def _parse_year(raw: object, line: int) -> int:
    text = str(raw or "").strip()
    try:
        value = float(text)
    except ValueError:
        raise ImportValidationError(f"Row {line}: invalid year {text!r}") from None
    if not value.is_integer():
        raise ImportValidationError(f"Row {line}: invalid year {text!r}")
    return int(value)


def _parse_amount(raw: str, line: int) -> float:
    text = raw.replace(",", "").strip()
    try:
        value = float(text)
    except ValueError:
        raise ImportValidationError(f"Row {line}: amount {raw!r} is not a number") from None
    if not math.isfinite(value):
        raise ImportValidationError(f"Row {line}: amount {raw!r} is not a number")
    return value


def _resolve_period(row: Mapping[str, object], line: int) -> Period:
    raw_month = row.get("month")
    month = resolve_month(raw_month)
    if month is None:
        raise ImportValidationError(f"Row {line}: unknown month name {str(raw_month or '')!r}")
    return Period(_parse_year(row.get("year"), line), month)


def build_batch(
    state: BudgetState,
    header: Sequence[str],
    rows: Sequence[Mapping[str, object]],
    *,
    target: Optional[Period],
) -> ImportBatch:
    """Validate rows against ``target`` and turn them into records.

    Raises :class:`ImportValidationError` on the first fatal problem. Row
    numbers in messages count the header as row 1.
    """

    if target is None:
        raise ImportValidationError("Select a specific month before importing")

    normalized_header = [str(h).strip().lower() for h in header]
    if normalized_header != EXPECTED_HEADER:
        raise ImportValidationError(
            f"Unexpected header {','.join(normalized_header)!r}; "
            f"expected {','.join(EXPECTED_HEADER)!r}"
        )
    if not rows:
        raise ImportValidationError("The file has no data rows")

    periods = [_resolve_period(row, line) for line, row in enumerate(rows, start=2)]
    distinct = sorted(set(periods))
    if len(distinct) > 1:
        listed = ", ".join(_describe(p) for p in distinct)
        raise ImportValidationError(f"The file spans several months ({listed}); import one month at a time")

    period = distinct[0]
    if period != target:
        raise ImportValidationError(
            f"The file contains {_describe(period)} but {_describe(target)} is selected"
        )

    batch = ImportBatch(period=period)
    for line, row in enumerate(rows, start=2):
        debit = str(row.get("debit") or "").strip()
        credit = str(row.get("credit") or "").strip()
        item = normalize_item(row.get("item"))
        if bool(debit) == bool(credit) or not item:
            batch.skipped_rows += 1
            continue

        side = INCOME if credit else EXPENSE
        magnitude = abs(_parse_amount(credit or debit, line))

        if is_check_placeholder(item):
            batch.check_items.append(
                ImportedCheckItem(
                    month=period.month,
                    year=period.year,
                    item=f"{CHECK_ITEM_LABEL} {month_name(period.month)}",
                    amount=magnitude,
                    note=CHECK_ITEM_NOTE,
                    color=CHECK_ITEM_COLOR,
                )
            )
            continue

        classification = classify_item(item, state.mappings, state.income_items)
        txn_type = classification.forced_type or side
        batch.transactions.append(
            Transaction(
                month=period.month,
                year=period.year,
                item=item,
                amount=apply_sign(magnitude, txn_type),
                type=txn_type,
                category=classification.category,
                payment_method=payment_method_for(item),
            )
        )
    return batch


def is_duplicate_transaction(existing: Transaction, candidate: Transaction) -> bool:
    return (
        existing.item == candidate.item
        and existing.month == candidate.month
        and existing.year == candidate.year
        and existing.type == candidate.type
        and abs(existing.amount - candidate.amount) < AMOUNT_TOLERANCE
    )


def is_duplicate_check_item(existing: ImportedCheckItem, candidate: ImportedCheckItem) -> bool:
    return (
        existing.item == candidate.item
        and existing.month == candidate.month
        and existing.year == candidate.year
        and abs(existing.amount - candidate.amount) < AMOUNT_TOLERANCE
    )


def merge_batch(state: BudgetState, batch: ImportBatch, *, source: str = "csv") -> ImportResult:
    """Append the non-duplicate records of ``batch`` to ``state``.

    Candidates are compared with the records present before the merge, so
    repeated rows inside one batch are all kept.
    """

    result = ImportResult(source=source, period=batch.period, skipped_rows=batch.skipped_rows)

    existing_transactions = list(state.transactions)
    for candidate in batch.transactions:
        if any(is_duplicate_transaction(t, candidate) for t in existing_transactions):
            result.duplicates += 1
            continue
        state.transactions.append(candidate)
        result.added += 1

    existing_checks = list(state.imported_check_items)
    for candidate in batch.check_items:
        if any(is_duplicate_check_item(c, candidate) for c in existing_checks):
            result.check_item_duplicates += 1
            continue
        state.imported_check_items.append(candidate)
        result.check_items_added += 1

    logger.info(result.summary())
    return result


def reconcile_rows(
    state: BudgetState,
    header: Sequence[str],
    rows: Sequence[Mapping[str, object]],
    *,
    target: Optional[Period],
    source: str = "csv",
) -> ImportResult:
    """Validate and merge one batch, converting validation failures to a result."""

    try:
        batch = build_batch(state, header, rows, target=target)
    except ImportValidationError as exc:
        logger.warning(f"Rejected {source} import: {exc}")
        return ImportResult(source=source, period=target, error=str(exc))
    return merge_batch(state, batch, source=source)


def import_csv_text(state: BudgetState, text: str, *, target: Optional[Period]) -> ImportResult:
    try:
        table = read_csv_text(text)
    except CsvReadError as exc:
        logger.warning(f"Rejected csv import: {exc}")
        return ImportResult(source="csv", period=target, error=str(exc))
    return reconcile_rows(state, table.header, table.rows, target=target, source="csv")


def import_csv_file(state: BudgetState, path: Path, *, target: Optional[Period]) -> ImportResult:
    try:
        text = Path(path).read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as exc:
        logger.warning(f"Could not decode {path}: {exc}")
        return ImportResult(source="csv", period=target, error="The file is not valid UTF-8")
    return import_csv_text(state, text, target=target)


__all__ = [
    "AMOUNT_TOLERANCE",
    "EXPECTED_HEADER",
    "ImportBatch",
    "ImportResult",
    "ImportValidationError",
    "build_batch",
    "import_csv_file",
    "import_csv_text",
    "is_duplicate_check_item",
    "is_duplicate_transaction",
    "merge_batch",
    "reconcile_rows",
]
