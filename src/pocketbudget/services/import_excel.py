"""Bank statement spreadsheet ingestion.

Statements start with a few title rows, so the header row is located by
scanning for a date column and a description column. Rows are then grouped
by month and only the month with the most rows is kept; rows from other
months are dropped and reported. The surviving rows are flattened into the
``year,month,item,debit,credit`` shape and fed to the reconciler.
"""

from __future__ import annotations

import logging
import numbers
import re
import zipfile
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd

from ..constants.months import month_name
from ..domain.state import BudgetState
from ..models.period import Period
from .reconciler import EXPECTED_HEADER, ImportResult, ImportValidationError, reconcile_rows

logger = logging.getLogger(__name__)

# Spreadsheet serial day 0; 1899-12-30 absorbs the 1900 leap-year bug
EXCEL_EPOCH = datetime(1899, 12, 30)

COLUMN_TOKENS: dict[str, tuple[str, ...]] = {
    "date": ("תאריך", "date"),
    "description": ("תיאור", "פרטים", "description", "details"),
    "debit": ("חובה", "debit", "withdrawal"),
    "credit": ("זכות", "credit"),
}
REQUIRED_COLUMNS = ("date", "description")

_DMY_PATTERN = re.compile(r"^(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{2,4})$")
_ISO_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})")


@dataclass(slots=True)
class ExcelRows:
    """Rows flattened for the reconciler plus what was left out."""

    rows: list[dict[str, str]] = field(default_factory=list)
    period: Optional[Period] = None
    dropped: dict[Period, int] = field(default_factory=dict)
    undated: int = 0


def _text(value: object) -> str:
    if value is None:
        return ""
    if not isinstance(value, str) and pd.isna(value):
        return ""
    return str(value).strip()


def _matches(cell: str, field_name: str) -> bool:
    folded = cell.casefold()
    return any(token.casefold() in folded for token in COLUMN_TOKENS[field_name])


def locate_header_row(frame: pd.DataFrame) -> int:
    """Return the index of the first row naming both a date and a description column."""

    for index, row in enumerate(frame.itertuples(index=False, name=None)):
        cells = [_text(value) for value in row]
        if all(any(_matches(cell, name) for cell in cells if cell) for name in REQUIRED_COLUMNS):
            return index
    raise ImportValidationError("Could not find a header row with date and description columns")


def map_columns(header_cells: Sequence[object]) -> dict[str, int]:
    """Map each known field to the first column whose header names it."""

    mapping: dict[str, int] = {}
    for position, raw in enumerate(header_cells):
        cell = _text(raw)
        if not cell:
            continue
        for field_name in COLUMN_TOKENS:
            if field_name not in mapping and _matches(cell, field_name):
                mapping[field_name] = position
                break
    missing = [name for name in REQUIRED_COLUMNS if name not in mapping]
    if missing:
        raise ImportValidationError(f"Missing required columns: {', '.join(missing)}")
    if "debit" not in mapping and "credit" not in mapping:
        raise ImportValidationError("The sheet has neither a debit nor a credit column")
    return mapping


def excel_date_to_iso(value: object) -> Optional[str]:
    """Convert a spreadsheet date cell to ``YYYY-MM-DD``; ``None`` if it is not a date."""

    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        if pd.isna(value) or value <= 0:
            return None
        return (EXCEL_EPOCH + timedelta(days=int(value))).strftime("%Y-%m-%d")

    text = _text(value)
    if not text:
        return None
    iso = _ISO_PATTERN.match(text)
    if iso:
        year, month, day = (int(part) for part in iso.groups())
    else:
        dmy = _DMY_PATTERN.match(text)
        if not dmy:
            return None
        day, month, year = (int(part) for part in dmy.groups())
        if year < 100:
            year += 2000
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _amount_text(value: object) -> str:
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        if pd.isna(value) or value == 0:
            return ""
        return repr(float(abs(value)))
    return _text(value)


def extract_rows(frame: pd.DataFrame) -> ExcelRows:
    """Flatten a raw sheet (read with ``header=None``) into reconciler rows."""

    header_index = locate_header_row(frame)
    columns = map_columns(list(frame.iloc[header_index]))

    candidates: list[tuple[Period, dict[str, str]]] = []
    undated = 0
    for record in frame.iloc[header_index + 1 :].itertuples(index=False, name=None):
        description = _text(record[columns["description"]])
        iso = excel_date_to_iso(record[columns["date"]])
        debit = _amount_text(record[columns["debit"]]) if "debit" in columns else ""
        credit = _amount_text(record[columns["credit"]]) if "credit" in columns else ""
        if not description and not debit and not credit:
            continue
        if iso is None:
            undated += 1
            continue
        year, month = int(iso[:4]), int(iso[5:7])
        period = Period(year, month)
        candidates.append(
            (
                period,
                {
                    "year": str(year),
                    "month": month_name(month),
                    "item": description,
                    "debit": debit,
                    "credit": credit,
                },
            )
        )

    result = ExcelRows(undated=undated)
    if not candidates:
        return result

    counts = Counter(period for period, _ in candidates)
    first_seen = list(dict.fromkeys(period for period, _ in candidates))
    keep = max(first_seen, key=lambda period: counts[period])
    result.period = keep
    result.rows = [row for period, row in candidates if period == keep]
    result.dropped = {period: counts[period] for period in first_seen if period != keep}
    for period, count in result.dropped.items():
        logger.warning(f"Dropped {count} spreadsheet rows from {period}; only {keep} is imported")
    return result


def read_sheet(path: Path) -> pd.DataFrame:
    return pd.read_excel(path, header=None, dtype=object, engine="openpyxl")


def import_excel_file(
    state: BudgetState, path: Path, *, target: Optional[Period]
) -> ImportResult:
    """Import the first sheet of a bank statement workbook into ``target``."""

    if target is None:
        return ImportResult(
            source="excel", error="Select a specific month before importing"
        )
    try:
        frame = read_sheet(Path(path))
        extracted = extract_rows(frame)
    except ImportValidationError as exc:
        logger.warning(f"Rejected excel import: {exc}")
        return ImportResult(source="excel", period=target, error=str(exc))
    except (ValueError, zipfile.BadZipFile) as exc:
        logger.warning(f"Could not read spreadsheet {path}: {exc}")
        return ImportResult(source="excel", period=target, error=f"Could not read spreadsheet: {exc}")

    result = reconcile_rows(
        state, EXPECTED_HEADER, extracted.rows, target=target, source="excel"
    )
    if result.ok:
        result.dropped_rows = dict(extracted.dropped)
        result.skipped_rows += extracted.undated
    return result


__all__ = [
    "EXCEL_EPOCH",
    "ExcelRows",
    "excel_date_to_iso",
    "extract_rows",
    "import_excel_file",
    "locate_header_row",
    "map_columns",
    "read_sheet",
]
