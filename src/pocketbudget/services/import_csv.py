"""CSV ingestion utilities."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd

logger = logging.getLogger(__name__)

BOM = "\ufeff"


class CsvReadError(ValueError):
    """The text could not be parsed as CSV at all."""


@dataclass(slots=True)
class CsvTable:
    """Header and data rows of a CSV file, every cell kept as text."""

    header: list[str]
    rows: list[dict[str, str]] = field(default_factory=list)


def normalize_header(columns) -> list[str]:
    return [str(c).replace(BOM, "").strip().lower() for c in columns]


def _cell(value: object) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value).strip()


def read_csv_text(text: str) -> CsvTable:
    """Parse CSV text into a :class:`CsvTable`.

    A leading byte-order mark is tolerated and blank lines are skipped.
    """

    if text.startswith(BOM):
        text = text[len(BOM) :]
    if not text.strip():
        raise CsvReadError("The file is empty")

    try:
        frame = pd.read_csv(
            io.StringIO(text), dtype=str, keep_default_na=False, skip_blank_lines=True
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise CsvReadError(f"Could not parse CSV: {exc}") from exc

    header = normalize_header(frame.columns)
    frame.columns = header
    rows = [
        {column: _cell(value) for column, value in zip(header, record)}
        for record in frame.itertuples(index=False, name=None)
    ]
    logger.debug(f"Read {len(rows)} CSV rows with header {header}")
    return CsvTable(header=header, rows=rows)


def read_csv_file(path: Path, *, encoding: str = "utf-8-sig") -> CsvTable:
    return read_csv_text(Path(path).read_text(encoding=encoding))


__all__ = ["CsvReadError", "CsvTable", "normalize_header", "read_csv_file", "read_csv_text"]
