"""CSV export helpers for PocketBudget."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable

import pandas as pd

from ..models.transaction import Transaction
from .reports import MonthlyReport

TRANSACTION_HEADERS = [
    "id",
    "year",
    "month",
    "item",
    "amount",
    "type",
    "category",
    "payment_method",
    "check_number",
    "payee_name",
    "note",
    "color",
]


def _serialize_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def export_transactions_csv(*, transactions: Iterable[Transaction], output_path: Path) -> Path:
    """Write transactions to CSV at `output_path`.

    Columns are deterministic (see ``TRANSACTION_HEADERS``); amounts keep
    their sign. Returns the path written.
    """

    output_path.parent.mkdir(parents=True, exist_ok=True)

    # utf-8-sig so spreadsheet apps detect Hebrew text; newline='' for csv on Windows
    with output_path.open("w", newline="", encoding="utf-8-sig") as fh:
        writer = csv.DictWriter(
            fh, fieldnames=TRANSACTION_HEADERS, extrasaction="ignore", quoting=csv.QUOTE_MINIMAL
        )
        writer.writeheader()
        for tx in transactions:
            details = tx.check_details
            writer.writerow(
                {
                    "id": repr(tx.id),
                    "year": _serialize_value(tx.year),
                    "month": _serialize_value(tx.month),
                    "item": tx.item,
                    "amount": _serialize_value(tx.amount),
                    "type": tx.type,
                    "category": tx.category,
                    "payment_method": tx.payment_method,
                    "check_number": details.check_number if details else "",
                    "payee_name": details.payee_name if details else "",
                    "note": tx.note,
                    "color": _serialize_value(tx.color),
                }
            )

    return output_path


def export_monthly_report_csv(*, report: MonthlyReport, output_path: Path) -> Path:
    """Write a ``section,label,amount`` summary of one month."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    balance = report.balance

    with output_path.open("w", newline="", encoding="utf-8-sig") as fh:
        writer = csv.writer(fh)
        writer.writerow(["section", "label", "amount"])
        writer.writerow(["balance", "opening", _serialize_value(balance.opening)])
        writer.writerow(["balance", "income", _serialize_value(balance.income)])
        writer.writerow(["balance", "expenses", _serialize_value(balance.expenses)])
        writer.writerow(["balance", "transfers", _serialize_value(balance.transfers)])
        writer.writerow(["balance", "closing", _serialize_value(balance.closing)])
        for entry in report.categories:
            writer.writerow(["category", entry.category, _serialize_value(entry.total)])
        for entry in report.actual_expenses:
            writer.writerow(["actual_expense", entry.item, _serialize_value(entry.total)])
        for txn in report.check_payments:
            writer.writerow(["check", txn.item, _serialize_value(txn.amount)])
        for check_item in report.check_items:
            writer.writerow(["check_item", check_item.item, _serialize_value(check_item.amount)])
        if balance.note:
            writer.writerow(["note", balance.note, ""])

    return output_path


def export_annual_grid_csv(*, grid: pd.DataFrame, output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    grid.to_csv(output_path, float_format="%.2f", encoding="utf-8-sig")
    return output_path


__all__ = [
    "TRANSACTION_HEADERS",
    "export_annual_grid_csv",
    "export_monthly_report_csv",
    "export_transactions_csv",
]
