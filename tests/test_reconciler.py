"""Tests for CSV batch validation, duplicate detection and merging."""

from __future__ import annotations

import pytest

from pocketbudget.constants.categories import CHECK_ITEM_COLOR, DEPOSIT_CATEGORY
from pocketbudget.models.period import Period
from pocketbudget.models.transaction import CHECK, EXPENSE, INCOME, Transaction
from pocketbudget.services import reconciler
from pocketbudget.services.import_csv import read_csv_text

HEADER = "year,month,item,debit,credit"


def _csv(*rows: str, header: str = HEADER) -> str:
    return "\n".join([header, *rows]) + "\n"


def test_import_adds_classified_transactions(state, march):
    text = _csv(
        "2025,March,Super Market,120.50,",
        "2025,March,Salary,,9000",
        '2025,March,"Bank Fee ""monthly""",12,',
    )

    result = reconciler.import_csv_text(state, text, target=march)

    assert result.ok
    assert result.added == 3
    by_item = {t.item: t for t in state.transactions}
    assert by_item["Super Market"].amount == -120.5
    assert by_item["Super Market"].type == EXPENSE
    assert by_item["Super Market"].category == "Household"
    assert by_item["Salary"].amount == 9000
    assert by_item["Salary"].type == INCOME
    assert by_item["Bank Fee monthly"].category == "Bank Fees"
    assert all(t.month == 3 and t.year == 2025 for t in state.transactions)


def test_reimport_skips_duplicates(state, march):
    text = _csv("2025,March,Electric Co,200,")

    first = reconciler.import_csv_text(state, text, target=march)
    second = reconciler.import_csv_text(state, text, target=march)

    assert first.added == 1
    assert second.added == 0
    assert second.duplicates == 1
    assert len(state.transactions) == 1
    assert "1 duplicates skipped" in second.summary()


def test_duplicate_tolerance_is_one_cent(state, march):
    reconciler.import_csv_text(state, _csv("2025,March,Electric Co,200,"), target=march)

    near = reconciler.import_csv_text(state, _csv("2025,March,Electric Co,200.005,"), target=march)
    far = reconciler.import_csv_text(state, _csv("2025,March,Electric Co,200.02,"), target=march)

    assert near.duplicates == 1
    assert far.added == 1


def test_repeated_rows_within_one_batch_are_kept(state, march):
    text = _csv("2025,March,Taxi,30,", "2025,March,Taxi,30,")

    result = reconciler.import_csv_text(state, text, target=march)

    assert result.added == 2
    assert result.duplicates == 0


def test_month_mismatch_names_both_months(state):
    text = _csv("2025,March,Electric Co,200,")

    result = reconciler.import_csv_text(state, text, target=Period(2025, 4))

    assert not result.ok
    assert "March 2025" in result.error
    assert "April 2025" in result.error
    assert state.transactions == []


def test_import_requires_a_single_target_month(state):
    result = reconciler.import_csv_text(state, _csv("2025,March,Taxi,30,"), target=None)

    assert result.error == "Select a specific month before importing"


def test_batch_spanning_months_is_rejected(state, march):
    text = _csv("2025,March,Taxi,30,", "2025,April,Taxi,30,")

    result = reconciler.import_csv_text(state, text, target=march)

    assert "several months" in result.error
    assert state.transactions == []


def test_wrong_header_is_rejected(state, march):
    result = reconciler.import_csv_text(
        state, _csv("2025,March,Taxi,30", header="year,month,item,amount"), target=march
    )

    assert not result.ok
    assert "Unexpected header" in result.error


def test_header_is_case_insensitive_and_tolerates_bom(state, march):
    text = "\ufeffYear, Month ,Item,Debit,Credit\n2025,March,Taxi,30,\n"

    result = reconciler.import_csv_text(state, text, target=march)

    assert result.added == 1


def test_unknown_month_reports_row_number(state, march):
    result = reconciler.import_csv_text(
        state, _csv("2025,March,Taxi,30,", "2025,Marchember,Taxi,30,"), target=march
    )

    assert result.error.startswith("Row 3: unknown month name")


def test_non_numeric_amount_aborts_whole_batch(state, march):
    text = _csv("2025,March,Taxi,30,", "2025,March,Bus Pass,abc,")

    result = reconciler.import_csv_text(state, text, target=march)

    assert not result.ok
    assert "not a number" in result.error
    assert state.transactions == []


def test_empty_file_and_header_only(state, march):
    assert reconciler.import_csv_text(state, "", target=march).error == "The file is empty"
    assert reconciler.import_csv_text(state, HEADER + "\n", target=march).error == (
        "The file has no data rows"
    )


def test_rows_without_exactly_one_amount_are_skipped(state, march):
    text = _csv(
        "2025,March,Taxi,30,",
        "2025,March,Refund,10,20",
        "2025,March,Nothing,,",
        "2025,March,,15,",
    )

    result = reconciler.import_csv_text(state, text, target=march)

    assert result.ok
    assert result.added == 1
    assert result.skipped_rows == 3


def test_hebrew_month_names_resolve(state, march):
    result = reconciler.import_csv_text(state, _csv("2025,מרץ,סופרסל,80,"), target=march)

    assert result.added == 1
    assert state.transactions[0].category == "Household"


def test_check_placeholder_becomes_check_item(state, march):
    text = _csv("2025,March,(צ'יק),1500,", "2025,March,(check),300,")

    result = reconciler.import_csv_text(state, text, target=march)

    assert result.added == 0
    assert result.check_items_added == 2
    assert state.transactions == []
    check_item = state.imported_check_items[0]
    assert check_item.item == "Checks March"
    assert check_item.amount == -1500
    assert check_item.color == CHECK_ITEM_COLOR


def test_check_items_are_deduplicated(state, march):
    text = _csv("2025,March,(check),300,")
    reconciler.import_csv_text(state, text, target=march)

    again = reconciler.import_csv_text(state, text, target=march)

    assert again.check_item_duplicates == 1
    assert len(state.imported_check_items) == 1


def test_check_marker_in_item_sets_payment_method(state, march):
    reconciler.import_csv_text(state, _csv("2025,March,check 1001 plumber,450,"), target=march)

    assert state.transactions[0].payment_method == CHECK


def test_deposit_rule_overrides_column_side(state, march):
    result = reconciler.import_csv_text(
        state, _csv("2025,March,deposit withdrawal,5000,"), target=march
    )

    txn = state.transactions[0]
    assert result.added == 1
    assert txn.type == INCOME
    assert txn.amount == 5000
    assert txn.category == DEPOSIT_CATEGORY


def test_is_duplicate_transaction_requires_same_type():
    base = Transaction(month=3, year=2025, item="Taxi", amount=-30.0, type=EXPENSE)
    other = Transaction(month=3, year=2025, item="Taxi", amount=-30.0, type=INCOME)

    assert reconciler.is_duplicate_transaction(base, base)
    assert not reconciler.is_duplicate_transaction(base, other)


def test_import_csv_file_reads_utf8_with_bom(tmp_path, state, march):
    path = tmp_path / "march.csv"
    path.write_text(_csv("2025,March,Taxi,30,"), encoding="utf-8-sig")

    result = reconciler.import_csv_file(state, path, target=march)

    assert result.added == 1


def test_import_csv_file_rejects_invalid_encoding(tmp_path, state, march):
    path = tmp_path / "march.csv"
    path.write_bytes(b"year,month,item,debit,credit\n2025,March,\xff\xfe,30,\n")

    result = reconciler.import_csv_file(state, path, target=march)

    assert result.error == "The file is not valid UTF-8"


def test_read_csv_text_keeps_cells_as_text():
    table = read_csv_text(_csv("2025,March,Taxi,030,"))

    assert table.header == ["year", "month", "item", "debit", "credit"]
    assert table.rows == [
        {"year": "2025", "month": "March", "item": "Taxi", "debit": "030", "credit": ""}
    ]


def test_summary_reports_failure():
    result = reconciler.ImportResult(error="boom")
    assert result.summary() == "Import failed: boom"
    assert not result.changed


@pytest.mark.parametrize("amount", ["1,250.00", " 1250 "])
def test_amounts_with_thousands_separator(state, march, amount):
    text = f'{HEADER}\n2025,March,Taxi,"{amount}",\n'

    result = reconciler.import_csv_text(state, text, target=march)

    assert result.added == 1
    assert state.transactions[0].amount == -1250.0
