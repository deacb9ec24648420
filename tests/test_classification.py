"""Tests for item normalization, category lookup and income classification."""

from __future__ import annotations

import pytest

from pocketbudget.constants.categories import (
    DEPOSIT_CATEGORY,
    NATIONAL_INSURANCE_CATEGORY,
    UNCATEGORIZED,
)
from pocketbudget.domain.mapping_table import MappingTable
from pocketbudget.models.mapping import MappingEntry
from pocketbudget.models.transaction import CASH, CHECK, EXPENSE, INCOME
from pocketbudget.services import classification


@pytest.fixture
def mappings() -> MappingTable:
    return MappingTable(
        [
            ("Super Market", MappingEntry("Groceries", True)),
            ("Insurance", MappingEntry("Taxes & Insurance", False)),
            ("Deposit withdrawal", MappingEntry("Household", True)),
        ]
    )


def test_normalize_item_strips_quotes_and_whitespace():
    assert classification.normalize_item('  "Super" Market ') == "Super Market"
    assert classification.normalize_item("צה״ל") == "צהל"
    assert classification.normalize_item(None) == ""


def test_exact_match_is_case_sensitive_then_substring_fallback(mappings):
    """Lower-cased item misses the exact key but matches as a substring."""

    assert "super market" not in mappings
    assert classification.category_for_item("super market", mappings) == "Groceries"
    assert classification.category_for_item("SUPER MARKET Tel Aviv", mappings) == "Groceries"


def test_substring_match_in_either_direction(mappings):
    assert classification.category_for_item("Super", mappings) == "Groceries"


def test_first_inserted_mapping_wins_on_ambiguous_substring():
    table = MappingTable(
        [
            ("Bank", MappingEntry("Bank Fees")),
            ("Bank Transfer", MappingEntry("Household")),
        ]
    )
    assert classification.category_for_item("Bank Transfer Fee", table) == "Bank Fees"


def test_unknown_item_is_uncategorized(mappings):
    assert classification.category_for_item("Zoo tickets", mappings) == UNCATEGORIZED
    assert classification.category_for_item("", mappings) == UNCATEGORIZED


def test_deposit_withdrawal_is_income_regardless_of_mapping(mappings):
    result = classification.classify_item("deposit withdrawal", mappings, [])

    assert result.category == DEPOSIT_CATEGORY
    assert result.transaction_type == INCOME
    assert result.forced_type == INCOME
    assert classification.apply_sign(-500, result.transaction_type) == 500


def test_deposit_placement_is_expense():
    assert classification.deposit_override("הפקדה לפיקדון") == EXPENSE
    assert classification.deposit_override("Deposit placement") == EXPENSE


def test_plain_deposit_has_no_forced_type():
    assert classification.deposit_override("deposit") is None
    assert classification.deposit_override("Groceries") is None


def test_hebrew_deposit_interest_is_income():
    assert classification.deposit_override("ריבית פיקדון") == INCOME


def test_national_insurance_prefix_gets_fixed_category(mappings):
    assert classification.is_national_insurance_item("ביטוח לאומי ילדים")
    assert classification.category_for_item("National Insurance", mappings) == NATIONAL_INSURANCE_CATEGORY
    assert not classification.is_national_insurance_item("Car insurance")


def test_monthly_expense_flag_follows_mapping(mappings):
    assert classification.should_include_in_monthly_expenses("Super Market", mappings) is True
    assert classification.should_include_in_monthly_expenses("Insurance", mappings) is False


def test_unmapped_items_count_toward_monthly_expenses(mappings):
    assert classification.should_include_in_monthly_expenses("Zoo tickets", mappings) is True


def test_deposits_always_count_toward_monthly_expenses():
    table = MappingTable([("deposit", MappingEntry("Savings", False))])
    assert classification.should_include_in_monthly_expenses("deposit", table) is True


@pytest.mark.parametrize(
    "item,expected",
    [
        ("Salary", INCOME),
        ("salary march", INCOME),
        ("משכורת", INCOME),
        ("Grocery", EXPENSE),
        ("", EXPENSE),
    ],
)
def test_classify_transaction_type(item, expected):
    assert classification.classify_transaction_type(item, ["Salary", "משכורת"]) == expected


def test_apply_sign():
    assert classification.apply_sign(120, EXPENSE) == -120
    assert classification.apply_sign(-120, EXPENSE) == -120
    assert classification.apply_sign(-120, INCOME) == 120
    assert classification.apply_sign(-5, "transfer") == 5


def test_check_placeholder_requires_exact_text():
    assert classification.is_check_placeholder("(צ'יק)")
    assert classification.is_check_placeholder(" (Check) ")
    assert not classification.is_check_placeholder("Check 1234")


def test_payment_method_detects_check_marker():
    assert classification.payment_method_for("check 1234") == CHECK
    assert classification.payment_method_for("צ'יק לוועד") == CHECK
    assert classification.payment_method_for("Grocery") == CASH
