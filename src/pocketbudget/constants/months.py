"""Month-name lookup used by imports and report labels."""

from __future__ import annotations

from typing import Optional

HEBREW_MONTHS = {
    1: "ינואר",
    2: "פברואר",
    3: "מרץ",
    4: "אפריל",
    5: "מאי",
    6: "יוני",
    7: "יולי",
    8: "אוגוסט",
    9: "ספטמבר",
    10: "אוקטובר",
    11: "נובמבר",
    12: "דצמבר",
}

ENGLISH_MONTHS = {
    1: "January",
    2: "February",
    3: "March",
    4: "April",
    5: "May",
    6: "June",
    7: "July",
    8: "August",
    9: "September",
    10: "October",
    11: "November",
    12: "December",
}

# Alternate spellings seen in bank exports
_ALIASES = {
    "מרס": 3,
    "מארס": 3,
}

MONTH_NAME_TABLE: dict[str, int] = {
    **{name: number for number, name in HEBREW_MONTHS.items()},
    **{name.lower(): number for number, name in ENGLISH_MONTHS.items()},
    **{name[:3].lower(): number for number, name in ENGLISH_MONTHS.items()},
    **_ALIASES,
}


def resolve_month(name: object) -> Optional[int]:
    """Return the month number for a localized month name, or None."""

    if name is None:
        return None
    text = str(name).strip()
    if not text:
        return None
    return MONTH_NAME_TABLE.get(text) or MONTH_NAME_TABLE.get(text.lower())


def month_name(month: int, *, language: str = "en") -> str:
    """Return the display name for a month number."""

    table = HEBREW_MONTHS if language == "he" else ENGLISH_MONTHS
    return table.get(month, str(month))
