"""Ledger transaction and imported check item records."""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from ..constants.categories import UNCATEGORIZED

INCOME = "income"
EXPENSE = "expense"
TRANSFER = "transfer"
TRANSACTION_TYPES = (INCOME, EXPENSE, TRANSFER)

CASH = "cash"
CHECK = "check"
PAYMENT_METHODS = (CASH, CHECK)


def new_entity_id() -> float:
    """Return a time-based id with a random fraction.

    Rapid batch imports can create many ids within one millisecond; the random
    part makes collisions unlikely but not impossible.
    """

    return time.time() * 1000 + random.random()


def _optional_year(value: Any) -> Optional[int]:
    """Saved years may be missing, empty or stored as text."""
    if value in (None, ""):
        return None
    try:
        return int(value) or None
    except (TypeError, ValueError):
        return None


@dataclass(slots=True)
class CheckDetails:
    """Check number and payee recorded for check payments."""

    check_number: str
    payee_name: str

    def to_dict(self) -> dict[str, str]:
        return {"checkNumber": self.check_number, "payeeName": self.payee_name}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> Optional["CheckDetails"]:
        if not data:
            return None
        return cls(
            check_number=str(data.get("checkNumber") or ""),
            payee_name=str(data.get("payeeName") or ""),
        )


@dataclass(slots=True)
class Transaction:
    """A single recorded financial event.

    ``amount`` is negative for expenses and positive (or zero) for income and
    transfers. ``year`` may be ``None`` only for records loaded from documents
    written before years were tracked.
    """

    month: int
    year: Optional[int]
    item: str
    amount: float
    type: str = EXPENSE
    category: str = UNCATEGORIZED
    note: str = ""
    payment_method: str = CASH
    check_details: Optional[CheckDetails] = None
    color: Optional[str] = None
    id: float = field(default_factory=new_entity_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "month": self.month,
            "year": self.year,
            "item": self.item,
            "amount": self.amount,
            "type": self.type,
            "category": self.category,
            "note": self.note,
            "paymentMethod": self.payment_method,
            "checkDetails": self.check_details.to_dict() if self.check_details else None,
            "color": self.color,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Transaction":
        raw_id = data.get("id")
        return cls(
            id=float(raw_id) if raw_id not in (None, "") else new_entity_id(),
            month=data.get("month"),  # type: ignore[arg-type]  # coerced by migrations
            year=_optional_year(data.get("year")),
            item=str(data.get("item") or ""),
            amount=float(data.get("amount") or 0.0),
            type=str(data.get("type") or EXPENSE),
            category=str(data.get("category") or UNCATEGORIZED),
            note=str(data.get("note") or ""),
            payment_method=str(data.get("paymentMethod") or CASH),
            check_details=CheckDetails.from_dict(data.get("checkDetails")),
            color=data.get("color") or None,
        )


@dataclass(slots=True)
class ImportedCheckItem:
    """Placeholder row for bulk-imported checks.

    Kept apart from transactions so that check totals never leak into
    category or balance computations.
    """

    month: int
    year: int
    item: str
    amount: float
    note: str = ""
    check_number: str = ""
    payee_name: str = ""
    color: Optional[str] = None
    id: float = field(default_factory=new_entity_id)

    def __post_init__(self) -> None:
        self.amount = -abs(float(self.amount))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "item": self.item,
            "amount": self.amount,
            "month": self.month,
            "year": self.year,
            "note": self.note,
            "checkNumber": self.check_number,
            "payeeName": self.payee_name,
            "color": self.color,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ImportedCheckItem":
        raw_id = data.get("id")
        return cls(
            id=float(raw_id) if raw_id not in (None, "") else new_entity_id(),
            month=data.get("month"),  # type: ignore[arg-type]
            year=_optional_year(data.get("year")),  # type: ignore[arg-type]
            item=str(data.get("item") or ""),
            amount=float(data.get("amount") or 0.0),
            note=str(data.get("note") or ""),
            check_number=str(data.get("checkNumber") or ""),
            payee_name=str(data.get("payeeName") or ""),
            color=data.get("color") or None,
        )
