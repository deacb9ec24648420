"""Domain record and SQLModel table exports."""

from .document import StoredDocument
from .mapping import MappingEntry
from .period import Period
from .transaction import (
    CASH,
    CHECK,
    EXPENSE,
    INCOME,
    TRANSFER,
    CheckDetails,
    ImportedCheckItem,
    Transaction,
    new_entity_id,
)

__all__ = [
    "CASH",
    "CHECK",
    "EXPENSE",
    "INCOME",
    "TRANSFER",
    "CheckDetails",
    "ImportedCheckItem",
    "MappingEntry",
    "Period",
    "StoredDocument",
    "Transaction",
    "new_entity_id",
]
