"""Budget period key."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True, order=True)
class Period:
    """A ``(year, month)`` bucket that transactions and balances belong to."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be between 1 and 12, got {self.month}")

    @property
    def key(self) -> str:
        """Serialized ``"YYYY-M"`` form used by saved documents."""
        return f"{self.year}-{self.month}"

    @classmethod
    def from_key(cls, key: str) -> "Period":
        year_text, _, month_text = str(key).partition("-")
        if not month_text:
            raise ValueError(f"Invalid period key: {key!r}")
        return cls(year=int(year_text), month=int(month_text))

    def previous(self) -> "Period":
        if self.month == 1:
            return Period(self.year - 1, 12)
        return Period(self.year, self.month - 1)

    def __str__(self) -> str:
        return f"{self.year}-{self.month:02d}"
