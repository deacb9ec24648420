"""Insertion-ordered item → category table."""

from __future__ import annotations

from typing import Iterable, Iterator, Optional

from ..models.mapping import MappingEntry


class MappingTable:
    """Ordered mapping from normalized item text to :class:`MappingEntry`.

    Lookup tries an exact (case-sensitive) key first and then falls back to a
    case-insensitive substring match in either direction. When several keys
    match as substrings, the first one in insertion order wins.
    """

    def __init__(self, entries: Iterable[tuple[str, MappingEntry]] = ()):
        self._entries: dict[str, MappingEntry] = {}
        for item, entry in entries:
            self._entries[item] = entry

    def __contains__(self, item: object) -> bool:
        return item in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MappingTable):
            return NotImplemented
        return list(self._entries.items()) == list(other._entries.items())

    def get(self, item: str) -> Optional[MappingEntry]:
        return self._entries.get(item)

    def set(self, item: str, entry: MappingEntry) -> None:
        self._entries[item] = entry

    def delete(self, item: str) -> bool:
        return self._entries.pop(item, None) is not None

    def items(self) -> list[tuple[str, MappingEntry]]:
        return list(self._entries.items())

    def lookup(self, item: str) -> Optional[MappingEntry]:
        """Return the entry governing ``item`` or ``None`` when nothing matches."""

        if not item:
            return None
        exact = self._entries.get(item)
        if exact is not None:
            return exact
        needle = item.casefold()
        for key, entry in self._entries.items():
            folded = key.casefold()
            if folded and (folded in needle or needle in folded):
                return entry
        return None

    def copy(self) -> "MappingTable":
        return MappingTable(self._entries.items())
