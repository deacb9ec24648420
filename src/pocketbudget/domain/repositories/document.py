"""Document repository protocol."""

from __future__ import annotations

from typing import Optional, Protocol


class DocumentRepository(Protocol):
    """Key/value storage for whole serialized documents."""

    def get(self, key: str) -> Optional[str]:
        """Return the stored payload for ``key`` or ``None``."""
        ...

    def put(self, key: str, payload: str) -> None:
        """Overwrite the payload stored under ``key``."""
        ...

    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        ...
