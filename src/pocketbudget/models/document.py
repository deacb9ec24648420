"""Local key/value storage for serialized documents."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import ClassVar

from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoredDocument(SQLModel, table=True):
    """One named JSON payload, overwritten on every save."""

    __tablename__: ClassVar[str] = "stored_document"

    key: str = Field(primary_key=True, max_length=64)
    payload: str = Field(nullable=False)
    updated_at: datetime = Field(default_factory=_utcnow, nullable=False)
