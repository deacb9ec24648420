"""SQLModel-backed document repository (the app's local storage)."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlmodel import select

from ...models.document import StoredDocument
from ..database import SessionFactory

logger = logging.getLogger(__name__)


class SQLModelDocumentRepository:
    """Stores whole JSON documents under string keys."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        with self.session_factory() as session:
            row = session.exec(select(StoredDocument).where(StoredDocument.key == key)).first()
            return row.payload if row else None

    def put(self, key: str, payload: str) -> None:
        with self.session_factory() as session:
            row = session.exec(select(StoredDocument).where(StoredDocument.key == key)).first()
            if row:
                row.payload = payload
                row.updated_at = datetime.now(timezone.utc)
            else:
                row = StoredDocument(key=key, payload=payload)
            session.add(row)
        logger.debug(f"Stored document {key!r} ({len(payload)} chars)")

    def delete(self, key: str) -> None:
        with self.session_factory() as session:
            row = session.exec(select(StoredDocument).where(StoredDocument.key == key)).first()
            if row:
                session.delete(row)


__all__ = ["SQLModelDocumentRepository"]
