"""Pytest configuration and shared fixtures for PocketBudget tests.

Fixtures build budgets in memory, point the configuration at a temporary
SQLite file and replace the Dropbox client with an in-memory blob store, so
no test touches the real app database or the network.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from pocketbudget.config import BaseConfig
from pocketbudget.context import create_app_context
from pocketbudget.domain.repositories.blob import RemoteMetadata, RemoteNotFoundError
from pocketbudget.infra.database import bootstrap_database
from pocketbudget.models.period import Period
from pocketbudget.models.transaction import EXPENSE, Transaction
from pocketbudget.services.persistence import default_state

ENV_VARS = (
    "POCKETBUDGET_DATA_DIR",
    "POCKETBUDGET_DATABASE_URL",
    "POCKETBUDGET_CURRENT_YEAR",
    "POCKETBUDGET_MAPPINGS_FILE",
    "POCKETBUDGET_DROPBOX_TOKEN",
    "POCKETBUDGET_DROPBOX_PATH",
    "POCKETBUDGET_SYNC_INTERVAL_MINUTES",
    "POCKETBUDGET_HTTP_TIMEOUT",
    "POCKETBUDGET_DEV_MODE",
)


# =============================================================================
# Configuration and Database Fixtures
# =============================================================================


@pytest.fixture
def config(tmp_path, monkeypatch) -> BaseConfig:
    """Configuration rooted in a temporary directory with the year pinned to 2025."""

    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("POCKETBUDGET_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("POCKETBUDGET_DATABASE_URL", f"sqlite:///{tmp_path / 'budget.db'}")
    monkeypatch.setenv("POCKETBUDGET_CURRENT_YEAR", "2025")
    return BaseConfig()


@pytest.fixture
def session_factory(config):
    """Transactional session scopes over a fresh SQLite file."""

    engine, factory = bootstrap_database(config)
    yield factory
    engine.dispose()


# =============================================================================
# Budget Fixtures and Factories
# =============================================================================


@pytest.fixture
def state():
    """A fresh budget for 2025 seeded with the default mappings."""

    return default_state(2025)


@pytest.fixture
def march() -> Period:
    return Period(2025, 3)


@pytest.fixture
def transaction_factory(state):
    """Factory appending transactions to the ``state`` fixture.

    The amount is stored exactly as given, so callers pass signed values.
    """

    def _create_transaction(
        item: str = "Electric Co",
        amount: float = -200.0,
        *,
        month: int = 3,
        year: Optional[int] = 2025,
        type: str = EXPENSE,
        category: str = "Household",
        **kwargs,
    ) -> Transaction:
        txn = Transaction(
            month=month,
            year=year,
            item=item,
            amount=amount,
            type=type,
            category=category,
            **kwargs,
        )
        state.transactions.append(txn)
        return txn

    return _create_transaction


# =============================================================================
# Remote Sync Fixtures
# =============================================================================


class FakeBlobStore:
    """In-memory stand-in for the Dropbox blob store.

    Every write moves the server clock forward a minute. Set ``error`` to make
    the next calls raise it.
    """

    def __init__(self) -> None:
        self.files: dict[str, tuple[bytes, RemoteMetadata]] = {}
        self.clock = datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)
        self.error: Optional[Exception] = None
        self.calls: list[str] = []

    def _tick(self) -> datetime:
        self.clock += timedelta(minutes=1)
        return self.clock

    def _check(self, call: str) -> None:
        self.calls.append(call)
        if self.error is not None:
            raise self.error

    def put_remote(self, path: str, document: str) -> RemoteMetadata:
        """Simulate another device uploading ``document``."""

        metadata = RemoteMetadata(path=path, server_modified=self._tick(), rev="r")
        self.files[path] = (document.encode("utf-8"), metadata)
        return metadata

    def upload(self, path: str, data: bytes) -> RemoteMetadata:
        self._check("upload")
        metadata = RemoteMetadata(path=path, server_modified=self._tick(), rev="r", size=len(data))
        self.files[path] = (data, metadata)
        return metadata

    def download(self, path: str) -> tuple[bytes, RemoteMetadata]:
        self._check("download")
        if path not in self.files:
            raise RemoteNotFoundError(path)
        return self.files[path]

    def metadata(self, path: str) -> Optional[RemoteMetadata]:
        self._check("metadata")
        stored = self.files.get(path)
        return stored[1] if stored else None


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def app_ctx(config, blob_store):
    """Application context over a temporary database and the fake blob store."""

    ctx = create_app_context(config, store_factory=lambda token: blob_store)
    yield ctx
    if ctx.scheduler is not None:
        ctx.scheduler.stop()

