"""Application context: storage wiring, the loaded budget and the save trigger."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .config import BaseConfig
from .domain.repositories import DocumentRepository
from .domain.state import BudgetState
from .infra.database import SessionFactory, bootstrap_database
from .infra.dropbox import DropboxBlobStore
from .infra.repositories import SQLModelDocumentRepository
from .services.persistence import (
    LoadResult,
    default_state,
    dumps_state,
    import_mappings,
    loads_state,
)
from .services.sync import StoreFactory, SyncOutcome, SyncService, SyncSettings

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Centralized application context with services and state.

    Every mutating command goes through :meth:`run`, which holds the context
    lock, saves the whole document afterwards and triggers auto-sync. The
    background poll takes the same lock before replacing the budget.
    """

    config: BaseConfig
    session_factory: SessionFactory
    document_repo: DocumentRepository
    state: BudgetState
    sync: SyncService
    last_load: Optional[LoadResult] = None
    scheduler: Optional[Any] = None
    lock: threading.RLock = field(default_factory=threading.RLock)

    def save(self, *, auto_sync: bool = True) -> str:
        """Persist the budget locally and, when enabled, upload it."""

        with self.lock:
            document = dumps_state(self.state)
            self.document_repo.put(self.config.DOCUMENT_KEY, document)
        if auto_sync:
            self.sync.auto_sync(document)
        return document

    def save_sync_settings(self, settings: SyncSettings) -> None:
        self.document_repo.put(self.config.SYNC_SETTINGS_KEY, json.dumps(settings.to_dict()))

    def run(self, command: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Apply ``command(state, ...)`` and save.

        Commands returning a result whose ``ok`` is false (a rejected import,
        for instance) changed nothing, so nothing is saved. Exceptions
        propagate without a save.
        """

        with self.lock:
            result = command(self.state, *args, **kwargs)
            if getattr(result, "ok", True) is not False:
                self.save()
        return result

    def apply_remote_document(self, document: str) -> LoadResult:
        """Replace the local budget with a downloaded one (last writer wins)."""

        try:
            payload = json.loads(document)
        except ValueError:
            payload = None
        remote_year = payload.get("currentYear") if isinstance(payload, dict) else None
        current_year = remote_year if isinstance(remote_year, int) else self.state.current_year

        result = loads_state(document, current_year=current_year)
        if not result.ok:
            logger.error(f"Ignoring unreadable remote document: {result.error}")
            return result

        with self.lock:
            self.state = result.state
            self.save(auto_sync=False)
        logger.info(f"Local budget replaced by remote copy ({len(self.state.transactions)} transactions)")
        return result

    def download_remote(self) -> SyncOutcome:
        outcome = self.sync.download()
        if outcome.ok and outcome.document is not None:
            self.apply_remote_document(outcome.document)
        return outcome

    def upload_local(self) -> SyncOutcome:
        with self.lock:
            document = dumps_state(self.state)
        return self.sync.upload(document)

    def poll_remote(self) -> SyncOutcome:
        """Background poll: pull the remote budget if it is newer."""

        outcome = self.sync.check_for_remote_updates()
        if outcome.ok and outcome.document is not None:
            self.apply_remote_document(outcome.document)
        return outcome


def _load_sync_settings(repo: DocumentRepository, config: BaseConfig) -> SyncSettings:
    raw = repo.get(config.SYNC_SETTINGS_KEY)
    data: dict[str, Any] = {}
    if raw:
        try:
            data = json.loads(raw)
        except ValueError:
            logger.error("Stored sync settings are unreadable; using defaults")
    settings = SyncSettings.from_dict(data if isinstance(data, dict) else {})
    if config.DROPBOX_ACCESS_TOKEN and not settings.access_token:
        settings.access_token = config.DROPBOX_ACCESS_TOKEN
    if not raw:
        settings.file_path = config.DROPBOX_FILE_PATH
    return settings


def _seed_from_mappings_file(state: BudgetState, config: BaseConfig) -> None:
    path = config.MAPPINGS_FILE
    if path is None:
        return
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning(f"Could not read mappings file {path}: {exc}; using defaults")
        return
    import_mappings(state, data)


def _load_state(repo: DocumentRepository, config: BaseConfig) -> tuple[BudgetState, LoadResult, bool]:
    raw = repo.get(config.DOCUMENT_KEY)
    if raw is None:
        state = default_state(config.CURRENT_YEAR)
        _seed_from_mappings_file(state, config)
        return state, LoadResult(state=state), True

    result = loads_state(raw, current_year=config.CURRENT_YEAR)
    return result.state, result, result.needs_save


def create_app_context(
    config: Optional[BaseConfig] = None,
    *,
    store_factory: Optional[StoreFactory] = None,
) -> AppContext:
    """Create and initialize the application context."""

    if config is None:
        config = BaseConfig()

    _, session_factory = bootstrap_database(config)
    document_repo = SQLModelDocumentRepository(session_factory)

    state, load_result, needs_save = _load_state(document_repo, config)
    settings = _load_sync_settings(document_repo, config)

    if store_factory is None:

        def store_factory(token: str) -> DropboxBlobStore:
            return DropboxBlobStore(token, timeout=config.HTTP_TIMEOUT_SECONDS)

    sync = SyncService(settings, store_factory)
    ctx = AppContext(
        config=config,
        session_factory=session_factory,
        document_repo=document_repo,
        state=state,
        sync=sync,
        last_load=load_result,
    )
    sync.on_settings_changed = ctx.save_sync_settings

    if needs_save:
        logger.info("Saving budget after first start or document upgrade")
        ctx.save(auto_sync=False)
    return ctx


__all__ = ["AppContext", "create_app_context"]
