"""Remote sync of the budget document (last writer wins).

The local document is uploaded whole and a newer remote copy replaces the
local one whole; nothing is merged. Only one transfer runs at a time; a
request made while another is in flight is refused rather than queued.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from ..domain.repositories.blob import AuthenticationError, BlobStore, RemoteMetadata, SyncError

logger = logging.getLogger(__name__)

DEFAULT_REMOTE_PATH = "/budget-data.json"

StoreFactory = Callable[[str], BlobStore]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Ignoring unreadable sync timestamp {value!r}")
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


@dataclass(slots=True)
class SyncSettings:
    """Sync preferences stored next to the budget document."""

    access_token: Optional[str] = None
    file_path: str = DEFAULT_REMOTE_PATH
    auto_sync_enabled: bool = False
    bidirectional_sync_enabled: bool = False
    last_sync_time: Optional[str] = None
    last_remote_modified: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "accessToken": self.access_token,
            "filePath": self.file_path,
            "autoSyncEnabled": self.auto_sync_enabled,
            "biDirectionalSyncEnabled": self.bidirectional_sync_enabled,
            "lastSyncTime": self.last_sync_time,
            "lastRemoteModified": self.last_remote_modified,
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "SyncSettings":
        data = data or {}
        return cls(
            access_token=data.get("accessToken") or None,
            file_path=data.get("filePath") or DEFAULT_REMOTE_PATH,
            auto_sync_enabled=bool(data.get("autoSyncEnabled")),
            bidirectional_sync_enabled=bool(data.get("biDirectionalSyncEnabled")),
            last_sync_time=data.get("lastSyncTime") or None,
            last_remote_modified=data.get("lastRemoteModified") or None,
        )


@dataclass(frozen=True, slots=True)
class SyncOutcome:
    ok: bool
    message: str
    metadata: Optional[RemoteMetadata] = None
    document: Optional[str] = None


class SyncService:
    """Moves the serialized budget document to and from a blob store."""

    def __init__(
        self,
        settings: SyncSettings,
        store_factory: StoreFactory,
        *,
        on_settings_changed: Optional[Callable[[SyncSettings], None]] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.settings = settings
        self.store_factory = store_factory
        self.on_settings_changed = on_settings_changed
        self.clock = clock
        self._transfer_lock = threading.Lock()
        self._store: Optional[BlobStore] = None
        self._store_token: Optional[str] = None

    @property
    def configured(self) -> bool:
        return bool(self.settings.access_token)

    @property
    def sync_in_progress(self) -> bool:
        return self._transfer_lock.locked()

    def _get_store(self) -> BlobStore:
        token = self.settings.access_token
        if not token:
            raise AuthenticationError("no access token configured")
        if self._store is None or self._store_token != token:
            self._store = self.store_factory(token)
            self._store_token = token
        return self._store

    def _settings_changed(self) -> None:
        if self.on_settings_changed:
            self.on_settings_changed(self.settings)

    def _record(self, metadata: RemoteMetadata) -> None:
        self.settings.last_remote_modified = metadata.server_modified.isoformat()
        self.settings.last_sync_time = self.clock().isoformat()
        self._settings_changed()

    def _busy(self) -> SyncOutcome:
        logger.info("Sync already in progress; request skipped")
        return SyncOutcome(ok=False, message="Sync already in progress")

    def upload(self, document: str, *, silent: bool = False) -> SyncOutcome:
        """Overwrite the remote copy with ``document``.

        Failures raise :class:`SyncError` unless ``silent``, in which case
        they are logged and reported in the outcome.
        """

        if not self._transfer_lock.acquire(blocking=False):
            return self._busy()
        try:
            metadata = self._get_store().upload(
                self.settings.file_path, document.encode("utf-8")
            )
            self._record(metadata)
            logger.info(f"Uploaded budget to {metadata.path}")
            return SyncOutcome(ok=True, message="Uploaded", metadata=metadata)
        except SyncError as exc:
            if not silent:
                raise
            logger.warning(f"Upload failed: {exc}")
            return SyncOutcome(ok=False, message=str(exc))
        finally:
            self._transfer_lock.release()

    def download(self, *, silent: bool = False) -> SyncOutcome:
        """Fetch the remote document; the caller replaces local state with it."""

        if not self._transfer_lock.acquire(blocking=False):
            return self._busy()
        try:
            return self._download()
        except SyncError as exc:
            if not silent:
                raise
            logger.warning(f"Download failed: {exc}")
            return SyncOutcome(ok=False, message=str(exc))
        finally:
            self._transfer_lock.release()

    def _download(self) -> SyncOutcome:
        data, metadata = self._get_store().download(self.settings.file_path)
        try:
            document = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise SyncError(f"Remote document is not valid UTF-8: {exc}") from exc
        self._record(metadata)
        logger.info(f"Downloaded budget from {metadata.path}")
        return SyncOutcome(ok=True, message="Downloaded", metadata=metadata, document=document)

    def check_for_remote_updates(self) -> SyncOutcome:
        """Download the remote document if it changed since the last transfer.

        Runs from the background poll, so failures are logged, never raised.
        The first check only records the remote timestamp.
        """

        if not self.configured:
            return SyncOutcome(ok=False, message="Sync is not configured")
        if not self._transfer_lock.acquire(blocking=False):
            return self._busy()
        try:
            metadata = self._get_store().metadata(self.settings.file_path)
            if metadata is None:
                logger.info("No remote budget yet")
                return SyncOutcome(ok=True, message="No remote file yet")

            last_known = _parse_timestamp(self.settings.last_remote_modified)
            if last_known is None:
                self.settings.last_remote_modified = metadata.server_modified.isoformat()
                self._settings_changed()
                logger.info("Recorded initial remote timestamp")
                return SyncOutcome(ok=True, message="Recorded remote timestamp", metadata=metadata)

            if metadata.server_modified <= last_known:
                logger.debug("Local budget is up to date")
                return SyncOutcome(ok=True, message="Up to date", metadata=metadata)

            logger.info("Remote budget is newer; downloading")
            return self._download()
        except SyncError as exc:
            logger.warning(f"Checking for remote updates failed: {exc}")
            return SyncOutcome(ok=False, message=str(exc))
        finally:
            self._transfer_lock.release()

    def auto_sync(self, document: str) -> Optional[SyncOutcome]:
        """Upload after a local save when auto-sync is on; never raises."""

        if not (self.settings.auto_sync_enabled and self.configured):
            return None
        if self.sync_in_progress:
            return self._busy()
        return self.upload(document, silent=True)

    def test_connection(self) -> dict[str, Any]:
        """Check that the token works; returns the account description when available."""

        store = self._get_store()
        current_account = getattr(store, "current_account", None)
        if callable(current_account):
            account = current_account()
        else:
            store.metadata(self.settings.file_path)
            account = {}
        logger.info("Sync connection test succeeded")
        return account


__all__ = [
    "DEFAULT_REMOTE_PATH",
    "StoreFactory",
    "SyncOutcome",
    "SyncService",
    "SyncSettings",
]
