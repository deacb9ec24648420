"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from datetime import date
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    """Interpret environment variable values as integers, falling back on junk."""

    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "PocketBudget"
    DB_FILENAME = "pocketbudget.db"
    DOCUMENT_KEY = "budgetData"
    SYNC_SETTINGS_KEY = "dropboxSettings"
    DEFAULT_REMOTE_PATH = "/budget-data.json"

    def __init__(self) -> None:
        self.DATA_DIR = self._resolve_data_dir()
        self.DEV_MODE = _env_bool("POCKETBUDGET_DEV_MODE", default=True)
        self.DATABASE_URL = os.getenv("POCKETBUDGET_DATABASE_URL", self._build_sqlite_url())
        self.CURRENT_YEAR = _env_int("POCKETBUDGET_CURRENT_YEAR", date.today().year)
        self.MAPPINGS_FILE = self._optional_path("POCKETBUDGET_MAPPINGS_FILE")
        self.DROPBOX_ACCESS_TOKEN = os.getenv("POCKETBUDGET_DROPBOX_TOKEN") or None
        self.DROPBOX_FILE_PATH = os.getenv("POCKETBUDGET_DROPBOX_PATH", self.DEFAULT_REMOTE_PATH)
        self.SYNC_INTERVAL_MINUTES = max(1, _env_int("POCKETBUDGET_SYNC_INTERVAL_MINUTES", 2))
        self.HTTP_TIMEOUT_SECONDS = _env_int("POCKETBUDGET_HTTP_TIMEOUT", 30)

    def _resolve_data_dir(self) -> Path:
        """Return the directory where the SQLite file and logs live."""

        data_root = os.getenv("POCKETBUDGET_DATA_DIR", "instance")
        base_path = Path(data_root).expanduser()
        try:
            path = base_path.resolve()
            path.mkdir(parents=True, exist_ok=True)
            return path
        except PermissionError:
            # Protected install locations fall back to user-local storage.
            local_app_data = os.getenv("LOCALAPPDATA") or (Path.home() / ".local" / "share")
            fallback_path = Path(local_app_data).expanduser() / self.APP_NAME
            fallback_path.mkdir(parents=True, exist_ok=True)
            return fallback_path.resolve()

    @staticmethod
    def _optional_path(name: str) -> Optional[Path]:
        value = os.getenv(name)
        if not value or not value.strip():
            return None
        return Path(value.strip()).expanduser()

    def _build_sqlite_url(self) -> str:
        """Construct the default SQLite URL inside the data directory."""

        db_path = self.DATA_DIR / self.DB_FILENAME
        return f"sqlite:///{db_path}"

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        connect_args: dict[str, Any] = {}
        if self.DATABASE_URL.startswith("sqlite"):
            # The sync poll runs on a scheduler thread.
            connect_args["check_same_thread"] = False
        return {"connect_args": connect_args}


class DevConfig(BaseConfig):
    """Development configuration using local SQLite."""

    DEBUG = True
    TESTING = False
