"""Remote blob store protocol and sync error types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

REQUIRED_SCOPES = (
    "files.content.write",
    "files.content.read",
    "files.metadata.write",
    "files.metadata.read",
)


@dataclass(frozen=True, slots=True)
class RemoteMetadata:
    """What the remote store reports about a stored blob."""

    path: str
    server_modified: datetime
    rev: Optional[str] = None
    size: Optional[int] = None


class BlobStore(Protocol):
    """Overwrite-by-path blob storage reached over the network."""

    def upload(self, path: str, data: bytes) -> RemoteMetadata:
        """Store ``data`` at ``path``, replacing any existing blob."""
        ...

    def download(self, path: str) -> tuple[bytes, RemoteMetadata]:
        """Fetch the blob at ``path``; raises :class:`RemoteNotFoundError` if absent."""
        ...

    def metadata(self, path: str) -> Optional[RemoteMetadata]:
        """Return blob metadata, or ``None`` when nothing is stored at ``path``."""
        ...


class SyncError(RuntimeError):
    """Remote sync failed."""


class AuthenticationError(SyncError):
    """The access token was rejected."""

    def __init__(self, detail: str = "") -> None:
        message = "The access token is invalid or expired. Generate a new token and save it again."
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class MissingScopeError(SyncError):
    """The access token lacks a permission scope the sync needs."""

    def __init__(self, detail: str = "") -> None:
        self.required_scopes = REQUIRED_SCOPES
        message = (
            "The access token is missing permissions. In the app console enable "
            + ", ".join(REQUIRED_SCOPES)
            + ", submit the change, then generate a NEW token (existing tokens keep "
            "their old scopes) and save it."
        )
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class RemoteNotFoundError(SyncError):
    """No blob exists at the requested path."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"No remote file at {path}; upload first.")
