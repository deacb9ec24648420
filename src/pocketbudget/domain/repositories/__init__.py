"""Repository protocol definitions for domain layer."""

from .blob import (
    AuthenticationError,
    BlobStore,
    MissingScopeError,
    RemoteMetadata,
    RemoteNotFoundError,
    SyncError,
)
from .document import DocumentRepository

__all__ = [
    "AuthenticationError",
    "BlobStore",
    "DocumentRepository",
    "MissingScopeError",
    "RemoteMetadata",
    "RemoteNotFoundError",
    "SyncError",
]
