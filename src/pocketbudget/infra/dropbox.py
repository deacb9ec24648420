"""Dropbox implementation of the blob store contract."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

import requests

from ..domain.repositories.blob import (
    AuthenticationError,
    MissingScopeError,
    RemoteMetadata,
    RemoteNotFoundError,
    SyncError,
)

logger = logging.getLogger(__name__)

API_URL = "https://api.dropboxapi.com/2"
CONTENT_URL = "https://content.dropboxapi.com/2"


def parse_server_modified(value: object) -> datetime:
    """Parse Dropbox ``server_modified`` timestamps (``2025-03-01T10:00:00Z``)."""

    text = str(value or "").strip()
    if not text:
        raise SyncError("Remote metadata has no server_modified timestamp")
    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _metadata_from(payload: Mapping[str, Any], path: str) -> RemoteMetadata:
    return RemoteMetadata(
        path=str(payload.get("path_display") or path),
        server_modified=parse_server_modified(payload.get("server_modified")),
        rev=payload.get("rev"),
        size=payload.get("size"),
    )


class DropboxBlobStore:
    """Upload, download and stat a single file through the Dropbox HTTP API."""

    def __init__(
        self,
        access_token: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 30,
    ):
        if not access_token:
            raise AuthenticationError("no access token configured")
        self.access_token = access_token
        self.session = session or requests.Session()
        self.timeout = timeout

    def _headers(self, extra: Optional[Mapping[str, str]] = None) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self.access_token}"}
        headers.update(extra or {})
        return headers

    def _post(self, url: str, **kwargs: Any) -> requests.Response:
        try:
            return self.session.post(url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise SyncError(f"Could not reach Dropbox: {exc}") from exc

    def _raise_for_error(self, response: requests.Response, *, path: str) -> None:
        if response.ok:
            return

        summary = ""
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            summary = str(body.get("error_summary") or "")
        elif response.text:
            summary = response.text.strip()

        logger.warning(f"Dropbox request failed: HTTP {response.status_code} {summary}")
        if "missing_scope" in summary:
            raise MissingScopeError(summary)
        if response.status_code == 401:
            raise AuthenticationError(summary)
        if response.status_code == 409 and "not_found" in summary:
            raise RemoteNotFoundError(path)
        raise SyncError(summary or f"Dropbox request failed with HTTP {response.status_code}")

    def upload(self, path: str, data: bytes) -> RemoteMetadata:
        arg = {"path": path, "mode": "overwrite", "autorename": False, "mute": False}
        response = self._post(
            f"{CONTENT_URL}/files/upload",
            headers=self._headers(
                {
                    "Content-Type": "application/octet-stream",
                    "Dropbox-API-Arg": json.dumps(arg),
                }
            ),
            data=data,
        )
        self._raise_for_error(response, path=path)
        metadata = _metadata_from(response.json(), path)
        logger.info(f"Uploaded {len(data)} bytes to {metadata.path}")
        return metadata

    def download(self, path: str) -> tuple[bytes, RemoteMetadata]:
        response = self._post(
            f"{CONTENT_URL}/files/download",
            headers=self._headers({"Dropbox-API-Arg": json.dumps({"path": path})}),
        )
        self._raise_for_error(response, path=path)
        raw_result = response.headers.get("Dropbox-API-Result")
        if not raw_result:
            raise SyncError("Dropbox download response is missing its metadata header")
        metadata = _metadata_from(json.loads(raw_result), path)
        return response.content, metadata

    def metadata(self, path: str) -> Optional[RemoteMetadata]:
        response = self._post(
            f"{API_URL}/files/get_metadata",
            headers=self._headers({"Content-Type": "application/json"}),
            data=json.dumps(
                {
                    "path": path,
                    "include_media_info": False,
                    "include_deleted": False,
                    "include_has_explicit_shared_members": False,
                }
            ),
        )
        try:
            self._raise_for_error(response, path=path)
        except RemoteNotFoundError:
            return None
        return _metadata_from(response.json(), path)

    def current_account(self) -> dict[str, Any]:
        """Return the account the token belongs to; used to test the connection."""

        response = self._post(f"{API_URL}/users/get_current_account", headers=self._headers())
        self._raise_for_error(response, path="")
        return response.json()


__all__ = ["DropboxBlobStore", "parse_server_modified"]
