"""Local filesystem JSON credential store.

Keeps every identity's pair in one JSON document:

    {
      "version": 1,
      "credentials": {
        "<identity>": {"access_token": ..., "refresh_token": ..., ...}
      }
    }

Architecture:
- Atomic writes via write-to-temp + os.replace() for crash safety
- File permissions restricted to the owner (0600), directory to 0700
- asyncio.Lock around read-modify-write for concurrent access within a
  single process

A corrupt file raises StoreError instead of being treated as empty:
silently starting over would discard a refresh token that may be the only
way back in without interactive login.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any

from oauth_session.errors.exceptions import StoreError
from oauth_session.oauth2.models import CredentialPair
from oauth_session.storage.base import CredentialStore

logger = logging.getLogger(__name__)

STORE_FORMAT_VERSION = 1


class JsonFileCredentialStore(CredentialStore):
    """Credential store backed by a single local JSON file.

    Single-process concurrency only (no cross-process file locking).
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize the JSON credential store.

        Args:
            path: JSON file location. Parent directories are created on
                first write.
        """
        self._path = Path(path).expanduser()
        self._lock = asyncio.Lock()

        logger.debug(
            "JsonFileCredentialStore initialized",
            extra={"store_path": str(self._path)},
        )

    @property
    def path(self) -> Path:
        return self._path

    async def read(self, identity: str) -> CredentialPair | None:
        async with self._lock:
            data = self._read_json()
        record = data["credentials"].get(identity)
        if record is None:
            return None
        try:
            return CredentialPair.from_dict(record)
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(
                f"Stored credentials for '{identity}' are invalid",
                operation="read",
                identity=identity,
                cause=e,
            ) from e

    async def save(self, identity: str, pair: CredentialPair) -> None:
        async with self._lock:
            data = self._read_json()
            data["credentials"][identity] = pair.to_dict()
            self._write_json(data)
        logger.debug("Saved credentials", extra={"identity": identity})

    async def clear(self, identity: str) -> None:
        async with self._lock:
            data = self._read_json()
            if data["credentials"].pop(identity, None) is None:
                return
            self._write_json(data)
        logger.debug("Cleared credentials", extra={"identity": identity})

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _read_json(self) -> dict[str, Any]:
        """Read the store file, returning an empty structure if it is missing."""
        if not self._path.exists():
            return {"version": STORE_FORMAT_VERSION, "credentials": {}}
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise StoreError(
                f"Failed to read credential store {self._path}",
                operation="read",
                cause=e,
            ) from e

        if not isinstance(data, dict) or not isinstance(data.get("credentials"), dict):
            raise StoreError(
                f"Malformed credential store {self._path}",
                operation="read",
            )
        return data

    def _write_json(self, data: dict[str, Any]) -> None:
        """Atomic write: write to temp file then os.replace()."""
        self._path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self._path)


__all__ = ["JsonFileCredentialStore", "STORE_FORMAT_VERSION"]
