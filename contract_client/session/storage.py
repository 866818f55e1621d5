"""
Credential Storage

Persistent client-side storage of the access and refresh tokens.

BOUNDARY:
=========
Only SessionManager holds a CredentialStore. No other component reads or
writes credentials, so tests can swap in InMemoryCredentialStore.
"""

from __future__ import annotations
from pathlib import Path
from typing import Dict, Optional
import contextlib
import json
import logging
import os
import tempfile


logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "token"
REFRESH_TOKEN_KEY = "refreshToken"


class CredentialStore:
    """
    Abstract storage capability for the two credential keys.
    """

    def __init__(
        self,
        access_key: str = ACCESS_TOKEN_KEY,
        refresh_key: str = REFRESH_TOKEN_KEY
    ):
        self._access_key = access_key
        self._refresh_key = refresh_key

    def read_access_token(self) -> Optional[str]:
        return self._load().get(self._access_key)

    def read_refresh_token(self) -> Optional[str]:
        return self._load().get(self._refresh_key)

    def write(self, access_token: str, refresh_token: str) -> None:
        data = self._load()
        data[self._access_key] = access_token
        data[self._refresh_key] = refresh_token
        self._save(data)

    def clear(self) -> None:
        data = self._load()
        data.pop(self._access_key, None)
        data.pop(self._refresh_key, None)
        self._save(data)

    def _load(self) -> Dict[str, str]:
        raise NotImplementedError

    def _save(self, data: Dict[str, str]) -> None:
        raise NotImplementedError


class InMemoryCredentialStore(CredentialStore):
    """Dictionary-backed store for tests and short-lived processes."""

    def __init__(self, initial: Optional[Dict[str, str]] = None, **keys):
        super().__init__(**keys)
        self._data: Dict[str, str] = dict(initial or {})

    def _load(self) -> Dict[str, str]:
        return dict(self._data)

    def _save(self, data: Dict[str, str]) -> None:
        self._data = dict(data)


class JsonFileCredentialStore(CredentialStore):
    """
    Stores credentials as a JSON object in a single file.

    Unrelated keys already in the file are preserved.
    """

    def __init__(self, path: Path, **keys):
        super().__init__(**keys)
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        with open(self._path, 'r') as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError:
                logger.warning("Credential file %s is corrupt; ignoring it", self._path)
                return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _save(self, data: Dict[str, str]) -> None:
        """Write a sibling temp file, then swap it in with os.replace."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self._path)
        except Exception:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_name)
            raise
