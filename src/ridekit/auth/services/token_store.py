"""Secure persistence for access tokens.

Tokens are stored as JSON records keyed by ``(identifier, access_group)``.
Where the record physically lives is up to a CredentialBackend: the
in-memory backend is meant for tests and short-lived processes, the file
backend writes owner-only files, and platform keychains can be plugged in
by implementing the same three methods.
"""

from __future__ import annotations

import logging
import os
import stat
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

from pydantic import ValidationError

from ridekit.auth.models.tokens import AccessToken

logger = logging.getLogger(__name__)

DEFAULT_ACCESS_TOKEN_IDENTIFIER = "RidesAccessTokenKey"
DEFAULT_ACCESS_GROUP = ""


class TokenStoreEvent(str, Enum):
    SAVED = "saved"
    DELETED = "deleted"


TokenStoreListener = Callable[[TokenStoreEvent, str, str], None]


class CredentialBackend(Protocol):
    """Raw secret storage used by TokenStore."""

    def read(self, identifier: str, access_group: str) -> str | None: ...

    def write(self, identifier: str, access_group: str, value: str) -> None: ...

    def remove(self, identifier: str, access_group: str) -> bool: ...


class InMemoryBackend:
    """Process-local backend. Contents vanish with the process."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], str] = {}

    def read(self, identifier: str, access_group: str) -> str | None:
        return self._records.get((identifier, access_group))

    def write(self, identifier: str, access_group: str, value: str) -> None:
        self._records[(identifier, access_group)] = value

    def remove(self, identifier: str, access_group: str) -> bool:
        return self._records.pop((identifier, access_group), None) is not None


class FileBackend:
    """File backend at ``{directory}/{access_group}/{identifier}.json``.

    Files are chmod 0600 (owner-only read/write).
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def _path(self, identifier: str, access_group: str) -> Path:
        group_dir = quote(access_group or "default", safe="")
        return self.directory / group_dir / f"{quote(identifier, safe='')}.json"

    def read(self, identifier: str, access_group: str) -> str | None:
        path = self._path(identifier, access_group)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def write(self, identifier: str, access_group: str, value: str) -> None:
        path = self._path(identifier, access_group)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(value, encoding="utf-8")
        os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)

    def remove(self, identifier: str, access_group: str) -> bool:
        path = self._path(identifier, access_group)
        if path.exists():
            path.unlink()
            return True
        return False


class TokenStore:
    """Saves, fetches and deletes AccessTokens.

    Listeners registered with ``add_listener`` are notified after every
    successful save or delete.
    """

    def __init__(self, backend: CredentialBackend | None = None):
        self.backend = backend or InMemoryBackend()
        self._listeners: list[TokenStoreListener] = []

    def save(
        self,
        token: AccessToken,
        identifier: str | None = None,
        access_group: str | None = None,
    ) -> bool:
        """Persist ``token``, replacing any existing record for the key."""
        identifier = identifier or DEFAULT_ACCESS_TOKEN_IDENTIFIER
        access_group = access_group or DEFAULT_ACCESS_GROUP

        try:
            self.backend.write(identifier, access_group, token.model_dump_json())
        except OSError as e:
            logger.error(f"Failed to save access token '{identifier}': {e}")
            return False

        logger.info(f"Saved access token '{identifier}'")
        self._notify(TokenStoreEvent.SAVED, identifier, access_group)
        return True

    def fetch(
        self, identifier: str | None = None, access_group: str | None = None
    ) -> AccessToken | None:
        """Load a token. Missing or unreadable records return None."""
        identifier = identifier or DEFAULT_ACCESS_TOKEN_IDENTIFIER
        access_group = access_group or DEFAULT_ACCESS_GROUP

        try:
            raw = self.backend.read(identifier, access_group)
        except OSError as e:
            logger.warning(f"Failed to read access token '{identifier}': {e}")
            return None

        if raw is None:
            return None

        try:
            return AccessToken.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding corrupted access token '{identifier}': {e}")
            return None

    def delete(
        self, identifier: str | None = None, access_group: str | None = None
    ) -> bool:
        """Delete a token. Returns True if a record existed and was removed."""
        identifier = identifier or DEFAULT_ACCESS_TOKEN_IDENTIFIER
        access_group = access_group or DEFAULT_ACCESS_GROUP

        try:
            removed = self.backend.remove(identifier, access_group)
        except OSError as e:
            logger.error(f"Failed to delete access token '{identifier}': {e}")
            return False

        if removed:
            logger.info(f"Deleted access token '{identifier}'")
            self._notify(TokenStoreEvent.DELETED, identifier, access_group)
        return removed

    def add_listener(self, listener: TokenStoreListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: TokenStoreListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, event: TokenStoreEvent, identifier: str, access_group: str) -> None:
        for listener in list(self._listeners):
            listener(event, identifier, access_group)
