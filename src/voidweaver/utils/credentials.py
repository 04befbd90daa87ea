"""
Local credential storage for voidweaver.

Credentials are kept as opaque strings in a small JSON file so they survive
between sessions. Values are never validated or parsed; the store only
answers whether a key is present and what string was saved for it.
"""

import json
import os
from pathlib import Path

from voidweaver.logging_config import get_logger

logger = get_logger(__name__)

GEMINI_API_KEY = "geminiApiKey"
NOVELAI_API_KEY = "novelaiApiKey"
GOOGLE_CREDENTIALS = "googleCredentials"
KNOWN_KEYS = (GEMINI_API_KEY, NOVELAI_API_KEY, GOOGLE_CREDENTIALS)


class CredentialStore:
    """Key/value store for credential strings, optionally backed by a file."""

    def __init__(self, path: Path | None = None) -> None:
        """
        Initialize the store.

        Args:
            path: JSON file to load from and save to. None keeps values in memory only.
        """
        self._path = path
        self._values: dict[str, str] = {}
        if path is not None:
            self._values = self._read(path)

    @staticmethod
    def _read(path: Path) -> dict[str, str]:
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable credentials file %s: %s", path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring credentials file %s: expected a JSON object", path)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(self._values, indent=2), encoding="utf-8")
        try:
            os.chmod(self._path, 0o600)
        except OSError:
            logger.debug("Could not restrict permissions on %s", self._path)

    @property
    def path(self) -> Path | None:
        return self._path

    def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent or empty."""
        value = self._values.get(key)
        return value or None

    def has(self, key: str) -> bool:
        return bool(self._values.get(key))

    def set(self, key: str, value: str) -> None:
        """Store a value and persist the file. An empty value removes the key."""
        if not value:
            self.remove(key)
            return
        self._values[key] = value
        self._write()
        logger.debug("Stored credential %s", key)

    def remove(self, key: str) -> None:
        if self._values.pop(key, None) is not None:
            self._write()
            logger.debug("Removed credential %s", key)

    def keys(self) -> list[str]:
        return sorted(k for k, v in self._values.items() if v)

    def clear(self) -> None:
        self._values.clear()
        self._write()


# Global store instance for the application
_global_store: CredentialStore | None = None


def get_credential_store(path: Path | None = None) -> CredentialStore:
    """
    Get the global credential store.

    Args:
        path: File to back the store on first use. Defaults to the configured
            credentials file.
    """
    global _global_store
    if _global_store is None:
        if path is None:
            from voidweaver.core.config import get_config

            path = get_config().credentials_file
        _global_store = CredentialStore(path)
    return _global_store


def set_credential_store(store: CredentialStore | None) -> None:
    """Replace (or with None, reset) the global credential store."""
    global _global_store
    _global_store = store
