"""Local key-value storage for settings and quiz history.

Values are opaque strings keyed by name. Two backends are provided: an
in-memory store for tests and ephemeral use, and a JSON file store that keeps
the whole key space in a single file on disk.
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union

from .exceptions import StoreUnreadable

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Abstract interface for string-keyed, string-valued storage."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None when the key is absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete a key. Removing an absent key is a no-op."""
        pass


class InMemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store. Data is lost when the process exits."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class JsonFileKeyValueStore(KeyValueStore):
    """Store persisted as a single JSON object file.

    The file is re-read on every access so several processes (the HTTP
    server and the CLI) see each other's writes. Writes go to a temporary
    file in the same directory and are moved into place atomically. A file
    that cannot be read is never overwritten: reads treat it as empty, writes
    raise StoreUnreadable.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        """Initialize the file store.

        Args:
            path: Location of the JSON file; parent directories are created
                on first write
        """
        self.path = Path(path)
        self._lock = threading.RLock()

    def _load(self) -> Dict[str, str]:
        """Read the whole store.

        Raises:
            StoreUnreadable: If the file exists but is not a readable JSON object
        """
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreUnreadable(str(self.path), str(e)) from e
        if not isinstance(data, dict):
            raise StoreUnreadable(str(self.path), "not a JSON object")
        return {str(k): str(v) for k, v in data.items()}

    def _save(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, key: str) -> Optional[str]:
        """Return the stored value; an unreadable file reads as absent."""
        with self._lock:
            try:
                return self._load().get(key)
            except StoreUnreadable as e:
                logger.error(str(e))
                return None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if key in data:
                del data[key]
                self._save(data)
