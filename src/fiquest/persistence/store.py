from __future__ import annotations

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import StorageError, StorageQuotaExceededError

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """String-keyed, string-valued store with a per-origin capacity.

    Reads after writes are immediately consistent. Implementations raise
    StorageError (or StorageQuotaExceededError) when a write is rejected.
    """

    def __init__(self, quota_bytes: Optional[int] = None) -> None:
        self.quota_bytes = quota_bytes

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored string, or None when the key is absent."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store a string value under key."""

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove key; removing a missing key is a no-op."""

    @abstractmethod
    def keys(self) -> List[str]:
        """Return every key currently stored."""

    # JSON helpers

    def get_json(self, key: str) -> Any:
        raw = self.get_item(key)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Error parsing stored data for %s: %s", key, exc)
            return None

    def set_json(self, key: str, value: Any) -> None:
        self.set_item(key, json.dumps(value, ensure_ascii=False))

    def usage(self) -> int:
        """Approximate usage in characters (keys plus values)."""
        total = 0
        for key in self.keys():
            total += len(key) + len(self.get_item(key) or "")
        return total

    def _check_quota(self, data: Dict[str, str], key: str, value: str) -> None:
        if self.quota_bytes is None:
            return
        current = sum(len(k) + len(v) for k, v in data.items() if k != key)
        needed = current + len(key) + len(value)
        if needed > self.quota_bytes:
            raise StorageQuotaExceededError(
                f"Writing {key!r} needs {needed} characters; quota is {self.quota_bytes}"
            )


class MemoryStore(KeyValueStore):
    """Process-local store; the test double for a browser's localStorage."""

    def __init__(self, quota_bytes: Optional[int] = None, initial: Optional[Dict[str, str]] = None) -> None:
        super().__init__(quota_bytes)
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StorageError(f"Store values must be strings, got {type(value).__name__}")
        self._check_quota(self._data, key, value)
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data.keys())


class JsonFileStore(KeyValueStore):
    """Store persisted as one JSON object on disk.

    The whole document is rewritten on every mutation with a temp file and
    os.replace, so a crash leaves either the old or the new document.
    A corrupt document is moved aside to ``<name>.corrupt`` and an empty store
    is started; nothing is silently overwritten.
    """

    def __init__(self, path: Path, quota_bytes: Optional[int] = None) -> None:
        super().__init__(quota_bytes)
        self.path = Path(path)
        self._lock = threading.RLock()
        self._data: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            logger.debug("Store file does not exist yet: %s", self.path)
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
            if not isinstance(data, dict):
                raise ValueError("Store file malformed: not an object")
            return {str(k): str(v) for k, v in data.items()}
        except (OSError, ValueError) as exc:
            aside = self.path.with_suffix(self.path.suffix + ".corrupt")
            logger.error("Failed to load store %s (%s); moving it to %s", self.path, exc, aside)
            try:
                os.replace(self.path, aside)
            except OSError:
                logger.exception("Could not move corrupt store aside")
                raise StorageError(f"Store file {self.path} is unreadable") from exc
            return {}

    def _flush(self, data: Dict[str, str]) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False, indent=2, sort_keys=True)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, self.path)
        except OSError as exc:
            logger.error("Failed to write store %s: %s", self.path, exc)
            raise StorageError(f"Cannot write store file {self.path}: {exc}") from exc

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StorageError(f"Store values must be strings, got {type(value).__name__}")
        with self._lock:
            self._check_quota(self._data, key, value)
            updated = dict(self._data)
            updated[key] = value
            self._flush(updated)
            self._data = updated

    def remove_item(self, key: str) -> None:
        with self._lock:
            if key not in self._data:
                return
            updated = dict(self._data)
            del updated[key]
            self._flush(updated)
            self._data = updated

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data.keys())
