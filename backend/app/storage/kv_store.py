"""
Persistent key-value store adapters.

String keys map to string values. Writes are last-write-wins with no
locking; several writers may share one store (e.g. two cart sessions).
Subscribers are told about every change so a reader can reload state
that was written out-of-band.
"""

import json
import logging
import os
import tempfile
import threading
from typing import Callable, Dict, List, Optional

from app.core.errors import PersistenceWarning

logger = logging.getLogger(__name__)

StoreListener = Callable[[str, Optional[str]], None]


class KeyValueStore:
    """Base adapter: get/set/remove plus change subscription."""

    def __init__(self):
        self._listeners: List[StoreListener] = []

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def keys(self) -> List[str]:
        raise NotImplementedError

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a change listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, key: str, value: Optional[str]) -> None:
        for listener in list(self._listeners):
            try:
                listener(key, value)
            except Exception:
                logger.exception(f"Store listener failed for key {key}")


class MemoryKeyValueStore(KeyValueStore):
    """In-process store. Useful for tests and single-process sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        super().__init__()
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise PersistenceWarning(f"Value for {key} must be a string")
        self._data[key] = value
        self._notify(key, value)

    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._notify(key, None)

    def keys(self) -> List[str]:
        return list(self._data.keys())


class FileKeyValueStore(KeyValueStore):
    """
    Store backed by a single JSON object file.

    Writes go to a temp file that replaces the original, so a crash never
    leaves a half-written file. A corrupt file reads as empty.
    """

    def __init__(self, path: str):
        super().__init__()
        self.path = path
        self._lock = threading.Lock()

    def _read_all(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Discarding unreadable store file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Discarding store file {self.path}: not a JSON object")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: Dict[str, str]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".kv-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, ensure_ascii=False)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise PersistenceWarning(f"Failed to write store file {self.path}: {e}")

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise PersistenceWarning(f"Value for {key} must be a string")
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)
        self._notify(key, value)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key not in data:
                return
            del data[key]
            self._write_all(data)
        self._notify(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._read_all().keys())
