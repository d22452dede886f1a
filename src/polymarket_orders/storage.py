"""Key-value persistence adapters for client-local state.

The conditional order store only needs ``get`` and ``set`` on string keys
holding JSON text, so any backend that satisfies :class:`KeyValueStore`
can hold it: a dict for tests, a JSON file for a single client, or SQLite
(see :mod:`polymarket_orders.db`) when moved server-side.
"""

import json
import os
import threading
from pathlib import Path
from typing import Protocol


class KeyValueStore(Protocol):
    """Structural protocol for string key-value persistence."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryKeyValueStore:
    """In-process store. Contents are lost when the process exits."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileKeyValueStore:
    """All keys in one JSON object on disk, rewritten atomically on every set."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp.write_text(json.dumps(data, indent=2))
            os.replace(tmp, self._path)

    def _read(self) -> dict[str, object]:
        if not self._path.exists():
            return {}
        data = json.loads(self._path.read_text() or "{}")
        return data if isinstance(data, dict) else {}
