"""Key/Value Storage - in-memory and JSON-file implementations of KeyValueStorage.

Invariants:
    - Values are strings; callers serialize structured values themselves
    - JsonFileStorage writes through on every mutation, so a new instance on the
      same file sees everything written before (a simulated page reload)
    - A missing or unreadable file starts empty instead of failing

Design Decisions:
    - MemoryStorage doubles as tab-scoped storage: its lifetime is the tab's
    - Atomic replace (write temp file, os.replace) so a crash never leaves half a file
"""

import json
import logging
import os
from collections.abc import Iterator
from pathlib import Path

logger = logging.getLogger(__name__)


class MemoryStorage:
    """Process-local storage; one instance per tab or per origin."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> Iterator[str]:
        return iter(list(self._data))

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class JsonFileStorage(MemoryStorage):
    """Durable storage backed by one JSON object on disk."""

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)
        super().__init__(self._load())

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Storage file unreadable, starting empty: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning("Storage file is not an object, starting empty")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._data, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, self.path)

    def set(self, key: str, value: str) -> None:
        super().set(key, value)
        self._flush()

    def remove(self, key: str) -> None:
        if key in self._data:
            super().remove(key)
            self._flush()
