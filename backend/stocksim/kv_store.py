"""
Durable key-value storage for local application state.

Holds funds, the portfolio, sell records and cached quotes. Values are plain
strings; callers serialize their own payloads.
"""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from threading import RLock

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Minimal string key-value contract used by the cache and the ledger."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    def set_many(self, values: dict[str, str]) -> None:
        for key, value in values.items():
            self.set(key, value)

    @abstractmethod
    def keys(self) -> list[str]:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        pass


class JsonFileStore(KeyValueStore):
    """
    Key-value store backed by a single JSON file.

    Every mutation rewrites the file through a temporary sibling that is then
    swapped in place, so a crash mid-write never leaves a truncated file.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = self._resolve_path(path)
        self._lock = RLock()
        self._data: dict[str, str] = self._load()

    @staticmethod
    def _resolve_path(path: str | Path | None) -> Path:
        if path and str(path).strip():
            return Path(os.path.expandvars(os.path.expanduser(str(path).strip())))
        env_value = os.getenv("STOCKSIM_STATE_PATH", "").strip()
        if env_value:
            return Path(os.path.expandvars(os.path.expanduser(env_value)))
        return Path.home() / ".stocksim" / "state.json"

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.error(f"Failed to read state file {self._path}: {exc}")
            return {}
        if not isinstance(raw, dict):
            logger.warning(f"Ignoring malformed state file {self._path}")
            return {}
        return {str(key): str(value) for key, value in raw.items()}

    def _write(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(
            json.dumps(self._data, ensure_ascii=False, sort_keys=True, indent=2),
            encoding="utf-8",
        )
        tmp_path.replace(self._path)

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value
            self._write()

    def set_many(self, values: dict[str, str]) -> None:
        """Apply several keys with one file rewrite."""
        with self._lock:
            self._data.update(values)
            self._write()

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data.keys())

    def remove(self, key: str) -> None:
        with self._lock:
            if key in self._data:
                del self._data[key]
                self._write()
