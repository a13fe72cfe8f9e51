"""Durable key-value storage for the feature store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from loguru import logger


class KeyValueStorage(ABC):
    """String values under string keys. Missing keys read as None."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...


class MemoryStorage(KeyValueStorage):
    """Process-local storage; used for tests and throwaway sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStorage(KeyValueStorage):
    """One ``<key>.json`` file per key inside a data directory."""

    def __init__(self, storage_path: Path):
        """Initialize file storage.

        Args:
            storage_path: Directory to hold the key files (created if missing)
        """
        self.storage_path = Path(storage_path)
        self.storage_path.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.storage_path / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        # Write-then-rename; readers never see a partial file
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)
        logger.debug(f"Wrote {len(value)} bytes to {path}")
