"""Local storage backends for a browser profile."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Dict, Optional

from storefront_drive.domain.local_storage import LocalStorage
from storefront_drive.infrastructure.log_utils import log_message


class InMemoryLocalStorage(LocalStorage):
    """Storage that lives as long as the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileLocalStorage(LocalStorage):
    """Persist every slot of the profile in one JSON object on disk.

    The file is rewritten on each change and restricted to the owner since it
    holds bearer secrets.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, ValueError) as exc:
            log_message(f"Failed to read local storage from {self._path}: {exc}", "WARN")
            return {}
        if not isinstance(data, dict):
            log_message(f"Ignoring malformed local storage file {self._path}", "WARN")
            return {}
        return {str(key): str(value) for key, value in data.items() if value is not None}

    def _write_all(self, items: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as handle:
            json.dump(items, handle, indent=2, sort_keys=True)

        try:
            os.chmod(self._path, 0o600)
        except OSError as exc:  # pragma: no cover - depends on platform
            log_message(f"Could not set permissions on {self._path}: {exc}", "WARN")

    def get_item(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._read_all()
        items[key] = str(value)
        self._write_all(items)

    def remove_item(self, key: str) -> None:
        items = self._read_all()
        if key in items:
            del items[key]
            self._write_all(items)


__all__ = ["InMemoryLocalStorage", "JsonFileLocalStorage"]
