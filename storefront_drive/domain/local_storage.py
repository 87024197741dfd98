"""Domain-level protocol for origin-scoped key/value persistence."""

from __future__ import annotations

from typing import Optional, Protocol


class LocalStorage(Protocol):
    """String key/value slots that survive restarts of the owning window."""

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value or ``None``."""

    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    def remove_item(self, key: str) -> None:
        """Drop ``key`` if present."""


__all__ = ["LocalStorage"]
