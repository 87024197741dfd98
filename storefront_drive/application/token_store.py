"""The single refresh-token slot of a browser profile."""

from __future__ import annotations

from typing import Optional

from storefront_drive.domain.entities import REFRESH_TOKEN_STORAGE_KEY
from storefront_drive.domain.local_storage import LocalStorage


class TokenStore:
    """Wraps local storage under the ``google_drive_refresh_token`` key.

    No expiry is tracked: a revoked token is only discovered when the next
    refresh fails.
    """

    def __init__(self, storage: LocalStorage, *, key: str = REFRESH_TOKEN_STORAGE_KEY) -> None:
        self._storage = storage
        self._key = key

    def get(self) -> Optional[str]:
        return self._storage.get_item(self._key) or None

    def set(self, token: str) -> None:
        if not token:
            raise ValueError("Refusing to store an empty refresh token")
        self._storage.set_item(self._key, token)

    def clear(self) -> None:
        self._storage.remove_item(self._key)


__all__ = ["TokenStore"]
