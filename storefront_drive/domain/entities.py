"""Value objects shared by the Drive authorization flow."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, StringConstraints
from typing_extensions import Annotated

DRIVE_SCOPE = "https://www.googleapis.com/auth/drive.file"
REFRESH_TOKEN_STORAGE_KEY = "google_drive_refresh_token"
AUTH_UPDATED_EVENT = "google-drive-auth-updated"


@dataclass(frozen=True)
class OAuthCredentials:
    """Client registration used for every call to the identity provider."""

    client_id: str
    client_secret: str
    redirect_uri: str

    def __repr__(self) -> str:
        return (
            f"OAuthCredentials(client_id={self.client_id!r}, client_secret='**********', "
            f"redirect_uri={self.redirect_uri!r})"
        )


class TokenPair(BaseModel):
    """Token endpoint response.

    Only ``access_token`` is checked. Every other field (``expires_in``,
    ``scope``, ``id_token`` …) is kept untouched so the payload can be relayed
    exactly as the provider produced it.
    """

    model_config = ConfigDict(extra="allow")

    access_token: Annotated[str, StringConstraints(strict=True, min_length=1)]
    refresh_token: Optional[Any] = None
    expires_in: Optional[Any] = None

    def as_payload(self) -> Dict[str, Any]:
        """Fields as received, without defaults the provider did not send."""
        return self.model_dump(exclude_unset=True)

    @property
    def has_refresh_token(self) -> bool:
        return isinstance(self.refresh_token, str) and bool(self.refresh_token)


__all__ = [
    "AUTH_UPDATED_EVENT",
    "DRIVE_SCOPE",
    "OAuthCredentials",
    "REFRESH_TOKEN_STORAGE_KEY",
    "TokenPair",
]
