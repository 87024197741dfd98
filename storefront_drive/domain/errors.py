"""Exception hierarchy for the Drive authorization flow."""

from __future__ import annotations

from typing import Any, Dict, Optional


class GoogleDriveAuthError(Exception):
    """Base class; carries the HTTP status used at the API boundary."""

    status_code: int = 500
    needs_auth: bool = False

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message}
        if self.needs_auth:
            payload["needsAuth"] = True
        return payload


class ConfigurationError(GoogleDriveAuthError):
    """OAuth client credentials are missing or malformed. Fatal at startup."""


class TokenExchangeFailed(GoogleDriveAuthError):
    """The provider rejected the authorization code. Never retried."""

    status_code = 400


class TokenRefreshFailed(GoogleDriveAuthError):
    """The provider rejected the refresh token; the user must authorize again."""

    status_code = 401
    needs_auth = True


class MissingRefreshToken(GoogleDriveAuthError):
    """No refresh token was supplied; the user must authorize first."""

    status_code = 401
    needs_auth = True

    def __init__(self, message: str = "Refresh token required") -> None:
        super().__init__(message)


class IdentityProviderUnavailable(GoogleDriveAuthError):
    """The token endpoint could not be reached or kept failing transiently."""

    status_code = 502


class DriveApiError(GoogleDriveAuthError):
    """A Drive file operation failed."""

    status_code = 502


class ProtocolViolation(GoogleDriveAuthError):
    """The callback page was loaded with neither ``code`` nor ``error``."""

    status_code = 400


__all__ = [
    "ConfigurationError",
    "DriveApiError",
    "GoogleDriveAuthError",
    "IdentityProviderUnavailable",
    "MissingRefreshToken",
    "ProtocolViolation",
    "TokenExchangeFailed",
    "TokenRefreshFailed",
]
