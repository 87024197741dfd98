"""Google identity provider client: consent URLs and token endpoint calls."""

from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import urlencode

import requests

from storefront_drive.domain.entities import DRIVE_SCOPE, OAuthCredentials
from storefront_drive.infrastructure.decorators import retry_on_transient_error
from storefront_drive.infrastructure.log_utils import log_message, mask_secret

AUTH_URL = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"

RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})


class IdentityProviderError(RuntimeError):
    """Raised when the token endpoint fails or cannot be reached.

    ``status_code`` is ``None`` for transport failures (DNS, timeouts,
    refused connections).
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        error: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error = error
        self.description = description


def _parse_json(response: Any) -> Dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


class GoogleOAuthClient:
    """Talks to Google's OAuth 2.0 endpoints on behalf of one client registration."""

    def __init__(
        self,
        credentials: OAuthCredentials,
        *,
        request_timeout: float = 30.0,
        max_retries: int = 1,
        backoff_base: float = 0.0,
    ) -> None:
        self.credentials = credentials
        self.request_timeout = request_timeout
        # read by retry_on_transient_error
        self.max_retries = max_retries
        self.backoff_base = backoff_base

    def build_authorize_url(self, *, state: Optional[str] = None) -> str:
        """Consent URL requesting offline access so a refresh token is issued."""
        params = {
            "client_id": self.credentials.client_id,
            "redirect_uri": self.credentials.redirect_uri,
            "response_type": "code",
            "scope": DRIVE_SCOPE,
            "access_type": "offline",
            "prompt": "consent",
        }
        if state:
            params["state"] = state
        return f"{AUTH_URL}?{urlencode(params)}"

    def exchange_code(self, code: str) -> Dict[str, Any]:
        """Trade an authorization code for tokens.

        Codes are single-use, so this is deliberately not retried.
        """
        log_message("Exchanging Google authorization code for tokens.", "INFO")
        return self._post_token_request(
            {
                "client_id": self.credentials.client_id,
                "client_secret": self.credentials.client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.credentials.redirect_uri,
            },
            context="code exchange",
        )

    @retry_on_transient_error(
        lambda self, status: status in RETRYABLE_STATUSES,
        exception_types=(IdentityProviderError,),
    )
    def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        log_message(f"Refreshing Google access token with {mask_secret(refresh_token)}.", "DEBUG")
        return self._post_token_request(
            {
                "client_id": self.credentials.client_id,
                "client_secret": self.credentials.client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
            context="token refresh",
        )

    def _post_token_request(self, data: Dict[str, str], *, context: str) -> Dict[str, Any]:
        try:
            response = requests.post(
                TOKEN_URL,
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.request_timeout,
            )
        except requests.exceptions.RequestException as exc:
            log_message(f"Google {context} request failed: {exc}", "ERROR")
            raise IdentityProviderError(f"Google {context} request failed: {exc}") from exc

        payload = _parse_json(response)
        if response.status_code >= 400:
            error = payload.get("error")
            description = payload.get("error_description")
            if isinstance(error, dict):  # some Google APIs nest {"error": {"message": ...}}
                description = description or error.get("message")
                error = error.get("status")
            reason = description or error or f"HTTP {response.status_code}"
            log_message(f"Google {context} rejected ({response.status_code}): {reason}", "WARN")
            raise IdentityProviderError(
                str(reason),
                status_code=response.status_code,
                error=error,
                description=description,
            )

        return payload


__all__ = ["AUTH_URL", "GoogleOAuthClient", "IdentityProviderError", "RETRYABLE_STATUSES", "TOKEN_URL"]
