"""Server-side half of the Drive OAuth flow: code exchange and access-token minting."""

from __future__ import annotations

from typing import Any, Dict, Optional

from storefront_drive.config import Settings, settings as default_settings
from storefront_drive.domain.errors import (
    IdentityProviderUnavailable,
    MissingRefreshToken,
    TokenExchangeFailed,
    TokenRefreshFailed,
)
from storefront_drive.infrastructure.credentials import load_oauth_credentials
from storefront_drive.infrastructure.google_oauth_client import GoogleOAuthClient, IdentityProviderError
from storefront_drive.infrastructure.log_utils import log_message


def build_oauth_client(config: Settings | None = None) -> GoogleOAuthClient:
    """Construct the provider client; raises ``ConfigurationError`` when unconfigured."""
    config = config or default_settings
    return GoogleOAuthClient(
        load_oauth_credentials(config),
        request_timeout=config.GOOGLE_OAUTH_TIMEOUT_SECONDS,
        max_retries=config.GOOGLE_OAUTH_MAX_RETRIES,
        backoff_base=config.GOOGLE_OAUTH_BACKOFF_SECONDS,
    )


class TokenExchangeService:
    """Stateless transformer from authorization code to token pair.

    Nothing is persisted here; the caller decides what to keep.
    """

    def __init__(self, client: GoogleOAuthClient) -> None:
        self._client = client

    def authorize_url(self, *, state: Optional[str] = None) -> str:
        return self._client.build_authorize_url(state=state)

    def exchange(self, code: Optional[str]) -> Dict[str, Any]:
        code = (code or "").strip()
        if not code:
            raise TokenExchangeFailed("Authorization code required", status_code=400)

        try:
            tokens = self._client.exchange_code(code)
        except IdentityProviderError as exc:
            status = exc.status_code if exc.status_code is not None else 502
            raise TokenExchangeFailed(
                f"Failed to exchange code for tokens: {exc}",
                status_code=status,
            ) from exc

        access_token = tokens.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            log_message("Token endpoint accepted the code but returned no access_token.", "ERROR")
            raise TokenExchangeFailed(
                "Failed to exchange code for tokens: response had no access_token",
                status_code=502,
            )

        log_message(
            "Authorization code exchanged"
            + (" (refresh token issued)." if tokens.get("refresh_token") else " (no refresh token issued)."),
            "INFO",
        )
        return tokens


class AccessTokenRefresher:
    """Mints short-lived access tokens from a stored refresh token.

    Each call is independent and safe to repeat.
    """

    def __init__(self, client: GoogleOAuthClient) -> None:
        self._client = client

    def refresh(self, refresh_token: Optional[str]) -> Dict[str, str]:
        if not refresh_token or not str(refresh_token).strip():
            raise MissingRefreshToken()

        try:
            payload = self._client.refresh_access_token(str(refresh_token).strip())
        except IdentityProviderError as exc:
            if exc.status_code is None or exc.status_code >= 500 or exc.status_code in (408, 429):
                raise IdentityProviderUnavailable(f"Failed to refresh token: {exc}") from exc
            raise TokenRefreshFailed(f"Failed to refresh token: {exc}", status_code=exc.status_code) from exc

        access_token = payload.get("access_token")
        if not access_token:
            raise IdentityProviderUnavailable("Failed to refresh token: response had no access_token")
        return {"access_token": access_token}

    def access_token_for(self, refresh_token: Optional[str]) -> str:
        return self.refresh(refresh_token)["access_token"]


__all__ = ["AccessTokenRefresher", "TokenExchangeService", "build_oauth_client"]
