"""Resolve the OAuth client registration from configuration."""

from __future__ import annotations

import json
from typing import Any, Mapping, Optional

from pydantic import SecretStr

from storefront_drive.config import Settings, settings as default_settings
from storefront_drive.domain.entities import OAuthCredentials
from storefront_drive.domain.errors import ConfigurationError
from storefront_drive.infrastructure.log_utils import log_message

CLIENT_SECTIONS = ("web", "installed")


def _unwrap_secret(value: Any) -> Any:
    if isinstance(value, SecretStr):
        return value.get_secret_value()
    return value


def parse_client_secrets(raw: str, *, redirect_uri: Optional[str] = None) -> OAuthCredentials:
    """Parse a Google client-secrets JSON blob.

    Accepts the ``web`` layout (and ``installed`` for desktop clients).
    ``redirect_uri`` overrides the first registered redirect URI.
    """
    try:
        blob = json.loads(raw)
    except ValueError as exc:
        raise ConfigurationError(f"GOOGLE_DRIVE_CREDENTIALS is not valid JSON: {exc}") from exc

    if not isinstance(blob, Mapping):
        raise ConfigurationError("GOOGLE_DRIVE_CREDENTIALS must be a JSON object")

    section: Optional[Mapping[str, Any]] = None
    for name in CLIENT_SECTIONS:
        candidate = blob.get(name)
        if isinstance(candidate, Mapping):
            section = candidate
            break
    if section is None:
        raise ConfigurationError("GOOGLE_DRIVE_CREDENTIALS has no 'web' client section")

    client_id = str(section.get("client_id") or "").strip()
    client_secret = str(section.get("client_secret") or "").strip()
    missing = [name for name, value in (("client_id", client_id), ("client_secret", client_secret)) if not value]
    if missing:
        raise ConfigurationError(f"GOOGLE_DRIVE_CREDENTIALS is missing {', '.join(missing)}")

    if not redirect_uri:
        redirect_uris = section.get("redirect_uris") or []
        if isinstance(redirect_uris, str):
            redirect_uris = [redirect_uris]
        redirect_uri = next((str(uri) for uri in redirect_uris if uri), None)
    if not redirect_uri:
        raise ConfigurationError("GOOGLE_DRIVE_CREDENTIALS has no redirect_uris")

    return OAuthCredentials(client_id=client_id, client_secret=client_secret, redirect_uri=redirect_uri)


def load_oauth_credentials(config: Settings | None = None) -> OAuthCredentials:
    """Build :class:`OAuthCredentials` or raise :class:`ConfigurationError`.

    The JSON blob wins; otherwise the discrete client id/secret variables are
    used with the application's own callback URL as redirect target.
    """
    config = config or default_settings
    redirect_override = config.GOOGLE_DRIVE_REDIRECT_URI or None

    blob = _unwrap_secret(config.GOOGLE_DRIVE_CREDENTIALS)
    if blob:
        credentials = parse_client_secrets(blob, redirect_uri=redirect_override)
        log_message(f"Loaded Google Drive client {credentials.client_id} from credentials blob.", "DEBUG")
        return credentials

    client_id = (config.GOOGLE_DRIVE_CLIENT_ID or "").strip()
    client_secret = (_unwrap_secret(config.GOOGLE_DRIVE_CLIENT_SECRET) or "").strip()
    if not client_id or not client_secret:
        raise ConfigurationError(
            "Google Drive credentials not configured. Set GOOGLE_DRIVE_CREDENTIALS "
            "or GOOGLE_DRIVE_CLIENT_ID and GOOGLE_DRIVE_CLIENT_SECRET."
        )

    return OAuthCredentials(
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=redirect_override or config.callback_url,
    )


__all__ = ["load_oauth_credentials", "parse_client_secrets"]
