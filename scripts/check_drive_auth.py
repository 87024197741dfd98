"""Utility for checking the storefront's Google Drive auth prerequisites.

This module inspects the OAuth client configuration in ``.env`` / the
environment and the CLI profile's stored refresh token to confirm that the
inputs needed for uploads are present. No network calls are performed – the
script only looks at files and configuration values that already exist on
disk.

Run via ``python -m scripts.check_drive_auth`` to print a small status report.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping

STORAGE_KEY = "google_drive_refresh_token"
DEFAULT_STORAGE_PATH = Path.home() / ".config" / "storefront_drive" / "local_storage.json"


@dataclass(frozen=True)
class AuthStatus:
    """Represents the outcome of a credential check."""

    name: str
    state: str
    message: str

    def format_line(self) -> str:
        """Render the status in a CLI-friendly format."""

        labels = {
            "ok": "OK",
            "warning": "ATTENTION",
            "action_required": "ACTION REQUIRED",
        }
        label = labels.get(self.state, self.state.upper())
        return f"{self.name}: {label} – {self.message}"


def load_env_file(path: Path) -> dict[str, str]:
    """Load a minimal .env style file into a dictionary."""

    if not path.exists():
        return {}

    env: dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        if line.startswith("export "):
            line = line[len("export ") :].lstrip()

        key, sep, value = line.partition("=")
        if not sep:
            continue

        key = key.strip()
        value = value.strip()

        if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
            value = value[1:-1]

        env[key] = value
    return env


def determine_client_status(env: Mapping[str, str]) -> AuthStatus:
    """Return the status of the OAuth client registration."""

    name = "OAuth client"
    blob = env.get("GOOGLE_DRIVE_CREDENTIALS")
    if blob:
        try:
            data = json.loads(blob)
        except json.JSONDecodeError:
            return AuthStatus(
                name=name,
                state="action_required",
                message=(
                    "GOOGLE_DRIVE_CREDENTIALS is not valid JSON. Paste the client secrets file "
                    "downloaded from the Google Cloud console as a single line."
                ),
            )
        section = data.get("web") or data.get("installed") if isinstance(data, dict) else None
        if not isinstance(section, dict) or not section.get("client_id") or not section.get("client_secret"):
            return AuthStatus(
                name=name,
                state="action_required",
                message="GOOGLE_DRIVE_CREDENTIALS needs a 'web' section with client_id and client_secret.",
            )
        return AuthStatus(name=name, state="ok", message="Client secrets loaded from GOOGLE_DRIVE_CREDENTIALS.")

    missing = [key for key in ("GOOGLE_DRIVE_CLIENT_ID", "GOOGLE_DRIVE_CLIENT_SECRET") if not env.get(key)]
    if missing:
        return AuthStatus(
            name=name,
            state="action_required",
            message=(
                f"Missing Google OAuth settings in .env: {', '.join(missing)}. Create an OAuth client "
                "in the Google Cloud console and add its values (or GOOGLE_DRIVE_CREDENTIALS)."
            ),
        )

    if not env.get("GOOGLE_DRIVE_REDIRECT_URI"):
        return AuthStatus(
            name=name,
            state="warning",
            message=(
                "No GOOGLE_DRIVE_REDIRECT_URI set; the default PUBLIC_BASE_URL callback will be used. "
                "Make sure it is listed as an authorized redirect URI."
            ),
        )

    return AuthStatus(name=name, state="ok", message="Client ID, secret and redirect URI are present.")


def determine_refresh_token_status(env: Mapping[str, str], storage_path: Path) -> AuthStatus:
    """Return the status of the stored Google Drive refresh token."""

    name = "Google Drive"

    if storage_path.exists():
        try:
            items = json.loads(storage_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return AuthStatus(
                name=name,
                state="action_required",
                message=(
                    f"{storage_path.name} exists but could not be parsed. Delete the file and "
                    "re-authorise via `storefront-drive auth-url` followed by "
                    "`storefront-drive authorize <redirect-url>`."
                ),
            )

        token = str((items or {}).get(STORAGE_KEY) or "").strip() if isinstance(items, dict) else ""
        if token:
            updated = datetime.fromtimestamp(
                storage_path.stat().st_mtime, tz=timezone.utc
            ).strftime("%Y-%m-%d %H:%M UTC")
            return AuthStatus(
                name=name,
                state="ok",
                message=(
                    f"Refresh token stored in {storage_path.name} (updated {updated}). "
                    "Run `storefront-drive refresh` if you want to confirm it still works."
                ),
            )

    if env.get("GOOGLE_DRIVE_REFRESH_TOKEN"):
        return AuthStatus(
            name=name,
            state="warning",
            message=(
                "Refresh token only lives in .env. Uploads without a client-supplied token will use it, "
                "but run `storefront-drive authorize` to keep a copy in the local profile."
            ),
        )

    return AuthStatus(
        name=name,
        state="action_required",
        message=(
            "No refresh token detected. Run `storefront-drive auth-url`, approve the app, "
            "then call `storefront-drive authorize <redirect-url>` to save the token."
        ),
    )


def main() -> int:
    """Entry point for the script."""

    project_root = Path.cwd()
    env = load_env_file(project_root / ".env")
    # Environment variables win over file-based values so ad-hoc overrides work.
    env.update({key: value for key, value in os.environ.items()})

    storage_path = Path(env.get("LOCAL_STORAGE_PATH") or DEFAULT_STORAGE_PATH).expanduser()

    statuses = [
        determine_client_status(env),
        determine_refresh_token_status(env, storage_path),
    ]

    for status in statuses:
        print(status.format_line())

    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via tests on the helpers
    raise SystemExit(main())
