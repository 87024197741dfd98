"""
Centralised config for the storefront Drive integration.

Secrets and deployment-specific values are read from environment variables
(or a ``.env`` file next to the repository) and exposed through the
importable ``settings`` singleton.
"""

import os
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_FILE = Path(__file__).resolve()


def _discover_project_root(config_file: Path) -> tuple[Path, Path]:
    """Return a project root and env file path without assuming ``.env`` exists.

    Deployments keep a ``.env`` file beside the checkout while development and
    CI usually do not, so the parents are walked looking for one and the
    repository root (found via common project markers) is used otherwise.
    """

    parents = list(config_file.parents)

    for parent in parents:
        env_file = parent / ".env"
        if env_file.exists():
            return parent, env_file

    for marker in ("pyproject.toml", ".git"):
        for parent in parents:
            if (parent / marker).exists():
                return parent, parent / ".env"

    fallback_root = parents[1] if len(parents) > 1 else parents[0]
    return fallback_root, fallback_root / ".env"


PROJECT_ROOT, ENV_FILE_PATH = _discover_project_root(CONFIG_FILE)

T = TypeVar("T")


class Settings(BaseSettings):
    """
    Centralised and validated application settings.
    """
    model_config = SettingsConfigDict(
        env_file=ENV_FILE_PATH, env_file_encoding="utf-8", extra="ignore", case_sensitive=False
    )

    # --- CORE APP SETTINGS ---
    ENVIRONMENT: str = "development"
    PUBLIC_BASE_URL: str = "http://localhost:8000"

    # --- GOOGLE DRIVE OAUTH (from environment) ---
    # JSON blob as downloaded from the Google Cloud console:
    # {"web": {"client_id": ..., "client_secret": ..., "redirect_uris": [...]}}
    GOOGLE_DRIVE_CREDENTIALS: Optional[SecretStr] = None
    GOOGLE_DRIVE_CLIENT_ID: Optional[str] = None
    GOOGLE_DRIVE_CLIENT_SECRET: Optional[SecretStr] = None
    GOOGLE_DRIVE_REDIRECT_URI: Optional[str] = None
    GOOGLE_DRIVE_REFRESH_TOKEN: Optional[SecretStr] = None

    # --- IDENTITY PROVIDER HTTP ---
    GOOGLE_OAUTH_TIMEOUT_SECONDS: float = 30.0
    GOOGLE_OAUTH_MAX_RETRIES: int = 3
    GOOGLE_OAUTH_BACKOFF_SECONDS: float = 0.5

    # --- CALLBACK POPUP TIMING (seconds) ---
    CALLBACK_SUCCESS_CLOSE_DELAY: float = 0.5
    CALLBACK_ERROR_CLOSE_DELAY: float = 2.0
    CALLBACK_REDELIVERY_INTERVAL: float = 0.2

    # --- LOCAL PROFILE STORAGE (CLI) ---
    LOCAL_STORAGE_PATH: Path = Path.home() / ".config" / "storefront_drive" / "local_storage.json"

    # --- LOGGING ---
    STOREFRONT_LOG_LEVEL: str = "INFO"
    STOREFRONT_LOG_TO_CONSOLE: bool = True
    STOREFRONT_LOG_DIR: Optional[Path] = None

    @property
    def callback_url(self) -> str:
        """Default redirect target served by this application."""
        return f"{self.PUBLIC_BASE_URL.rstrip('/')}/google-drive-auth/callback"

    @property
    def proxy_url(self) -> str:
        return f"{self.PUBLIC_BASE_URL.rstrip('/')}/google-drive-proxy"

    @property
    def log_path(self) -> Path:
        """
        Path for the main application log file.

        Falls back to a directory under the user's home when the configured
        or production directory is not writable; never raises.
        """
        candidates = []
        if self.STOREFRONT_LOG_DIR is not None:
            candidates.append(Path(self.STOREFRONT_LOG_DIR))
        candidates.append(Path("/var/log/storefront_drive"))

        for directory in candidates:
            if directory.exists() and os.access(directory, os.W_OK):
                return directory / "storefront_drive.log"

        fallback_dir = Path.home() / "storefront_logs"
        try:
            fallback_dir.mkdir(parents=True, exist_ok=True)
        except OSError:
            fallback_dir = Path.cwd()
        return fallback_dir / "storefront_drive.log"


# Create a single, importable instance of the settings for the entire application.
settings = Settings()


def _coerce_secret(value: Any) -> Any:
    if isinstance(value, SecretStr):
        return value.get_secret_value()
    return value


def _to_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _coerce_type(raw: str, template: Any) -> Any:
    if isinstance(template, bool):
        return _to_bool(raw)
    if isinstance(template, int) and not isinstance(template, bool):
        return int(raw)
    if isinstance(template, float):
        return float(raw)
    if isinstance(template, Path):
        return Path(raw)
    return raw


def get_env(
    name: str,
    default: T | None = None,
    *,
    parser: Callable[[str], T] | None = None,
) -> T | Any | None:
    """Return a configuration value resolving environment overrides consistently.

    The resolution order is:

    1. Explicit environment variable overrides at runtime.
    2. Typed values provided by the Pydantic ``settings`` object.
    3. The supplied ``default`` value.

    Overrides read from :mod:`os.environ` are coerced with ``parser`` or,
    failing that, with the type of the matching ``settings`` attribute.
    """

    if name in os.environ:
        raw_value = os.environ[name]
        if parser is not None:
            return parser(raw_value)
        if hasattr(settings, name):
            template = _coerce_secret(getattr(settings, name))
            if template is None:
                return raw_value
            try:
                return _coerce_type(raw_value, template)
            except (TypeError, ValueError):
                return template
        return raw_value

    if hasattr(settings, name):
        value = _coerce_secret(getattr(settings, name))
        return default if value is None else value

    return default
