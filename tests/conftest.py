import os
import sys
import tempfile
from pathlib import Path
from typing import Any

import pytest

_TEST_HOME = Path(tempfile.mkdtemp(prefix="storefront_drive_tests_"))

os.environ.setdefault("STOREFRONT_LOG_DIR", str(_TEST_HOME))
os.environ.setdefault("STOREFRONT_LOG_TO_CONSOLE", "false")
os.environ.setdefault("LOCAL_STORAGE_PATH", str(_TEST_HOME / "local_storage.json"))
for _name in (
    "GOOGLE_DRIVE_CREDENTIALS",
    "GOOGLE_DRIVE_CLIENT_ID",
    "GOOGLE_DRIVE_CLIENT_SECRET",
    "GOOGLE_DRIVE_REDIRECT_URI",
    "GOOGLE_DRIVE_REFRESH_TOKEN",
):
    os.environ.pop(_name, None)


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


from storefront_drive.domain.entities import OAuthCredentials  # noqa: E402
from storefront_drive.infrastructure.google_oauth_client import GoogleOAuthClient  # noqa: E402
from tests.fakes import RecordingRequests  # noqa: E402


@pytest.fixture
def credentials() -> OAuthCredentials:
    return OAuthCredentials(
        client_id="client-123.apps.googleusercontent.com",
        client_secret="shh-secret",
        redirect_uri="https://shop.example.com/google-drive-auth/callback",
    )


@pytest.fixture
def oauth_client(credentials: OAuthCredentials) -> GoogleOAuthClient:
    return GoogleOAuthClient(credentials, request_timeout=5, max_retries=3, backoff_base=0)


@pytest.fixture
def fake_post(monkeypatch: pytest.MonkeyPatch):
    """Install a ``requests.post`` replacement; call with the responses to return."""

    def _install(*responses: Any) -> RecordingRequests:
        recorder = RecordingRequests(list(responses))
        monkeypatch.setattr("requests.post", recorder)
        return recorder

    return _install


@pytest.fixture
def fake_get(monkeypatch: pytest.MonkeyPatch):
    def _install(*responses: Any) -> RecordingRequests:
        recorder = RecordingRequests(list(responses))
        monkeypatch.setattr("requests.get", recorder)
        return recorder

    return _install
