from urllib.parse import parse_qs, urlparse

import pytest
import requests

from storefront_drive.infrastructure.google_oauth_client import (
    AUTH_URL,
    TOKEN_URL,
    GoogleOAuthClient,
    IdentityProviderError,
)
from tests.fakes import DummyResponse


def test_authorize_url_requests_offline_drive_file_access(oauth_client, credentials):
    url = oauth_client.build_authorize_url(state="xyz")

    parsed = urlparse(url)
    params = {key: values[0] for key, values in parse_qs(parsed.query).items()}

    assert url.startswith(AUTH_URL + "?")
    assert params == {
        "client_id": credentials.client_id,
        "redirect_uri": credentials.redirect_uri,
        "response_type": "code",
        "scope": "https://www.googleapis.com/auth/drive.file",
        "access_type": "offline",
        "prompt": "consent",
        "state": "xyz",
    }


def test_exchange_code_posts_authorization_code_grant(oauth_client, credentials, fake_post):
    payload = {"access_token": "a1", "refresh_token": "r1", "expires_in": 3600, "token_type": "Bearer"}
    recorder = fake_post(DummyResponse(200, payload))

    assert oauth_client.exchange_code("VALIDCODE") == payload

    call = recorder.calls[0]
    assert call["url"] == TOKEN_URL
    assert call["timeout"] == 5
    assert call["data"] == {
        "client_id": credentials.client_id,
        "client_secret": credentials.client_secret,
        "code": "VALIDCODE",
        "grant_type": "authorization_code",
        "redirect_uri": credentials.redirect_uri,
    }


def test_exchange_code_is_not_retried(oauth_client, fake_post):
    recorder = fake_post(DummyResponse(503, {"error": "backendError"}), DummyResponse(200, {"access_token": "a"}))

    with pytest.raises(IdentityProviderError) as excinfo:
        oauth_client.exchange_code("VALIDCODE")

    assert excinfo.value.status_code == 503
    assert len(recorder.calls) == 1


def test_rejection_carries_error_description(oauth_client, fake_post):
    fake_post(DummyResponse(400, {"error": "invalid_grant", "error_description": "Malformed auth code."}))

    with pytest.raises(IdentityProviderError) as excinfo:
        oauth_client.exchange_code("BAD")

    assert str(excinfo.value) == "Malformed auth code."
    assert excinfo.value.error == "invalid_grant"
    assert excinfo.value.status_code == 400


def test_rejection_without_description_falls_back_to_error_code(oauth_client, fake_post):
    fake_post(DummyResponse(401, {"error": "invalid_client"}))

    with pytest.raises(IdentityProviderError) as excinfo:
        oauth_client.exchange_code("BAD")

    assert str(excinfo.value) == "invalid_client"


def test_refresh_posts_refresh_token_grant(oauth_client, fake_post):
    recorder = fake_post(DummyResponse(200, {"access_token": "ya29.new", "expires_in": 3599}))

    assert oauth_client.refresh_access_token("r1")["access_token"] == "ya29.new"
    assert recorder.calls[0]["data"]["grant_type"] == "refresh_token"
    assert recorder.calls[0]["data"]["refresh_token"] == "r1"


def test_refresh_retries_transient_failures(oauth_client, fake_post):
    recorder = fake_post(
        requests.exceptions.ConnectionError("connection reset"),
        DummyResponse(503, {"error": "backendError"}),
        DummyResponse(200, {"access_token": "ya29.new"}),
    )

    assert oauth_client.refresh_access_token("r1") == {"access_token": "ya29.new"}
    assert len(recorder.calls) == 3


def test_refresh_does_not_retry_invalid_grant(oauth_client, fake_post):
    recorder = fake_post(DummyResponse(400, {"error": "invalid_grant", "error_description": "Token has been revoked."}))

    with pytest.raises(IdentityProviderError):
        oauth_client.refresh_access_token("revoked")

    assert len(recorder.calls) == 1


def test_network_failure_has_no_status(credentials, fake_post):
    client = GoogleOAuthClient(credentials, max_retries=1)
    fake_post(requests.exceptions.Timeout("timed out"))

    with pytest.raises(IdentityProviderError) as excinfo:
        client.refresh_access_token("r1")

    assert excinfo.value.status_code is None
