import pytest
import requests

from storefront_drive.domain.errors import TokenExchangeFailed
from storefront_drive.infrastructure.exchange_client import ExchangeClient
from tests.fakes import DummyResponse


def test_exchange_posts_code_to_endpoint(fake_post):
    recorder = fake_post(DummyResponse(200, {"access_token": "a1", "refresh_token": "r1", "expires_in": 3600}))
    client = ExchangeClient("https://shop.example.com/", request_timeout=3)

    tokens = client("VALIDCODE")

    assert tokens == {"access_token": "a1", "refresh_token": "r1", "expires_in": 3600}
    assert recorder.calls[0]["url"] == "https://shop.example.com/google-drive-auth/exchange"
    assert recorder.calls[0]["json"] == {"code": "VALIDCODE"}
    assert recorder.calls[0]["timeout"] == 3


def test_exchange_surfaces_server_error_message(fake_post):
    fake_post(DummyResponse(400, {"error": "Failed to exchange code for tokens: Malformed auth code."}))

    with pytest.raises(TokenExchangeFailed) as excinfo:
        ExchangeClient("https://shop.example.com").exchange("BAD")

    assert excinfo.value.message == "Failed to exchange code for tokens: Malformed auth code."
    assert excinfo.value.status_code == 400


def test_exchange_without_error_body_uses_default_message(fake_post):
    fake_post(DummyResponse(500))

    with pytest.raises(TokenExchangeFailed) as excinfo:
        ExchangeClient("https://shop.example.com").exchange("X")

    assert excinfo.value.message == "Failed to exchange authorization code"


def test_exchange_network_failure(fake_post):
    fake_post(requests.exceptions.ConnectionError("refused"))

    with pytest.raises(TokenExchangeFailed) as excinfo:
        ExchangeClient("https://shop.example.com").exchange("X")

    assert excinfo.value.status_code == 502
