"""HTTP client for this application's own ``/google-drive-auth/exchange`` endpoint.

Used by callback pages that run outside the server process (the CLI) so the
client secret never leaves the server.
"""

from __future__ import annotations

from typing import Any, Dict

import requests

from storefront_drive.domain.errors import TokenExchangeFailed
from storefront_drive.infrastructure.log_utils import log_message

EXCHANGE_PATH = "/google-drive-auth/exchange"
DEFAULT_FAILURE = "Failed to exchange authorization code"


class ExchangeClient:
    def __init__(self, base_url: str, *, request_timeout: float = 30.0) -> None:
        self.endpoint = f"{base_url.rstrip('/')}{EXCHANGE_PATH}"
        self._request_timeout = request_timeout

    def __call__(self, code: str) -> Dict[str, Any]:
        return self.exchange(code)

    def exchange(self, code: str) -> Dict[str, Any]:
        try:
            response = requests.post(self.endpoint, json={"code": code}, timeout=self._request_timeout)
        except requests.exceptions.RequestException as exc:
            log_message(f"Exchange endpoint unreachable: {exc}", "ERROR")
            raise TokenExchangeFailed(f"{DEFAULT_FAILURE}: {exc}", status_code=502) from exc

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if response.status_code >= 400:
            message = data.get("error") or DEFAULT_FAILURE
            raise TokenExchangeFailed(str(message), status_code=response.status_code)
        return data


__all__ = ["EXCHANGE_PATH", "ExchangeClient"]
