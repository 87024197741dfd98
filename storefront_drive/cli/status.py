"""Health check command support for the storefront-drive CLI."""

from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Callable, Iterable, List, Optional, Sequence

from storefront_drive.application.oauth_service import AccessTokenRefresher
from storefront_drive.application.token_store import TokenStore
from storefront_drive.config import Settings
from storefront_drive.infrastructure.credentials import load_oauth_credentials
from storefront_drive.infrastructure.log_utils import mask_secret


@dataclass
class CheckResult:
    """Represents a single dependency check outcome."""

    name: str
    ok: bool
    detail: str


def _format_duration(start: float) -> str:
    elapsed = perf_counter() - start
    if elapsed < 0.001:
        return "<1ms"
    return f"{int(elapsed * 1000)}ms"


def _format_exception(exc: Exception) -> str:
    message = str(exc).strip()
    if not message:
        message = exc.__class__.__name__
    return message.splitlines()[0]


def check_credentials(config: Settings) -> CheckResult:
    try:
        credentials = load_oauth_credentials(config)
    except Exception as exc:
        return CheckResult(name="Client", ok=False, detail=_format_exception(exc))
    return CheckResult(
        name="Client",
        ok=True,
        detail=f"{mask_secret(credentials.client_id)} -> {credentials.redirect_uri}",
    )


def check_stored_token(store: TokenStore) -> CheckResult:
    token = store.get()
    if not token:
        return CheckResult(name="Token", ok=False, detail="No refresh token stored; run `authorize`.")
    return CheckResult(name="Token", ok=True, detail=mask_secret(token))


def check_token_endpoint(refresher: Optional[AccessTokenRefresher], store: TokenStore) -> CheckResult:
    token = store.get()
    if refresher is None or not token:
        return CheckResult(name="Google", ok=False, detail="Skipped: needs client credentials and a stored token.")
    start = perf_counter()
    try:
        refresher.refresh(token)
    except Exception as exc:
        return CheckResult(name="Google", ok=False, detail=_format_exception(exc))
    return CheckResult(name="Google", ok=True, detail=_format_duration(start))


def run_status_checks(
    *,
    checks: Sequence[Callable[[], CheckResult]],
) -> List[CheckResult]:
    return [check() for check in checks]


def render_results(results: Iterable[CheckResult]) -> str:
    lines = []
    for result in results:
        status = "OK" if result.ok else "FAIL"
        lines.append(f"{result.name:<8} {status:<4} {result.detail}")
    return "\n".join(lines)


__all__ = [
    "CheckResult",
    "check_credentials",
    "check_stored_token",
    "check_token_endpoint",
    "render_results",
    "run_status_checks",
]
