"""
Command-line interface for the storefront's Google Drive integration.

Covers first-time authorization (the same popup handshake the storefront
runs, hosted in-process), token refresh checks, status reporting and
running the HTTP API.
"""
from typing import Dict, Optional
from urllib.parse import parse_qs, urlparse

import typer
from rich.console import Console
from typer import Argument, Option
from typing_extensions import Annotated

from storefront_drive.application.auth_listener import GoogleDriveAuthListener
from storefront_drive.application.callback_page import GoogleDriveCallbackPage
from storefront_drive.application.drive_links import to_direct_download_url, to_proxy_url
from storefront_drive.application.oauth_service import (
    AccessTokenRefresher,
    TokenExchangeService,
    build_oauth_client,
)
from storefront_drive.application.token_store import TokenStore
from storefront_drive.application.window import BrowserWindow, ManualScheduler
from storefront_drive.cli.status import (
    check_credentials,
    check_stored_token,
    check_token_endpoint,
    render_results,
    run_status_checks,
)
from storefront_drive.config import settings
from storefront_drive.domain.errors import ConfigurationError, GoogleDriveAuthError
from storefront_drive.infrastructure import log_utils
from storefront_drive.infrastructure.exchange_client import ExchangeClient
from storefront_drive.infrastructure.local_storage import JsonFileLocalStorage

console = Console()

app = typer.Typer(
    name="storefront-drive",
    help="Authorize and inspect the storefront's Google Drive integration.",
    add_completion=False,
)


class ConsoleNotifier:
    """Renders notifications as coloured console lines."""

    def success(self, message: str) -> None:
        console.print(f"[green]{message}[/green]")

    def error(self, message: str) -> None:
        console.print(f"[red]{message}[/red]")


def _token_store() -> TokenStore:
    return TokenStore(JsonFileLocalStorage(settings.LOCAL_STORAGE_PATH))


def _oauth_client_or_exit():
    try:
        return build_oauth_client(settings)
    except ConfigurationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2)


def parse_callback_input(value: str) -> Dict[str, str]:
    """Accept either a bare authorization code or the full redirect URL."""
    value = value.strip()
    if "?" not in value and not value.startswith(("http://", "https://")):
        return {"code": value}
    params = parse_qs(urlparse(value).query)
    return {key: values[0] for key, values in params.items() if values}


@app.command("auth-url")
def auth_url(
    state: Annotated[Optional[str], Option(help="Opaque value echoed back on the redirect.")] = None,
) -> None:
    """
    Print the Google consent URL.
    Open it in a browser, approve access, then pass the redirect URL to `authorize`.
    """
    exchanger = TokenExchangeService(_oauth_client_or_exit())
    typer.echo("-> Visit this URL to authorize Google Drive access:")
    typer.echo(exchanger.authorize_url(state=state))


@app.command()
def authorize(
    code_or_url: Annotated[
        Optional[str], Argument(help="Authorization code, or the full redirect URL Google sent you to.")
    ] = None,
    server: Annotated[
        Optional[str], Option(help="Exchange through a running API at this base URL instead of locally.")
    ] = None,
) -> None:
    """
    Complete authorization and store the refresh token in the local profile.
    """
    if not code_or_url:
        code_or_url = typer.prompt("Paste the redirect URL (or the code)")
    query = parse_callback_input(code_or_url)

    if server:
        exchange = ExchangeClient(server, request_timeout=settings.GOOGLE_OAUTH_TIMEOUT_SECONDS)
    else:
        exchange = TokenExchangeService(_oauth_client_or_exit()).exchange

    scheduler = ManualScheduler()
    notifier = ConsoleNotifier()
    main_window = BrowserWindow(
        name="storefront",
        origin=settings.PUBLIC_BASE_URL,
        local_storage=JsonFileLocalStorage(settings.LOCAL_STORAGE_PATH),
        scheduler=scheduler,
    )
    popup = main_window.open_popup("google-drive-auth")

    with GoogleDriveAuthListener(main_window, notifier=notifier) as listener:
        page = GoogleDriveCallbackPage(
            popup,
            exchange,
            notifier=notifier,
            success_close_delay=settings.CALLBACK_SUCCESS_CLOSE_DELAY,
            error_close_delay=settings.CALLBACK_ERROR_CLOSE_DELAY,
            redelivery_interval=settings.CALLBACK_REDELIVERY_INTERVAL,
        )
        outcome = page.load(query)
        scheduler.run_all()
        stored = listener.stored_count

    typer.echo(outcome.status_text)
    if not outcome.succeeded or not stored:
        log_utils.log_message("CLI authorization did not store a refresh token.", "WARN")
        raise typer.Exit(code=1)
    typer.echo(f"Refresh token saved to {settings.LOCAL_STORAGE_PATH}")


@app.command()
def refresh(
    refresh_token: Annotated[
        Optional[str], Option("--refresh-token", help="Use this token instead of the stored one.")
    ] = None,
) -> None:
    """
    Mint an access token from the stored refresh token.
    """
    refresher = AccessTokenRefresher(_oauth_client_or_exit())
    token = refresh_token or _token_store().get()
    try:
        result = refresher.refresh(token)
    except GoogleDriveAuthError as exc:
        console.print(f"[red]{exc.message}[/red]")
        if exc.needs_auth:
            console.print("[yellow]Run `storefront-drive authorize` to grant access again.[/yellow]")
        raise typer.Exit(code=1)
    typer.echo("[OK] Access token refreshed.")
    typer.echo(f"Access token: {log_utils.mask_secret(result['access_token'], visible=12)}")


@app.command()
def status() -> None:
    """Quick health check for client credentials, the stored token and Google's token endpoint."""
    store = _token_store()
    try:
        refresher: Optional[AccessTokenRefresher] = AccessTokenRefresher(build_oauth_client(settings))
    except ConfigurationError:
        refresher = None
    results = run_status_checks(
        checks=(
            lambda: check_credentials(settings),
            lambda: check_stored_token(store),
            lambda: check_token_endpoint(refresher, store),
        )
    )
    typer.echo(render_results(results))
    raise typer.Exit(code=0 if all(result.ok for result in results) else 1)


@app.command()
def logout() -> None:
    """Forget the stored refresh token."""
    _token_store().clear()
    log_utils.log_message("Stored Google Drive refresh token cleared.", "INFO")
    typer.echo("Stored Google Drive refresh token removed.")


@app.command("drive-url")
def drive_url(
    url: str,
    direct: Annotated[bool, Option("--direct", help="Emit a direct download URL instead of the proxy URL.")] = False,
) -> None:
    """Rewrite a Drive share link for use as a product image."""
    typer.echo(to_direct_download_url(url) if direct else to_proxy_url(url))


@app.command()
def serve(
    host: Annotated[str, Option(help="Interface to bind.")] = "127.0.0.1",
    port: Annotated[int, Option(help="Port to listen on.")] = 8000,
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    log_utils.log_message(f"Starting API on {host}:{port}", "INFO")
    uvicorn.run("storefront_drive.api:create_app", factory=True, host=host, port=port)


if __name__ == "__main__":  # pragma: no cover
    app()
