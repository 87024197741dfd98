from typing import Optional

from fastapi import Body, FastAPI, File, Form, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response
from pydantic import BaseModel

from storefront_drive.api_errors import error_payload, register_error_handlers
from storefront_drive.application.callback_page import render_callback_document, resolve_callback
from storefront_drive.application.drive_upload import DriveUploadService
from storefront_drive.application.oauth_service import (
    AccessTokenRefresher,
    TokenExchangeService,
    build_oauth_client,
)
from storefront_drive.config import Settings, settings as default_settings
from storefront_drive.domain.errors import MissingRefreshToken
from storefront_drive.infrastructure.google_drive_client import GoogleDriveClient
from storefront_drive.infrastructure.google_oauth_client import GoogleOAuthClient
from storefront_drive.infrastructure.log_utils import log_message

CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]
PROXY_CACHE_CONTROL = "public, max-age=86400"
MSG_MISSING_FILE_ID = "Missing fileId parameter"
AUTHORIZE_HINT = "Redirect user to this URL to authorize Google Drive access"


class ExchangeRequest(BaseModel):
    code: Optional[str] = None


class TokenRequest(BaseModel):
    refresh_token: Optional[str] = None


def create_app(
    config: Optional[Settings] = None,
    *,
    oauth_client: Optional[GoogleOAuthClient] = None,
    drive_client: Optional[GoogleDriveClient] = None,
) -> FastAPI:
    """Build the HTTP surface of the Drive integration.

    Raises ``ConfigurationError`` when no OAuth client credentials are
    configured, so a misconfigured server never starts.
    """
    config = config or default_settings
    oauth_client = oauth_client or build_oauth_client(config)
    drive_client = drive_client or GoogleDriveClient(request_timeout=config.GOOGLE_OAUTH_TIMEOUT_SECONDS)

    exchanger = TokenExchangeService(oauth_client)
    refresher = AccessTokenRefresher(oauth_client)
    server_refresh_token = (
        config.GOOGLE_DRIVE_REFRESH_TOKEN.get_secret_value() if config.GOOGLE_DRIVE_REFRESH_TOKEN else None
    )
    uploader = DriveUploadService(
        refresher,
        drive_client,
        proxy_base_url=config.proxy_url,
        fallback_refresh_token=server_refresh_token,
    )

    app = FastAPI(title="Storefront Google Drive API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=CORS_ALLOW_HEADERS,
    )
    register_error_handlers(app)
    app.state.exchanger = exchanger
    app.state.refresher = refresher
    app.state.uploader = uploader

    @app.get("/google-drive-auth/authorize")
    def authorize(state: Optional[str] = Query(None)):
        """Consent URL the storefront opens in a popup."""
        return {"authUrl": exchanger.authorize_url(state=state), "message": AUTHORIZE_HINT}

    @app.get("/google-drive-auth/callback", response_class=HTMLResponse)
    def callback(code: Optional[str] = Query(None), error: Optional[str] = Query(None)):
        """Redirect target for Google; posts the outcome to the opener and closes."""
        outcome = resolve_callback(
            {"code": code, "error": error},
            exchanger.exchange,
            success_close_delay=config.CALLBACK_SUCCESS_CLOSE_DELAY,
            error_close_delay=config.CALLBACK_ERROR_CLOSE_DELAY,
        )
        document = render_callback_document(outcome, redelivery_interval=config.CALLBACK_REDELIVERY_INTERVAL)
        status_code = outcome.violation.status_code if outcome.violation is not None else 200
        return HTMLResponse(document, status_code=status_code)

    @app.post("/google-drive-auth/exchange")
    def exchange(body: Optional[ExchangeRequest] = Body(None)):
        return exchanger.exchange(body.code if body else None)

    @app.post("/google-drive-auth/token")
    def token(body: Optional[TokenRequest] = Body(None)):
        return refresher.refresh(body.refresh_token if body else None)

    @app.post("/google-drive-upload")
    def upload(
        file: Optional[UploadFile] = File(None),
        fileName: Optional[str] = Form(None),
        folderId: Optional[str] = Form(None),
        refreshToken: Optional[str] = Form(None),
    ):
        if file is None or not fileName:
            return JSONResponse(error_payload("File and fileName are required"), status_code=400)

        try:
            result = uploader.upload(
                content=file.file.read(),
                file_name=fileName,
                mime_type=file.content_type,
                folder_id=folderId,
                refresh_token=refreshToken,
            )
        except MissingRefreshToken as exc:
            log_message("Upload attempted without a refresh token.", "WARN")
            return JSONResponse(
                error_payload(exc.message, needsAuth=True, authUrl=exchanger.authorize_url()),
                status_code=exc.status_code,
            )
        return result.to_payload()

    @app.get("/google-drive-proxy")
    def proxy(fileId: Optional[str] = Query(None)):
        """Serve a public Drive image from this origin so it can be embedded."""
        if not fileId:
            return JSONResponse(error_payload(MSG_MISSING_FILE_ID), status_code=400)
        image = drive_client.fetch_public_image(fileId)
        return Response(
            content=image.content,
            media_type=image.content_type,
            headers={"Cache-Control": PROXY_CACHE_CONTROL},
        )

    @app.get("/")
    def root():
        return {"status": "ok", "message": "Storefront Google Drive API", "callback": config.callback_url}

    return app
