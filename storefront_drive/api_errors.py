"""Converts exceptions into the ``{"error": ..., "needsAuth"?: true}`` envelope."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront_drive.domain.errors import GoogleDriveAuthError
from storefront_drive.infrastructure.log_utils import log_message

DEFAULT_ERROR = "Authentication failed"


def error_payload(message: str, **extra: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"error": message}
    payload.update({key: value for key, value in extra.items() if value is not None})
    return payload


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(GoogleDriveAuthError)
    async def drive_auth_error_handler(request: Request, exc: GoogleDriveAuthError) -> JSONResponse:
        level = "ERROR" if exc.status_code >= 500 else "WARN"
        log_message(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}", level)
        return JSONResponse(exc.to_payload(), status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        return JSONResponse(error_payload(detail), status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            error_payload("Invalid request body", details=jsonable_encoder(exc.errors())),
            status_code=400,
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        log_message(f"Unhandled error on {request.url.path}: {exc}", "ERROR", exc_info=True)
        return JSONResponse(error_payload(str(exc) or DEFAULT_ERROR), status_code=500)


__all__ = ["error_payload", "register_error_handlers"]
