"""Google Drive REST calls used by the storefront's image pipeline."""

from __future__ import annotations

import json
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from storefront_drive.domain.errors import DriveApiError
from storefront_drive.infrastructure.log_utils import log_message

UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files?uploadType=multipart"
FILES_URL = "https://www.googleapis.com/drive/v3/files"

PUBLIC_IMAGE_URL_FORMATS = (
    "https://drive.google.com/thumbnail?id={file_id}&sz=w2000",
    "https://drive.google.com/uc?export=view&id={file_id}",
    "https://lh3.googleusercontent.com/d/{file_id}",
    "https://drive.google.com/uc?export=download&id={file_id}",
    "https://drive.google.com/uc?id={file_id}",
    "https://docs.google.com/uc?export=download&id={file_id}",
)
FALLBACK_THUMBNAIL_URL = "https://drive.google.com/thumbnail?id={file_id}&sz=w1920"

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
    ),
    "Referer": "https://drive.google.com/",
}


@dataclass(frozen=True)
class DriveImage:
    content: bytes
    content_type: str
    source_url: str


def _error_message(response: Any, default: str) -> str:
    try:
        payload = response.json()
    except ValueError:
        return default
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return default


def _json_body(response: Any, action: str) -> Dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if not isinstance(payload, dict):
        raise DriveApiError(f"{action}: Drive returned an unreadable response")
    return payload


def _build_multipart_related(metadata: Dict[str, Any], content: bytes, mime_type: str) -> tuple[bytes, str]:
    boundary = f"storefront-{secrets.token_hex(12)}"
    body = b"".join(
        [
            f"--{boundary}\r\nContent-Type: application/json; charset=UTF-8\r\n\r\n".encode("utf-8"),
            json.dumps(metadata).encode("utf-8"),
            b"\r\n",
            f"--{boundary}\r\nContent-Type: {mime_type}\r\n\r\n".encode("utf-8"),
            content,
            b"\r\n",
            f"--{boundary}--\r\n".encode("utf-8"),
        ]
    )
    return body, f"multipart/related; boundary={boundary}"


class GoogleDriveClient:
    """Minimal Drive v3 client authenticated per call with a bearer token."""

    def __init__(self, request_timeout: float = 30.0) -> None:
        self._request_timeout = request_timeout

    def upload_file(
        self,
        access_token: str,
        *,
        content: bytes,
        file_name: str,
        mime_type: str = "application/octet-stream",
        folder_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {"name": file_name}
        if folder_id:
            metadata["parents"] = [folder_id]

        body, content_type = _build_multipart_related(metadata, content, mime_type)
        try:
            response = requests.post(
                UPLOAD_URL,
                headers={"Authorization": f"Bearer {access_token}", "Content-Type": content_type},
                data=body,
                timeout=self._request_timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise DriveApiError(f"Failed to upload file: {exc}") from exc

        if response.status_code >= 400:
            raise DriveApiError(
                f"Failed to upload file: {_error_message(response, 'Unknown error')}",
                status_code=response.status_code if response.status_code < 500 else 502,
            )
        created = _json_body(response, "Failed to upload file")
        if not created.get("id"):
            raise DriveApiError("Failed to upload file: Drive response had no file id")
        return created

    def share_publicly(self, access_token: str, file_id: str) -> bool:
        """Grant ``anyone`` read access. Failures are logged, not raised."""
        try:
            response = requests.post(
                f"{FILES_URL}/{file_id}/permissions",
                headers={"Authorization": f"Bearer {access_token}", "Content-Type": "application/json"},
                json={"role": "reader", "type": "anyone"},
                timeout=self._request_timeout,
            )
        except requests.exceptions.RequestException as exc:
            log_message(f"Could not make Drive file {file_id} public: {exc}", "WARN")
            return False
        if response.status_code >= 400:
            log_message(
                f"Could not make Drive file {file_id} public: {_error_message(response, str(response.status_code))}",
                "WARN",
            )
            return False
        return True

    def get_file_links(self, access_token: str, file_id: str) -> Dict[str, Any]:
        try:
            response = requests.get(
                f"{FILES_URL}/{file_id}",
                headers={"Authorization": f"Bearer {access_token}"},
                params={"fields": "id,webViewLink,webContentLink"},
                timeout=self._request_timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise DriveApiError(f"Failed to read file details: {exc}") from exc
        if response.status_code >= 400:
            raise DriveApiError(f"Failed to read file details: {_error_message(response, 'Unknown error')}")
        return _json_body(response, "Failed to read file details")

    def fetch_public_image(self, file_id: str) -> DriveImage:
        """Try each public Drive URL form until one serves an image."""
        last_error = ""
        candidates = [fmt.format(file_id=file_id) for fmt in PUBLIC_IMAGE_URL_FORMATS]
        candidates.append(FALLBACK_THUMBNAIL_URL.format(file_id=file_id))

        for url in candidates:
            try:
                response = requests.get(
                    url,
                    headers=BROWSER_HEADERS,
                    allow_redirects=True,
                    timeout=self._request_timeout,
                )
            except requests.exceptions.RequestException as exc:
                last_error = f"Network error: {exc}"
                log_message(f"Drive image fetch failed for {url}: {last_error}", "DEBUG")
                continue

            content_type = response.headers.get("content-type", "") or ""
            if response.status_code < 400 and content_type.startswith("image/"):
                log_message(f"Fetched Drive image {file_id} via {url}", "DEBUG")
                return DriveImage(content=response.content, content_type=content_type, source_url=url)

            if "text/html" in content_type:
                text = response.text or ""
                if "access_denied" in text or "permission denied" in text:
                    last_error = "Permission denied - image is not publicly accessible"
                elif "file not found" in text or "404" in text:
                    last_error = "File not found"
                else:
                    last_error = "Google Drive returned HTML instead of image data"
            else:
                last_error = f"Unexpected response: {response.status_code} {content_type}"
            log_message(f"Drive image fetch failed for {url}: {last_error}", "DEBUG")

        log_message(f"All Drive image URLs failed for {file_id}: {last_error}", "WARN")
        raise DriveApiError(
            "Failed to fetch image from Google Drive with all attempted methods",
            status_code=404,
        )


__all__ = ["DriveImage", "GoogleDriveClient", "PUBLIC_IMAGE_URL_FORMATS"]
