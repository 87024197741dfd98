"""Uploads product images to Drive on behalf of an authorized admin."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from storefront_drive.application.oauth_service import AccessTokenRefresher
from storefront_drive.domain.errors import MissingRefreshToken
from storefront_drive.infrastructure.google_drive_client import GoogleDriveClient
from storefront_drive.infrastructure.log_utils import log_message

MSG_AUTHORIZE_FIRST = "Refresh token required. Please authorize Google Drive access first."


@dataclass(frozen=True)
class DriveUploadResult:
    file_id: str
    web_view_link: Optional[str]
    web_content_link: Optional[str]
    proxy_url: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "success": True,
            "fileId": self.file_id,
            "webViewLink": self.web_view_link,
            "webContentLink": self.web_content_link,
            "proxyUrl": self.proxy_url,
        }


class DriveUploadService:
    """Refresh, upload, share publicly, then read back the file's links."""

    def __init__(
        self,
        refresher: AccessTokenRefresher,
        drive_client: GoogleDriveClient,
        *,
        proxy_base_url: str,
        fallback_refresh_token: Optional[str] = None,
    ) -> None:
        self._refresher = refresher
        self._drive = drive_client
        self._proxy_base_url = proxy_base_url
        self._fallback_refresh_token = fallback_refresh_token

    def upload(
        self,
        *,
        content: bytes,
        file_name: str,
        mime_type: Optional[str] = None,
        folder_id: Optional[str] = None,
        refresh_token: Optional[str] = None,
    ) -> DriveUploadResult:
        token = refresh_token or self._fallback_refresh_token
        if not token:
            raise MissingRefreshToken(MSG_AUTHORIZE_FIRST)

        access_token = self._refresher.access_token_for(token)
        created = self._drive.upload_file(
            access_token,
            content=content,
            file_name=file_name,
            mime_type=mime_type or "application/octet-stream",
            folder_id=folder_id or None,
        )
        file_id = str(created["id"])
        log_message(f"Uploaded {file_name} to Drive as {file_id}.", "INFO")

        self._drive.share_publicly(access_token, file_id)
        links = self._drive.get_file_links(access_token, file_id)

        return DriveUploadResult(
            file_id=file_id,
            web_view_link=links.get("webViewLink"),
            web_content_link=links.get("webContentLink"),
            proxy_url=f"{self._proxy_base_url}?fileId={file_id}",
        )


__all__ = ["DriveUploadResult", "DriveUploadService", "MSG_AUTHORIZE_FIRST"]
