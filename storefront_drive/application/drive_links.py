"""Rewrites Google Drive share links into URLs the storefront can render."""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import quote

from storefront_drive.config import settings

DRIVE_SHARE_URL_RE = re.compile(r"https://drive\.google\.com/file/d/([a-zA-Z0-9_-]+)")
DIRECT_DOWNLOAD_URL = "https://drive.google.com/uc?id={file_id}&export=download"


def extract_drive_file_id(url: str) -> Optional[str]:
    match = DRIVE_SHARE_URL_RE.search(url or "")
    return match.group(1) if match else None


def to_proxy_url(url: str, *, proxy_base_url: Optional[str] = None) -> str:
    """Point a Drive share link at the image proxy; other URLs pass through."""
    file_id = extract_drive_file_id(url)
    if file_id is None:
        return url
    base = proxy_base_url or settings.proxy_url
    return f"{base}?fileId={quote(file_id)}"


def to_direct_download_url(url: str) -> str:
    file_id = extract_drive_file_id(url)
    if file_id is None:
        return url
    return DIRECT_DOWNLOAD_URL.format(file_id=file_id)


__all__ = ["extract_drive_file_id", "to_direct_download_url", "to_proxy_url"]
