"""Resolver for links that already point at a media file or HLS playlist.

Some provider pages link straight to a CDN file; those only need a HEAD
check that the server actually answers with media.
"""

from __future__ import annotations

from urllib.parse import urlparse

import httpx
import structlog

from playarr.domain.streaming.exceptions import NotFoundError
from playarr.infrastructure.common.http import HTML_HEADERS, fetch_page

log = structlog.get_logger(__name__)

MEDIA_EXTENSIONS = (".mp4", ".m3u8", ".mkv", ".webm")

_MEDIA_CONTENT_TYPES = (
    "video/",
    "application/vnd.apple.mpegurl",
    "application/x-mpegurl",
    "audio/mpegurl",
    "application/octet-stream",
)


def is_media_content_type(content_type: str) -> bool:
    content_type = content_type.split(";", 1)[0].strip().lower()
    return any(content_type.startswith(prefix) for prefix in _MEDIA_CONTENT_TYPES)


class DirectMediaResolver:
    """Claims URLs whose path ends in a media extension."""

    def __init__(self, http_client: httpx.AsyncClient, *, timeout: float | None = None) -> None:
        self._http = http_client
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "direct"

    def can_handle(self, url: str) -> bool:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return False
        return parsed.path.lower().endswith(MEDIA_EXTENSIONS)

    async def resolve(self, url: str) -> str:
        resp = await fetch_page(
            self._http,
            url,
            source="direct",
            context="probe",
            method="HEAD",
            headers={"User-Agent": HTML_HEADERS["User-Agent"]},
            timeout=self._timeout,
        )
        content_type = resp.headers.get("content-type", "")
        final_url = str(resp.url)
        # Servers that omit the header get the benefit of the extension
        if content_type and not is_media_content_type(content_type):
            log.info("direct_not_media", url=url, content_type=content_type)
            raise NotFoundError(f"{url} serves {content_type}, not media", source="direct")
        log.debug("direct_media_verified", url=final_url[:120], content_type=content_type)
        return final_url
