"""VOE stream resolver: extracts playable video URLs from voe.sx pages.

Extraction methods (tried in order):
1. Obfuscated player config in ``<script type="application/json">`` or the
   ``MKGMa`` variable, decoded with the VOE pipeline
2. Base64-encoded ``'hls'`` value (older pages)
3. Direct mp4/m3u8 URL in page source

voe.sx itself answers with a JavaScript redirect page pointing at a
rotating mirror domain; up to ``max_redirects`` of those are followed.
"""

from __future__ import annotations

import json
import re
from collections.abc import Sequence
from urllib.parse import urljoin, urlparse

import httpx
import structlog

from playarr.domain.streaming.exceptions import NotFoundError, ParseError
from playarr.infrastructure.common.http import HTML_HEADERS, fetch_page
from playarr.infrastructure.deobfuscation import voe_pipeline

log = structlog.get_logger(__name__)

_JSON_PAYLOAD_RE = re.compile(
    r'<script[^>]*type\s*=\s*["\']application/json["\'][^>]*>\s*(\[.*?\])\s*</script>',
    re.DOTALL | re.IGNORECASE,
)
_MKGMA_RE = re.compile(r"MKGMa\s*=\s*[\"'](.*?)[\"']", re.DOTALL)

_JS_REDIRECT_RES = (
    re.compile(r"window\.location\.href\s*=\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"window\.location\s*=\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"location\.href\s*=\s*['\"]([^'\"]+)['\"]"),
)

# Separator token array, e.g. ['@#','^^','~@',...]
_TOKEN_ARRAY_RE = re.compile(r"=\s*(\[\s*(?:['\"][^'\"]{2,}['\"]\s*,?\s*){5,8}\])\s*,")
_LOADER_RE = re.compile(r'src="(/js/loader\.[^"]+)"')

_LEGACY_HLS_RE = re.compile(r"['\"]hls['\"]\s*:\s*['\"](aHR0[^'\"]+)")
_DIRECT_MEDIA_RE = re.compile(r"(https?://[^\s\"'<>]+\.(?:mp4|m3u8)[^\s\"'<>]*)")

_REMOVED_RE = re.compile(
    r"(file\s+not\s+found|video\s+not\s+found|has\s+been\s+(?:deleted|removed))",
    re.IGNORECASE,
)

DEFAULT_MAX_REDIRECTS = 5


def extract_js_redirect(html: str) -> str | None:
    for pattern in _JS_REDIRECT_RES:
        match = pattern.search(html)
        if match:
            return match.group(1)
    return None


def resolve_redirect_target(current_url: str, target: str) -> str:
    """Absolute URL for a redirect *target* seen on *current_url*."""
    if target.startswith("//"):
        return f"{urlparse(current_url).scheme or 'https'}:{target}"
    return urljoin(current_url, target)


def extract_payloads(html: str) -> list[str]:
    """Every obfuscated config string embedded in the page."""
    payloads: list[str] = []
    for match in _JSON_PAYLOAD_RE.finditer(html):
        try:
            data = json.loads(match.group(1))
        except json.JSONDecodeError:
            continue
        if isinstance(data, list) and data and isinstance(data[0], str):
            payloads.append(data[0])
    match = _MKGMA_RE.search(html)
    if match:
        payloads.append(match.group(1))
    return payloads


def extract_tokens(text: str) -> list[str] | None:
    """Marker token array from page HTML or loader script, if present."""
    match = _TOKEN_ARRAY_RE.search(text)
    if match is None:
        return None
    try:
        tokens = json.loads(match.group(1).replace("'", '"'))
    except json.JSONDecodeError:
        return None
    if isinstance(tokens, list) and all(isinstance(t, str) and t for t in tokens):
        return tokens
    return None


class VoeResolver:
    """Resolves VOE stream pages to playable video URLs.

    Claims ``voe.sx`` and any host with a ``voe`` label, plus the mirror
    domains passed in *extra_domains*.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        markers: Sequence[str] = voe_pipeline.VOE_MARKERS,
        extra_domains: Sequence[str] = (),
        timeout: float | None = None,
    ) -> None:
        self._http = http_client
        self._max_redirects = max_redirects
        self._markers = tuple(markers)
        self._extra_domains = frozenset(d.lower() for d in extra_domains)
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "voe"

    def can_handle(self, url: str) -> bool:
        host = (urlparse(url).hostname or "").lower()
        if not host:
            return False
        if host in self._extra_domains or any(host.endswith(f".{d}") for d in self._extra_domains):
            return True
        return "voe" in host.split(".")[:-1]

    async def resolve(self, url: str) -> str:
        """Fetch the VOE page (following JS redirects) and extract the URL."""
        current = url
        for hop in range(self._max_redirects + 1):
            resp = await fetch_page(
                self._http, current, source="voe", context="embed", timeout=self._timeout
            )
            html = resp.text
            page_url = str(resp.url)

            payloads = extract_payloads(html)
            if not payloads and not _LEGACY_HLS_RE.search(html):
                target = extract_js_redirect(html)
                if target:
                    current = resolve_redirect_target(page_url, target)
                    log.debug("voe_redirect", hop=hop + 1, target=current)
                    continue

            return await self._extract(html, page_url, payloads)

        raise ParseError(
            f"more than {self._max_redirects} redirect pages", source="voe", stage="redirect"
        )

    async def _extract(self, html: str, page_url: str, payloads: list[str]) -> str:
        last_error: ParseError | None = None

        if payloads:
            marker_sets = [await self._markers_for(html, page_url)]
            if marker_sets[0] != self._markers:
                # Page arrays can be unrelated (quality lists etc.)
                marker_sets.append(self._markers)
            for payload in payloads:
                for markers in marker_sets:
                    try:
                        stream_url = voe_pipeline.extract_stream_url(payload, markers)
                    except ParseError as exc:
                        log.debug("voe_payload_failed", stage=exc.stage, error=exc.message)
                        last_error = exc
                        continue
                    log.debug("voe_payload_decoded", url=stream_url[:120])
                    return stream_url

        match = _LEGACY_HLS_RE.search(html)
        if match:
            try:
                return voe_pipeline.decode_legacy_hls(match.group(1))
            except ParseError as exc:
                last_error = exc

        for candidate in _DIRECT_MEDIA_RE.findall(html):
            if not voe_pipeline.is_bait_url(candidate):
                log.debug("voe_direct_media_url", url=candidate[:120])
                return candidate

        if last_error is not None:
            log.warning("voe_extraction_failed", stage=last_error.stage, url=page_url)
            raise last_error
        if _REMOVED_RE.search(html):
            raise NotFoundError(f"video removed: {page_url}", source="voe")
        if "<video" in html or "player" in html.lower():
            raise ParseError(
                f"player page without known payload: {page_url}",
                source="voe",
                stage="payload",
            )
        raise NotFoundError(f"no stream reference on {page_url}", source="voe")

    async def _markers_for(self, html: str, page_url: str) -> tuple[str, ...]:
        """Marker tokens from the page or its loader script, else defaults."""
        tokens = extract_tokens(html)
        if tokens is None:
            tokens = await self._fetch_loader_tokens(html, page_url)
        return tuple(tokens) if tokens else self._markers

    async def _fetch_loader_tokens(self, html: str, page_url: str) -> list[str] | None:
        match = _LOADER_RE.search(html)
        if not match:
            return None
        loader_url = urljoin(page_url, match.group(1))
        try:
            resp = await self._http.get(
                loader_url,
                follow_redirects=True,
                headers={**HTML_HEADERS, "Referer": page_url},
            )
        except httpx.HTTPError:
            log.debug("voe_loader_fetch_failed", url=loader_url)
            return None
        if resp.status_code != 200:
            return None
        return extract_tokens(resp.text)
