"""Page fetching with httpx errors mapped onto stream resolution errors."""

from __future__ import annotations

import httpx
import structlog

from playarr.domain.streaming.exceptions import NetworkError, NotFoundError

log = structlog.get_logger(__name__)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)

HTML_HEADERS = {
    "User-Agent": BROWSER_USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


async def fetch_page(
    client: httpx.AsyncClient,
    url: str,
    *,
    source: str,
    context: str = "",
    method: str = "GET",
    headers: dict[str, str] | None = None,
    timeout: float | None = None,
    missing_is_not_found: bool = True,
) -> httpx.Response:
    """Fetch *url* and return the response, raising typed errors.

    Timeouts, transport errors and non-2xx statuses raise ``NetworkError``.
    A 404/410 raises ``NotFoundError`` when *missing_is_not_found* is set,
    since for a stream page it means the content was removed.
    """
    kwargs: dict[str, object] = {
        "headers": headers or HTML_HEADERS,
        "follow_redirects": True,
    }
    if timeout is not None:
        kwargs["timeout"] = timeout
    try:
        resp = await client.request(method, url, **kwargs)  # type: ignore[arg-type]
    except httpx.TimeoutException as exc:
        log.warning(f"{source}_timeout", url=url, context=context)
        raise NetworkError(f"timeout fetching {url}", source=source) from exc
    except httpx.HTTPError as exc:
        log.warning(f"{source}_fetch_error", url=url, context=context, error=str(exc))
        raise NetworkError(f"request to {url} failed: {exc}", source=source) from exc

    status = resp.status_code
    if missing_is_not_found and status in (404, 410):
        log.info(f"{source}_page_missing", url=url, status=status, context=context)
        raise NotFoundError(f"{url} returned HTTP {status}", source=source)
    if not 200 <= status < 300:
        log.warning(f"{source}_http_error", url=url, status=status, context=context)
        raise NetworkError(f"{url} returned HTTP {status}", source=source)
    return resp
