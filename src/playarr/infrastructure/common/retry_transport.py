"""httpx transport adding per-host rate limiting and bounded retries."""

from __future__ import annotations

import asyncio
import random

import httpx
import structlog

from playarr.infrastructure.common.rate_limiter import HostRateLimiter

log = structlog.get_logger(__name__)

_RETRYABLE_STATUS = frozenset({429, 503})


def _retry_after(headers: httpx.Headers) -> float | None:
    """``Retry-After`` in seconds, or None (HTTP-date form is ignored)."""
    raw = headers.get("retry-after")
    if raw is None:
        return None
    try:
        return max(0.0, float(raw))
    except ValueError:
        return None


class RetryTransport(httpx.AsyncBaseTransport):
    """Wraps a transport with rate limiting and retries.

    Retries 429/503 responses and connection failures (``ConnectError``)
    up to *max_retries* times with exponential backoff plus jitter. Read
    timeouts are not retried: the page fetch timeout is the bound a
    caller relies on.
    """

    def __init__(
        self,
        wrapped: httpx.AsyncBaseTransport,
        rate_limiter: HostRateLimiter,
        *,
        max_retries: int = 2,
        backoff_base: float = 0.5,
        max_backoff: float = 10.0,
    ) -> None:
        self._wrapped = wrapped
        self._rate_limiter = rate_limiter
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._max_backoff = max_backoff

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        attempt = 0
        while True:
            await self._rate_limiter.acquire(url)
            try:
                response = await self._wrapped.handle_async_request(request)
            except httpx.ConnectError:
                if attempt >= self._max_retries:
                    raise
                delay = self._backoff(attempt)
                log.info("http_retry_connect", url=url, attempt=attempt + 1, delay=delay)
                await asyncio.sleep(delay)
                attempt += 1
                continue

            if response.status_code not in _RETRYABLE_STATUS:
                self._rate_limiter.record_success(url)
                return response

            self._rate_limiter.record_throttle(url)
            if attempt >= self._max_retries:
                return response

            await response.aread()
            await response.aclose()
            delay = _retry_after(response.headers)
            delay = min(delay, self._max_backoff) if delay is not None else self._backoff(attempt)
            log.info(
                "http_retry_status",
                url=url,
                status=response.status_code,
                attempt=attempt + 1,
                delay=delay,
            )
            await asyncio.sleep(delay)
            attempt += 1

    def _backoff(self, attempt: int) -> float:
        delay = self._backoff_base * (2**attempt)
        jitter = random.uniform(0, self._backoff_base)  # noqa: S311
        return round(min(delay + jitter, self._max_backoff), 3)

    async def aclose(self) -> None:
        await self._wrapped.aclose()
