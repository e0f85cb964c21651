"""Per-host token-bucket rate limiter for provider and hoster requests.

Provider search pages and hoster embed pages live on a handful of hosts;
a burst of concurrent resolutions for different titles would otherwise
hammer the same host. Buckets slow down after 429/503 responses and
recover gradually on success.
"""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from urllib.parse import urlparse

import structlog

log = structlog.get_logger(__name__)


class TokenBucket:
    """Token bucket with multiplicative back-off.

    Args:
        rate: Tokens replenished per second.
        burst: Maximum bucket size.
        min_rate: Floor for the rate after repeated throttling.
    """

    def __init__(self, rate: float, burst: int = 5, *, min_rate: float = 0.5) -> None:
        self._base_rate = rate
        self._rate = rate
        self._burst = burst
        self._min_rate = min(min_rate, rate)
        self._tokens = float(burst)
        self._last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    @property
    def rate(self) -> float:
        return self._rate

    async def acquire(self) -> None:
        """Wait until a token is available, then consume it."""
        async with self._lock:
            self._refill()
            while self._tokens < 1.0:
                await asyncio.sleep((1.0 - self._tokens) / self._rate)
                self._refill()
            self._tokens -= 1.0

    def _refill(self) -> None:
        now = time.monotonic()
        self._tokens = min(self._burst, self._tokens + (now - self._last_refill) * self._rate)
        self._last_refill = now

    def slow_down(self) -> None:
        """Halve the rate (429/503 seen)."""
        self._rate = max(self._min_rate, self._rate * 0.5)

    def recover(self) -> None:
        """Grow the rate by 10% back towards the configured rate."""
        self._rate = min(self._base_rate, self._rate * 1.1)


class HostRateLimiter:
    """One :class:`TokenBucket` per request host.

    Args:
        requests_per_second: Rate per host. ``0`` disables limiting.
        burst: Bucket size per host.
        max_hosts: Buckets kept at most; the least recently used host is
            dropped first and starts over with a fresh bucket.
    """

    def __init__(
        self, requests_per_second: float = 5.0, burst: int = 5, *, max_hosts: int = 256
    ) -> None:
        self._rps = requests_per_second
        self._burst = burst
        self._max_hosts = max(1, max_hosts)
        self._buckets: OrderedDict[str, TokenBucket] = OrderedDict()

    @property
    def enabled(self) -> bool:
        return self._rps > 0

    def _bucket(self, url: str) -> TokenBucket | None:
        host = (urlparse(url).hostname or "").lower()
        if not host:
            return None
        bucket = self._buckets.get(host)
        if bucket is not None:
            self._buckets.move_to_end(host)
            return bucket
        bucket = TokenBucket(self._rps, self._burst)
        self._buckets[host] = bucket
        while len(self._buckets) > self._max_hosts:
            evicted, _ = self._buckets.popitem(last=False)
            log.debug("rate_limit_bucket_evicted", host=evicted)
        return bucket

    async def acquire(self, url: str) -> None:
        """Wait for clearance to send a request to *url*'s host."""
        if not self.enabled:
            return
        bucket = self._bucket(url)
        if bucket is not None:
            await bucket.acquire()

    def record_throttle(self, url: str) -> None:
        if not self.enabled:
            return
        bucket = self._bucket(url)
        if bucket is not None:
            bucket.slow_down()
            log.debug("rate_limit_slow_down", url=url, rps=round(bucket.rate, 2))

    def record_success(self, url: str) -> None:
        if not self.enabled:
            return
        bucket = self._bucket(url)
        if bucket is not None:
            bucket.recover()
