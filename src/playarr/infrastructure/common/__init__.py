"""Common infrastructure utilities."""

from __future__ import annotations

from .http import BROWSER_USER_AGENT, HTML_HEADERS, fetch_page
from .rate_limiter import HostRateLimiter
from .retry_transport import RetryTransport

__all__ = [
    "BROWSER_USER_AGENT",
    "HTML_HEADERS",
    "HostRateLimiter",
    "RetryTransport",
    "fetch_page",
]
