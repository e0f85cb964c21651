"""Ordered registry that dispatches stream page URLs to resolvers."""

from __future__ import annotations

from urllib.parse import urlparse

import structlog

from playarr.domain.ports.stream_resolver import StreamResolverPort
from playarr.domain.streaming.exceptions import ConfigError, NotFoundError

log = structlog.get_logger(__name__)


def extract_domain(url: str) -> str:
    """Second-level label of the URL's host (``"voe"`` for ``voe.sx``).

    Returns ``""`` when the URL has no host or fewer than two labels.
    """
    hostname = urlparse(url).hostname or ""
    parts = hostname.split(".")
    return parts[-2] if len(parts) >= 2 else ""


class StreamResolverRegistry:
    """Resolvers in registration order; the first whose ``can_handle``
    accepts a URL claims it.
    """

    def __init__(self, resolvers: list[StreamResolverPort] | None = None) -> None:
        self._resolvers: list[StreamResolverPort] = []
        for resolver in resolvers or []:
            self.register(resolver)

    def register(self, resolver: StreamResolverPort) -> None:
        if any(r.name == resolver.name for r in self._resolvers):
            raise ConfigError(f"resolver {resolver.name!r} registered twice")
        self._resolvers.append(resolver)
        log.debug("stream_resolver_registered", resolver=resolver.name)

    @property
    def names(self) -> list[str]:
        return [r.name for r in self._resolvers]

    def __len__(self) -> int:
        return len(self._resolvers)

    def find(self, url: str) -> StreamResolverPort | None:
        """First registered resolver that claims *url*, or None."""
        for resolver in self._resolvers:
            if resolver.can_handle(url):
                return resolver
        return None

    def claimants(self, url: str) -> list[str]:
        """Names of every resolver that would accept *url* (diagnostics)."""
        return [r.name for r in self._resolvers if r.can_handle(url)]

    def require(self, url: str) -> StreamResolverPort:
        resolver = self.find(url)
        if resolver is None:
            raise NotFoundError(
                f"no resolver handles {extract_domain(url) or url}", source="resolvers"
            )
        return resolver

    async def cleanup(self) -> None:
        """Close resources held by resolvers that have a cleanup method."""
        for resolver in self._resolvers:
            cleanup_fn = getattr(resolver, "cleanup", None)
            if cleanup_fn is not None:
                await cleanup_fn()
