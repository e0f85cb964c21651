"""Port for resolving stream page URLs to playable media URLs."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class StreamResolverPort(Protocol):
    """Extracts the final media URL from one hoster's stream page.

    Implementations handle site-specific extraction logic (payload
    extraction, deobfuscation, redirect pages).
    """

    @property
    def name(self) -> str:
        """Resolver name (e.g. 'voe')."""
        ...

    def can_handle(self, url: str) -> bool:
        """Return True if *url* belongs to this resolver's hoster."""
        ...

    async def resolve(self, url: str) -> str:
        """Resolve a stream page URL to a playable media URL.

        Raises NotFoundError, NetworkError or ParseError on failure.
        """
        ...
