"""Shared base class for httpx-based stream providers.

Covers client lifecycle, mirror-domain verification and typed page
fetching, so a concrete provider only implements
``find_stream_page()``.
"""

from __future__ import annotations

import httpx
import structlog

from playarr.domain.entities.streaming import StreamPageReference, TitleQuery
from playarr.infrastructure.common.http import BROWSER_USER_AGENT, fetch_page

DEFAULT_CLIENT_TIMEOUT = 15.0
DEFAULT_DOMAIN_CHECK_TIMEOUT = 5.0


class HttpxProviderBase:
    """Shared base for httpx-based providers.

    Subclasses **must** set ``name`` and ``_domains`` (at least one domain)
    and override ``find_stream_page()``. Domains after the first are
    mirrors tried when the primary does not answer.
    """

    name: str = ""

    _domains: tuple[str, ...] = ()
    _timeout: float = DEFAULT_CLIENT_TIMEOUT
    _user_agent: str = BROWSER_USER_AGENT

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        domains: tuple[str, ...] | None = None,
        timeout: float | None = None,
    ) -> None:
        if domains:
            self._domains = tuple(domains)
        if timeout is not None:
            self._timeout = timeout
        self._client = http_client
        self._owns_client = http_client is None
        self._domain_verified = False
        self.base_url = f"https://{self._domains[0]}" if self._domains else ""
        self._log = structlog.get_logger(self.name or __name__)

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                headers={"User-Agent": self._user_agent},
            )
            self._owns_client = True
        return self._client

    async def _verify_domain(self) -> None:
        """Find and remember a reachable domain from the mirror list."""
        if self._domain_verified or len(self._domains) <= 1:
            self._domain_verified = True
            return

        client = await self._ensure_client()
        for domain in self._domains:
            try:
                resp = await client.head(
                    f"https://{domain}/", timeout=DEFAULT_DOMAIN_CHECK_TIMEOUT
                )
            except httpx.HTTPError:
                continue
            if resp.status_code < 400:
                self.base_url = f"https://{domain}"
                self._domain_verified = True
                self._log.info(f"{self.name}_domain_found", domain=domain)
                return

        # Keep the primary; the real request will report the failure
        self.base_url = f"https://{self._domains[0]}"
        self._domain_verified = True
        self._log.warning(f"{self.name}_no_domain_reachable", fallback=self._domains[0])

    async def _fetch(
        self, url: str, *, context: str, missing_is_not_found: bool = True
    ) -> httpx.Response:
        client = await self._ensure_client()
        return await fetch_page(
            client,
            url,
            source=self.name,
            context=context,
            timeout=self._timeout,
            missing_is_not_found=missing_is_not_found,
        )

    async def cleanup(self) -> None:
        """Close the httpx client if this provider created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        self._domain_verified = False

    async def find_stream_page(self, query: TitleQuery) -> StreamPageReference:
        raise NotImplementedError(f"{type(self).__name__}.find_stream_page() not implemented")
