"""Stream resolution use case.

title -> provider chain -> stream page -> resolver -> playable URL,
with an in-memory TTL cache and single-flight de-duplication per
resolution key.

Per key the state moves ``Absent -> InFlight -> Cached | Failed``.
Failures are never cached: the next request for the key starts over.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from typing import Protocol, TypeVar

import structlog

from playarr.domain.entities.streaming import (
    ResolutionKey,
    ResolvedStreamUrl,
    StreamPageReference,
    TitleQuery,
)
from playarr.domain.ports.stream_provider import StreamProviderPort
from playarr.domain.ports.stream_resolver import StreamResolverPort
from playarr.domain.streaming.exceptions import (
    NetworkError,
    NotFoundError,
    StreamError,
)

log = structlog.get_logger(__name__)

_T = TypeVar("_T")

# ---------------------------------------------------------------------------
# Protocols: what the coordinator needs from its collaborators.
# Infrastructure components satisfy these via structural subtyping.
# ---------------------------------------------------------------------------


class _ProviderChain(Protocol):
    names: list[str]

    def __iter__(self) -> Iterator[StreamProviderPort]: ...

    def get(self, name: str) -> StreamProviderPort: ...


class _ResolverChain(Protocol):
    names: list[str]

    def find(self, url: str) -> StreamResolverPort | None: ...

    def require(self, url: str) -> StreamResolverPort: ...


class _ResultCache(Protocol):
    def __len__(self) -> int: ...

    def now(self) -> float: ...

    def get(self, key: ResolutionKey) -> ResolvedStreamUrl | None: ...

    def put(self, key: ResolutionKey, stream: ResolvedStreamUrl) -> None: ...

    def invalidate(self, key: ResolutionKey) -> bool: ...

    def clear(self) -> None: ...


def _consume_result(task: asyncio.Task[ResolvedStreamUrl]) -> None:
    # Every waiter may have been cancelled; retrieve the exception so
    # asyncio does not report it as never retrieved.
    if not task.cancelled():
        task.exception()


class ResolutionCoordinator:
    """Resolves titles and stream page URLs to playable URLs.

    Args:
        providers: Provider chain, tried in order.
        resolvers: Resolver chain; first ``can_handle`` match wins.
        cache: Result cache; its clock also timestamps results.
        ttl_seconds: Lifetime of a successful resolution.
        attempt_timeout: Optional bound (seconds) on each provider search
            and each resolver call, on top of the per-fetch HTTP timeout.
    """

    def __init__(
        self,
        providers: _ProviderChain,
        resolvers: _ResolverChain,
        cache: _ResultCache,
        *,
        ttl_seconds: float = 3600.0,
        attempt_timeout: float | None = None,
    ) -> None:
        self._providers = providers
        self._resolvers = resolvers
        self._cache = cache
        self._ttl = ttl_seconds
        self._attempt_timeout = attempt_timeout
        # The one piece of shared mutable state besides the cache. Only
        # mutated on the event loop with no await between check and insert.
        self._inflight: dict[ResolutionKey, asyncio.Task[ResolvedStreamUrl]] = {}

    @property
    def provider_names(self) -> list[str]:
        return list(self._providers.names)

    @property
    def resolver_names(self) -> list[str]:
        return list(self._resolvers.names)

    @property
    def in_flight(self) -> int:
        return len(self._inflight)

    def stats(self) -> dict[str, int]:
        return {"cached": len(self._cache), "in_flight": len(self._inflight)}

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def resolve(self, title: str, year: int | None = None) -> str:
        """Playable URL for *title*, trying every provider in order."""
        stream = await self.resolve_query(TitleQuery(title=title, year=year))
        return stream.url

    async def resolve_query(
        self, query: TitleQuery, provider: str | None = None
    ) -> ResolvedStreamUrl:
        """Resolve *query*, optionally pinned to one provider by name."""
        if provider is not None:
            self._providers.get(provider)  # unknown name -> NotFoundError
        key = ResolutionKey.for_title(query, provider)
        return await self._single_flight(key, lambda: self._resolve_title(query, provider))

    async def resolve_url(self, page_url: str) -> ResolvedStreamUrl:
        """Resolve a stream page URL directly (resolver chain only)."""
        key = ResolutionKey.for_url(page_url)
        return await self._single_flight(key, lambda: self._resolve_page(page_url))

    def invalidate(self, query: TitleQuery, provider: str | None = None) -> bool:
        """Drop the cached result for *query* so the next call re-resolves."""
        return self._cache.invalidate(ResolutionKey.for_title(query, provider))

    def clear(self) -> None:
        self._cache.clear()

    # ------------------------------------------------------------------
    # Single-flight + cache
    # ------------------------------------------------------------------

    async def _single_flight(
        self,
        key: ResolutionKey,
        work: Callable[[], Awaitable[ResolvedStreamUrl]],
    ) -> ResolvedStreamUrl:
        cached = self._cache.get(key)
        if cached is not None:
            log.debug("resolution_cache_hit", key=str(key))
            return cached

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._run(key, work), name=f"resolve:{key}")
            task.add_done_callback(_consume_result)
            self._inflight[key] = task
            log.debug("resolution_started", key=str(key))
        else:
            log.debug("resolution_joined", key=str(key))

        # A cancelled waiter must not cancel work other waiters share
        return await asyncio.shield(task)

    async def _run(
        self,
        key: ResolutionKey,
        work: Callable[[], Awaitable[ResolvedStreamUrl]],
    ) -> ResolvedStreamUrl:
        try:
            stream = await work()
            self._cache.put(key, stream)
            log.info(
                "resolution_succeeded",
                key=str(key),
                provider=stream.provider_name,
                resolver=stream.resolver_name,
            )
            return stream
        except StreamError as exc:
            log.warning("resolution_failed", key=str(key), kind=exc.kind, error=str(exc))
            raise
        finally:
            self._inflight.pop(key, None)

    # ------------------------------------------------------------------
    # Fallback chains
    # ------------------------------------------------------------------

    async def _resolve_title(
        self, query: TitleQuery, provider_name: str | None
    ) -> ResolvedStreamUrl:
        if provider_name is not None:
            providers = [self._providers.get(provider_name)]
        else:
            providers = list(self._providers)
        if not providers:
            raise NotFoundError("no providers registered", source="providers")

        errors: list[StreamError] = []
        for provider in providers:
            try:
                page = await self._attempt(provider.find_stream_page(query), provider.name)
                log.debug(
                    "provider_page_found",
                    provider=provider.name,
                    hoster=page.hoster,
                    url=page.url,
                )
                return await self._resolve_reference(page)
            except StreamError as exc:
                errors.append(exc)
                log.warning(
                    "provider_attempt_failed",
                    provider=provider.name,
                    title=query.title,
                    kind=exc.kind,
                    stage=getattr(exc, "stage", None),
                    error=str(exc),
                )
        raise errors[-1].with_attempts(errors)

    async def _resolve_reference(self, page: StreamPageReference) -> ResolvedStreamUrl:
        resolver = self._resolvers.find(page.url)
        if resolver is None:
            raise NotFoundError(f"no resolver handles {page.url}", source=page.provider_name)
        url = await self._attempt(resolver.resolve(page.url), resolver.name)
        return ResolvedStreamUrl(
            url=url,
            resolved_at=self._cache.now(),
            ttl=self._ttl,
            provider_name=page.provider_name,
            resolver_name=resolver.name,
            page_url=page.url,
        )

    async def _resolve_page(self, page_url: str) -> ResolvedStreamUrl:
        resolver = self._resolvers.require(page_url)
        url = await self._attempt(resolver.resolve(page_url), resolver.name)
        return ResolvedStreamUrl(
            url=url,
            resolved_at=self._cache.now(),
            ttl=self._ttl,
            resolver_name=resolver.name,
            page_url=page_url,
        )

    async def _attempt(self, coro: Awaitable[_T], source: str) -> _T:
        """Await one provider/resolver call, normalising its failures."""
        try:
            if self._attempt_timeout is None:
                return await coro
            return await asyncio.wait_for(coro, timeout=self._attempt_timeout)
        except StreamError:
            raise
        except asyncio.TimeoutError as exc:
            raise NetworkError(
                f"gave up after {self._attempt_timeout}s", source=source
            ) from exc
        except Exception as exc:
            log.exception("resolution_attempt_error", source=source)
            raise StreamError(f"unexpected {type(exc).__name__}: {exc}", source=source) from exc
