"""Composition root: wires config into providers, resolvers and the coordinator.

Used by the FastAPI lifespan and by the one-shot CLI commands.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

import httpx
import structlog
from fastapi import FastAPI

from playarr.application.use_cases.resolve_stream import ResolutionCoordinator
from playarr.infrastructure.cache.memory_cache import ResolutionCache
from playarr.infrastructure.common.rate_limiter import HostRateLimiter
from playarr.infrastructure.common.retry_transport import RetryTransport
from playarr.infrastructure.config.schema import AppConfig
from playarr.infrastructure.stream_providers import (
    FilmpalastProvider,
    StreamProviderRegistry,
)
from playarr.infrastructure.stream_resolvers import (
    DirectMediaResolver,
    StreamResolverRegistry,
    VoeResolver,
)
from playarr.interfaces.app_state import AppState

log = structlog.get_logger(__name__)


def build_http_client(config: AppConfig) -> httpx.AsyncClient:
    """Shared client with per-host rate limiting and 429/503 retry."""
    transport = RetryTransport(
        wrapped=httpx.AsyncHTTPTransport(),
        rate_limiter=HostRateLimiter(requests_per_second=config.http_rate_limit_rps),
        max_retries=config.http_retry_max_attempts,
        backoff_base=config.http_retry_backoff_base,
        max_backoff=config.http_retry_max_backoff,
    )
    return httpx.AsyncClient(
        transport=transport,
        timeout=httpx.Timeout(config.http_timeout_seconds),
        headers={"User-Agent": config.http_user_agent},
        follow_redirects=config.http_follow_redirects,
    )


def build_resolvers(
    config: AppConfig, http_client: httpx.AsyncClient
) -> StreamResolverRegistry:
    # Registration order is match order: specific hosters before the
    # extension-based direct resolver.
    return StreamResolverRegistry(
        resolvers=[
            VoeResolver(
                http_client,
                max_redirects=config.voe.max_redirects,
                markers=config.voe.markers,
                extra_domains=config.voe.extra_domains,
                timeout=config.http_timeout_seconds,
            ),
            DirectMediaResolver(http_client, timeout=config.http_timeout_seconds),
        ]
    )


def build_providers(
    config: AppConfig,
    http_client: httpx.AsyncClient,
    resolvers: StreamResolverRegistry,
) -> StreamProviderRegistry:
    providers = StreamProviderRegistry(
        providers=[
            FilmpalastProvider(
                http_client,
                domains=tuple(config.filmpalast.domains),
                timeout=config.http_timeout_seconds,
                preferred_hosters=config.filmpalast.preferred_hosters,
                link_filter=lambda url: resolvers.find(url) is not None,
                match_threshold=config.matching.title_match_threshold,
                year_tolerance=config.matching.year_tolerance,
                sequel_penalty=config.matching.sequel_penalty,
            ),
        ]
    )
    if config.resolution.provider_order:
        providers.reorder(config.resolution.provider_order)
    return providers


@asynccontextmanager
async def resolution_services(state: AppState) -> AsyncIterator[AppState]:
    """Create every resource on *state* and release them on exit.

    Order matters:
        1. HTTP client (shared by providers and resolvers)
        2. Resolver registry (providers filter links with it)
        3. Provider registry
        4. Cache + coordinator
    """
    config = state.config

    state.http_client = build_http_client(config)
    log.info(
        "http_client_initialized",
        rate_limit_rps=config.http_rate_limit_rps,
        retry_max_attempts=config.http_retry_max_attempts,
    )

    try:
        state.resolvers = build_resolvers(config, state.http_client)
        log.info("stream_resolvers_initialized", resolvers=state.resolvers.names)

        state.providers = build_providers(config, state.http_client, state.resolvers)
        log.info("stream_providers_initialized", providers=state.providers.names)

        state.resolution_cache = ResolutionCache(
            max_entries=config.resolution.cache_max_entries,
            sweep_interval=config.resolution.sweep_interval,
        )
        state.coordinator = ResolutionCoordinator(
            state.providers,
            state.resolvers,
            state.resolution_cache,
            ttl_seconds=config.resolution.cache_ttl_seconds,
            attempt_timeout=config.resolution.resolve_timeout_seconds,
        )
        log.info(
            "resolution_coordinator_initialized",
            ttl_seconds=config.resolution.cache_ttl_seconds,
            max_entries=config.resolution.cache_max_entries,
        )

        yield state
    finally:
        if hasattr(state, "providers"):
            await state.providers.cleanup()
            log.info("stream_providers_cleaned_up")
        if hasattr(state, "resolvers"):
            await state.resolvers.cleanup()
            log.info("stream_resolvers_cleaned_up")

        await state.http_client.aclose()
        log.info("http_client_closed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan hook: the app's composition root."""
    state = cast(AppState, app.state)
    async with resolution_services(state):
        log.info("app_startup_complete")
        yield
    log.info("app_shutdown_complete")
