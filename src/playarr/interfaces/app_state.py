"""Application state container for FastAPI dependency injection."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from starlette.datastructures import State

from playarr.infrastructure.config import AppConfig

if TYPE_CHECKING:
    from playarr.application.use_cases.resolve_stream import ResolutionCoordinator
    from playarr.infrastructure.cache.memory_cache import ResolutionCache
    from playarr.infrastructure.stream_providers import StreamProviderRegistry
    from playarr.infrastructure.stream_resolvers import StreamResolverRegistry


class AppState(State):
    """Application state holding all wired resources.

    Lifecycle managed by composition.py::resolution_services().
    """

    # Configuration
    config: AppConfig

    # Infrastructure
    http_client: httpx.AsyncClient
    resolution_cache: ResolutionCache

    # Capabilities
    providers: StreamProviderRegistry
    resolvers: StreamResolverRegistry

    # Application services
    coordinator: ResolutionCoordinator
