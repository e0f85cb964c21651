"""Ordered registry of stream providers (fallback order = registration order)."""

from __future__ import annotations

from collections.abc import Iterator, Sequence

import structlog

from playarr.domain.ports.stream_provider import StreamProviderPort
from playarr.domain.streaming.exceptions import ConfigError, NotFoundError

log = structlog.get_logger(__name__)


class StreamProviderRegistry:
    def __init__(self, providers: Sequence[StreamProviderPort] | None = None) -> None:
        self._providers: dict[str, StreamProviderPort] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: StreamProviderPort) -> None:
        if provider.name in self._providers:
            raise ConfigError(f"provider {provider.name!r} registered twice")
        self._providers[provider.name] = provider
        log.debug("stream_provider_registered", provider=provider.name)

    @property
    def names(self) -> list[str]:
        return list(self._providers)

    def __len__(self) -> int:
        return len(self._providers)

    def __iter__(self) -> Iterator[StreamProviderPort]:
        return iter(list(self._providers.values()))

    def get(self, name: str) -> StreamProviderPort:
        try:
            return self._providers[name]
        except KeyError:
            raise NotFoundError(f"provider {name!r} not found", source="providers") from None

    def reorder(self, order: Sequence[str]) -> None:
        """Move the named providers to the front, in the given order.

        Providers not named keep their relative order behind them.
        """
        unknown = [n for n in order if n not in self._providers]
        if unknown:
            raise ConfigError(f"unknown providers in order: {', '.join(unknown)}")
        ordered = {n: self._providers[n] for n in order}
        for name, provider in self._providers.items():
            ordered.setdefault(name, provider)
        self._providers = ordered

    async def cleanup(self) -> None:
        for provider in self._providers.values():
            cleanup_fn = getattr(provider, "cleanup", None)
            if cleanup_fn is not None:
                await cleanup_fn()
