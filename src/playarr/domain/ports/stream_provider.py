"""Port for searching a provider site for a title's stream page."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from playarr.domain.entities.streaming import StreamPageReference, TitleQuery


@runtime_checkable
class StreamProviderPort(Protocol):
    """Maps a title to a candidate stream page on one external site."""

    @property
    def name(self) -> str:
        """Stable identifier, part of the resolution key and log context."""
        ...

    async def find_stream_page(self, query: TitleQuery) -> StreamPageReference:
        """Search the provider for *query*.

        Raises NotFoundError, NetworkError or ParseError on failure.
        """
        ...
