"""Stream provider implementations that locate stream pages for titles."""

from __future__ import annotations

from .filmpalast import FilmpalastProvider
from .registry import StreamProviderRegistry

__all__ = ["FilmpalastProvider", "StreamProviderRegistry"]
