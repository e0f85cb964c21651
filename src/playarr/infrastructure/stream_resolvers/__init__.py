"""Stream resolver implementations for extracting playable video URLs."""

from __future__ import annotations

from .direct import DirectMediaResolver
from .registry import StreamResolverRegistry, extract_domain
from .voe import VoeResolver

__all__ = ["DirectMediaResolver", "StreamResolverRegistry", "VoeResolver", "extract_domain"]
