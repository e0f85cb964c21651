from __future__ import annotations

from .memory_cache import ResolutionCache

__all__ = ["ResolutionCache"]
