from .streaming import (
    ANY_PROVIDER,
    CacheEntry,
    ResolutionKey,
    ResolvedStreamUrl,
    StreamPageReference,
    TitleQuery,
    normalize_title,
)

__all__ = [
    "ANY_PROVIDER",
    "CacheEntry",
    "ResolutionKey",
    "ResolvedStreamUrl",
    "StreamPageReference",
    "TitleQuery",
    "normalize_title",
]
