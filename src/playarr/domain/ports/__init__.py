from .stream_provider import StreamProviderPort
from .stream_resolver import StreamResolverPort

__all__ = [
    "StreamProviderPort",
    "StreamResolverPort",
]
