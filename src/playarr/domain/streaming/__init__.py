from .exceptions import (
    ConfigError,
    DecodeError,
    NetworkError,
    NotFoundError,
    ParseError,
    StreamError,
)

__all__ = [
    "ConfigError",
    "DecodeError",
    "NetworkError",
    "NotFoundError",
    "ParseError",
    "StreamError",
]
