"""Stream resolution exceptions.

Providers and resolvers raise these instead of returning ``None`` so that
callers can tell a missing title apart from a transport failure or a
provider that changed its page layout.
"""

from __future__ import annotations

from collections.abc import Sequence


class StreamError(Exception):
    """Base class for all stream resolution errors."""

    kind = "stream_error"

    def __init__(self, message: str = "", *, source: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.source = source
        self.attempts: tuple[StreamError, ...] = ()

    def with_attempts(self, attempts: Sequence[StreamError]) -> StreamError:
        """Attach the errors of every attempt of a fallback chain."""
        self.attempts = tuple(attempts)
        return self

    def __str__(self) -> str:
        if self.source:
            return f"{self.source}: {self.message}"
        return self.message


class NotFoundError(StreamError):
    """No candidate page, or the page holds no stream reference."""

    kind = "not_found"


class NetworkError(StreamError):
    """Transport failure, timeout or non-2xx response."""

    kind = "network_error"


class ParseError(StreamError):
    """Page or payload did not have the expected structure.

    ``stage`` names the extraction or pipeline step that failed so that a
    provider format change can be diagnosed from logs.
    """

    kind = "parse_error"

    def __init__(self, message: str = "", *, source: str = "", stage: str = "") -> None:
        super().__init__(message, source=source)
        self.stage = stage


class ConfigError(StreamError):
    """Unknown provider name or invalid resolution setup."""

    kind = "config_error"


class DecodeError(ValueError):
    """Raised by the transform library on malformed base64 input."""
