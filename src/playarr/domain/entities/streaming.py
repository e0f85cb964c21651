"""Domain entities for stream resolution.

Pure value objects without framework dependencies or I/O.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_NON_WORD_RE = re.compile(r"[^\w\s]")

ANY_PROVIDER = "*"


def normalize_title(title: str) -> str:
    """Lowercase, strip punctuation, collapse whitespace."""
    return " ".join(_NON_WORD_RE.sub(" ", title.lower()).split())


@dataclass(frozen=True)
class TitleQuery:
    """Display title (and optional release year) to search for."""

    title: str
    year: int | None = None

    @property
    def normalized(self) -> str:
        return normalize_title(self.title)


@dataclass(frozen=True)
class StreamPageReference:
    """A provider page that references a playable stream."""

    provider_name: str
    url: str
    hoster: str = ""  # "voe", "streamtape", ... as labelled by the provider


@dataclass(frozen=True)
class ResolvedStreamUrl:
    """Final playable URL plus the bookkeeping needed to cache it."""

    url: str
    resolved_at: float  # monotonic seconds
    ttl: float  # seconds
    provider_name: str = ""
    resolver_name: str = ""
    page_url: str = ""

    @property
    def expires_at(self) -> float:
        return self.resolved_at + self.ttl

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at

    def remaining(self, now: float) -> float:
        """Seconds until expiry (never negative)."""
        return max(0.0, self.expires_at - now)


@dataclass(frozen=True)
class ResolutionKey:
    """Identity used to cache and de-duplicate resolution work.

    ``subject`` is the normalised title (plus year) or a page URL;
    ``provider`` is a pinned provider name or ``"*"`` for the full chain.
    """

    subject: str
    provider: str = ANY_PROVIDER

    @classmethod
    def for_title(cls, query: TitleQuery, provider: str | None = None) -> ResolutionKey:
        subject = query.normalized
        if query.year is not None:
            subject = f"{subject} ({query.year})"
        return cls(subject=f"title:{subject}", provider=provider or ANY_PROVIDER)

    @classmethod
    def for_url(cls, url: str) -> ResolutionKey:
        return cls(subject=f"url:{url.strip()}")

    def __str__(self) -> str:
        return f"{self.subject}@{self.provider}"


@dataclass(frozen=True)
class CacheEntry:
    """One cached resolution result."""

    key: ResolutionKey
    stream: ResolvedStreamUrl

    def is_expired(self, now: float) -> bool:
        return self.stream.is_expired(now)
