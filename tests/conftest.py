"""Shared test fixtures for the Playarr test suite."""

from __future__ import annotations

import base64
import codecs
from collections.abc import Callable, Sequence

import httpx
import pytest
import respx

from playarr.domain.entities.streaming import (
    ResolutionKey,
    ResolvedStreamUrl,
    TitleQuery,
)
from playarr.infrastructure.deobfuscation.voe_pipeline import VOE_MARKERS

# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.fixture()
def http_client() -> httpx.AsyncClient:
    """Real httpx.AsyncClient for use with respx mocking."""
    return httpx.AsyncClient()


@pytest.fixture()
def respx_mock() -> respx.MockRouter:
    """Explicit respx router; unmatched requests fail the test."""
    with respx.mock(assert_all_called=False) as router:
        yield router


# ---------------------------------------------------------------------------
# Domain entity fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def title_query() -> TitleQuery:
    return TitleQuery(title="Iron Man", year=2008)


@pytest.fixture()
def resolved_stream() -> ResolvedStreamUrl:
    return ResolvedStreamUrl(
        url="https://cdn.example.com/hls/master.m3u8",
        resolved_at=1000.0,
        ttl=60.0,
        provider_name="filmpalast",
        resolver_name="voe",
        page_url="https://voe.sx/e/abc123",
    )


@pytest.fixture()
def title_key(title_query: TitleQuery) -> ResolutionKey:
    return ResolutionKey.for_title(title_query)


# ---------------------------------------------------------------------------
# VOE payloads
# ---------------------------------------------------------------------------


def encode_voe_payload(
    plaintext: str,
    markers: Sequence[str] = VOE_MARKERS,
    *,
    strip_padding: bool = False,
) -> str:
    """Obfuscate *plaintext* the way VOE pages do (inverse of the decode chain).

    base64 -> reverse -> shift(+3) -> base64 -> sprinkle markers -> ROT13
    """
    inner = base64.b64encode(plaintext.encode("utf-8"))
    shifted = bytes((b + 3) % 256 for b in inner[::-1])
    outer = base64.b64encode(shifted).decode("ascii")
    if strip_padding:
        outer = outer.rstrip("=")
    # One marker after every 7th character, cycling through the set
    pieces: list[str] = []
    for idx in range(0, len(outer), 7):
        pieces.append(outer[idx : idx + 7])
        if markers:
            pieces.append(markers[(idx // 7) % len(markers)])
    return codecs.encode("".join(pieces), "rot13")


@pytest.fixture()
def voe_payload() -> Callable[..., str]:
    return encode_voe_payload
