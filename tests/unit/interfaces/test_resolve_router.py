"""Tests for the resolve API endpoints."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from playarr.domain.entities.streaming import ResolvedStreamUrl, TitleQuery
from playarr.domain.streaming.exceptions import (
    ConfigError,
    NetworkError,
    NotFoundError,
    ParseError,
)
from playarr.interfaces.api.resolve.router import error_response, router

_STREAM = ResolvedStreamUrl(
    url="https://cdn.example.com/hls/master.m3u8",
    resolved_at=1000.0,
    ttl=3600.0,
    provider_name="filmpalast",
    resolver_name="voe",
    page_url="https://voe.sx/e/abc",
)


def _make_app(
    *,
    resolve_query: AsyncMock | None = None,
    resolve_url: AsyncMock | None = None,
    now: float = 1100.0,
) -> tuple[FastAPI, MagicMock]:
    """Minimal app with the resolve router and a mocked coordinator."""
    app = FastAPI()
    app.include_router(router)

    coordinator = MagicMock()
    coordinator.resolve_query = resolve_query or AsyncMock(return_value=_STREAM)
    coordinator.resolve_url = resolve_url or AsyncMock(return_value=_STREAM)
    coordinator.provider_names = ["filmpalast"]
    coordinator.resolver_names = ["voe", "direct"]
    coordinator.stats.return_value = {"cached": 3, "in_flight": 1}
    app.state.coordinator = coordinator

    cache = MagicMock()
    cache.now.return_value = now
    app.state.resolution_cache = cache

    return app, coordinator


class TestErrorResponse:
    def test_not_found(self) -> None:
        resp = error_response(NotFoundError("no match", source="filmpalast"))
        assert resp.status_code == 404

    def test_config_error(self) -> None:
        assert error_response(ConfigError("bad")).status_code == 400

    def test_network_and_parse_errors_are_bad_gateway(self) -> None:
        assert error_response(NetworkError("down")).status_code == 502
        assert error_response(ParseError("layout", stage="payload")).status_code == 502


class TestResolveTitle:
    def test_success(self) -> None:
        app, coordinator = _make_app()
        client = TestClient(app)

        resp = client.get("/api/v1/resolve", params={"title": "Iron Man", "year": 2008})

        assert resp.status_code == 200
        assert resp.json() == {
            "url": "https://cdn.example.com/hls/master.m3u8",
            "provider": "filmpalast",
            "resolver": "voe",
            "expires_in": 3500,
        }
        coordinator.resolve_query.assert_awaited_once_with(
            TitleQuery(title="Iron Man", year=2008), None
        )

    def test_title_is_stripped_and_provider_forwarded(self) -> None:
        app, coordinator = _make_app()
        client = TestClient(app)

        client.get("/api/v1/resolve", params={"title": "  Alien ", "provider": "filmpalast"})

        coordinator.resolve_query.assert_awaited_once_with(
            TitleQuery(title="Alien"), "filmpalast"
        )

    def test_missing_title(self) -> None:
        app, _ = _make_app()
        assert TestClient(app).get("/api/v1/resolve").status_code == 422

    def test_year_out_of_range(self) -> None:
        app, _ = _make_app()
        resp = TestClient(app).get("/api/v1/resolve", params={"title": "x", "year": 1200})
        assert resp.status_code == 422

    def test_not_found(self) -> None:
        app, _ = _make_app(
            resolve_query=AsyncMock(side_effect=NotFoundError("no match", source="filmpalast"))
        )
        resp = TestClient(app).get("/api/v1/resolve", params={"title": "Nothing"})

        assert resp.status_code == 404
        assert resp.json() == {"error": "not_found", "detail": "filmpalast: no match"}

    def test_failure_lists_attempts(self) -> None:
        attempts = [
            NotFoundError("no match", source="filmpalast"),
            NetworkError("timeout", source="other"),
        ]
        error = NetworkError("timeout", source="other").with_attempts(attempts)
        app, _ = _make_app(resolve_query=AsyncMock(side_effect=error))

        resp = TestClient(app).get("/api/v1/resolve", params={"title": "Iron Man"})

        assert resp.status_code == 502
        body = resp.json()
        assert body["error"] == "network_error"
        assert body["attempts"] == [
            {"source": "filmpalast", "error": "not_found", "detail": "no match"},
            {"source": "other", "error": "network_error", "detail": "timeout"},
        ]

    def test_expired_stream_reports_zero(self) -> None:
        app, _ = _make_app(now=99999.0)
        resp = TestClient(app).get("/api/v1/resolve", params={"title": "Iron Man"})
        assert resp.json()["expires_in"] == 0


class TestResolveUrl:
    def test_success(self) -> None:
        stream = ResolvedStreamUrl(
            url="https://cdn.example.com/v.mp4", resolved_at=1000.0, ttl=60.0, resolver_name="voe"
        )
        app, coordinator = _make_app(resolve_url=AsyncMock(return_value=stream))

        resp = TestClient(app).get("/api/v1/resolve/url", params={"url": "https://voe.sx/e/abc"})

        assert resp.status_code == 200
        assert resp.json()["provider"] is None
        assert resp.json()["expires_in"] == 0
        coordinator.resolve_url.assert_awaited_once_with("https://voe.sx/e/abc")

    def test_parse_error(self) -> None:
        error = ParseError("payload missing", source="voe", stage="payload")
        app, _ = _make_app(resolve_url=AsyncMock(side_effect=error))

        resp = TestClient(app).get("/api/v1/resolve/url", params={"url": "https://voe.sx/e/abc"})

        assert resp.status_code == 502
        assert resp.json()["error"] == "parse_error"


class TestListCapabilities:
    def test_lists_names_and_stats(self) -> None:
        app, _ = _make_app()
        resp = TestClient(app).get("/api/v1/providers")

        assert resp.status_code == 200
        assert resp.json() == {
            "providers": ["filmpalast"],
            "resolvers": ["voe", "direct"],
            "stats": {"cached": 3, "in_flight": 1},
        }
