"""Stream resolution API endpoints."""

from __future__ import annotations

from typing import Any, cast

import structlog
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from playarr.domain.entities.streaming import ResolvedStreamUrl, TitleQuery
from playarr.domain.streaming.exceptions import (
    ConfigError,
    NotFoundError,
    StreamError,
)
from playarr.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["resolve"])

_STATUS_BY_KIND: dict[str, int] = {
    NotFoundError.kind: 404,
    ConfigError.kind: 400,
}


def error_response(exc: StreamError) -> JSONResponse:
    """Map a stream error to its JSON body; transport/parse failures are 502."""
    status = _STATUS_BY_KIND.get(exc.kind, 502)
    content: dict[str, Any] = {"error": exc.kind, "detail": str(exc)}
    if exc.attempts:
        content["attempts"] = [
            {"source": attempt.source, "error": attempt.kind, "detail": attempt.message}
            for attempt in exc.attempts
        ]
    return JSONResponse(status_code=status, content=content)


def _present(stream: ResolvedStreamUrl, now: float) -> dict[str, Any]:
    return {
        "url": stream.url,
        "provider": stream.provider_name or None,
        "resolver": stream.resolver_name,
        "expires_in": int(stream.remaining(now)),
    }


@router.get("/resolve")
async def resolve_title(
    request: Request,
    title: str = Query(..., min_length=1),
    year: int | None = Query(default=None, ge=1870, le=2100),
    provider: str | None = Query(default=None),
) -> JSONResponse:
    """Resolve a title (optionally pinned to one provider) to a playable URL."""
    state = cast(AppState, request.app.state)
    query = TitleQuery(title=title.strip(), year=year)

    try:
        stream = await state.coordinator.resolve_query(query, provider)
    except StreamError as exc:
        log.info(
            "resolve_request_failed",
            title=query.title,
            year=year,
            provider=provider,
            kind=exc.kind,
        )
        return error_response(exc)

    return JSONResponse(content=_present(stream, state.resolution_cache.now()))


@router.get("/resolve/url")
async def resolve_page_url(
    request: Request,
    url: str = Query(..., min_length=1),
) -> JSONResponse:
    """Resolve a hoster page URL through the resolver chain only."""
    state = cast(AppState, request.app.state)

    try:
        stream = await state.coordinator.resolve_url(url)
    except StreamError as exc:
        log.info("resolve_url_request_failed", url=url, kind=exc.kind)
        return error_response(exc)

    return JSONResponse(content=_present(stream, state.resolution_cache.now()))


@router.get("/providers")
async def list_capabilities(request: Request) -> dict[str, Any]:
    """Registered providers and resolvers, in fallback order, plus cache stats."""
    state = cast(AppState, request.app.state)
    coordinator = state.coordinator
    return {
        "providers": coordinator.provider_names,
        "resolvers": coordinator.resolver_names,
        "stats": coordinator.stats(),
    }
