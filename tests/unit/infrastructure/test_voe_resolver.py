"""Tests for VoeResolver: redirect following and payload extraction."""

from __future__ import annotations

import base64
import json
from collections.abc import Callable

import httpx
import pytest
import respx

from playarr.domain.streaming.exceptions import NetworkError, NotFoundError, ParseError
from playarr.infrastructure.stream_resolvers.voe import (
    VoeResolver,
    extract_js_redirect,
    extract_payloads,
    extract_tokens,
    resolve_redirect_target,
)

HLS_URL = "https://cdn-edge.example.net/engine/hls2/01/0042/abc_,n,.urlset/master.m3u8?t=xyz"
MP4_URL = "https://cdn-edge.example.net/v/abc123.mp4"
CUSTOM_MARKERS = ["|~", "$$", "%%", "&&", "**"]


def _player_page(payload: str, extra: str = "") -> str:
    return (
        "<html><head><title>VOE</title></head><body>"
        '<div id="vp"></div>'
        f'<script type="application/json">{json.dumps([payload])}</script>'
        f"{extra}</body></html>"
    )


def _redirect_page(target: str) -> str:
    return f"<html><script>window.location.href = '{target}';</script></html>"


# ---------------------------------------------------------------------------
# Page helpers
# ---------------------------------------------------------------------------
class TestExtractJsRedirect:
    @pytest.mark.parametrize(
        "script",
        [
            "window.location.href = 'https://a.example/e/1';",
            'window.location = "https://a.example/e/1";',
            "location.href='https://a.example/e/1'",
        ],
    )
    def test_variants(self, script: str) -> None:
        assert extract_js_redirect(f"<script>{script}</script>") == "https://a.example/e/1"

    def test_none(self) -> None:
        assert extract_js_redirect("<html></html>") is None


class TestResolveRedirectTarget:
    def test_absolute(self) -> None:
        assert resolve_redirect_target("https://voe.sx/e/1", "https://b.example/e/1") == (
            "https://b.example/e/1"
        )

    def test_relative(self) -> None:
        assert resolve_redirect_target("https://voe.sx/e/1", "/e/2") == "https://voe.sx/e/2"

    def test_protocol_relative(self) -> None:
        assert resolve_redirect_target("https://voe.sx/e/1", "//b.example/e/1") == (
            "https://b.example/e/1"
        )


class TestExtractPayloads:
    def test_json_script(self) -> None:
        assert extract_payloads(_player_page("abc^^def")) == ["abc^^def"]

    def test_mkgma_variable(self) -> None:
        html = "<script>var MKGMa = \"xyz!!123\";</script>"
        assert extract_payloads(html) == ["xyz!!123"]

    def test_ignores_other_json(self) -> None:
        html = '<script type="application/json">[1, 2]</script>'
        assert extract_payloads(html) == []

    def test_ignores_broken_json(self) -> None:
        html = '<script type="application/json">["unterminated]</script>'
        assert extract_payloads(html) == []


class TestExtractTokens:
    def test_from_html(self) -> None:
        html = "var x = ['@#','^^','~@','%?','*~','!!','#&'], y = 5;"
        assert extract_tokens(html) == ["@#", "^^", "~@", "%?", "*~", "!!", "#&"]

    def test_missing(self) -> None:
        assert extract_tokens("<html></html>") is None

    def test_too_few_tokens(self) -> None:
        assert extract_tokens("var x = ['ab','cd'];") is None

    def test_array_must_be_followed_by_comma(self) -> None:
        html = "var q = ['1080p','720p','480p','360p','240p'];"
        assert extract_tokens(html) is None


# ---------------------------------------------------------------------------
# can_handle
# ---------------------------------------------------------------------------
class TestCanHandle:
    @pytest.fixture()
    def resolver(self, http_client: httpx.AsyncClient) -> VoeResolver:
        return VoeResolver(http_client, extra_domains=["jilliandescribecompany.com"])

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://voe.sx/e/abc", True),
            ("https://VOE.SX/abc", True),
            ("https://voe.example.com/e/abc", True),
            ("https://jilliandescribecompany.com/e/abc", True),
            ("https://www.jilliandescribecompany.com/e/abc", True),
            ("https://avoe.sx/e/abc", False),
            ("https://example.voe/e/abc", False),
            ("https://streamtape.com/e/abc", False),
            ("not a url", False),
        ],
    )
    def test_claims(self, resolver: VoeResolver, url: str, expected: bool) -> None:
        assert resolver.can_handle(url) is expected

    def test_name(self, resolver: VoeResolver) -> None:
        assert resolver.name == "voe"


# ---------------------------------------------------------------------------
# resolve()
# ---------------------------------------------------------------------------
class TestResolve:
    @pytest.mark.asyncio
    async def test_json_payload(
        self,
        http_client: httpx.AsyncClient,
        respx_mock: respx.MockRouter,
        voe_payload: Callable[..., str],
    ) -> None:
        page = _player_page(voe_payload(json.dumps({"source": HLS_URL})))
        respx_mock.get("https://voe.sx/e/abc").mock(return_value=httpx.Response(200, text=page))

        assert await VoeResolver(http_client).resolve("https://voe.sx/e/abc") == HLS_URL

    @pytest.mark.asyncio
    async def test_follows_js_redirects(
        self,
        http_client: httpx.AsyncClient,
        respx_mock: respx.MockRouter,
        voe_payload: Callable[..., str],
    ) -> None:
        respx_mock.get("https://voe.sx/e/abc").mock(
            return_value=httpx.Response(200, text=_redirect_page("//mirror-one.example/e/abc"))
        )
        respx_mock.get("https://mirror-one.example/e/abc").mock(
            return_value=httpx.Response(200, text=_redirect_page("/x/abc"))
        )
        final = respx_mock.get("https://mirror-one.example/x/abc").mock(
            return_value=httpx.Response(200, text=_player_page(voe_payload(MP4_URL)))
        )

        result = await VoeResolver(http_client).resolve("https://voe.sx/e/abc")

        assert result == MP4_URL
        assert final.call_count == 1

    @pytest.mark.asyncio
    async def test_redirect_limit(
        self, http_client: httpx.AsyncClient, respx_mock: respx.MockRouter
    ) -> None:
        route = respx_mock.get("https://voe.sx/e/loop").mock(
            return_value=httpx.Response(200, text=_redirect_page("https://voe.sx/e/loop"))
        )

        with pytest.raises(ParseError) as exc_info:
            await VoeResolver(http_client, max_redirects=2).resolve("https://voe.sx/e/loop")

        assert exc_info.value.stage == "redirect"
        assert route.call_count == 3

    @pytest.mark.asyncio
    async def test_mkgma_payload(
        self,
        http_client: httpx.AsyncClient,
        respx_mock: respx.MockRouter,
        voe_payload: Callable[..., str],
    ) -> None:
        html = f'<script>var MKGMa = "{voe_payload(HLS_URL)}";</script>'
        respx_mock.get("https://voe.sx/e/abc").mock(return_value=httpx.Response(200, text=html))

        assert await VoeResolver(http_client).resolve("https://voe.sx/e/abc") == HLS_URL

    @pytest.mark.asyncio
    async def test_markers_from_page(
        self,
        http_client: httpx.AsyncClient,
        respx_mock: respx.MockRouter,
        voe_payload: Callable[..., str],
    ) -> None:
        tokens = "<script>var t = ['|~','$$','%%','&&','**'], n = 0;</script>"
        page = _player_page(voe_payload(MP4_URL, CUSTOM_MARKERS), extra=tokens)
        respx_mock.get("https://voe.sx/e/abc").mock(return_value=httpx.Response(200, text=page))

        assert await VoeResolver(http_client).resolve("https://voe.sx/e/abc") == MP4_URL

    @pytest.mark.asyncio
    async def test_markers_from_loader_script(
        self,
        http_client: httpx.AsyncClient,
        respx_mock: respx.MockRouter,
        voe_payload: Callable[..., str],
    ) -> None:
        loader = '<script src="/js/loader.4f2a.js"></script>'
        page = _player_page(voe_payload(MP4_URL, CUSTOM_MARKERS), extra=loader)
        respx_mock.get("https://voe.sx/e/abc").mock(return_value=httpx.Response(200, text=page))
        respx_mock.get("https://voe.sx/js/loader.4f2a.js").mock(
            return_value=httpx.Response(200, text="var t=['|~','$$','%%','&&','**'],n=0;")
        )

        assert await VoeResolver(http_client).resolve("https://voe.sx/e/abc") == MP4_URL

    @pytest.mark.asyncio
    async def test_configured_markers(
        self,
        http_client: httpx.AsyncClient,
        respx_mock: respx.MockRouter,
        voe_payload: Callable[..., str],
    ) -> None:
        page = _player_page(voe_payload(MP4_URL, CUSTOM_MARKERS))
        respx_mock.get("https://voe.sx/e/abc").mock(return_value=httpx.Response(200, text=page))

        resolver = VoeResolver(http_client, markers=CUSTOM_MARKERS)
        assert await resolver.resolve("https://voe.sx/e/abc") == MP4_URL

    @pytest.mark.asyncio
    async def test_unrelated_page_array_falls_back_to_configured_markers(
        self,
        http_client: httpx.AsyncClient,
        respx_mock: respx.MockRouter,
        voe_payload: Callable[..., str],
    ) -> None:
        qualities = "<script>var q = ['1080p','720p','480p','360p','240p'], d = 0;</script>"
        page = _player_page(voe_payload(json.dumps({"source": HLS_URL})), extra=qualities)
        respx_mock.get("https://voe.sx/e/abc").mock(return_value=httpx.Response(200, text=page))

        assert extract_tokens(page) == ["1080p", "720p", "480p", "360p", "240p"]
        assert await VoeResolver(http_client).resolve("https://voe.sx/e/abc") == HLS_URL

    @pytest.mark.asyncio
    async def test_legacy_hls(
        self, http_client: httpx.AsyncClient, respx_mock: respx.MockRouter
    ) -> None:
        encoded = base64.b64encode(HLS_URL.encode()).decode()
        html = f"<script>var sources = {{'hls': '{encoded}', 'video_height': 720}};</script>"
        respx_mock.get("https://voe.sx/e/abc").mock(return_value=httpx.Response(200, text=html))

        assert await VoeResolver(http_client).resolve("https://voe.sx/e/abc") == HLS_URL

    @pytest.mark.asyncio
    async def test_direct_media_fallback(
        self, http_client: httpx.AsyncClient, respx_mock: respx.MockRouter
    ) -> None:
        html = (
            '<video><source src="https://ads.example.com/banner.mp4">'
            f'<source src="{MP4_URL}"></video>'
        )
        respx_mock.get("https://voe.sx/e/abc").mock(return_value=httpx.Response(200, text=html))

        assert await VoeResolver(http_client).resolve("https://voe.sx/e/abc") == MP4_URL

    @pytest.mark.asyncio
    async def test_broken_payload_is_parse_error(
        self, http_client: httpx.AsyncClient, respx_mock: respx.MockRouter
    ) -> None:
        respx_mock.get("https://voe.sx/e/abc").mock(
            return_value=httpx.Response(200, text=_player_page("not*base64"))
        )

        with pytest.raises(ParseError) as exc_info:
            await VoeResolver(http_client).resolve("https://voe.sx/e/abc")
        assert exc_info.value.stage == "first_base64"

    @pytest.mark.asyncio
    async def test_bait_payload_is_parse_error(
        self,
        http_client: httpx.AsyncClient,
        respx_mock: respx.MockRouter,
        voe_payload: Callable[..., str],
    ) -> None:
        bait = json.dumps({"source": "https://test-videos.co.uk/bigbuckbunny.mp4"})
        respx_mock.get("https://voe.sx/e/abc").mock(
            return_value=httpx.Response(200, text=_player_page(voe_payload(bait)))
        )

        with pytest.raises(ParseError) as exc_info:
            await VoeResolver(http_client).resolve("https://voe.sx/e/abc")
        assert exc_info.value.stage == "validate"

    @pytest.mark.asyncio
    async def test_player_without_payload_is_parse_error(
        self, http_client: httpx.AsyncClient, respx_mock: respx.MockRouter
    ) -> None:
        html = '<html><div class="player-wrapper"><video id="vp"></video></div></html>'
        respx_mock.get("https://voe.sx/e/abc").mock(return_value=httpx.Response(200, text=html))

        with pytest.raises(ParseError) as exc_info:
            await VoeResolver(http_client).resolve("https://voe.sx/e/abc")
        assert exc_info.value.stage == "payload"

    @pytest.mark.asyncio
    async def test_removed_video(
        self, http_client: httpx.AsyncClient, respx_mock: respx.MockRouter
    ) -> None:
        html = "<html><h1>File not found</h1><p>The video player could not load.</p></html>"
        respx_mock.get("https://voe.sx/e/gone").mock(return_value=httpx.Response(200, text=html))

        with pytest.raises(NotFoundError):
            await VoeResolver(http_client).resolve("https://voe.sx/e/gone")

    @pytest.mark.asyncio
    async def test_plain_page_is_not_found(
        self, http_client: httpx.AsyncClient, respx_mock: respx.MockRouter
    ) -> None:
        respx_mock.get("https://voe.sx/e/abc").mock(
            return_value=httpx.Response(200, text="<html><p>Welcome</p></html>")
        )

        with pytest.raises(NotFoundError):
            await VoeResolver(http_client).resolve("https://voe.sx/e/abc")

    @pytest.mark.asyncio
    async def test_http_404(
        self, http_client: httpx.AsyncClient, respx_mock: respx.MockRouter
    ) -> None:
        respx_mock.get("https://voe.sx/e/abc").mock(return_value=httpx.Response(404))

        with pytest.raises(NotFoundError):
            await VoeResolver(http_client).resolve("https://voe.sx/e/abc")

    @pytest.mark.asyncio
    async def test_http_500(
        self, http_client: httpx.AsyncClient, respx_mock: respx.MockRouter
    ) -> None:
        respx_mock.get("https://voe.sx/e/abc").mock(return_value=httpx.Response(500))

        with pytest.raises(NetworkError):
            await VoeResolver(http_client).resolve("https://voe.sx/e/abc")

    @pytest.mark.asyncio
    async def test_timeout(
        self, http_client: httpx.AsyncClient, respx_mock: respx.MockRouter
    ) -> None:
        respx_mock.get("https://voe.sx/e/abc").mock(side_effect=httpx.ReadTimeout("slow"))

        with pytest.raises(NetworkError):
            await VoeResolver(http_client).resolve("https://voe.sx/e/abc")
