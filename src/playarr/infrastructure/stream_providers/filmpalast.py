"""filmpalast.to stream provider.

Two-stage lookup:
- Search via GET /search/title/{query}, pick the matching listing entry
- Detail page: take a stream link from the grouped hoster list

When the search listing is empty the title slug page (/stream/{slug})
is tried directly.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from html.parser import HTMLParser
from urllib.parse import quote, urljoin

import httpx

from playarr.domain.entities.streaming import StreamPageReference, TitleQuery
from playarr.domain.streaming.exceptions import NotFoundError, ParseError
from playarr.infrastructure.matching.title_matcher import (
    DEFAULT_SEQUEL_PENALTY,
    DEFAULT_THRESHOLD,
    ListingEntry,
    parse_listing_title,
    pick_best_match,
)

from .base import HttpxProviderBase

_DOMAINS = ("filmpalast.to",)

# onclick="window.open('url')"
_ONCLICK_RE = re.compile(r"window\.open\(['\"]([^'\"]+)['\"]")

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify(title: str) -> str:
    """``"The Dark Knight: Rises"`` → ``"the-dark-knight-rises"``."""
    return _SLUG_RE.sub("-", title.lower()).strip("-")


class _SearchResultParser(HTMLParser):
    """Parse the search results page.

    Each result has structure::

        <article>
          <h2><a href="/stream/slug">Title (Year)</a></h2>
        </article>
    """

    def __init__(self) -> None:
        super().__init__()
        self.results: list[tuple[str, str]] = []
        self.article_count = 0
        self._in_article = False
        self._in_h2 = False
        self._in_a = False
        self._title = ""
        self._href = ""

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag == "article":
            self._in_article = True
            self.article_count += 1
            self._title = ""
            self._href = ""
        elif tag == "h2" and self._in_article:
            self._in_h2 = True
        elif tag == "a" and self._in_h2:
            self._in_a = True
            self._href = dict(attrs).get("href") or ""
            self._title = ""

    def handle_data(self, data: str) -> None:
        if self._in_a:
            self._title += data

    def handle_endtag(self, tag: str) -> None:
        if tag == "a":
            self._in_a = False
        elif tag == "h2":
            self._in_h2 = False
        elif tag == "article" and self._in_article:
            self._in_article = False
            title, href = self._title.strip(), self._href.strip()
            if title and href:
                self.results.append((title, href))


class _DetailPageParser(HTMLParser):
    """Parse the hoster list of a detail page::

        <div id="grap-stream-list">
          <ul class="currentStreamLinks">
            <li>
              <p class="hostName">Voe</p>
              <a class="button iconPlay" data-player-url="https://...">Watch</a>
            </li>
          </ul>
        </div>

    The link is taken from data-player-url, then href, then onclick.
    """

    def __init__(self) -> None:
        super().__init__()
        self.found_stream_list = False
        self.links: list[tuple[str, str]] = []
        self._in_stream_list = False
        self._div_depth = 0
        self._in_li = False
        self._in_hoster = False
        self._hoster = ""
        self._link = ""

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        attr_dict = dict(attrs)
        classes = (attr_dict.get("class") or "").split()

        if tag == "div":
            if attr_dict.get("id") == "grap-stream-list":
                self.found_stream_list = True
                self._in_stream_list = True
                self._div_depth = 0
            elif self._in_stream_list:
                self._div_depth += 1
        elif tag == "li" and self._in_stream_list:
            self._in_li = True
            self._hoster = ""
            self._link = ""
        elif tag == "p" and self._in_li and ("hostName" in classes or not classes):
            self._in_hoster = True
        elif tag == "a" and self._in_li and "button" in classes:
            link = attr_dict.get("data-player-url") or attr_dict.get("href") or ""
            if not link:
                m = _ONCLICK_RE.search(attr_dict.get("onclick") or "")
                if m:
                    link = m.group(1)
            self._link = link

    def handle_data(self, data: str) -> None:
        if self._in_hoster:
            self._hoster += data

    def handle_endtag(self, tag: str) -> None:
        if tag == "p":
            self._in_hoster = False
        elif tag == "li" and self._in_li:
            self._in_li = False
            link = self._link.strip()
            if link and link != "#":
                self.links.append((self._hoster.strip().lower() or "unknown", link))
        elif tag == "div" and self._in_stream_list:
            if self._div_depth > 0:
                self._div_depth -= 1
            else:
                self._in_stream_list = False


class FilmpalastProvider(HttpxProviderBase):
    """Stream provider for filmpalast.to.

    *preferred_hosters* orders the hoster links of a detail page;
    *link_filter* (usually the resolver registry's ``can_handle``) is
    used to skip links no resolver could handle.
    """

    name = "filmpalast"
    _domains = _DOMAINS

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        domains: tuple[str, ...] | None = None,
        timeout: float | None = None,
        preferred_hosters: Sequence[str] = ("voe",),
        link_filter: Callable[[str], bool] | None = None,
        match_threshold: float = DEFAULT_THRESHOLD,
        year_tolerance: int = 1,
        sequel_penalty: float = DEFAULT_SEQUEL_PENALTY,
    ) -> None:
        super().__init__(http_client, domains=domains, timeout=timeout)
        self._preferred = tuple(h.lower() for h in preferred_hosters)
        self._link_filter = link_filter
        self._threshold = match_threshold
        self._year_tolerance = year_tolerance
        self._sequel_penalty = sequel_penalty

    async def find_stream_page(self, query: TitleQuery) -> StreamPageReference:
        await self._verify_domain()

        entries = await self._search(query.title)
        if entries:
            match = pick_best_match(
                query,
                entries,
                threshold=self._threshold,
                year_tolerance=self._year_tolerance,
                sequel_penalty=self._sequel_penalty,
            )
            if match is None:
                raise NotFoundError(
                    f"no listing entry matches {query.title!r}", source=self.name
                )
            self._log.info(
                "filmpalast_title_matched",
                title=query.title,
                matched=match.entry.title,
                score=match.score,
                exact=match.exact,
            )
            links = await self._detail_links(urljoin(self.base_url, match.entry.url))
        else:
            slug_url = f"{self.base_url}/stream/{slugify(query.title)}"
            self._log.debug("filmpalast_slug_fallback", url=slug_url)
            links = await self._detail_links(slug_url, guessed=True)

        hoster, link = self._choose_link(links)
        return StreamPageReference(provider_name=self.name, url=link, hoster=hoster)

    async def _search(self, title: str) -> list[ListingEntry]:
        url = f"{self.base_url}/search/title/{quote(title)}"
        resp = await self._fetch(url, context="search_page", missing_is_not_found=False)

        parser = _SearchResultParser()
        parser.feed(resp.text)
        if parser.article_count and not parser.results:
            raise ParseError(
                f"{parser.article_count} search results without title/link",
                source=self.name,
                stage="search_listing",
            )

        entries: list[ListingEntry] = []
        for label, href in parser.results:
            title, year = parse_listing_title(label)
            entries.append(ListingEntry(title=title, url=href, year=year))
        self._log.debug("filmpalast_search_page", query=title, count=len(entries))
        return entries

    async def _detail_links(self, url: str, *, guessed: bool = False) -> list[tuple[str, str]]:
        try:
            resp = await self._fetch(url, context="detail_page")
        except NotFoundError:
            if guessed:
                raise NotFoundError(f"no page for slug URL {url}", source=self.name) from None
            raise

        parser = _DetailPageParser()
        parser.feed(resp.text)
        if not parser.found_stream_list:
            if guessed:
                raise NotFoundError(f"{url} is not a title page", source=self.name)
            raise ParseError(
                f"stream list missing on {url}", source=self.name, stage="detail_page"
            )
        if not parser.links:
            raise NotFoundError(f"no stream links on {url}", source=self.name)
        return [(hoster, urljoin(url, link)) for hoster, link in parser.links]

    def _choose_link(self, links: list[tuple[str, str]]) -> tuple[str, str]:
        """Preferred hosters first, then any link a resolver accepts."""
        usable = links
        if self._link_filter is not None:
            usable = [(h, link) for h, link in links if self._link_filter(link)]
            if not usable:
                raise NotFoundError(
                    f"none of {len(links)} hoster links is supported", source=self.name
                )
        for preferred in self._preferred:
            for hoster, link in usable:
                if hoster == preferred or preferred in link:
                    return hoster, link
        return usable[0]
