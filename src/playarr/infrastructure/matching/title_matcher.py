"""Pick the provider search result that matches a requested title.

Pure transformation logic, no I/O. Exact (normalised, case-insensitive)
matches win outright; otherwise the best fuzzy match above a threshold is
used. A requested year only breaks ties between equally good titles.

Uses **rapidfuzz** for fuzzy scoring and **guessit** to pull clean titles
out of release-name style listings (``Iron.Man.2008.German.DL.1080p``).
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

import structlog
from guessit import guessit
from rapidfuzz import fuzz
from unidecode import unidecode

from playarr.domain.entities.streaming import TitleQuery

log = structlog.get_logger(__name__)

# Release year as a trailing "(2005)"; years inside a title ("2049") stay
_PAREN_YEAR_RE = re.compile(r"\s*\(\s*((?:19|20)\d{2})\s*\)\s*$")
_TRAILING_YEAR_RE = re.compile(r"\s+((?:19|20)\d{2})\s*$")

# Trailing sequel number, 1-2 digits ("Iron Man 2", not "Blade Runner 2049")
_SEQUEL_RE = re.compile(r"\s(\d{1,2})$")

_PUNCT_RE = re.compile(r"[^\w\s]")

DEFAULT_THRESHOLD = 0.7
DEFAULT_SEQUEL_PENALTY = 0.35


@dataclass(frozen=True)
class ListingEntry:
    """One search result: display title, detail URL and parsed year."""

    title: str
    url: str
    year: int | None = None


@dataclass(frozen=True)
class TitleMatch:
    entry: ListingEntry
    score: float
    exact: bool


def normalize(text: str) -> str:
    """Lowercase, transliterate to ASCII, strip punctuation, collapse ws."""
    text = unidecode(text.lower())
    text = _PUNCT_RE.sub(" ", text)
    return " ".join(text.split())


def _split_year(text: str) -> tuple[str, int | None]:
    """Remove a trailing parenthesised year; other numbers are kept."""
    text = text.strip()
    m = _PAREN_YEAR_RE.search(text)
    if m is None or m.start() == 0:
        return text, None
    return text[: m.start()].strip(), int(m.group(1))


def _query_title(query: TitleQuery) -> str:
    """Query title without its release year.

    A bare trailing year ("Dune 2021") is only dropped when it equals the
    requested year, so "Blade Runner 2049" stays intact.
    """
    title, _ = _split_year(query.title)
    if query.year is not None:
        m = _TRAILING_YEAR_RE.search(title)
        if m and m.start() > 0 and int(m.group(1)) == query.year:
            title = title[: m.start()]
    return title.strip()


def parse_listing_title(raw: str) -> tuple[str, int | None]:
    """Split a listing label into ``(title, year)``.

    ``"Batman Begins (2005)"`` → ``("Batman Begins", 2005)``. Release-name
    style labels without spaces go through guessit.
    """
    raw = raw.strip()
    if " " not in raw and "." in raw:
        guess = guessit(raw)
        title = guess.get("title")
        year = guess.get("year")
        if title:
            return str(title), int(year) if year else None

    return _split_year(raw)


def _sequel_number(norm_title: str) -> int | None:
    m = _SEQUEL_RE.search(norm_title)
    return int(m.group(1)) if m else None


def similarity(norm_a: str, norm_b: str, *, sequel_penalty: float = DEFAULT_SEQUEL_PENALTY) -> float:
    """Similarity of two normalised titles in ``[0, 1]``.

    ``max(token_sort_ratio, token_set_ratio)`` so that reordering and
    subtitles ("Dune" vs "Dune Part One") still score high; a differing
    trailing sequel number is penalised.
    """
    if not norm_a or not norm_b:
        return 0.0
    score = max(
        fuzz.token_sort_ratio(norm_a, norm_b, processor=None),
        fuzz.token_set_ratio(norm_a, norm_b, processor=None),
    ) / 100.0
    if _sequel_number(norm_a) != _sequel_number(norm_b):
        score -= sequel_penalty
    return max(0.0, score)


def _year_rank(entry: ListingEntry, year: int | None, tolerance: int) -> int:
    """1 = year matches, 0 = unknown, -1 = year differs."""
    if year is None or entry.year is None:
        return 0
    return 1 if abs(entry.year - year) <= tolerance else -1


def pick_best_match(
    query: TitleQuery,
    entries: Sequence[ListingEntry],
    *,
    threshold: float = DEFAULT_THRESHOLD,
    year_tolerance: int = 1,
    sequel_penalty: float = DEFAULT_SEQUEL_PENALTY,
) -> TitleMatch | None:
    """Return the best listing entry for *query*, or None below *threshold*.

    1. Exact normalised title matches; the year picks among several.
    2. Otherwise highest fuzzy similarity ≥ *threshold*; equal
       similarities are ordered by year agreement, then listing order.
    """
    if not entries:
        return None

    wanted = normalize(_query_title(query))
    titles = [normalize(_split_year(e.title)[0]) for e in entries]
    exact = [e for e, title in zip(entries, titles) if title == wanted]
    if exact:
        best = max(
            enumerate(exact),
            key=lambda pair: (_year_rank(pair[1], query.year, year_tolerance), -pair[0]),
        )[1]
        return TitleMatch(entry=best, score=1.0, exact=True)

    scored = [
        (
            round(similarity(wanted, title, sequel_penalty=sequel_penalty), 4),
            idx,
            e,
        )
        for idx, (e, title) in enumerate(zip(entries, titles))
    ]
    scored = [s for s in scored if s[0] >= threshold]
    if not scored:
        log.debug(
            "title_match_below_threshold",
            title=query.title,
            candidates=len(entries),
            threshold=threshold,
        )
        return None

    score, _, best = max(
        scored,
        key=lambda s: (s[0], _year_rank(s[2], query.year, year_tolerance), -s[1]),
    )
    return TitleMatch(entry=best, score=score, exact=False)
