"""VOE payload deobfuscation.

VOE embeds its player config as a JSON array holding one obfuscated
string. The chain that turns it back into the config is::

    ROT13 -> strip markers -> base64 -> shift(-3) -> reverse -> base64

The result is a JSON object (or, on older pages, a bare URL). All network
work and payload extraction happen in the resolver; this module is pure.
"""

from __future__ import annotations

import json
import re
from collections.abc import Sequence
from typing import Any
from urllib.parse import urlparse

from playarr.domain.streaming.exceptions import DecodeError, ParseError

from .transforms import (
    decode_base64,
    reverse,
    rotate_letters,
    shift_bytes,
    strip_all_markers,
)

VOE_MARKERS: tuple[str, ...] = ("@#", "^^", "~@", "%?", "*~", "!!", "#&")
VOE_SHIFT = -3
VOE_ROTATION = 13

# Keys holding the stream URL in the decoded player config, by preference
_URL_KEYS = ("direct_access_url", "source", "file")

# Sample clips and ad/tracking hosts served to scrapers instead of the video
_BAIT_RE = re.compile(
    r"(bigbuckbunny|test-videos\.co\.uk|sample-videos\.com"
    r"|banner|track|metric|pixel|adserv|analytics)",
    re.IGNORECASE,
)

_SOURCE = "voe"


def deobfuscate(payload: str, markers: Sequence[str] = VOE_MARKERS) -> str:
    """Run the six-step chain and return the decoded text."""
    step = rotate_letters(payload.strip(), VOE_ROTATION)
    step = strip_all_markers(step, markers)
    try:
        raw = decode_base64(step, repair_padding=True)
    except DecodeError as exc:
        raise ParseError(str(exc), source=_SOURCE, stage="first_base64") from exc
    raw = reverse(shift_bytes(raw, VOE_SHIFT))
    try:
        decoded = decode_base64(raw, repair_padding=True)
    except DecodeError as exc:
        raise ParseError(str(exc), source=_SOURCE, stage="second_base64") from exc
    return decoded.decode("utf-8", errors="replace")


def is_bait_url(url: str) -> bool:
    return bool(_BAIT_RE.search(url))


def is_stream_url(url: str) -> bool:
    """True if *url* has an http(s) scheme and a host."""
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def url_from_config(data: dict[str, Any]) -> str | None:
    """Pick the stream URL out of a decoded VOE player config.

    Prefers the direct/HLS source, falls back to the first mp4 fallback.
    """
    for key in _URL_KEYS:
        value = data.get(key)
        if isinstance(value, str) and value:
            return value

    fallbacks = data.get("fallbacks")
    if isinstance(fallbacks, list) and fallbacks and isinstance(fallbacks[0], dict):
        value = fallbacks[0].get("file")
        if isinstance(value, str) and value:
            return value
    return None


def validate_stream_url(url: str) -> str:
    """Return *url* if it looks playable, else raise ``ParseError``."""
    url = url.strip()
    if not is_stream_url(url):
        raise ParseError(
            f"decoded value is not a URL: {url[:80]!r}", source=_SOURCE, stage="validate"
        )
    if is_bait_url(url):
        raise ParseError(
            f"decoded URL is a bait/sample clip: {url[:80]}",
            source=_SOURCE,
            stage="validate",
        )
    return url


def extract_stream_url(payload: str, markers: Sequence[str] = VOE_MARKERS) -> str:
    """Deobfuscate *payload* and return the validated stream URL."""
    decoded = deobfuscate(payload, markers).strip()
    if decoded.startswith("{"):
        try:
            data = json.loads(decoded)
        except json.JSONDecodeError as exc:
            raise ParseError(
                "decoded config is not valid JSON", source=_SOURCE, stage="json"
            ) from exc
        if not isinstance(data, dict):
            raise ParseError("decoded config is not an object", source=_SOURCE, stage="json")
        url = url_from_config(data)
        if url is None:
            raise ParseError(
                "decoded config holds no stream URL", source=_SOURCE, stage="json"
            )
        return validate_stream_url(url)
    return validate_stream_url(decoded)


def decode_legacy_hls(value: str) -> str:
    """Decode the plain base64 ``'hls': 'aHR0…'`` value of older VOE pages."""
    try:
        decoded = decode_base64(value, repair_padding=True)
    except DecodeError as exc:
        raise ParseError(str(exc), source=_SOURCE, stage="legacy_hls") from exc
    return validate_stream_url(decoded.decode("utf-8", errors="replace"))
