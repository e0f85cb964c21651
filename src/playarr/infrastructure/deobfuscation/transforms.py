"""Reversible string/byte transforms used by hoster deobfuscation chains.

Pure functions without I/O or logging. Each step of a provider pipeline is
one of these, so a provider that reorders or re-parameterises its scheme
only needs a new composition, not new primitives.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Iterable
from typing import TypeVar

from playarr.domain.streaming.exceptions import DecodeError

_Seq = TypeVar("_Seq", str, bytes)


def rotate_letters(text: str, n: int) -> str:
    """Rotate A-Z and a-z by *n* positions, keeping case.

    Non-letters pass through unchanged. ``n=13`` is ROT13 (self-inverse).
    """
    result: list[str] = []
    for ch in text:
        code = ord(ch)
        if 0x41 <= code <= 0x5A:  # A-Z
            code = (code - 0x41 + n) % 26 + 0x41
        elif 0x61 <= code <= 0x7A:  # a-z
            code = (code - 0x61 + n) % 26 + 0x61
        result.append(chr(code))
    return "".join(result)


def strip_markers(text: str, marker: str) -> str:
    """Remove every occurrence of the literal *marker* from *text*."""
    if not marker:
        raise ValueError("marker must be a non-empty string")
    return text.replace(marker, "")


def strip_all_markers(text: str, markers: Iterable[str]) -> str:
    """Apply :func:`strip_markers` for each marker, in order."""
    for marker in markers:
        text = strip_markers(text, marker)
    return text


def decode_base64(data: str | bytes, *, repair_padding: bool = False) -> bytes:
    """Decode standard-alphabet base64.

    Raises ``DecodeError`` on characters outside the alphabet or wrong
    padding. With *repair_padding* missing ``=`` characters are appended
    first, matching how hosters commonly strip them.
    """
    if isinstance(data, bytes):
        try:
            data = data.decode("ascii")
        except UnicodeDecodeError as exc:
            raise DecodeError("base64 input is not ASCII") from exc
    data = data.strip()
    if repair_padding:
        remainder = len(data) % 4
        if remainder:
            data += "=" * (4 - remainder)
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"malformed base64: {exc}") from exc


def shift_bytes(data: bytes, offset: int) -> bytes:
    """Add *offset* to every byte, wrapping modulo 256."""
    return bytes((b + offset) % 256 for b in data)


def reverse(seq: _Seq) -> _Seq:
    """Reverse a string or byte sequence."""
    return seq[::-1]
