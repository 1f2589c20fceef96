"""Encoding, hashing and random-string helpers."""

from __future__ import annotations

import base64
import hashlib
import os
import re
from pathlib import Path

_LINE_LENGTH = 72
_NON_B64 = re.compile(r"[^A-Za-z0-9+/]")


def _as_bytes(data: str | bytes) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else bytes(data)


def b64_encode(data: str | bytes, padded_len: int = -1) -> str:
    """Encode to base64, breaking lines every 72 characters.

    When ``padded_len`` is longer than the result, it is filled with '='.
    """
    encoded = base64.b64encode(_as_bytes(data)).decode("ascii")
    lines = [
        encoded[start:start + _LINE_LENGTH]
        for start in range(0, len(encoded), _LINE_LENGTH)
    ]
    result = "\n".join(lines)
    if padded_len != -1 and padded_len > len(result):
        result += "=" * (padded_len - len(result))
    return result


def b64_decode(encoded: str | bytes) -> bytes:
    """Decode base64, ignoring line breaks, stray characters and extra padding."""
    text = encoded.decode("ascii", "ignore") if isinstance(encoded, bytes) else encoded
    cleaned = _NON_B64.sub("", text)
    if len(cleaned) % 4 == 1:
        cleaned = cleaned[:-1]
    cleaned += "=" * (-len(cleaned) % 4)
    return base64.b64decode(cleaned)


def hex_encode(data: str | bytes) -> str:
    """Encode to upper-case hexadecimal."""
    return _as_bytes(data).hex().upper()


def hex_decode(encoded: str) -> bytes:
    """Decode hexadecimal text of either case."""
    return bytes.fromhex(encoded)


def random_bytes(length: int) -> bytes:
    """Return ``length`` bytes from the system's secure random source."""
    return os.urandom(length)


def hash_bytes(data: str | bytes) -> bytes:
    """Return the raw SHA-256 digest of ``data``."""
    return hashlib.sha256(_as_bytes(data)).digest()


def hash_file(path: str | os.PathLike) -> bytes:
    """Return the raw SHA-256 digest of a file's contents."""
    return hash_bytes(Path(path).read_bytes())


def trip(data: str | bytes, outlen: int = 24) -> str:
    """Return a short base64 identifier derived from the SHA-256 of ``data``."""
    return b64_encode(hash_bytes(data), outlen)[:outlen]