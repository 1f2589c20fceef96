"""Role feature bit sets and the text a message's content hash covers."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .block import order_hashes, raw_time_to_bytes
from .strops import b64_encode

FEATURE_COUNT = 6


def features_encode(features: Sequence[bool]) -> int:
    """Pack six feature flags into an integer, feature ``i`` at bit ``i``."""
    if len(features) != FEATURE_COUNT:
        raise ValueError(f"expected {FEATURE_COUNT} features, got {len(features)}")
    return sum(1 << index for index, enabled in enumerate(features) if enabled)


def features_decode(encoded: int) -> tuple[bool, ...]:
    """Unpack the six feature flags packed by :func:`features_encode`."""
    return tuple(bool(encoded & (1 << index)) for index in range(FEATURE_COUNT))


def content_hash_concat(time: int, s_trip: str, p_hashes: Iterable[str]) -> str:
    """Return the text covered by a message's content hash."""
    return b64_encode(raw_time_to_bytes(time)) + s_trip + "".join(order_hashes(p_hashes))