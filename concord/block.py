"""Blocks of the hash graph: time encoding, JSON form, hashing and mining."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from time import time_ns
from typing import Any

from .miner import Miner
from .strops import b64_decode, b64_encode, hash_bytes, hex_encode

_TIME_BYTES = 8


@dataclass
class Block:
    """One entry of the graph.

    ``c_hashes`` is filled in by chain analysis and is never saved.
    """

    time: int = 0
    nonce: str = ""
    s_trip: str = ""
    c_trip: str = ""
    cont: str = ""
    hash: str = ""
    p_hashes: set[str] = field(default_factory=set)
    c_hashes: set[str] = field(default_factory=set, compare=False, repr=False)


def get_raw_time() -> int:
    """Return the current time as nanoseconds since the epoch."""
    return time_ns()


def raw_time_to_bytes(raw_time: int) -> bytes:
    """Encode a raw time as 8 little-endian bytes."""
    return raw_time.to_bytes(_TIME_BYTES, "little")


def bytes_to_raw_time(data: bytes) -> int:
    """Decode the first 8 little-endian bytes of ``data`` as a raw time."""
    if len(data) < _TIME_BYTES:
        raise ValueError(f"time needs {_TIME_BYTES} bytes, got {len(data)}")
    return int.from_bytes(data[:_TIME_BYTES], "little")


def block_to_json(block: Block) -> dict[str, Any]:
    """Return the saved JSON form of a block."""
    return {
        "d": [
            b64_encode(raw_time_to_bytes(block.time)),
            block.nonce,
            block.s_trip,
            block.c_trip,
            block.cont,
            block.hash,
        ],
        "p": sorted(block.p_hashes),
    }


def json_to_block(data: dict[str, Any]) -> Block:
    """Build a block from its saved JSON form."""
    try:
        fields = data["d"]
        parents = data["p"]
    except (KeyError, TypeError) as err:
        raise ValueError("block JSON needs 'd' and 'p' entries") from err
    if not isinstance(fields, list) or len(fields) < 6:
        raise ValueError("block JSON 'd' must be a list of six strings")
    enc_time, nonce, s_trip, c_trip, cont, block_hash = fields[:6]
    return Block(
        time=bytes_to_raw_time(b64_decode(enc_time)),
        nonce=nonce,
        s_trip=s_trip,
        c_trip=c_trip,
        cont=cont,
        hash=block_hash,
        p_hashes=set(parents),
    )


def order_hashes(hashes: Iterable[str]) -> list[str]:
    """Return the hashes sorted in descending order."""
    return sorted(hashes, reverse=True)


def hash_concat(block: Block) -> str:
    """Return the text that a block's hash covers, without the nonce."""
    head = b64_encode(raw_time_to_bytes(block.time)) + block.s_trip + block.c_trip + block.cont
    return head + "".join(order_hashes(block.p_hashes))


def verify_block(block: Block, pow_req: int) -> bool:
    """Return whether the block's hash is correct and meets the work requirement."""
    result = hex_encode(hash_bytes(hash_concat(block) + block.nonce))
    if result != block.hash:
        return False
    return result[:pow_req] == "0" * pow_req


def construct_block(
    cont: str,
    p_hashes: Iterable[str],
    pow_req: int,
    s_trip: str,
    set_time: int | None = None,
    c_trip: str = "",
) -> Block:
    """Mine a new block holding ``cont`` on top of ``p_hashes``."""
    block = Block(
        time=get_raw_time() if set_time is None else set_time,
        s_trip=s_trip,
        c_trip=c_trip,
        cont=cont,
        p_hashes=set(p_hashes),
    )
    block.nonce, block.hash = Miner(pow_req).generate_valid_nonce(hash_concat(block))
    return block