import pytest

from concord.strops import (
    b64_decode,
    b64_encode,
    hash_bytes,
    hash_file,
    hex_decode,
    hex_encode,
    random_bytes,
    trip,
)


def test_b64_encode_known_value():
    assert b64_encode(b"hello") == "aGVsbG8="


@pytest.mark.parametrize("data", [b"", b"a", b"ab", b"abc", bytes(range(256))])
def test_b64_round_trip(data):
    assert b64_decode(b64_encode(data)) == data


def test_b64_str_input_matches_bytes():
    assert b64_encode("hello") == b64_encode(b"hello")


def test_b64_line_breaks_every_72_chars():
    encoded = b64_encode(bytes(60))
    lines = encoded.split("\n")
    assert len(lines[0]) == 72
    assert len(encoded) == 81
    assert not encoded.endswith("\n")
    assert b64_decode(encoded) == bytes(60)


def test_b64_padding_extends_short_output():
    encoded = b64_encode(b"a", 8)
    assert len(encoded) == 8
    assert encoded.startswith(b64_encode(b"a"))
    assert set(encoded[len(b64_encode(b"a")):]) == {"="}


def test_b64_padding_does_not_truncate():
    assert b64_encode(b"hello", 2) == b64_encode(b"hello")


def test_b64_decode_tolerates_extra_padding():
    assert b64_decode(b64_encode(b"a", 12)) == b"a"


def test_hex_encode_known_value():
    assert hex_encode(b"\x00\xff") == "00FF"


def test_hex_round_trip():
    data = bytes(range(256))
    assert hex_decode(hex_encode(data)) == data
    assert hex_decode(hex_encode(data).lower()) == data


def test_hex_decode_rejects_garbage():
    with pytest.raises(ValueError):
        hex_decode("zz")


def test_hash_bytes_empty_digest():
    assert hash_bytes(b"").hex() == (
        "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    )


def test_hash_bytes_length_and_determinism():
    assert len(hash_bytes(b"seed")) == 32
    assert hash_bytes("seed") == hash_bytes(b"seed")


def test_hash_file_matches_hash_bytes(tmp_path):
    target = tmp_path / "data.bin"
    target.write_bytes(b"some \x00 content")
    assert hash_file(target) == hash_bytes(b"some \x00 content")


def test_random_bytes_length_and_variation():
    first = random_bytes(16)
    assert len(first) == 16
    assert len({random_bytes(16) for _ in range(5)}) == 5


def test_trip_length_and_prefix():
    value = trip("seed")
    assert len(value) == 24
    assert b64_encode(hash_bytes("seed")).startswith(value)


def test_trip_custom_length():
    assert len(trip(b"seed", 10)) == 10
    assert trip(b"seed", 10) == trip(b"seed")[:10]