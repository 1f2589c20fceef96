import itertools

import pytest

from concord.block import raw_time_to_bytes
from concord.strman import content_hash_concat, features_decode, features_encode
from concord.strops import b64_encode


@pytest.mark.parametrize("flags", list(itertools.product([False, True], repeat=6)))
def test_features_round_trip(flags):
    assert features_decode(features_encode(flags)) == flags


def test_no_features_encodes_zero():
    assert features_encode([False] * 6) == 0
    assert features_decode(0) == (False,) * 6


def test_first_feature_is_lowest_bit():
    assert features_encode([True, False, False, False, False, False]) == 1


def test_distinct_flag_sets_encode_distinctly():
    codes = {features_encode(flags) for flags in itertools.product([False, True], repeat=6)}
    assert len(codes) == 64


@pytest.mark.parametrize("bad", [[True] * 5, [False] * 7, []])
def test_features_encode_wrong_length_raises(bad):
    with pytest.raises(ValueError):
        features_encode(bad)


def test_content_hash_concat_zero_time():
    assert content_hash_concat(0, "S", set()) == "AAAAAAAAAAA=S"


def test_content_hash_concat_orders_parents_descending():
    text = content_hash_concat(5, "trip", {"a", "c", "b"})
    assert text.endswith("tripcba")
    assert text.startswith(b64_encode(raw_time_to_bytes(5)))


def test_content_hash_concat_independent_of_input_order():
    assert content_hash_concat(9, "t", ["x", "y", "z"]) == content_hash_concat(9, "t", ["z", "x", "y"])