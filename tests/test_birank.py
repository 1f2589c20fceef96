import pytest

from concord.birank import Birank


def test_initial_rank_is_positive():
    rank = Birank()
    assert rank.get_dir() is True
    assert bool(rank) is True


def test_first_negation_gives_base_negative():
    rank = Birank()
    rank.orient_dir(False)
    assert rank.irank == -1
    assert rank.get_dir() is False
    assert bool(rank) is False


def test_orient_same_direction_is_no_op():
    rank = Birank()
    rank.orient_dir(True)
    assert rank == Birank()
    negative = Birank()
    negative.orient_dir(False)
    before = negative.irank
    negative.orient_dir(False)
    assert negative.irank == before


def test_each_change_of_direction_ranks_higher():
    rank = Birank()
    previous = Birank(rank.irank)
    for direction in [False, True, False, True, False, True]:
        rank.orient_dir(direction)
        assert rank.get_dir() is direction
        assert rank > previous
        assert previous < rank
        previous = Birank(rank.irank)


def test_negative_base_outranks_initial():
    negative = Birank()
    negative.orient_dir(False)
    assert negative > Birank()
    assert max(Birank(), negative) == negative


@pytest.mark.parametrize("direction", [True, False])
def test_increment_keeps_direction_and_raises(direction):
    rank = Birank()
    rank.orient_dir(direction)
    before = Birank(rank.irank)
    rank.increment()
    assert rank.get_dir() is direction
    assert rank > before


def test_equality_is_by_value():
    assert Birank(3) == Birank(3)
    assert not (Birank(3) == Birank(-3))
    assert Birank(3) >= Birank(3)