import random
from types import SimpleNamespace

import pytest

from memsim.errors import ConfigurationError
from memsim.replacement import POLICIES, ReplacementPolicy, select_victim


def lines(*stamps):
    # (last_used, inserted) per way
    return [SimpleNamespace(last_used=u, inserted=i) for u, i in stamps]


def test_lru_picks_least_recently_used():
    ways = lines((5, 1), (2, 2), (9, 3), (4, 4))
    assert select_victim(ReplacementPolicy.LRU, ways) == 1


def test_fifo_ignores_recent_use():
    ways = lines((9, 1), (2, 2), (3, 3))
    assert select_victim(ReplacementPolicy.FIFO, ways) == 0


def test_ties_go_to_lowest_way():
    ways = lines((3, 3), (3, 3), (3, 3))
    assert select_victim(ReplacementPolicy.LRU, ways) == 0
    assert select_victim(ReplacementPolicy.FIFO, ways) == 0


def test_random_is_reproducible_with_seed():
    ways = lines(*[(i, i) for i in range(8)])
    first = [select_victim(ReplacementPolicy.RANDOM, ways, random.Random(7))
             for _ in range(5)]
    second = [select_victim(ReplacementPolicy.RANDOM, ways, random.Random(7))
              for _ in range(5)]
    assert first == second
    assert all(0 <= way < 8 for way in first)


def test_unknown_policy():
    with pytest.raises(ConfigurationError):
        select_victim("MRU", lines((1, 1)))


def test_policy_names():
    assert POLICIES == ("LRU", "FIFO", "RANDOM")
