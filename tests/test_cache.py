import random

import pytest

from memsim.cache import AccessType, CacheLevel, MissType
from memsim.config import CacheGeometry


def no_data(base):
    return {}


@pytest.fixture
def direct():
    return CacheLevel("L1", CacheGeometry(1024, 32, 1))


def make_level(size, block, assoc, policy="LRU", seed=0):
    return CacheLevel("L1", CacheGeometry(size, block, assoc), policy,
                      random.Random(seed))


def read(level, address, clock):
    return level.access(address, AccessType.READ, None, clock, no_data)


def test_first_access_is_compulsory_then_hit(direct):
    first = read(direct, 0x0, 1)
    assert not first.is_hit
    assert first.miss_type == MissType.COMPULSORY
    again = read(direct, 0x4, 2)
    assert again.is_hit
    assert again.miss_type == MissType.NONE
    assert (again.set_index, again.way_index) == (0, 0)


def test_same_index_different_tag_is_conflict(direct):
    read(direct, 0x000, 1)
    result = read(direct, 0x400, 2)
    assert result.miss_type == MissType.CONFLICT
    assert result.set_index == 0
    assert result.eviction.address == 0x000
    assert not result.eviction.dirty


def test_single_set_full_is_capacity():
    level = make_level(64, 32, 2)
    read(level, 0x00, 1)
    read(level, 0x20, 2)
    assert read(level, 0x40, 3).miss_type == MissType.CAPACITY


def test_single_set_never_conflict():
    level = make_level(128, 32, 0)
    rng = random.Random(1)
    for clock in range(1, 300):
        result = read(level, rng.randrange(0, 0x1000), clock)
        assert result.miss_type != MissType.CONFLICT


def test_multi_set_never_capacity():
    level = make_level(1024, 32, 2)
    rng = random.Random(2)
    for clock in range(1, 300):
        result = read(level, rng.randrange(0, 0x10000), clock)
        assert result.miss_type != MissType.CAPACITY


def test_tag_resident_in_at_most_one_way():
    level = make_level(256, 32, 4)
    rng = random.Random(3)
    for clock in range(1, 200):
        read(level, rng.randrange(0, 0x800), clock)
        for cache_set in level.sets:
            tags = [line.tag for line in cache_set if line.valid]
            assert len(tags) == len(set(tags))


def test_lru_evicts_least_recently_used():
    level = make_level(128, 32, 4, "LRU")
    for clock, addr in enumerate((0x00, 0x20, 0x40, 0x60), 1):
        read(level, addr, clock)
    read(level, 0x00, 5)
    result = read(level, 0x80, 6)
    assert result.way_index == 1
    assert result.eviction.address == 0x20
    assert level.probe(0x20) == (False, None)


def test_fifo_evicts_oldest_fill_despite_hits():
    level = make_level(128, 32, 4, "FIFO")
    for clock, addr in enumerate((0x00, 0x20, 0x40, 0x60), 1):
        read(level, addr, clock)
    read(level, 0x00, 5)
    result = read(level, 0x80, 6)
    assert result.way_index == 0
    assert result.eviction.address == 0x00


def test_write_marks_dirty_and_eviction_carries_words(direct):
    direct.access(0x104, AccessType.WRITE, 42, 1, no_data)
    line = direct.sets[8][0]
    assert line.dirty
    assert line.data == {4: 42}
    result = read(direct, 0x504, 2)
    assert result.eviction.dirty
    assert result.eviction.words == {0x104: 42}


def test_miss_fills_from_fetch(direct):
    result = direct.access(0x48, AccessType.READ, None, 1,
                           lambda base: {8: base})
    assert result.data == 0x40
    assert direct.probe(0x48) == (True, 0x40)
    assert direct.probe(0x44) == (True, None)


def test_write_back_merges_resident_words(direct):
    read(direct, 0x100, 1)
    leftover = direct.write_back({0x104: 1, 0x900: 2})
    assert leftover == {0x900: 2}
    assert direct.probe(0x104) == (True, 1)
    assert direct.dirty_lines()[0].address == 0x100


def test_probe_does_not_touch_lru():
    level = make_level(64, 32, 2, "LRU")
    read(level, 0x00, 1)
    read(level, 0x20, 2)
    level.probe(0x00)
    assert read(level, 0x40, 3).eviction.address == 0x00


def test_reset_and_occupancy(direct):
    read(direct, 0x0, 1)
    read(direct, 0x20, 2)
    assert direct.occupancy() == 2
    direct.reset()
    assert direct.occupancy() == 0
    assert len(direct.snapshot()) == 32
