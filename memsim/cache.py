"""
Set-associative cache level
============================================================
One generic cache level, used for both L1 and L2. Each set holds
``associativity`` lines; a tag lives in at most one way of its set.

Lines are write-back: a write hit only marks the line dirty, and the
displaced line of a fill is handed back to the caller as an Eviction so
its dirty words can be pushed to the level below.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

from memsim.address import AddressCodec
from memsim.config import CacheGeometry
from memsim.replacement import ReplacementPolicy, select_victim

logger = logging.getLogger(__name__)

# Block contents: byte offset within the block -> last value stored there
Words = Dict[int, Any]


class AccessType:
    READ  = "Read"
    WRITE = "Write"


class MissType:
    NONE       = "None"
    COMPULSORY = "Compulsory"
    CAPACITY   = "Capacity"
    CONFLICT   = "Conflict"


class CacheLine:
    __slots__ = ("valid", "tag", "data", "dirty", "last_used", "inserted",
                 "address")

    def __init__(self):
        self.valid = False
        self.tag = 0
        self.data: Words = {}
        self.dirty = False
        self.last_used = 0    # access clock at last hit or fill
        self.inserted = 0     # access clock at fill
        self.address = 0      # block base address

    def fill(self, tag: int, address: int, data: Words, dirty: bool, clock: int):
        self.valid = True
        self.tag = tag
        self.address = address
        self.data = data
        self.dirty = dirty
        self.last_used = clock
        self.inserted = clock

    def as_dict(self) -> Dict[str, Any]:
        return {
            "valid":     self.valid,
            "tag":       self.tag,
            "data":      dict(self.data),
            "dirty":     self.dirty,
            "last_used": self.last_used,
            "inserted":  self.inserted,
            "address":   self.address,
        }

    def __repr__(self):
        if not self.valid:
            return "CacheLine(invalid)"
        return (f"CacheLine(tag={self.tag:#x}, addr={self.address:#010x}, "
                f"dirty={self.dirty}, data={self.data})")


class Eviction(NamedTuple):
    """A valid line displaced by a fill."""
    address: int          # block base address
    tag: int
    set_index: int
    way_index: int
    dirty: bool
    words: Dict[int, Any] # absolute address -> value


class LevelAccess(NamedTuple):
    is_hit: bool
    miss_type: str
    set_index: int
    way_index: int
    tag: int
    data: Any
    eviction: Optional[Eviction]


class CacheLevel:
    """
    Set-associative storage with pluggable replacement.

    Misses are classified with the three-C taxonomy as seen from this
    level alone: Compulsory while the set still has an invalid way,
    otherwise Conflict when the level has several sets and Capacity when
    it has exactly one.
    """

    def __init__(self, name: str, geometry: CacheGeometry,
                 policy: str = ReplacementPolicy.LRU,
                 rng: Optional[random.Random] = None):
        self.name = name
        self.geometry = geometry
        self.policy = policy
        self.rng = rng or random.Random()
        self.codec = AddressCodec(geometry)
        self.sets: List[List[CacheLine]] = []
        self.reset()

    @property
    def num_sets(self) -> int:
        return self.geometry.num_sets

    @property
    def associativity(self) -> int:
        return self.geometry.associativity

    @property
    def block_size(self) -> int:
        return self.geometry.block_size

    def reset(self):
        self.sets = [
            [CacheLine() for _ in range(self.geometry.associativity)]
            for _ in range(self.geometry.num_sets)
        ]

    # ── Lookup ──────────────────────────────────────────────────────────

    def lookup(self, tag: int, set_index: int) -> Optional[int]:
        """Way holding *tag* in *set_index*, or None."""
        for way, line in enumerate(self.sets[set_index]):
            if line.valid and line.tag == tag:
                return way
        return None

    def probe(self, address: int) -> Tuple[bool, Any]:
        """
        Read the word at *address* without touching replacement state.
        Returns (resident, value).
        """
        tag, set_index, offset = self.codec.decompose(address)
        way = self.lookup(tag, set_index)
        if way is None:
            return False, None
        return True, self.sets[set_index][way].data.get(offset)

    def classify_miss(self, set_index: int) -> str:
        if any(not line.valid for line in self.sets[set_index]):
            return MissType.COMPULSORY
        if self.num_sets > 1:
            return MissType.CONFLICT
        return MissType.CAPACITY

    # ── Access ──────────────────────────────────────────────────────────

    def access(self, address: int, access_type: str, value: Any, clock: int,
               fetch: Callable[[int], Words]) -> LevelAccess:
        """
        Perform one read or write at this level.

        On a miss the block is refilled with ``fetch(block_address)``
        (offset -> value); a write then overwrites its word and leaves the
        line dirty.
        """
        tag, set_index, offset = self.codec.decompose(address)
        cache_set = self.sets[set_index]
        is_write = access_type == AccessType.WRITE

        way = self.lookup(tag, set_index)
        if way is not None:
            line = cache_set[way]
            line.last_used = clock
            if is_write:
                line.data[offset] = value
                line.dirty = True
            logger.debug("%s hit  addr=%#010x set=%d way=%d",
                         self.name, address, set_index, way)
            return LevelAccess(True, MissType.NONE, set_index, way, tag,
                               line.data.get(offset), None)

        miss_type = self.classify_miss(set_index)
        way = next((i for i, line in enumerate(cache_set) if not line.valid),
                   None)
        if way is None:
            way = select_victim(self.policy, cache_set, self.rng)

        line = cache_set[way]
        eviction = None
        if line.valid:
            eviction = Eviction(
                address=line.address, tag=line.tag, set_index=set_index,
                way_index=way, dirty=line.dirty,
                words={line.address + off: v for off, v in line.data.items()})

        block_address = self.codec.block_address(address)
        words = dict(fetch(block_address))
        if is_write:
            words[offset] = value
        line.fill(tag, block_address, words, is_write, clock)

        logger.debug("%s miss addr=%#010x set=%d way=%d type=%s%s",
                     self.name, address, set_index, way, miss_type,
                     " (evicted dirty %#010x)" % eviction.address
                     if eviction and eviction.dirty else "")
        return LevelAccess(False, miss_type, set_index, way, tag,
                           words.get(offset), eviction)

    # ── Write-back support ──────────────────────────────────────────────

    def write_back(self, words: Dict[int, Any]) -> Dict[int, Any]:
        """
        Merge written-back words (absolute address -> value) into resident
        blocks, marking them dirty. Returns the words whose block is not
        resident here.
        """
        missing: Dict[int, Any] = {}
        for address, value in words.items():
            tag, set_index, offset = self.codec.decompose(address)
            way = self.lookup(tag, set_index)
            if way is None:
                missing[address] = value
                continue
            line = self.sets[set_index][way]
            line.data[offset] = value
            line.dirty = True
        return missing

    def dirty_lines(self) -> List[CacheLine]:
        return [line for cache_set in self.sets for line in cache_set
                if line.valid and line.dirty]

    # ── Display ─────────────────────────────────────────────────────────

    def snapshot(self) -> List[List[Dict[str, Any]]]:
        return [[line.as_dict() for line in cache_set]
                for cache_set in self.sets]

    def occupancy(self) -> int:
        return sum(line.valid for cache_set in self.sets for line in cache_set)

    def __repr__(self):
        return f"CacheLevel({self.name}, {self.geometry!r}, {self.policy})"
