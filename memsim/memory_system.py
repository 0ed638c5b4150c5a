"""
Memory system
============================================================
L1 -> L2 -> main memory orchestration. MemorySystem.access() is the only
operation that changes cache state, statistics or energy totals.

    address ─► AddressCodec ─► L1 ──miss──► L2 ──miss──► MemoryImage
                                │            │
                                └── fill ◄───┴── fill ◄───┘

Both levels are write-back / write-allocate. Dirty L1 victims are merged
into L2 when their block is resident there and go to main memory
otherwise; dirty L2 victims go to main memory.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Dict, Iterator, List, NamedTuple, Optional, Tuple, Union

from memsim.address import AddressCodec, AddressRef, SymbolTable
from memsim.cache import AccessType, CacheLevel, Eviction, MissType, Words
from memsim.config import SimulatorConfig
from memsim.energy import EnergyModel, EnergyTotals, amat

logger = logging.getLogger(__name__)

# ─────────────────────────────────────────────────────────────────────────────
# Records
# ─────────────────────────────────────────────────────────────────────────────

class AccessResult(NamedTuple):
    """Outcome of one MemorySystem.access() call."""
    is_hit: bool
    miss_type: str
    set_index: int
    way_index: int
    tag: int
    energy: float
    access_type: str
    data: Any
    l2_hit: bool
    address: int
    writeback: bool = False

    def describe(self) -> str:
        if self.is_hit:
            where = "L1 HIT"
        elif self.l2_hit:
            where = f"L1 MISS ({self.miss_type}), L2 HIT"
        else:
            where = f"L1 MISS ({self.miss_type}), L2 MISS"
        return (f"{self.access_type:5s} {self.address:#010x}  {where}  "
                f"set={self.set_index} way={self.way_index} "
                f"tag={self.tag:#x}  E={self.energy:.2f}")


class Statistics:
    """Access counters; never decremented except by reset()."""

    __slots__ = ("accesses", "hits", "misses", "reads", "writes",
                 "compulsory_misses", "capacity_misses", "conflict_misses",
                 "l2_hits", "l2_misses", "writebacks")

    def __init__(self):
        self.reset()

    def reset(self):
        for name in self.__slots__:
            setattr(self, name, 0)

    def record(self, access_type: str, is_hit: bool, miss_type: str,
               l2_hit: Optional[bool]):
        self.accesses += 1
        if access_type == AccessType.WRITE:
            self.writes += 1
        else:
            self.reads += 1

        if is_hit:
            self.hits += 1
            return
        self.misses += 1
        if miss_type == MissType.COMPULSORY:
            self.compulsory_misses += 1
        elif miss_type == MissType.CAPACITY:
            self.capacity_misses += 1
        elif miss_type == MissType.CONFLICT:
            self.conflict_misses += 1
        if l2_hit:
            self.l2_hits += 1
        else:
            self.l2_misses += 1

    @property
    def hit_rate(self) -> float:
        return self.hits / self.accesses if self.accesses else 0.0

    @property
    def miss_rate(self) -> float:
        return self.misses / self.accesses if self.accesses else 0.0

    @property
    def l2_accesses(self) -> int:
        return self.l2_hits + self.l2_misses

    def as_dict(self) -> Dict[str, int]:
        return {name: getattr(self, name) for name in self.__slots__}

    def __repr__(self):
        return (f"Statistics(accesses={self.accesses}, hits={self.hits}, "
                f"misses={self.misses})")


class MemoryImage:
    """
    Sparse backing store. Reads of addresses never written return None.
    """

    def __init__(self):
        self.cells: Dict[int, Any] = {}

    def read(self, address: int) -> Any:
        return self.cells.get(address)

    def write(self, address: int, value: Any):
        self.cells[address] = value

    def read_block(self, base: int, size: int) -> Words:
        """Written cells of [base, base+size) as offset -> value."""
        if len(self.cells) < size:
            return {addr - base: v for addr, v in self.cells.items()
                    if base <= addr < base + size}
        return {off: self.cells[base + off] for off in range(size)
                if base + off in self.cells}

    def items(self) -> Iterator[Tuple[int, Any]]:
        return iter(sorted(self.cells.items()))

    def clear(self):
        self.cells.clear()

    def __contains__(self, address: int) -> bool:
        return address in self.cells

    def __len__(self):
        return len(self.cells)

# ─────────────────────────────────────────────────────────────────────────────
# Memory system
# ─────────────────────────────────────────────────────────────────────────────

class MemorySystem:
    """Two cache levels over a sparse main memory."""

    def __init__(self, config: Optional[SimulatorConfig] = None):
        self.config = config or SimulatorConfig()
        # an unseeded run still picks one seed so reset() replays identically
        self.seed = self.config.seed if self.config.seed is not None \
            else random.randrange(1 << 32)
        self.rng = random.Random(self.seed)
        policy = self.config.replacement_policy

        self.symbols = SymbolTable(self.config.l1.block_size)
        self.codec = AddressCodec(self.config.l1, self.symbols)
        self.l1 = CacheLevel("L1", self.config.l1, policy, self.rng)
        self.l2 = CacheLevel("L2", self.config.l2, policy, self.rng)
        self.memory = MemoryImage()
        self.energy = EnergyModel(self.config.l1,
                                  self.config.static_power,
                                  self.config.miss_penalty_power,
                                  self.config.voltage)
        self.stats = Statistics()
        self.clock = 0
        self.last_result: Optional[AccessResult] = None

    def reset(self):
        self.rng.seed(self.seed)
        self.symbols.clear()
        self.l1.reset()
        self.l2.reset()
        self.memory.clear()
        self.energy.reset()
        self.stats.reset()
        self.clock = 0
        self.last_result = None

    # ── Lower levels ────────────────────────────────────────────────────

    def _memory_block(self, base: int) -> Words:
        return self.memory.read_block(base, self.l2.block_size)

    def _fetch_for_l1(self, base: int, l2_hits: List[bool]) -> Words:
        """
        Supply the L1 block at *base* through L2. L2 is accessed once with
        its own geometry; when L1 blocks are larger than L2 blocks the
        remaining words are read straight from L2 or memory.
        """
        result = self.l2.access(base, AccessType.READ, None, self.clock,
                                self._memory_block)
        l2_hits.append(result.is_hit)
        if result.eviction is not None:
            self._retire_l2(result.eviction)

        words: Words = {}
        for off in range(self.l1.block_size):
            resident, value = self.l2.probe(base + off)
            if not resident:
                value = self.memory.read(base + off)
            if value is not None:
                words[off] = value
        return words

    def _retire_l1(self, eviction: Eviction) -> bool:
        if not eviction.dirty:
            return False
        leftover = self.l2.write_back(eviction.words)
        for address, value in leftover.items():
            self.memory.write(address, value)
        logger.debug("L1 write-back %#010x (%d words, %d to memory)",
                     eviction.address, len(eviction.words), len(leftover))
        return True

    def _retire_l2(self, eviction: Eviction) -> bool:
        if not eviction.dirty:
            return False
        for address, value in eviction.words.items():
            self.memory.write(address, value)
        self.stats.writebacks += 1
        logger.debug("L2 write-back %#010x (%d words)",
                     eviction.address, len(eviction.words))
        return True

    # ── Access ──────────────────────────────────────────────────────────

    def resolve(self, address: Union[str, int, AddressRef]) -> int:
        return self.codec.resolve(address)

    def access(self, address: Union[str, int, AddressRef],
               access_type: str = AccessType.READ,
               value: Any = None) -> AccessResult:
        """Perform one read or write end to end."""
        if access_type not in (AccessType.READ, AccessType.WRITE):
            raise ValueError(f"access type must be Read or Write, got {access_type!r}")
        if access_type == AccessType.WRITE and \
                (isinstance(value, bool) or not isinstance(value, int)):
            raise ValueError(f"write value must be an integer, got {value!r}")

        addr = self.codec.resolve(address)
        self.clock += 1

        l2_hits: List[bool] = []
        result = self.l1.access(addr, access_type, value, self.clock,
                                lambda base: self._fetch_for_l1(base, l2_hits))

        wrote_back = False
        if result.eviction is not None:
            wrote_back = self._retire_l1(result.eviction)
            if wrote_back:
                self.stats.writebacks += 1

        l2_hit = bool(l2_hits and l2_hits[0])
        self.stats.record(access_type, result.is_hit, result.miss_type,
                          None if result.is_hit else l2_hit)
        energy = self.energy.charge(result.is_hit)

        data = value if access_type == AccessType.WRITE else result.data
        self.last_result = AccessResult(
            is_hit=result.is_hit,
            miss_type=result.miss_type,
            set_index=result.set_index,
            way_index=result.way_index,
            tag=result.tag,
            energy=energy.total,
            access_type=access_type,
            data=data,
            l2_hit=l2_hit,
            address=addr,
            writeback=wrote_back,
        )
        return self.last_result

    def read(self, address: Union[str, int, AddressRef]) -> AccessResult:
        return self.access(address, AccessType.READ)

    def write(self, address: Union[str, int, AddressRef], value: Any) -> AccessResult:
        return self.access(address, AccessType.WRITE, value)

    def flush(self) -> int:
        """
        Write every dirty line back to main memory and clean it. Caches
        stay valid. Returns the number of lines flushed. L1 is written last
        so its newer words win over L2's copy of the same block.
        """
        flushed = 0
        for level in (self.l2, self.l1):
            for line in level.dirty_lines():
                for off, v in line.data.items():
                    self.memory.write(line.address + off, v)
                line.dirty = False
                flushed += 1
        return flushed

    # ── Read-only views ─────────────────────────────────────────────────

    def amat(self) -> float:
        return amat(self.stats.accesses, self.stats.misses)

    @property
    def totals(self) -> EnergyTotals:
        return self.energy.totals

    def l1_state(self):
        return self.l1.snapshot()

    def l2_state(self):
        return self.l2.snapshot()

    def memory_state(self) -> Dict[int, Any]:
        return dict(self.memory.items())
