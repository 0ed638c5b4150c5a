"""
Energy model
============================================================
Per-access energy of the L1 cache, split into

  static   leakage of data + tag arrays plus the configured static power,
  dynamic  tag compare + block read/write,
  penalty  configured miss penalty power (misses only),

all scaled by voltage squared. Units follow the parameters: pJ for the
per-bit constants, whatever the caller uses for the configured powers.
"""

from __future__ import annotations

from typing import Dict, NamedTuple

from memsim.config import CacheGeometry

E_BIT_ACCESS      = 5.0    # pJ per bit read/written
E_TAG_COMPARE     = 2.0    # pJ per tag bit compared
P_LEAK_PER_BYTE   = 0.5    # leakage per byte of storage
MISS_BIT_FRACTION = 0.35   # share of the block touched on a miss

HIT_TIME_CYCLES     = 1
MISS_PENALTY_CYCLES = 100


class AccessEnergy(NamedTuple):
    static: float
    dynamic: float
    penalty: float

    @property
    def total(self) -> float:
        return self.static + self.dynamic + self.penalty


class EnergyTotals:
    """Running energy sums; only ever grow until reset()."""

    __slots__ = ("static_energy", "dynamic_energy", "miss_penalty_energy",
                 "total_energy")

    def __init__(self):
        self.reset()

    def reset(self):
        self.static_energy = 0.0
        self.dynamic_energy = 0.0
        self.miss_penalty_energy = 0.0
        self.total_energy = 0.0

    def add(self, energy: AccessEnergy):
        self.static_energy += energy.static
        self.dynamic_energy += energy.dynamic
        self.miss_penalty_energy += energy.penalty
        self.total_energy += energy.total

    def as_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in self.__slots__}

    def __repr__(self):
        return (f"EnergyTotals(static={self.static_energy:.2f}, "
                f"dynamic={self.dynamic_energy:.2f}, "
                f"penalty={self.miss_penalty_energy:.2f}, "
                f"total={self.total_energy:.2f})")


class EnergyModel:
    """Charges each L1 access and keeps the running totals."""

    def __init__(self, geometry: CacheGeometry, static_power: float,
                 miss_penalty_power: float, voltage: float):
        self.geometry = geometry
        self.static_power = static_power
        self.miss_penalty_power = miss_penalty_power
        self.voltage = voltage
        self.totals = EnergyTotals()

    @property
    def voltage_factor(self) -> float:
        return self.voltage * self.voltage

    def static_energy(self) -> float:
        g = self.geometry
        total_tag_bits = g.num_sets * g.associativity * g.tag_bits
        total_size_bytes = g.size + total_tag_bits / 8
        leakage = total_size_bytes * P_LEAK_PER_BYTE * self.voltage
        configured = self.static_power * (g.size / 1024)
        return (leakage + configured) * self.voltage_factor

    def dynamic_energy(self, is_hit: bool) -> float:
        g = self.geometry
        block_energy = g.block_bits * E_BIT_ACCESS
        if not is_hit:
            block_energy *= MISS_BIT_FRACTION
        return (g.tag_bits * E_TAG_COMPARE + block_energy) * self.voltage_factor

    def penalty_energy(self, is_hit: bool) -> float:
        if is_hit:
            return 0.0
        return self.miss_penalty_power * self.voltage_factor

    def cost(self, is_hit: bool) -> AccessEnergy:
        """Energy of one access, without recording it."""
        return AccessEnergy(self.static_energy(), self.dynamic_energy(is_hit),
                            self.penalty_energy(is_hit))

    def charge(self, is_hit: bool) -> AccessEnergy:
        energy = self.cost(is_hit)
        self.totals.add(energy)
        return energy

    def reset(self):
        self.totals.reset()


def amat(accesses: int, misses: int,
         hit_time: float = HIT_TIME_CYCLES,
         miss_penalty: float = MISS_PENALTY_CYCLES) -> float:
    """Average memory access time in cycles."""
    miss_rate = misses / accesses if accesses > 0 else 0.0
    return hit_time + miss_rate * miss_penalty
