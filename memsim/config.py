"""
Simulator configuration
============================================================
Cache geometry and power parameters, validated before any simulation
state is built. Geometry that would make the tag/index/offset bit math
meaningless is rejected here with a ConfigurationError.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional

from memsim.bits import ADDRESS_BITS, is_power_of_two, log2
from memsim.errors import ConfigurationError
from memsim.replacement import POLICIES, ReplacementPolicy

# ─────────────────────────────────────────────────────────────────────────────
# Cache geometry
# ─────────────────────────────────────────────────────────────────────────────

class CacheGeometry:
    """
    Size, block size and associativity of one cache level, plus the
    derived set count and address field widths.

    An associativity of 0 means fully associative (one set holding every
    block).
    """

    __slots__ = ("size", "block_size", "associativity", "num_blocks",
                 "num_sets", "offset_bits", "index_bits", "tag_bits")

    def __init__(self, size: int, block_size: int, associativity: int):
        for name, value in (("size", size), ("block size", block_size),
                            ("associativity", associativity)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")

        if not is_power_of_two(block_size):
            raise ConfigurationError(
                f"block size must be a power of two, got {block_size}")
        if size <= 0 or size % block_size:
            raise ConfigurationError(
                f"cache size {size} is not a positive multiple of "
                f"block size {block_size}")

        num_blocks = size // block_size
        if associativity == 0:
            associativity = num_blocks
        if associativity < 0 or num_blocks % associativity:
            raise ConfigurationError(
                f"associativity {associativity} does not evenly divide "
                f"{num_blocks} blocks")

        num_sets = num_blocks // associativity
        if not is_power_of_two(num_sets):
            raise ConfigurationError(
                f"set count must be a power of two, got {num_sets}")

        self.size          = size
        self.block_size    = block_size
        self.associativity = associativity
        self.num_blocks    = num_blocks
        self.num_sets      = num_sets
        self.offset_bits   = log2(block_size)
        self.index_bits    = log2(num_sets)
        self.tag_bits      = ADDRESS_BITS - self.index_bits - self.offset_bits

        if self.tag_bits < 0:
            raise ConfigurationError(
                f"geometry needs {self.index_bits + self.offset_bits} "
                f"index+offset bits, more than {ADDRESS_BITS}")

    @property
    def block_bits(self) -> int:
        return self.block_size * 8

    @property
    def fully_associative(self) -> bool:
        return self.num_sets == 1

    def __eq__(self, other):
        if not isinstance(other, CacheGeometry):
            return NotImplemented
        return (self.size, self.block_size, self.associativity) == \
               (other.size, other.block_size, other.associativity)

    def __repr__(self):
        return (f"CacheGeometry(size={self.size}, block={self.block_size}, "
                f"assoc={self.associativity}, sets={self.num_sets})")

# ─────────────────────────────────────────────────────────────────────────────
# Full simulator configuration
# ─────────────────────────────────────────────────────────────────────────────

# camelCase keys accepted alongside the attribute names
_KEY_ALIASES = {
    "cacheSize":         "cache_size",
    "blockSize":         "block_size",
    "replacementPolicy": "replacement_policy",
    "staticPower":       "static_power",
    "missPenaltyPower":  "miss_penalty_power",
    "l2Size":            "l2_size",
    "l2BlockSize":       "l2_block_size",
    "l2Associativity":   "l2_associativity",
}


_FIELDS = ("cache_size", "block_size", "associativity", "replacement_policy",
           "static_power", "miss_penalty_power", "voltage", "l2_size",
           "l2_block_size", "l2_associativity", "seed")


class SimulatorConfig:
    """Configuration consumed by Simulator.configure()."""

    __slots__ = ("cache_size", "block_size", "associativity",
                 "replacement_policy", "static_power", "miss_penalty_power",
                 "voltage", "l2_size", "l2_block_size", "l2_associativity",
                 "seed", "l1", "l2")

    def __init__(self,
                 cache_size:         int   = 1024,
                 block_size:         int   = 32,
                 associativity:      int   = 1,
                 replacement_policy: str   = ReplacementPolicy.LRU,
                 static_power:       float = 50.0,
                 miss_penalty_power: float = 200.0,
                 voltage:            float = 1.0,
                 l2_size:            int   = 4096,
                 l2_block_size:      Optional[int] = None,
                 l2_associativity:   int   = 4,
                 seed:               Optional[int] = None):
        policy = str(replacement_policy).upper()
        if policy not in POLICIES:
            raise ConfigurationError(
                f"unknown replacement policy {replacement_policy!r}, "
                f"expected one of {', '.join(POLICIES)}")

        for name, value in (("static power", static_power),
                            ("miss penalty power", miss_penalty_power)):
            if value < 0:
                raise ConfigurationError(f"{name} must be >= 0, got {value}")
        if voltage <= 0:
            raise ConfigurationError(f"voltage must be > 0, got {voltage}")

        self.cache_size         = cache_size
        self.block_size         = block_size
        self.associativity      = associativity
        self.replacement_policy = policy
        self.static_power       = float(static_power)
        self.miss_penalty_power = float(miss_penalty_power)
        self.voltage            = float(voltage)
        self.l2_size            = l2_size
        self.l2_block_size      = block_size if l2_block_size is None else l2_block_size
        self.l2_associativity   = l2_associativity
        self.seed               = seed

        self.l1 = CacheGeometry(cache_size, block_size, associativity)
        self.l2 = CacheGeometry(l2_size, self.l2_block_size, l2_associativity)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "SimulatorConfig":
        """
        Build a config from a plain dict, as handed over by a UI or read
        from JSON. Accepts snake_case or camelCase keys, and the nested
        ``powerParams`` block used by front ends.
        """
        kwargs: Dict[str, Any] = {}
        for key, value in values.items():
            if key == "powerParams":
                for pkey, pvalue in value.items():
                    kwargs[_KEY_ALIASES.get(pkey, pkey)] = pvalue
                continue
            kwargs[_KEY_ALIASES.get(key, key)] = value

        unknown = set(kwargs) - set(_FIELDS)
        if unknown:
            raise ConfigurationError(
                f"unknown configuration keys: {', '.join(sorted(unknown))}")
        return cls(**kwargs)

    def replace(self, **changes: Any) -> "SimulatorConfig":
        """Copy with the given fields changed; None values are ignored."""
        values = self.as_dict()
        if changes.get("block_size") is not None and \
                changes.get("l2_block_size") is None and \
                self.l2_block_size == self.block_size:
            values["l2_block_size"] = None
        values.update({k: v for k, v in changes.items() if v is not None})
        return SimulatorConfig(**values)

    def as_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in _FIELDS}

    def __repr__(self):
        return (f"SimulatorConfig(L1={self.l1!r}, L2={self.l2!r}, "
                f"policy={self.replacement_policy}, V={self.voltage})")


def load_config(path: str) -> SimulatorConfig:
    """Read a JSON configuration file."""
    with open(path, "r") as f:
        try:
            values = json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"{path}: invalid JSON ({exc})") from exc
    if not isinstance(values, dict):
        raise ConfigurationError(f"{path}: expected a JSON object")
    return SimulatorConfig.from_mapping(values)
