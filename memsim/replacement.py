"""
Victim selection for a full cache set.
"""

from __future__ import annotations

import random
from typing import Optional, Sequence

from memsim.errors import ConfigurationError


class ReplacementPolicy:
    """Replacement policy names accepted by the configuration."""

    LRU    = "LRU"
    FIFO   = "FIFO"
    RANDOM = "RANDOM"


POLICIES = (ReplacementPolicy.LRU, ReplacementPolicy.FIFO,
            ReplacementPolicy.RANDOM)


def _first_minimum(lines: Sequence, attr: str) -> int:
    # ties go to the lowest way
    victim = 0
    for way in range(1, len(lines)):
        if getattr(lines[way], attr) < getattr(lines[victim], attr):
            victim = way
    return victim


def select_victim(policy: str, lines: Sequence,
                  rng: Optional[random.Random] = None) -> int:
    """
    Return the way to evict from a set with no invalid line.

    LRU evicts the line with the oldest ``last_used`` stamp, FIFO the one
    with the oldest ``inserted`` stamp. Both stamps come from the memory
    system's access clock, so FIFO ignores hits entirely.
    """
    if policy == ReplacementPolicy.LRU:
        return _first_minimum(lines, "last_used")
    if policy == ReplacementPolicy.FIFO:
        return _first_minimum(lines, "inserted")
    if policy == ReplacementPolicy.RANDOM:
        return (rng or random).randrange(len(lines))
    raise ConfigurationError(f"unknown replacement policy {policy!r}")
