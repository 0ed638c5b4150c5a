"""
Simulator facade
============================================================
Owns one MemorySystem and one Interpreter and is the surface a front end
talks to: configure / reset / step / access plus read-only snapshots.

Every state-changing call is recorded on a timeline so the simulation can
be rewound or fast-forwarded with seek(). Seeking backwards resets and
replays from the start.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional, Union

from memsim.address import AddressRef
from memsim.assembler import MAX_STEPS, AssembledTrace, TraceAssembler
from memsim.cache import AccessType
from memsim.config import SimulatorConfig
from memsim.interpreter import Interpreter, RunResult, StepResult
from memsim.isa import Program
from memsim.memory_system import AccessResult, MemorySystem
from memsim.trace import parse_trace

logger = logging.getLogger(__name__)


class _Event(NamedTuple):
    kind: str              # "line" | "access" | "program"
    args: tuple


class Simulator:

    def __init__(self, config: Union[SimulatorConfig, Mapping[str, Any], None] = None,
                 strict: bool = True):
        self.strict = strict
        self.configure(config)

    # ── Lifecycle ───────────────────────────────────────────────────────

    def configure(self, config: Union[SimulatorConfig, Mapping[str, Any], None] = None):
        """Rebuild all state for a new configuration."""
        if config is None:
            config = SimulatorConfig()
        elif not isinstance(config, SimulatorConfig):
            config = SimulatorConfig.from_mapping(config)
        self.config = config
        self.memory = MemorySystem(config)
        self.interpreter = Interpreter(self.memory, strict=self.strict)
        self._timeline: List[_Event] = []
        self.history: List[Any] = []
        logger.debug("configured %r", config)

    def reset(self):
        """Back to the initial state; forgets the timeline."""
        self._reset_state()
        self._timeline = []

    def _reset_state(self):
        self.memory.reset()
        self.interpreter.reset()
        self.history = []

    @property
    def position(self) -> int:
        return len(self.history)

    @property
    def timeline_length(self) -> int:
        return len(self._timeline)

    # ── Timeline ────────────────────────────────────────────────────────

    def _apply(self, event: _Event):
        if event.kind == "line":
            result = self.interpreter.execute(*event.args)
        elif event.kind == "access":
            result = self.memory.access(*event.args)
        else:
            result = self.interpreter.run(*event.args)
        self.history.append(result)
        return result

    def _record(self, event: _Event):
        del self._timeline[self.position:]
        self._timeline.append(event)
        try:
            return self._apply(event)
        except Exception:
            # drop partial effects of the failed step
            self._timeline.pop()
            self._reset_state()
            self.seek(len(self._timeline))
            raise

    def seek(self, position: int):
        """
        Move to the state right after the first *position* recorded
        events. Going backwards replays from the initial state.
        """
        if not 0 <= position <= len(self._timeline):
            raise IndexError(f"position {position} outside timeline "
                             f"0..{len(self._timeline)}")
        if position < self.position:
            self._reset_state()
        for event in self._timeline[self.position:position]:
            self._apply(event)

    # ── Driving ─────────────────────────────────────────────────────────

    def step(self, line: str) -> Optional[StepResult]:
        """Execute one line of assembly or trace text."""
        return self._record(_Event("line", (line,)))

    def access(self, address: Union[str, int, AddressRef],
               access_type: str = AccessType.READ,
               value: Any = None) -> AccessResult:
        return self._record(_Event("access", (address, access_type, value)))

    def run(self, lines: Union[str, Iterable[str]]) -> List[StepResult]:
        """Step through every line, skipping the ones that produce nothing."""
        if isinstance(lines, str):
            lines = lines.splitlines()
        results = []
        for line in lines:
            result = self.step(line)
            if result is not None:
                results.append(result)
        return results

    def run_program(self, source: Union[str, Iterable[str], Program],
                    max_steps: int = MAX_STEPS) -> RunResult:
        if not isinstance(source, (str, Program)):
            source = list(source)
        return self._record(_Event("program", (source, max_steps)))

    def assemble(self, source: Union[str, Iterable[str]],
                 max_steps: int = MAX_STEPS) -> AssembledTrace:
        """Assemble to a trace; does not touch simulator state."""
        return TraceAssembler(max_steps=max_steps, strict=self.strict).assemble(source)

    def replay(self, trace: Union[str, Iterable[str]]) -> List[AccessResult]:
        """Replay an address trace. The whole trace is parsed first."""
        return [self.access(op.address, op.access_type, op.value)
                for op in parse_trace(trace)]

    # ── Snapshots ───────────────────────────────────────────────────────

    @property
    def last_result(self) -> Optional[AccessResult]:
        return self.memory.last_result

    def cache_state(self):
        return self.memory.l1_state()

    def l2_state(self):
        return self.memory.l2_state()

    def memory_state(self) -> Dict[int, Any]:
        return self.memory.memory_state()

    def registers(self) -> List[int]:
        return self.interpreter.registers.as_list()

    def statistics(self) -> Dict[str, Any]:
        stats = self.memory.stats.as_dict()
        stats["hit_rate"] = self.memory.stats.hit_rate
        stats["miss_rate"] = self.memory.stats.miss_rate
        return stats

    def energy(self) -> Dict[str, float]:
        return self.memory.totals.as_dict()

    def amat(self) -> float:
        return self.memory.amat()

    def summary(self) -> Dict[str, Any]:
        """Configuration and results of the run so far."""
        stats = self.memory.stats
        return {
            "config": {
                "cacheSize":         self.config.cache_size,
                "blockSize":         self.config.block_size,
                "associativity":     self.config.l1.associativity,
                "replacementPolicy": self.config.replacement_policy,
            },
            "results": {
                "instructions": self.interpreter.instr_count,
                "hitRate":      f"{stats.hit_rate * 100:.2f}%",
                "hits":         stats.hits,
                "misses":       stats.misses,
                "accesses":     stats.accesses,
                "amat":         round(self.amat(), 4),
                "totalEnergy":  round(self.memory.totals.total_energy, 4),
            },
        }
