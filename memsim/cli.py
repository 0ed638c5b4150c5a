"""
Command line front end.

Run:
    python3 -m memsim demo                       # built-in demo program
    python3 -m memsim trace accesses.trace       # replay an address trace
    python3 -m memsim asm program.asm --emit     # assemble, print and replay
    python3 -m memsim run program.asm            # execute on the interpreter
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Iterable, List, Optional

from memsim.assembler import MAX_STEPS
from memsim.cache import CacheLevel
from memsim.config import SimulatorConfig, load_config
from memsim.errors import SimulatorError
from memsim.memory_system import AccessResult
from memsim.replacement import POLICIES
from memsim.simulator import Simulator

# ─────────────────────────────────────────────────────────────────────────────
# Reports
# ─────────────────────────────────────────────────────────────────────────────

def dump_config(sim: Simulator):
    cfg = sim.config
    print("\n═══ Configuration ═══")
    for name, geo in (("L1", cfg.l1), ("L2", cfg.l2)):
        print(f"  {name}: size {geo.size}, associativity {geo.associativity}, "
              f"blocksize {geo.block_size}, sets {geo.num_sets} "
              f"(tag {geo.tag_bits} / index {geo.index_bits} / "
              f"offset {geo.offset_bits} bits)")
    print(f"  Policy {cfg.replacement_policy}, voltage {cfg.voltage} V, "
          f"static power {cfg.static_power}, miss penalty power "
          f"{cfg.miss_penalty_power}")

def dump_registers(sim: Simulator):
    print("\n═══ Register File ═══")
    for row in sim.interpreter.register_dump():
        print(f"  {row}")

def dump_cache(level: CacheLevel, limit: int = 64):
    print(f"\n═══ {level.name} Cache (valid lines) ═══")
    count = 0
    for set_index, cache_set in enumerate(level.sets):
        for way, line in enumerate(cache_set):
            if not line.valid:
                continue
            flags = "D" if line.dirty else " "
            words = ", ".join(f"+{off}={v}" for off, v in sorted(line.data.items()))
            print(f"  set {set_index:4d} way {way:2d} {flags} tag={line.tag:#x} "
                  f"block={line.address:#010x}  {words}")
            count += 1
            if count >= limit:
                print("  ... (truncated)")
                return
    if count == 0:
        print("  (empty)")

def dump_memory(sim: Simulator, limit: int = 32):
    print("\n═══ Main Memory (written cells) ═══")
    count = 0
    for addr, value in sim.memory.memory.items():
        print(f"  [{addr:#010x}] = {value}")
        count += 1
        if count >= limit:
            print("  ... (truncated)")
            break
    if count == 0:
        print("  (empty)")

def dump_stats(sim: Simulator):
    s = sim.memory.stats
    e = sim.memory.totals
    print("\n═══ Simulation Statistics ═══")
    print(f"  Instructions:         {sim.interpreter.instr_count}")
    print(f"  Accesses:             {s.accesses}  (reads {s.reads}, writes {s.writes})")
    if s.accesses > 0:
        print(f"  L1 hits / total:      {s.hits}/{s.accesses} ({s.hit_rate:.1%})")
    print(f"  Misses:               compulsory {s.compulsory_misses}, "
          f"capacity {s.capacity_misses}, conflict {s.conflict_misses}")
    if s.l2_accesses > 0:
        print(f"  L2 hits / total:      {s.l2_hits}/{s.l2_accesses} "
              f"({s.l2_hits / s.l2_accesses:.1%})")
    print(f"  Write-backs:          {s.writebacks}")
    print(f"  AMAT:                 {sim.amat():.2f} cycles")
    print(f"  Energy:               static {e.static_energy:.2f}, dynamic "
          f"{e.dynamic_energy:.2f}, penalty {e.miss_penalty_energy:.2f}, "
          f"total {e.total_energy:.2f}")

def print_accesses(results: Iterable[Optional[AccessResult]]):
    for i, result in enumerate(results, 1):
        if result is not None:
            print(f"  [{i:4d}] {result.describe()}")

# ─────────────────────────────────────────────────────────────────────────────
# Demo program
# ─────────────────────────────────────────────────────────────────────────────

def demo_program() -> List[str]:
    """
    Small program exercising every instruction class:

        ADDI x1, x0, 10          # x1 = 10
        ADDI x2, x0, 20          # x2 = 20
        ADD  x3, x1, x2          # x3 = 30
        SW   x3, 0x100(x0)       # mem[0x100] = 30   (compulsory miss)
        LW   x4, 0x100(x0)       # x4 = 30           (hit)
        SUB  x5, x4, x1          # x5 = 20
        SW   x5, 0x500(x0)       # same L1 set as 0x100 -> conflict
        LW   x6, 0x100(x0)       # x6 = 30, refetched after write-back
    """
    return [
        "ADDI x1, x0, 10",
        "ADDI x2, x0, 20",
        "ADD x3, x1, x2",
        "SW x3, 0x100(x0)",
        "LW x4, 0x100(x0)",
        "SUB x5, x4, x1",
        "SW x5, 0x500(x0)",
        "LW x6, 0x100(x0)",
    ]

def check_demo(sim: Simulator) -> bool:
    regs = sim.registers()
    s = sim.memory.stats
    checks = [
        (regs[3], 30, "x3 = 30 (10 + 20)"),
        (regs[4], 30, "x4 = 30 (loaded from 0x100)"),
        (regs[5], 20, "x5 = 20 (30 - 10)"),
        (regs[6], 30, "x6 = 30 (reloaded after eviction)"),
        (s.conflict_misses, 2, "2 conflict misses"),
        (s.writebacks, 2, "2 dirty write-backs"),
    ]
    print("\n═══ Demo Assertions ═══")
    all_pass = True
    for actual, expected, desc in checks:
        status = "✓" if actual == expected else "✗"
        if status == "✗":
            all_pass = False
        print(f"  {status}  {desc}  (got {actual}, expected {expected})")
    print("\n  All checks passed" if all_pass else "\n  Some checks failed")
    return all_pass

# ─────────────────────────────────────────────────────────────────────────────
# Main
# ─────────────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", "-c", type=str, default=None,
                        help="JSON configuration file")
    common.add_argument("--cache-size", type=int, default=None,
                        help="L1 size in bytes (default 1024)")
    common.add_argument("--block-size", type=int, default=None,
                        help="L1 block size in bytes (default 32)")
    common.add_argument("--assoc", type=int, default=None,
                        help="L1 associativity, 0 = fully associative (default 1)")
    common.add_argument("--policy", type=str.upper, choices=POLICIES, default=None,
                        help="Replacement policy (default LRU)")
    common.add_argument("--static-power", type=float, default=None)
    common.add_argument("--miss-penalty-power", type=float, default=None)
    common.add_argument("--voltage", type=float, default=None)
    common.add_argument("--l2-size", type=int, default=None)
    common.add_argument("--l2-block-size", type=int, default=None)
    common.add_argument("--l2-assoc", type=int, default=None)
    common.add_argument("--seed", type=int, default=None,
                        help="Seed for RANDOM replacement")
    common.add_argument("--max-steps", "-n", type=int, default=MAX_STEPS,
                        help=f"Execution step cap (default {MAX_STEPS})")
    common.add_argument("--log", action="store_true",
                        help="Print every memory access")
    common.add_argument("--flush", action="store_true",
                        help="Write dirty lines back before dumping memory")
    common.add_argument("--no-strict", dest="strict", action="store_false",
                        help="Skip unknown opcodes instead of failing")
    common.add_argument("--verbose", "-v", action="store_true",
                        help="Debug logging of every cache event")

    parser = argparse.ArgumentParser(
        prog="memsim",
        description="Two-level cache and energy simulator")
    sub = parser.add_subparsers(dest="command", required=True)
    p = sub.add_parser("trace", parents=[common], help="Replay an address trace")
    p.add_argument("file")
    p = sub.add_parser("asm", parents=[common],
                       help="Assemble a program to a trace and replay it")
    p.add_argument("file")
    p.add_argument("--emit", action="store_true", help="Print the generated trace")
    p = sub.add_parser("run", parents=[common],
                       help="Execute a program on the interpreter")
    p.add_argument("file")
    p.add_argument("--live", action="store_true",
                   help="Step line by line (no branches) instead of program mode")
    sub.add_parser("demo", parents=[common], help="Run the built-in demo program")
    return parser

def config_from_args(args: argparse.Namespace) -> SimulatorConfig:
    base = load_config(args.config) if args.config else SimulatorConfig()
    return base.replace(
        cache_size=args.cache_size,
        block_size=args.block_size,
        associativity=args.assoc,
        replacement_policy=args.policy,
        static_power=args.static_power,
        miss_penalty_power=args.miss_penalty_power,
        voltage=args.voltage,
        l2_size=args.l2_size,
        l2_block_size=args.l2_block_size,
        l2_associativity=args.l2_assoc,
        seed=args.seed,
    )

def _read(path: str) -> str:
    with open(path, "r") as f:
        return f.read()

def _execute(sim: Simulator, args: argparse.Namespace) -> bool:
    """Run the selected command; returns False when the demo checks fail."""
    if args.command == "trace":
        results = sim.replay(_read(args.file))
        if args.log:
            print_accesses(results)

    elif args.command == "asm":
        assembled = sim.assemble(_read(args.file), args.max_steps)
        for diag in assembled.diagnostics:
            print(f"warning: {diag}", file=sys.stderr)
        if args.emit:
            print("═══ Generated Trace ═══")
            for line in assembled:
                print(f"  {line}")
        results = sim.replay(assembled.lines)
        if args.log:
            print_accesses(results)

    elif args.command == "run":
        source = _read(args.file)
        if args.live:
            steps = sim.run(source)
        else:
            run = sim.run_program(source, args.max_steps)
            for diag in run.diagnostics:
                print(f"warning: {diag}", file=sys.stderr)
            steps = run.steps
        if args.log:
            print_accesses(s.access for s in steps if s.access is not None)

    else:
        prog = demo_program()
        print(f"Running built-in demo program ({len(prog)} instructions)")
        steps = sim.run(prog)
        if args.log:
            print_accesses(s.access for s in steps if s.access is not None)

    if args.flush:
        sim.memory.flush()

    dump_config(sim)
    if args.command in ("run", "demo"):
        dump_registers(sim)
    dump_cache(sim.memory.l1)
    dump_cache(sim.memory.l2)
    dump_memory(sim)
    dump_stats(sim)

    if args.command == "demo":
        return check_demo(sim)
    return True

def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s: %(message)s")

    try:
        sim = Simulator(config_from_args(args), strict=args.strict)
        ok = _execute(sim, args)
    except (SimulatorError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0 if ok else 2


if __name__ == "__main__":
    sys.exit(main())
