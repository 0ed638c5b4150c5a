"""
Instruction interpreter
============================================================
Executes the mini ISA against a MemorySystem. Two ways to drive it:

  execute(line)   live mode, one instruction per call; the register file,
                  PC and labels persist between calls. Raw trace lines
                  (``0x100``, ``x = 5``, ``Write 0x100 5``, ``Read x``) are
                  passed straight to the memory system. A bare word is
                  an instruction, so ``NOP`` is an unknown opcode.
  run(program)    executes a whole program with branches, bounded by a
                  step cap like the trace assembler.

Arithmetic instructions report an ALUResult and never touch the caches.
LW/SW compute ``base + offset`` on the ALU and go through
MemorySystem.access(). Register 0 is re-zeroed after every instruction.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, NamedTuple, Optional, Union

from memsim.address import Literal
from memsim.bits import to_signed_32, to_unsigned_32
from memsim.cache import AccessType
from memsim.errors import ExecutionLimitExceeded, SimulatorError, UnknownLabelError
from memsim.isa import (ALU, Instruction, Program, RegisterFile,
                        parse_immediate, parse_instruction, parse_memory_operand,
                        parse_program, parse_register, split_label)
from memsim.memory_system import AccessResult, MemorySystem
from memsim.trace import is_trace_line, parse_trace_line, strip_comment

logger = logging.getLogger(__name__)

PC_START = 0x1000
INSTRUCTION_WIDTH = 4
MAX_STEPS = 1000


class ALUResult(NamedTuple):
    op: str
    operand_a: Optional[int]
    operand_b: Optional[int]
    result: Optional[int]


class StepResult(NamedTuple):
    """Uniform result of one executed line."""
    pc: int
    instruction: str
    alu: Optional[ALUResult] = None
    access: Optional[AccessResult] = None
    skipped: bool = False

    @property
    def is_memory(self) -> bool:
        return self.access is not None


class RunResult:
    """Steps executed by Interpreter.run()."""

    def __init__(self, steps: List[StepResult], halted: bool,
                 diagnostics: List[SimulatorError]):
        self.steps = steps
        self.halted = halted
        self.diagnostics = diagnostics

    @property
    def accesses(self) -> List[AccessResult]:
        return [s.access for s in self.steps if s.access is not None]

    @property
    def limit_exceeded(self) -> bool:
        return any(isinstance(d, ExecutionLimitExceeded) for d in self.diagnostics)

    def __len__(self):
        return len(self.steps)

    def __repr__(self):
        return f"RunResult({len(self.steps)} steps, halted={self.halted})"


class Interpreter:

    def __init__(self, memory: MemorySystem, num_registers: int = 32,
                 pc_start: int = PC_START, strict: bool = True):
        self.memory = memory
        self.num_registers = num_registers
        self.pc_start = pc_start
        self.strict = strict
        self.registers = RegisterFile(num_registers)
        self.pc = pc_start
        self.labels: Dict[str, int] = {}
        self.halted = False
        self.instr_count = 0

    def reset(self):
        self.registers.reset()
        self.pc = self.pc_start
        self.labels = {}
        self.halted = False
        self.instr_count = 0

    # ── Helpers ─────────────────────────────────────────────────────────

    def _reg(self, token: str, instr: Instruction) -> int:
        return parse_register(token, self.num_registers, instr.text, instr.lineno)

    def _target(self, label: str, instr: Instruction) -> int:
        if label not in self.labels:
            raise UnknownLabelError(label, instr.lineno)
        return self.labels[label]

    def _raw_access(self, line: str, lineno: Optional[int]) -> Optional[StepResult]:
        op = parse_trace_line(line, lineno)
        if op is None:
            return None
        result = self.memory.access(op.address, op.access_type, op.value)
        return StepResult(self.pc, strip_comment(line),
                          ALUResult("MEM", None, None, result.address), result)

    # ── Core ────────────────────────────────────────────────────────────

    def step_instruction(self, instr: Instruction) -> StepResult:
        """
        Execute one parsed instruction. The PC advances by the instruction
        width unless a branch is taken.
        """
        pc = self.pc
        op, args = instr.opcode, instr.operands
        alu: Optional[ALUResult] = None
        access: Optional[AccessResult] = None
        next_pc = pc + INSTRUCTION_WIDTH

        if op in ("ADD", "SUB"):
            a = self.registers[self._reg(args[1], instr)]
            b = self.registers[self._reg(args[2], instr)]
            result, _ = ALU.execute(a, b, op)
            self.registers[self._reg(args[0], instr)] = result
            alu = ALUResult(op, a, b, result)

        elif op == "ADDI":
            a = self.registers[self._reg(args[1], instr)]
            b = parse_immediate(args[2], instr.text, instr.lineno)
            result, _ = ALU.execute(a, b, ALU.ADD)
            self.registers[self._reg(args[0], instr)] = result
            alu = ALUResult(op, a, b, result)

        elif op == "MOVI":
            imm = to_signed_32(parse_immediate(args[1], instr.text, instr.lineno))
            self.registers[self._reg(args[0], instr)] = imm
            alu = ALUResult(op, imm, 0, imm)

        elif op in ("LW", "SW"):
            offset, base = parse_memory_operand(args[1], self.num_registers,
                                                instr.text, instr.lineno)
            base_val = self.registers[base]
            addr = to_unsigned_32(base_val + offset)
            alu = ALUResult("ADDR", base_val, offset, addr)
            reg = self._reg(args[0], instr)
            if op == "LW":
                access = self.memory.access(Literal(addr), AccessType.READ)
                data = access.data
                self.registers[reg] = data if data is not None else 0
            else:
                access = self.memory.access(Literal(addr), AccessType.WRITE,
                                            self.registers[reg])

        elif op == "BEQ":
            a = self.registers[self._reg(args[0], instr)]
            b = self.registers[self._reg(args[1], instr)]
            result, zero = ALU.execute(a, b, ALU.SUB)
            alu = ALUResult(op, a, b, result)
            if zero:
                next_pc = self._target(args[2], instr)

        elif op == "JMP":
            next_pc = self._target(args[0], instr)

        elif op == "HALT":
            self.halted = True

        else:
            logger.warning("skipping unknown opcode %s at pc %#x", op, pc)
            self.registers.clear_zero()
            self.pc = next_pc
            return StepResult(pc, str(instr), skipped=True)

        self.registers.clear_zero()
        self.pc = next_pc
        self.instr_count += 1
        return StepResult(pc, str(instr), alu, access)

    # ── Live mode ───────────────────────────────────────────────────────

    def _is_raw_access(self, text: str) -> bool:
        if ":" in text.split()[0]:
            return False
        return is_trace_line(text)

    def execute(self, line: str, lineno: Optional[int] = None) -> Optional[StepResult]:
        """
        Execute one line of assembly or trace text. Returns None for blank,
        comment and label-only lines.
        """
        text = strip_comment(line)
        if not text:
            return None

        if self._is_raw_access(text):
            return self._raw_access(text, lineno)

        label, text = split_label(text, line, lineno)
        if label is not None:
            self.labels[label] = self.pc
            if not text:
                return None
        return self.step_instruction(parse_instruction(text, lineno, self.strict))

    # ── Program mode ────────────────────────────────────────────────────

    def run(self, source: Union[str, Iterable[str], Program],
            max_steps: int = MAX_STEPS) -> RunResult:
        """
        Execute a program from its first instruction until it halts, falls
        off the end, or reaches *max_steps*. Labels resolve to the PC of
        the instruction they precede.
        """
        program = source if isinstance(source, Program) \
            else parse_program(source, self.strict)

        base = self.pc_start
        self.pc = base
        self.halted = False
        self.labels = {name: base + idx * INSTRUCTION_WIDTH
                       for name, idx in program.labels.items()}

        steps: List[StepResult] = []
        diagnostics: List[SimulatorError] = []
        while not self.halted:
            idx, rem = divmod(self.pc - base, INSTRUCTION_WIDTH)
            if rem or not 0 <= idx < len(program):
                break
            if len(steps) >= max_steps:
                diag = ExecutionLimitExceeded(len(steps), max_steps)
                logger.warning("interpreter: %s", diag)
                diagnostics.append(diag)
                break
            steps.append(self.step_instruction(program[idx]))

        return RunResult(steps, self.halted, diagnostics)

    # ── Display ─────────────────────────────────────────────────────────

    def register_dump(self) -> List[str]:
        prefix = "x" if self.num_registers > 8 else "R"
        width = 4
        rows = []
        for i in range(0, self.num_registers, width):
            rows.append("  ".join(
                f"{prefix}{i+j:<2d}={to_unsigned_32(self.registers[i+j]):#010x}"
                for j in range(min(width, self.num_registers - i))))
        return rows
