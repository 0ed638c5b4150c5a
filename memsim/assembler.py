"""
Trace assembler
============================================================
Turns a mini-ISA program into a flat address trace for replay mode.

Pass 1 (isa.parse_program) records labels. Pass 2 executes the program
on a private 8-register machine with a hard step cap, emitting one trace
line per memory instruction:

    LW  R3, 0(R2)   ->  0x100
    SW  R1, 0(R2)   ->  Write 0x100 5

If the cap is reached the partial trace is kept and an
ExecutionLimitExceeded diagnostic is attached to the result.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Union

from memsim.bits import to_unsigned_32
from memsim.cache import AccessType
from memsim.errors import ExecutionLimitExceeded, SimulatorError, UnknownLabelError
from memsim.isa import (ALU, Instruction, Program, RegisterFile, parse_immediate,
                        parse_memory_operand, parse_program, parse_register)
from memsim.trace import format_trace_line

logger = logging.getLogger(__name__)

MAX_STEPS = 1000
NUM_REGISTERS = 8


class AssembledTrace:
    """Trace lines produced by TraceAssembler.assemble()."""

    def __init__(self, lines: List[str], steps: int, registers: List[int],
                 diagnostics: List[SimulatorError]):
        self.lines = lines
        self.steps = steps
        self.registers = registers
        self.diagnostics = diagnostics

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    @property
    def limit_exceeded(self) -> bool:
        return any(isinstance(d, ExecutionLimitExceeded) for d in self.diagnostics)

    def __iter__(self):
        return iter(self.lines)

    def __len__(self):
        return len(self.lines)

    def __repr__(self):
        return f"AssembledTrace({len(self.lines)} lines, {self.steps} steps)"


class TraceAssembler:

    def __init__(self, max_steps: int = MAX_STEPS,
                 num_registers: int = NUM_REGISTERS, strict: bool = True):
        self.max_steps = max_steps
        self.num_registers = num_registers
        self.strict = strict

    def _jump(self, program: Program, instr: Instruction, label: str) -> int:
        if label not in program.labels:
            raise UnknownLabelError(label, instr.lineno)
        return program.labels[label]

    def assemble(self, source: Union[str, Iterable[str], Program]) -> AssembledTrace:
        program = source if isinstance(source, Program) \
            else parse_program(source, self.strict)

        regs = RegisterFile(self.num_registers)
        scratch: Dict[int, int] = {}
        trace: List[str] = []
        diagnostics: List[SimulatorError] = []
        n = self.num_registers

        pc = 0
        steps = 0
        while pc < len(program):
            if steps >= self.max_steps:
                diag = ExecutionLimitExceeded(steps, self.max_steps)
                logger.warning("assembler: %s; returning %d trace lines",
                               diag, len(trace))
                diagnostics.append(diag)
                break

            instr = program[pc]
            op, args, line, lineno = instr.opcode, instr.operands, instr.text, instr.lineno
            next_pc = pc + 1

            if op == "MOVI":
                regs[parse_register(args[0], n, line, lineno)] = \
                    parse_immediate(args[1], line, lineno)
            elif op in ("ADD", "SUB"):
                a = regs[parse_register(args[1], n, line, lineno)]
                b = regs[parse_register(args[2], n, line, lineno)]
                regs[parse_register(args[0], n, line, lineno)] = ALU.execute(a, b, op)[0]
            elif op == "ADDI":
                a = regs[parse_register(args[1], n, line, lineno)]
                b = parse_immediate(args[2], line, lineno)
                regs[parse_register(args[0], n, line, lineno)] = ALU.execute(a, b, ALU.ADD)[0]
            elif op == "LW":
                offset, base = parse_memory_operand(args[1], n, line, lineno)
                addr = to_unsigned_32(regs[base] + offset)
                trace.append(format_trace_line(AccessType.READ, addr))
                regs[parse_register(args[0], n, line, lineno)] = scratch.get(addr, 0)
            elif op == "SW":
                offset, base = parse_memory_operand(args[1], n, line, lineno)
                addr = to_unsigned_32(regs[base] + offset)
                value = regs[parse_register(args[0], n, line, lineno)]
                scratch[addr] = value
                trace.append(format_trace_line(AccessType.WRITE, addr, value))
            elif op == "BEQ":
                a = regs[parse_register(args[0], n, line, lineno)]
                b = regs[parse_register(args[1], n, line, lineno)]
                if a == b:
                    next_pc = self._jump(program, instr, args[2])
            elif op == "JMP":
                next_pc = self._jump(program, instr, args[0])
            elif op == "HALT":
                next_pc = len(program)
            else:
                logger.warning("assembler: skipping unknown opcode %s at line %s",
                               op, lineno)

            regs.clear_zero()
            pc = next_pc
            steps += 1

        return AssembledTrace(trace, steps, regs.as_list(), diagnostics)


def assemble(source: Union[str, Iterable[str]], max_steps: int = MAX_STEPS,
             strict: bool = True) -> AssembledTrace:
    return TraceAssembler(max_steps=max_steps, strict=strict).assemble(source)
