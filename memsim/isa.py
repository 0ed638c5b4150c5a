"""
Mini load/store ISA
============================================================
Shared by the trace assembler and the live interpreter.

    ADD  rd, rs1, rs2        rd = rs1 + rs2
    SUB  rd, rs1, rs2        rd = rs1 - rs2
    ADDI rd, rs1, imm        rd = rs1 + imm
    MOVI rd, imm             rd = imm
    LW   rd, off(rs1)        rd = mem[rs1 + off]
    SW   rs2, off(rs1)       mem[rs1 + off] = rs2
    BEQ  rs1, rs2, label     branch if equal
    JMP  label               unconditional jump
    HALT                     stop

Operands are separated by commas and/or whitespace, comments start with
``//`` or ``#``, and ``name:`` declares a label (optionally followed by an
instruction on the same line). Registers are written ``x0``..``x31`` or
``R0``..``R7``; the number is taken modulo the register-file size.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple, Union

from memsim.bits import parse_int, to_signed_32
from memsim.errors import MalformedTraceLine
from memsim.trace import strip_comment

logger = logging.getLogger(__name__)

# Operand count per opcode
OPCODES: Dict[str, int] = {
    "ADD":  3,
    "SUB":  3,
    "ADDI": 3,
    "MOVI": 2,
    "LW":   2,
    "SW":   2,
    "BEQ":  3,
    "JMP":  1,
    "HALT": 0,
}

_LABEL_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")
_MEM_OPERAND_RE = re.compile(r"^([^()]*)\(\s*([^()\s]+)\s*\)$")
_REGISTER_RE = re.compile(r"^[xXrR](\d+)$")

# ─────────────────────────────────────────────────────────────────────────────
# ALU
# ─────────────────────────────────────────────────────────────────────────────

class ALU:
    """
    32-bit integer ALU for the mini ISA. Results wrap to signed 32-bit.
    Returns (result, zero_flag).
    """

    ADD = "ADD"
    SUB = "SUB"

    @staticmethod
    def execute(a: int, b: int, op: str) -> Tuple[int, bool]:
        if op == ALU.ADD:
            result = a + b
        elif op == ALU.SUB:
            result = a - b
        else:
            raise ValueError(f"unsupported ALU operation {op!r}")
        result = to_signed_32(result)
        return result, (result == 0)

# ─────────────────────────────────────────────────────────────────────────────
# Register file
# ─────────────────────────────────────────────────────────────────────────────

class RegisterFile:
    """Fixed-size signed 32-bit registers; register 0 reads as zero."""

    def __init__(self, size: int = 32):
        self.size = size
        self.regs: List[int] = [0] * size

    def __getitem__(self, index: int) -> int:
        return self.regs[index % self.size]

    def __setitem__(self, index: int, value: int):
        self.regs[index % self.size] = to_signed_32(value)

    def __len__(self):
        return self.size

    def clear_zero(self):
        """Re-zero register 0 after an instruction."""
        self.regs[0] = 0

    def reset(self):
        self.regs = [0] * self.size

    def as_list(self) -> List[int]:
        return list(self.regs)

# ─────────────────────────────────────────────────────────────────────────────
# Operand parsing
# ─────────────────────────────────────────────────────────────────────────────

def parse_register(token: str, size: int, line: str = "",
                   lineno: Optional[int] = None) -> int:
    token = token.strip()
    if token.lower() == "zero":
        return 0
    match = _REGISTER_RE.match(token)
    if not match:
        raise MalformedTraceLine(line or token, f"bad register {token!r}", lineno)
    return int(match.group(1)) % size


def parse_immediate(token: str, line: str = "",
                    lineno: Optional[int] = None) -> int:
    try:
        return parse_int(token)
    except ValueError:
        raise MalformedTraceLine(line or token, f"bad immediate {token!r}",
                                 lineno) from None


def parse_memory_operand(token: str, size: int, line: str = "",
                         lineno: Optional[int] = None) -> Tuple[int, int]:
    """``offset(base)`` -> (offset, base register). An empty offset is 0."""
    match = _MEM_OPERAND_RE.match(token.strip())
    if not match:
        raise MalformedTraceLine(line or token,
                                 f"expected offset(register), got {token!r}",
                                 lineno)
    offset_text, base = match.groups()
    offset = parse_immediate(offset_text, line, lineno) if offset_text.strip() else 0
    return offset, parse_register(base, size, line, lineno)

# ─────────────────────────────────────────────────────────────────────────────
# Programs
# ─────────────────────────────────────────────────────────────────────────────

class Instruction(NamedTuple):
    opcode: str
    operands: Tuple[str, ...]
    lineno: Optional[int] = None
    text: str = ""

    @property
    def known(self) -> bool:
        return self.opcode in OPCODES

    def __str__(self):
        return self.text or " ".join((self.opcode,) + self.operands)


class Program:
    """Instructions plus label -> instruction index, built by pass 1."""

    def __init__(self, instructions: List[Instruction], labels: Dict[str, int]):
        self.instructions = instructions
        self.labels = labels

    def __len__(self):
        return len(self.instructions)

    def __iter__(self):
        return iter(self.instructions)

    def __getitem__(self, index: int) -> Instruction:
        return self.instructions[index]

    def __repr__(self):
        return f"Program({len(self.instructions)} instructions, labels={self.labels})"


def split_label(text: str, line: str = "",
                lineno: Optional[int] = None) -> Tuple[Optional[str], str]:
    """Split ``name: rest`` into (name, rest); (None, text) without a label."""
    if ":" not in text:
        return None, text
    label, _, rest = text.partition(":")
    label = label.strip()
    if not _LABEL_RE.match(label):
        raise MalformedTraceLine(line or text, f"bad label {label!r}", lineno)
    return label, rest.strip()


def parse_instruction(text: str, lineno: Optional[int] = None,
                      strict: bool = True) -> Instruction:
    """Tokenise one label-free, comment-free instruction."""
    parts = text.replace(",", " ").split()
    opcode = parts[0].upper()
    operands = tuple(parts[1:])
    expected = OPCODES.get(opcode)
    if expected is None:
        if strict:
            raise MalformedTraceLine(text, f"unknown opcode {parts[0]!r}", lineno)
        logger.warning("line %s: unknown opcode %r will be skipped", lineno, parts[0])
    elif len(operands) != expected:
        raise MalformedTraceLine(
            text, f"{opcode} takes {expected} operand(s), got {len(operands)}",
            lineno)
    return Instruction(opcode, operands, lineno, text)


def parse_program(source: Union[str, Iterable[str]],
                  strict: bool = True) -> Program:
    """
    Pass 1: drop comments and blank lines, record every label against the
    index of the instruction that follows it, and tokenise instructions.
    """
    lines = source.splitlines() if isinstance(source, str) else list(source)
    instructions: List[Instruction] = []
    labels: Dict[str, int] = {}

    for lineno, raw in enumerate(lines, 1):
        text = strip_comment(raw)
        if not text:
            continue
        label, text = split_label(text, raw, lineno)
        if label is not None:
            if label in labels:
                raise MalformedTraceLine(raw, f"duplicate label {label!r}", lineno)
            labels[label] = len(instructions)
        if text:
            instructions.append(parse_instruction(text, lineno, strict))

    return Program(instructions, labels)
