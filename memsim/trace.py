"""
Address-trace text format, one operation per line:

    0x100              read a literal address
    counter            read a variable (allocated on first use)
    counter = 7        write 7 to a variable
    Write 0x100 5      write 5 to a literal address
    Read 0x100         explicit read

Blank lines and lines starting with ``//`` or ``#`` are ignored.
"""

from __future__ import annotations

from typing import Any, Iterable, List, NamedTuple, Optional

from memsim.address import AddressRef, Literal, parse_address_ref
from memsim.bits import parse_int, to_unsigned_32
from memsim.cache import AccessType
from memsim.errors import MalformedTraceLine


class TraceOp(NamedTuple):
    access_type: str
    address: AddressRef
    value: Any = None
    lineno: Optional[int] = None


def strip_comment(line: str) -> str:
    for marker in ("//", "#"):
        pos = line.find(marker)
        if pos != -1:
            line = line[:pos]
    return line.strip()


def _value(token: str, line: str, lineno: Optional[int]) -> int:
    try:
        return parse_int(token)
    except ValueError:
        raise MalformedTraceLine(line, f"bad value {token!r}", lineno) from None


def _address(token: str, line: str, lineno: Optional[int]) -> AddressRef:
    try:
        return parse_address_ref(token)
    except MalformedTraceLine as exc:
        raise MalformedTraceLine(line, exc.reason, lineno) from None


def is_trace_line(line: str) -> bool:
    """Cheap check used by the live interpreter to route raw accesses."""
    text = strip_comment(line)
    if not text:
        return False
    head = text.split()[0].lower()
    return head.startswith("0x") or head in ("write", "read") or "=" in text


def parse_trace_line(line: str, lineno: Optional[int] = None) -> Optional[TraceOp]:
    """Parse one trace line; None for blank/comment lines."""
    text = strip_comment(line)
    if not text:
        return None

    if "=" in text:
        name, _, value = text.partition("=")
        name, value = name.strip(), value.strip()
        if not name or not value or " " in name:
            raise MalformedTraceLine(line, "expected 'name = value'", lineno)
        return TraceOp(AccessType.WRITE, _address(name, line, lineno),
                       _value(value, line, lineno), lineno)

    parts = text.split()
    keyword = parts[0].lower()
    if keyword == "write":
        if len(parts) not in (2, 3):
            raise MalformedTraceLine(line, "expected 'Write ADDR VALUE'", lineno)
        value = _value(parts[2], line, lineno) if len(parts) == 3 else 0
        return TraceOp(AccessType.WRITE, _address(parts[1], line, lineno),
                       value, lineno)
    if keyword == "read":
        if len(parts) != 2:
            raise MalformedTraceLine(line, "expected 'Read ADDR'", lineno)
        return TraceOp(AccessType.READ, _address(parts[1], line, lineno),
                       None, lineno)

    if len(parts) != 1:
        raise MalformedTraceLine(line, "expected a single address", lineno)
    return TraceOp(AccessType.READ, _address(parts[0], line, lineno), None, lineno)


def parse_trace(lines: Iterable[str]) -> List[TraceOp]:
    """Parse a whole trace; raises MalformedTraceLine on the first bad line."""
    if isinstance(lines, str):
        lines = lines.splitlines()
    ops = []
    for lineno, line in enumerate(lines, 1):
        op = parse_trace_line(line, lineno)
        if op is not None:
            ops.append(op)
    return ops


def format_trace_line(access_type: str, address: int, value: Any = None) -> str:
    addr = f"0x{to_unsigned_32(address):X}"
    if access_type == AccessType.WRITE:
        return f"Write {addr} {value}"
    return addr


def format_op(op: TraceOp) -> str:
    if isinstance(op.address, Literal):
        return format_trace_line(op.access_type, op.address.value, op.value)
    if op.access_type == AccessType.WRITE:
        return f"{op.address} = {op.value}"
    return str(op.address)
