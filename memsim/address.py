"""
Address codec
============================================================
Resolves address operands (literal numbers or symbolic variable names)
to 32-bit addresses and splits addresses into tag / index / offset for
one cache level's geometry.

    |<------- tag_bits ------->|<- index_bits ->|<- offset_bits ->|
"""

from __future__ import annotations

import re
from typing import Dict, NamedTuple, Optional, Union

from memsim.bits import parse_int, to_unsigned_32
from memsim.config import CacheGeometry
from memsim.errors import MalformedTraceLine

SYMBOL_BASE = 0x1000

_SYMBOL_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")

# ─────────────────────────────────────────────────────────────────────────────
# Address operands
# ─────────────────────────────────────────────────────────────────────────────

class Literal(NamedTuple):
    value: int

    def __str__(self):
        return f"{to_unsigned_32(self.value):#x}"


class Symbol(NamedTuple):
    name: str

    def __str__(self):
        return self.name


AddressRef = Union[Literal, Symbol]


def parse_address_ref(token: Union[str, int, Literal, Symbol]) -> AddressRef:
    """
    Classify an address operand. ``0x1f`` and ``31`` are literals,
    identifiers such as ``counter`` are symbols.
    """
    if isinstance(token, (Literal, Symbol)):
        return token
    if isinstance(token, int) and not isinstance(token, bool):
        return Literal(token)
    if not isinstance(token, str):
        raise MalformedTraceLine(repr(token), "unsupported address operand")

    text = token.strip()
    if not text:
        raise MalformedTraceLine(token, "empty address operand")
    try:
        return Literal(parse_int(text))
    except ValueError:
        pass
    if _SYMBOL_RE.match(text):
        return Symbol(text)
    raise MalformedTraceLine(token, "not an address or variable name")

# ─────────────────────────────────────────────────────────────────────────────
# Symbol table
# ─────────────────────────────────────────────────────────────────────────────

class SymbolTable:
    """
    Append-only map of variable names to block-aligned addresses,
    allocated upwards from *base*.
    """

    def __init__(self, block_size: int, base: int = SYMBOL_BASE):
        self.block_size = block_size
        self.base = base
        self.next_address = base
        self.symbols: Dict[str, int] = {}

    def address_of(self, name: str) -> int:
        addr = self.symbols.get(name)
        if addr is None:
            addr = to_unsigned_32(self.next_address)
            self.symbols[name] = addr
            self.next_address += self.block_size
        return addr

    def __contains__(self, name: str) -> bool:
        return name in self.symbols

    def __len__(self):
        return len(self.symbols)

    def clear(self):
        self.symbols.clear()
        self.next_address = self.base

# ─────────────────────────────────────────────────────────────────────────────
# Codec
# ─────────────────────────────────────────────────────────────────────────────

class Fields(NamedTuple):
    tag: int
    index: int
    offset: int


class AddressCodec:
    """Tag/index/offset split for one cache geometry."""

    def __init__(self, geometry: CacheGeometry,
                 symbols: Optional[SymbolTable] = None):
        self.geometry = geometry
        self.symbols = symbols if symbols is not None \
            else SymbolTable(geometry.block_size)
        self.offset_bits = geometry.offset_bits
        self.index_bits  = geometry.index_bits
        self.tag_bits    = geometry.tag_bits
        self._offset_mask = (1 << self.offset_bits) - 1
        self._index_mask  = (1 << self.index_bits) - 1

    def resolve(self, address: Union[str, int, AddressRef]) -> int:
        """Return the 32-bit address for a literal or symbolic operand."""
        ref = parse_address_ref(address)
        if isinstance(ref, Symbol):
            return self.symbols.address_of(ref.name)
        return to_unsigned_32(ref.value)

    def decompose(self, address: int) -> Fields:
        address = to_unsigned_32(address)
        offset = address & self._offset_mask
        index  = (address >> self.offset_bits) & self._index_mask
        tag    = address >> (self.offset_bits + self.index_bits)
        return Fields(tag, index % self.geometry.num_sets, offset)

    def block_address(self, address: int) -> int:
        return to_unsigned_32(address) & ~self._offset_mask

    def compose(self, tag: int, index: int, offset: int = 0) -> int:
        """Inverse of decompose()."""
        return to_unsigned_32(
            (tag << (self.offset_bits + self.index_bits))
            | (index << self.offset_bits) | offset)
