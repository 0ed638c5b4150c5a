"""
Bit-level helpers shared by the address codec, the cache model and the
interpreters.
"""

from __future__ import annotations

ADDRESS_BITS = 32
ADDRESS_MASK = 0xFFFFFFFF


def sign_extend(value: int, bits: int) -> int:
    """Sign-extend a *bits*-wide integer to a full Python int."""
    if value & (1 << (bits - 1)):
        return value - (1 << bits)
    return value

def to_unsigned_32(value: int) -> int:
    """Clamp to unsigned 32-bit."""
    return value & ADDRESS_MASK

def to_signed_32(value: int) -> int:
    """Interpret an unsigned 32-bit value as signed."""
    return sign_extend(value & ADDRESS_MASK, ADDRESS_BITS)

def is_power_of_two(value: int) -> bool:
    return value > 0 and (value & (value - 1)) == 0

def log2(value: int) -> int:
    """Exact base-2 logarithm of a power of two."""
    return value.bit_length() - 1

def parse_int(token: str) -> int:
    """
    Parse a decimal or ``0x``-prefixed hexadecimal literal, with an
    optional sign. Raises ValueError on anything else.
    """
    text = token.strip()
    sign = 1
    if text[:1] in ("+", "-"):
        if text[0] == "-":
            sign = -1
        text = text[1:]
    if text.lower().startswith("0x"):
        return sign * int(text[2:], 16)
    if not text.isdigit():
        raise ValueError(f"not an integer literal: {token!r}")
    return sign * int(text, 10)
