"""
Field elements (felts): the native scalar of Starknet event keys, data and addresses.

Nodes and SDKs hand felts around as hex strings, decimal strings, ints or raw
bytes. FieldElement.parse() accepts all of them; decode logic only ever sees
the canonical forms returned by felt_to_int() / felt_to_hex().
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from facilitator_sync.core.exceptions import FeltError

# Starknet field prime: 2**251 + 17 * 2**192 + 1
FELT_PRIME = 2**251 + 17 * 2**192 + 1

# u256 values are emitted as two felts (low, high), each 128 bits
U128_BITS = 128


@dataclass(frozen=True)
class FieldElement:
    """Canonical felt value; 0 <= value < FELT_PRIME."""

    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise FeltError(f"felt value must be int, got {type(self.value).__name__}")
        if not (0 <= self.value < FELT_PRIME):
            raise FeltError(f"felt value out of range: {self.value}")

    @classmethod
    def parse(cls, raw: Any) -> "FieldElement":
        """Build from int, hex string, decimal string, bytes or another FieldElement."""
        if isinstance(raw, FieldElement):
            return raw
        if isinstance(raw, bool):
            raise FeltError("boolean is not a felt")
        if isinstance(raw, int):
            return cls(raw)
        if isinstance(raw, (bytes, bytearray, memoryview)):
            b = bytes(raw)
            if not b:
                raise FeltError("empty byte sequence is not a felt")
            return cls(int.from_bytes(b, "big"))
        if isinstance(raw, str):
            s = raw.strip()
            if not s:
                raise FeltError("empty string is not a felt")
            try:
                if s[:2].lower() == "0x":
                    return cls(int(s[2:] or "0", 16))
                return cls(int(s, 10))
            except ValueError as e:
                raise FeltError(f"malformed felt string: {raw!r}") from e
        raise FeltError(f"unsupported felt representation: {type(raw).__name__}")

    @property
    def hex(self) -> str:
        """Lower-case 0x-prefixed hex without zero padding (0x0 for zero)."""
        return hex(self.value)

    def __int__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return self.hex


def felt_to_int(raw: Any) -> int:
    return FieldElement.parse(raw).value


def felt_to_hex(raw: Any) -> str:
    return FieldElement.parse(raw).hex


def u256_from_felts(low: Any, high: Any) -> int:
    """Reconstruct a u256 from its (low, high) 128-bit felt halves."""
    return felt_to_int(low) + (felt_to_int(high) << U128_BITS)
