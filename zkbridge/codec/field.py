# SPDX-License-Identifier: Apache-2.0
"""
BN254 (alt_bn128 / snarkjs "bn128") field elements and their calldata codec.

Two moduli matter for calldata:

- ``SCALAR_MODULUS`` (r): the circuit's field. Witness values, inputs and
  public signals live here.
- ``BASE_MODULUS`` (q): the curve's base field. Proof point coordinates live here.

The canonical calldata representation of an element is its unsigned decimal
string. Decoding is strict: anything that is not an unsigned integer below the
modulus raises `MalformedField`. Values are never reduced implicitly.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from py_ecc.bn128 import curve_order as _CURVE_ORDER
from py_ecc.bn128 import field_modulus as _FIELD_MODULUS

from ..errors import MalformedField, Stage

SCALAR_MODULUS: int = int(_CURVE_ORDER)
BASE_MODULUS: int = int(_FIELD_MODULUS)
FIELD_BYTE_LEN = 32

_DEC_RE = re.compile(r"^[0-9]+$")
_HEX_RE = re.compile(r"^0[xX][0-9a-fA-F]+$")


def _describe(value: object) -> str:
    """Shape of a rejected value, safe for logs (no digits echoed)."""
    if isinstance(value, str):
        return f"str(len={len(value)})"
    if isinstance(value, int):
        return f"int(bits={value.bit_length()}, negative={value < 0})"
    return type(value).__name__


@dataclass(frozen=True)
class FieldElement:
    """
    Immutable residue ``0 <= value < modulus``.

    Construction validates the range; use `decode` for strings and
    `FieldElement.of` for ints.
    """

    value: int
    modulus: int = SCALAR_MODULUS

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise MalformedField(
                "field element must be an int",
                stage=Stage.CODEC,
                ctx={"got": _describe(self.value)},
            )
        if not 0 <= self.value < self.modulus:
            raise MalformedField(
                "value out of field range",
                stage=Stage.CODEC,
                ctx={"got": _describe(self.value), "modulus_bits": self.modulus.bit_length()},
            )

    @classmethod
    def of(cls, value: Union[int, "FieldElement"], modulus: int = SCALAR_MODULUS) -> "FieldElement":
        if isinstance(value, FieldElement):
            if value.modulus != modulus:
                raise MalformedField(
                    "field element belongs to a different field",
                    stage=Stage.CODEC,
                    ctx={"modulus_bits": value.modulus.bit_length()},
                )
            return value
        return cls(value, modulus)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FieldElement):
            return NotImplemented
        return self.modulus == other.modulus and self.value == other.value

    def __hash__(self) -> int:
        return hash((self.value, self.modulus))

    def __int__(self) -> int:
        return self.value

    def __repr__(self) -> str:
        return f"FieldElement({self.value})"

    def to_bytes(self) -> bytes:
        return self.value.to_bytes(FIELD_BYTE_LEN, "big")

    def to_hex(self) -> str:
        return "0x" + self.to_bytes().hex()


# --- Codec ---------------------------------------------------------------


def encode(value: Union[int, FieldElement], modulus: int = SCALAR_MODULUS) -> str:
    """Canonical decimal string for calldata."""
    return str(FieldElement.of(value, modulus).value)


def parse_uint(text: str) -> int:
    """
    Parse an unsigned decimal or 0x-hex string into an int.

    Raises MalformedField on signs, whitespace, empty input or non-digits.
    """
    if not isinstance(text, str):
        raise MalformedField("expected a string", stage=Stage.CODEC, ctx={"got": _describe(text)})
    if _DEC_RE.match(text):
        return int(text, 10)
    if _HEX_RE.match(text):
        return int(text, 16)
    raise MalformedField(
        "not an unsigned integer string", stage=Stage.CODEC, ctx={"got": _describe(text)}
    )


def decode(text: str, modulus: int = SCALAR_MODULUS) -> FieldElement:
    """Strict inverse of `encode`; also accepts 0x-hex as produced by snarkjs calldata."""
    return FieldElement(parse_uint(text), modulus)


def coerce(value: Union[int, str, FieldElement], modulus: int = SCALAR_MODULUS) -> FieldElement:
    """Accept an int, a FieldElement or a numeric string; range-checked, never reduced."""
    if isinstance(value, str):
        return decode(value, modulus)
    return FieldElement.of(value, modulus)


__all__ = [
    "SCALAR_MODULUS",
    "BASE_MODULUS",
    "FIELD_BYTE_LEN",
    "FieldElement",
    "encode",
    "decode",
    "coerce",
    "parse_uint",
]
