"""
zkbridge.codec
==============

Field-element and curve-point (de)serialization in the decimal-string form
used by verifier-contract calldata.

Exports
-------
- FieldElement, SCALAR_MODULUS, BASE_MODULUS
- encode(value) -> str / decode(text) -> FieldElement / coerce(value)
- decode_g1 / decode_g2 / encode_g1 / encode_g2
"""

from __future__ import annotations

from .field import (BASE_MODULUS, SCALAR_MODULUS, FieldElement, coerce,
                    decode, encode, parse_uint)
from .points import G1, G2, decode_g1, decode_g2, encode_g1, encode_g2

__all__ = [
    "FieldElement",
    "SCALAR_MODULUS",
    "BASE_MODULUS",
    "encode",
    "decode",
    "coerce",
    "parse_uint",
    "G1",
    "G2",
    "decode_g1",
    "decode_g2",
    "encode_g1",
    "encode_g2",
]
