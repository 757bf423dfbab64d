"""
Curve-point codec for calldata.

Shapes (affine, coordinates in the BN254 base field):

    G1 = (x, y)
    G2 = ((x_c0, x_c1), (y_c0, y_c1))     # Fq2 element c0 + c1*i as [c0, c1]

Encoders emit decimal strings; decoders accept decimal or 0x-hex strings (or
ints) and enforce both arity and range. This module knows nothing about the
Groth16 B-coordinate ordering; that lives in `zkbridge.transcode`.
"""

from __future__ import annotations

from typing import Any, List, Sequence, Tuple, Union

from ..errors import MalformedField, Stage
from .field import BASE_MODULUS, FieldElement, coerce

Coord = Union[int, str, FieldElement]
G1 = Tuple[FieldElement, FieldElement]
Fq2 = Tuple[FieldElement, FieldElement]
G2 = Tuple[Fq2, Fq2]


def _pair(obj: Any, what: str) -> Sequence[Any]:
    if isinstance(obj, (str, bytes)) or not isinstance(obj, Sequence) or len(obj) != 2:
        size = len(obj) if isinstance(obj, Sequence) else None
        raise MalformedField(
            f"{what} must have exactly 2 components",
            stage=Stage.CODEC,
            ctx={"type": type(obj).__name__, "len": size},
        )
    return obj


def decode_g1(pt: Sequence[Coord]) -> G1:
    x, y = _pair(pt, "G1 point")
    return coerce(x, BASE_MODULUS), coerce(y, BASE_MODULUS)


def decode_fq2(el: Sequence[Coord]) -> Fq2:
    c0, c1 = _pair(el, "Fq2 element")
    return coerce(c0, BASE_MODULUS), coerce(c1, BASE_MODULUS)


def decode_g2(pt: Sequence[Sequence[Coord]]) -> G2:
    x, y = _pair(pt, "G2 point")
    return decode_fq2(x), decode_fq2(y)


def encode_g1(pt: G1) -> List[str]:
    return [str(c.value) for c in pt]


def encode_g2(pt: G2) -> List[List[str]]:
    """Natural order: [[x_c0, x_c1], [y_c0, y_c1]]."""
    return [[str(c.value) for c in fq2] for fq2 in pt]


def is_zero_g1(pt: G1) -> bool:
    return all(c.value == 0 for c in pt)


__all__ = [
    "G1",
    "G2",
    "Fq2",
    "decode_g1",
    "decode_g2",
    "decode_fq2",
    "encode_g1",
    "encode_g2",
    "is_zero_g1",
]
