"""
zkbridge.backends.pairing
=========================

Thin BN254 (altbn128) pairing wrapper over `py_ecc`, used only by the optional
off-chain Groth16 pre-check.

- Primary backend: `py_ecc.optimized_bn128`, reference `py_ecc.bn128` otherwise.
- Points come in as affine `FieldElement` coordinates from `zkbridge.codec`
  and are lifted into the backend's projective representation here.

Public API
----------
- g1_point(pt) / g2_point(pt)       affine codec points -> backend points
- check_pairing_product(pairs)      True iff prod e(P_i, Q_i) == 1
- add / multiply / neg              re-exported group ops
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence, Tuple

try:  # Optimized, faster if present
    from py_ecc.optimized_bn128 import (  # type: ignore
        FQ, FQ2, FQ12, add, b as _B, b2 as _B2, is_on_curve as _is_on_curve,
        multiply, neg, pairing as _pairing,
    )
    BACKEND_NAME = "py_ecc.optimized_bn128"
except ImportError:  # pragma: no cover
    from py_ecc.bn128 import (  # type: ignore
        FQ, FQ2, FQ12, add, b as _B, b2 as _B2, is_on_curve as _is_on_curve,
        multiply, neg, pairing as _pairing,
    )
    BACKEND_NAME = "py_ecc.bn128"

from ..codec.field import FieldElement
from ..codec.points import is_zero_g1

# Opaque tuples that py_ecc understands.
G1Point = Any
G2Point = Any


def _is_inf(P: Any) -> bool:
    if P is None:
        return True
    if isinstance(P, tuple) and len(P) == 3:
        z = P[2]
        return z == z.zero() if hasattr(z, "zero") else False
    return False


def g1_point(pt: Sequence[FieldElement]) -> G1Point:
    if is_zero_g1(pt):
        return (FQ(1), FQ(1), FQ(0))  # infinity (z=0)
    x, y = (int(c) for c in pt)
    return (FQ(x), FQ(y), FQ(1))


def g2_point(pt: Sequence[Sequence[FieldElement]]) -> G2Point:
    (x0, x1), (y0, y1) = ((int(c) for c in fq2) for fq2 in pt)
    if x0 == x1 == y0 == y1 == 0:
        return (FQ2([1, 0]), FQ2([1, 0]), FQ2([0, 0]))
    return (FQ2([x0, x1]), FQ2([y0, y1]), FQ2([1, 0]))


def on_curve_g1(P: G1Point) -> bool:
    return _is_inf(P) or bool(_is_on_curve(P, _B))


def on_curve_g2(Q: G2Point) -> bool:
    return _is_inf(Q) or bool(_is_on_curve(Q, _B2))


def check_pairing_product(pairs: Iterable[Tuple[G1Point, G2Point]]) -> bool:
    """
    Return True iff prod e(P_i, Q_i) == 1 in GT.

    Raises ValueError if any point is off-curve.
    """
    acc = FQ12.one()
    for P, Q in pairs:
        if not on_curve_g1(P):
            raise ValueError("G1 point is not on curve")
        if not on_curve_g2(Q):
            raise ValueError("G2 point is not on curve")
        if _is_inf(P) or _is_inf(Q):
            continue
        # py_ecc pairing expects (Q, P)
        acc *= _pairing(Q, P)
    return acc == FQ12.one()


__all__ = [
    "BACKEND_NAME",
    "G1Point",
    "G2Point",
    "g1_point",
    "g2_point",
    "on_curve_g1",
    "on_curve_g2",
    "check_pairing_product",
    "add",
    "multiply",
    "neg",
]
