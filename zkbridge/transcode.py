"""
Calldata transcoder.

Pure functions from a `(Proof, PublicSignals)` pair to the exact argument
tuple a generated verifier contract expects.

Groth16 (four arguments)::

    a     = [Ax, Ay]
    b     = [[Bx_c1, Bx_c0], [By_c1, By_c0]]
    c     = [Cx, Cy]
    input = [s_0, ..., s_{n-1}]

The prover emits every Fq2 coordinate as ``[c0, c1]``; the EVM pairing
precompile reads ``(c1, c0)``, so each inner pair of B is reversed here and
nowhere else. A, C and the signals keep their order.

PLONK (two arguments)::

    proof         = "0x<hex>"       # opaque, passed through unchanged
    publicSignals = [s_0, ..., s_{n-1}]

All numbers are canonical decimal strings. Output is deterministic: the same
inputs give byte-identical ``Calldata.to_json()``.
"""

from __future__ import annotations

from typing import Any, List, Sequence, Union

from .adapters.snarkjs_loader import parse_int, parse_plonk_blob, split_solidity_calldata
from .codec.field import BASE_MODULUS, SCALAR_MODULUS, FieldElement, encode
from .errors import CalldataShapeError, MalformedField, Stage
from .types import (BackendName, Calldata, Groth16Calldata, Groth16Proof, PlonkCalldata,
                    PlonkProof, Proof, PublicSignals)

__all__ = [
    "transcode",
    "transcode_groth16",
    "transcode_plonk",
    "parse_solidity_calldata",
    "GROTH16_ARGS",
    "PLONK_ARGS",
]

GROTH16_ARGS = 4
PLONK_ARGS = 2


def _shape_error(msg: str, **ctx: Any) -> CalldataShapeError:
    return CalldataShapeError(msg, stage=Stage.TRANSCODE, ctx=ctx)


def _pair(obj: Any, what: str) -> Sequence[Any]:
    if isinstance(obj, (str, bytes)) or not isinstance(obj, Sequence):
        raise _shape_error(f"{what} must be a pair", component=what, type=type(obj).__name__)
    if len(obj) != 2:
        raise _shape_error(f"{what} must have exactly 2 components", component=what, len=len(obj))
    return obj


def _coord(value: Any, what: str) -> str:
    try:
        if isinstance(value, FieldElement):
            return encode(value, BASE_MODULUS)
        return encode(parse_int(value), BASE_MODULUS)
    except MalformedField as e:
        raise e.with_context(component=what)


def _signals(public_signals: Sequence[Any]) -> tuple:
    out = []
    for i, s in enumerate(public_signals):
        try:
            out.append(encode(s if isinstance(s, FieldElement) else parse_int(s), SCALAR_MODULUS))
        except MalformedField as e:
            raise e.with_context(component="input", index=i)
    return tuple(out)


# -----------------------------------------------------------------------------
# Groth16
# -----------------------------------------------------------------------------

def transcode_groth16(proof: Groth16Proof, public_signals: PublicSignals) -> Groth16Calldata:
    ax, ay = (_coord(v, "a") for v in _pair(proof.a, "a"))
    cx, cy = (_coord(v, "c") for v in _pair(proof.c, "c"))
    bx, by = _pair(proof.b, "b")
    bx0, bx1 = (_coord(v, "b") for v in _pair(bx, "b[0]"))
    by0, by1 = (_coord(v, "b") for v in _pair(by, "b[1]"))
    return Groth16Calldata(
        a=(ax, ay),
        b=((bx1, bx0), (by1, by0)),
        c=(cx, cy),
        input=_signals(public_signals),
    )


# -----------------------------------------------------------------------------
# PLONK
# -----------------------------------------------------------------------------

def transcode_plonk(proof: PlonkProof, public_signals: PublicSignals) -> PlonkCalldata:
    if not isinstance(proof.blob, (bytes, bytearray)):
        raise _shape_error("PLONK proof blob must be bytes", type=type(proof.blob).__name__)
    if not proof.blob:
        raise _shape_error("PLONK proof blob is empty", len=0)
    return PlonkCalldata(proof="0x" + bytes(proof.blob).hex(), public_signals=_signals(public_signals))


def transcode(proof: Proof, public_signals: PublicSignals) -> Calldata:
    """Dispatch on the proof variant."""
    if isinstance(proof, Groth16Proof):
        return transcode_groth16(proof, public_signals)
    if isinstance(proof, PlonkProof):
        return transcode_plonk(proof, public_signals)
    raise _shape_error("unknown proof variant", type=type(proof).__name__)


# -----------------------------------------------------------------------------
# snarkjs soliditycalldata text
# -----------------------------------------------------------------------------

def parse_solidity_calldata(text: str, backend: Union[str, BackendName]) -> Calldata:
    """
    Parse the string printed by ``snarkjs zkey export soliditycalldata``.

    Groth16 output is ``[a],[[b]],[c],[input]`` with 0x-hex words; the B pairs
    are already in contract order and are kept as printed. PLONK output is a
    proof (one blob or a list of words) followed by the signal list.
    """
    name = BackendName(getattr(backend, "value", backend))
    try:
        args = split_solidity_calldata(text)
    except (IndexError, ValueError) as e:
        raise _shape_error("calldata text is not parseable", backend=name.value) from e

    if name is BackendName.GROTH16:
        if len(args) != GROTH16_ARGS:
            raise _shape_error("Groth16 calldata needs 4 arguments", args=len(args))
        a, b, c, inputs = args
        b0, b1 = _pair(b, "b")
        return Groth16Calldata(
            a=tuple(_coord(v, "a") for v in _pair(a, "a")),
            b=(tuple(_coord(v, "b") for v in _pair(b0, "b[0]")),
               tuple(_coord(v, "b") for v in _pair(b1, "b[1]"))),
            c=tuple(_coord(v, "c") for v in _pair(c, "c")),
            input=_signals(_list(inputs, "input")),
        )

    if len(args) != PLONK_ARGS:
        raise _shape_error("PLONK calldata needs 2 arguments", args=len(args))
    blob_arg, inputs = args
    try:
        blob = parse_plonk_blob(blob_arg)
    except MalformedField as e:
        raise _shape_error(e.msg, component="proof") from e
    return transcode_plonk(PlonkProof(blob=blob), _list(inputs, "publicSignals"))


def _list(obj: Any, what: str) -> List[Any]:
    if not isinstance(obj, list):
        raise _shape_error(f"{what} must be a list", component=what, type=type(obj).__name__)
    return obj
