"""
zkbridge.adapters.snarkjs_loader
================================

Helpers to **load and normalize** SnarkJS JSON artifacts into zkbridge types:

- Groth16 proofs on BN254 (aka bn128 in SnarkJS) -> `Groth16Proof`
- public signals -> tuple of scalar-field `FieldElement`
- verification keys (any protocol) -> plain dict + digest
- the text printed by ``snarkjs zkey export soliditycalldata``

This module does **not** verify proofs and does not enforce calldata arity;
it decodes numbers strictly (no modular reduction) and leaves the shape checks
to `zkbridge.transcode`, so a truncated proof surfaces there as a
`CalldataShapeError`.

Typical Groth16 SnarkJS shape (proof.json)
------------------------------------------
{
  "pi_a": [ "<x>", "<y>", "1" ],
  "pi_b": [[ "<x_c0>","<x_c1>" ], [ "<y_c0>","<y_c1>" ], [ "1","0" ]],
  "pi_c": [ "<x>", "<y>", "1" ],
  "protocol": "groth16",
  "curve": "bn128"
}

SnarkJS writes projective points; the trailing ``"1"`` / ``["1","0"]`` marks
an affine point and is dropped. Some tools wrap as
``{ "proof": {...}, "publicSignals": [...] }``; we handle both.

Exports
-------
- load_json(source) -> dict | list
- parse_int(x) -> int
- is_groth16_proof(obj)
- parse_groth16_proof(proof_or_bundle) -> Groth16Proof
- strip_projective(point, width)
- parse_public_signals(values) -> PublicSignals
- load_verification_key(source) -> (vk_json, digest)
- split_solidity_calldata(text) -> list
- parse_plonk_blob(arg) -> bytes
"""

from __future__ import annotations

import json
import os
import re
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple, Union

from ..codec.field import BASE_MODULUS, SCALAR_MODULUS, FieldElement, parse_uint
from ..errors import MalformedField, Stage
from ..types import Groth16Proof, PublicSignals, digest_json

JsonLike = Union[str, bytes, os.PathLike, Mapping[str, Any]]


# -----------------------------------------------------------------------------
# I/O helpers
# -----------------------------------------------------------------------------

def load_json(source: JsonLike) -> Any:
    """
    Load JSON from:
      - dict-like: shallow-copied into a new dict
      - path-like or string path
      - bytes or string containing JSON text

    Raises ValueError on failure.
    """
    if isinstance(source, Mapping):
        return dict(source)
    if isinstance(source, (bytes, bytearray, memoryview)):
        return json.loads(bytes(source).decode("utf-8"))
    if isinstance(source, os.PathLike):
        with open(source, "r", encoding="utf-8") as f:
            return json.load(f)
    s = str(source)
    if os.path.isfile(s):
        with open(s, "r", encoding="utf-8") as f:
            return json.load(f)
    try:
        return json.loads(s)
    except json.JSONDecodeError as e:
        raise ValueError(f"Could not load JSON from provided source: {e}") from e


# -----------------------------------------------------------------------------
# Number coercion (dec/hex/JS BigInt strings -> Python int), strict
# -----------------------------------------------------------------------------

_BIGINT_RE = re.compile(r"^([0-9]+|0[xX][0-9a-fA-F]+)n$")


def parse_int(x: Any) -> int:
    """
    Strict unsigned parse. Accepts ints, decimal strings, 0x-hex strings and
    JS BigInt strings ("123n"). Raises MalformedField for anything else.
    """
    if isinstance(x, bool):
        raise MalformedField("boolean is not a field value", stage=Stage.CODEC)
    if isinstance(x, int):
        if x < 0:
            raise MalformedField("negative value", stage=Stage.CODEC, ctx={"bits": x.bit_length()})
        return x
    if isinstance(x, str):
        m = _BIGINT_RE.match(x)
        return parse_uint(m.group(1) if m else x)
    raise MalformedField("unsupported numeric type", stage=Stage.CODEC, ctx={"type": type(x).__name__})


def _coords(values: Iterable[Any], modulus: int) -> Tuple[FieldElement, ...]:
    return tuple(FieldElement(parse_int(v), modulus) for v in values)


# -----------------------------------------------------------------------------
# Groth16
# -----------------------------------------------------------------------------

def is_groth16_proof(obj: Mapping[str, Any]) -> bool:
    if "proof" in obj and isinstance(obj.get("proof"), Mapping):
        obj = obj["proof"]
    return all(k in obj for k in ("pi_a", "pi_b", "pi_c"))


def _is_affine_marker(v: Any, width: int) -> bool:
    try:
        if width == 1:
            return parse_int(v) == 1
        return [parse_int(c) for c in v] == [1, 0]
    except (MalformedField, TypeError):
        return False


def strip_projective(pt: Sequence[Any], width: int) -> Sequence[Any]:
    # [x, y, 1] -> [x, y]; anything else is passed through for the transcoder to judge
    if len(pt) == 3 and _is_affine_marker(pt[2], width):
        return pt[:2]
    return pt


def parse_groth16_proof(bundle_or_proof: Mapping[str, Any]) -> Groth16Proof:
    """
    Accept either:
      - flat proof dict {pi_a, pi_b, pi_c, protocol?, curve?}
      - bundle {proof: {...}, publicSignals: [...]}
    """
    proof = bundle_or_proof
    if "proof" in bundle_or_proof and isinstance(bundle_or_proof["proof"], Mapping):
        proof = bundle_or_proof["proof"]
    for k in ("pi_a", "pi_b", "pi_c"):
        if k not in proof:
            raise MalformedField(f"Groth16 proof missing '{k}'", stage=Stage.PROVE)
        if not isinstance(proof[k], list):
            raise MalformedField(f"Groth16 '{k}' must be a list", stage=Stage.PROVE)

    a = _coords(strip_projective(proof["pi_a"], 1), BASE_MODULUS)
    c = _coords(strip_projective(proof["pi_c"], 1), BASE_MODULUS)
    b_raw = strip_projective(proof["pi_b"], 2)
    b = []
    for fq2 in b_raw:
        if not isinstance(fq2, list):
            raise MalformedField("Groth16 'pi_b' entries must be lists", stage=Stage.PROVE)
        b.append(_coords(fq2, BASE_MODULUS))
    return Groth16Proof(a=a, b=tuple(b), c=c)


# -----------------------------------------------------------------------------
# Public signals & verification keys
# -----------------------------------------------------------------------------

def parse_public_signals(values: Any) -> PublicSignals:
    if isinstance(values, Mapping) and "publicSignals" in values:
        values = values["publicSignals"]
    if not isinstance(values, list):
        raise MalformedField("publicSignals must be a list", stage=Stage.PROVE,
                             ctx={"type": type(values).__name__})
    return _coords(values, SCALAR_MODULUS)


def load_verification_key(source: JsonLike) -> Tuple[Dict[str, Any], str]:
    """Return (vk_json, "sha3-256:<hex>") for a snarkjs verification_key.json."""
    vk = load_json(source)
    if not isinstance(vk, dict):
        raise ValueError("verification key must be a JSON object")
    return vk, digest_json(vk)


# -----------------------------------------------------------------------------
# `snarkjs zkey export soliditycalldata` output
# -----------------------------------------------------------------------------

_STRIP_RE = re.compile(r"[\"\[\]\s]")


def split_solidity_calldata(text: str) -> List[Any]:
    """
    Split the soliditycalldata text into its top-level arguments.

    Groth16 and newer PLONK exports are comma-joined JSON values, so wrapping
    them in brackets yields the argument list. Older PLONK exports start with
    a bare ``0x...`` blob; that form is split as ``[blob, [signals...]]``.
    """
    text = text.strip()
    if not text:
        return []
    try:
        parsed = json.loads(f"[{text}]")
    except json.JSONDecodeError:
        tokens = [t for t in _STRIP_RE.sub("", text).split(",") if t]
        return [tokens[0], tokens[1:]]
    return list(parsed)


_HEX_RE = re.compile(r"^0[xX]([0-9a-fA-F]*)$")


def parse_plonk_blob(arg: Any) -> bytes:
    """
    PLONK proof argument of a soliditycalldata export -> raw bytes.

    Older snarkjs prints one ``0x...`` blob; newer releases print a list of
    32-byte ``0x`` words, which are concatenated in order. Words are never
    interpreted.
    """
    if isinstance(arg, list):
        out = bytearray()
        for i, word in enumerate(arg):
            n = parse_int(word)
            if n.bit_length() > 256:
                raise MalformedField("PLONK proof word exceeds 32 bytes", stage=Stage.TRANSCODE,
                                     ctx={"index": i})
            out += n.to_bytes(32, "big")
        return bytes(out)
    if not isinstance(arg, str):
        raise MalformedField("PLONK proof must be a hex string or list of words",
                             stage=Stage.TRANSCODE, ctx={"type": type(arg).__name__})
    m = _HEX_RE.match(arg.strip())
    if m is None or len(m.group(1)) % 2:
        raise MalformedField("PLONK proof is not 0x-prefixed even-length hex",
                             stage=Stage.TRANSCODE, ctx={"len": len(arg)})
    return bytes.fromhex(m.group(1))


__all__ = [
    "load_json",
    "parse_int",
    "is_groth16_proof",
    "parse_groth16_proof",
    "strip_projective",
    "parse_public_signals",
    "load_verification_key",
    "split_solidity_calldata",
    "parse_plonk_blob",
]
