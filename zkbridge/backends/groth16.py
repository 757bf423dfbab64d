"""
zkbridge.backends.groth16
=========================

Groth16 over BN254 via snarkjs.

Local pre-check
---------------
The optional off-chain check evaluates the standard verification equation as a
product in GT:

    e(A, B) * e(-alpha1, beta2) * e(-VK_x, gamma2) * e(-C, delta2) == 1
    VK_x = IC[0] + sum_i input[i] * IC[i+1]

against a snarkjs ``verification_key.json``:

    {
      "protocol": "groth16", "curve": "bn128", "nPublic": n,
      "vk_alpha_1": [x, y, "1"],
      "vk_beta_2":  [[x_c0, x_c1], [y_c0, y_c1], ["1", "0"]],
      "vk_gamma_2": ..., "vk_delta_2": ...,
      "IC": [[x, y, "1"], ...]            # 1 + n entries
    }

Curve arithmetic is `py_ecc`; this module only wires points together. It is
a convenience for failing fast before an on-chain call, never a replacement
for the verifier contract.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Mapping

from ..adapters.snarkjs_loader import parse_groth16_proof, strip_projective
from ..codec.points import decode_g1, decode_g2
from ..errors import MalformedField, ProofGenerationFailed, Stage
from ..types import BackendName, Groth16Proof, Proof, PublicSignals, VerificationKey
from . import pairing
from .base import ProofBackend, ensure_mapping

log = logging.getLogger(__name__)


class _Groth16Key:
    __slots__ = ("alpha1", "beta2", "gamma2", "delta2", "ic")

    def __init__(self, alpha1: Any, beta2: Any, gamma2: Any, delta2: Any, ic: List[Any]):
        self.alpha1 = alpha1
        self.beta2 = beta2
        self.gamma2 = gamma2
        self.delta2 = delta2
        self.ic = ic


def _g1(raw: Any) -> Any:
    return pairing.g1_point(decode_g1(strip_projective(raw, 1)))


def _g2(raw: Any) -> Any:
    return pairing.g2_point(decode_g2(strip_projective(raw, 2)))


def load_groth16_key(vk: Mapping[str, Any]) -> _Groth16Key:
    """Parse snarkjs VK JSON into backend points; raises ProofGenerationFailed if unusable."""
    try:
        key = _Groth16Key(
            alpha1=_g1(vk["vk_alpha_1"]),
            beta2=_g2(vk["vk_beta_2"]),
            gamma2=_g2(vk["vk_gamma_2"]),
            delta2=_g2(vk["vk_delta_2"]),
            ic=[_g1(p) for p in vk["IC"]],
        )
    except (KeyError, TypeError, MalformedField) as e:
        raise ProofGenerationFailed("Groth16 verification key unusable", stage=Stage.PRECHECK,
                                    ctx={"missing": str(e) if isinstance(e, KeyError) else None},
                                    cause=e) from e
    if not (pairing.on_curve_g1(key.alpha1) and pairing.on_curve_g2(key.beta2)
            and pairing.on_curve_g2(key.gamma2) and pairing.on_curve_g2(key.delta2)
            and all(pairing.on_curve_g1(p) for p in key.ic)):
        raise ProofGenerationFailed("Groth16 verification key points are not on curve",
                                    stage=Stage.PRECHECK)
    return key


def _vk_x(ic: List[Any], inputs: PublicSignals) -> Any:
    acc = ic[0]
    for i, s in enumerate(inputs):
        if s.value:
            acc = pairing.add(acc, pairing.multiply(ic[i + 1], s.value))
    return acc


def verify_groth16(vk: Mapping[str, Any], proof: Groth16Proof, public_signals: PublicSignals) -> bool:
    key = load_groth16_key(vk)
    if len(key.ic) != len(public_signals) + 1:
        log.debug("groth16 precheck: IC length %d vs %d public signals",
                  len(key.ic), len(public_signals))
        return False
    try:
        A = pairing.g1_point(decode_g1(proof.a))
        B = pairing.g2_point(decode_g2(proof.b))
        C = pairing.g1_point(decode_g1(proof.c))
        vkx = _vk_x(key.ic, public_signals)
        return pairing.check_pairing_product([
            (A, B),
            (pairing.neg(key.alpha1), key.beta2),
            (pairing.neg(vkx), key.gamma2),
            (pairing.neg(C), key.delta2),
        ])
    except (MalformedField, ValueError) as e:
        # Off-curve or misshapen proof points simply do not verify.
        log.debug("groth16 precheck rejected proof: %s", e)
        return False


class Groth16Backend(ProofBackend):
    name = BackendName.GROTH16

    def _parse_proof(self, proof_json: Any, tmpdir: Path) -> Proof:
        return parse_groth16_proof(ensure_mapping(proof_json, "Groth16 proof"))

    def verify_locally(self, proof: Proof, public_signals: PublicSignals,
                       verification_key: VerificationKey) -> bool:
        self._check_key(verification_key)
        if not isinstance(proof, Groth16Proof):
            raise ProofGenerationFailed("not a Groth16 proof", stage=Stage.PRECHECK,
                                        ctx={"type": type(proof).__name__})
        ok = verify_groth16(verification_key.data, proof, public_signals)
        log.debug("groth16 precheck: %s (backend=%s)", ok, pairing.BACKEND_NAME)
        return ok


__all__ = ["Groth16Backend", "verify_groth16", "load_groth16_key"]
