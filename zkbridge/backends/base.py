"""
zkbridge.backends.base
======================

Abstract proof backend. A backend turns an input assignment into a
``(Proof, PublicSignals)`` pair by running the external prover, and can
optionally re-check a proof off-chain.

Proof generation runs in a scratch directory:

    snarkjs <backend> fullprove input.json <circuit.wasm> <key.zkey> proof.json public.json

after which the variant parses ``proof.json`` into its own proof type. Every
failure (non-zero exit, timeout, missing or unparsable output) is reported as
`ProofGenerationFailed`; callers never see a partially built proof.
"""

from __future__ import annotations

import abc
import json
import logging
import tempfile
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

from ..adapters.snarkjs_cli import Runner, SnarkjsError, SnarkjsRunner
from ..adapters.snarkjs_loader import load_json, parse_public_signals
from ..errors import BridgeError, ProofGenerationFailed, Stage
from ..types import BackendName, Circuit, Proof, ProvingKey, PublicSignals, VerificationKey
from ..witness import InputAssignment, normalize_inputs

log = logging.getLogger(__name__)


class ProofBackend(abc.ABC):
    """Common driver for snarkjs-backed proof systems."""

    name: BackendName

    def __init__(self, runner: Optional[Runner] = None, *, timeout: float = 900.0,
                 work_dir: Optional[Path] = None):
        self.runner = runner or SnarkjsRunner()
        self.timeout = timeout
        self.work_dir = work_dir

    def __repr__(self) -> str:
        return f"{type(self).__name__}(timeout={self.timeout})"

    # ------------------------------------------------------------------ generate

    def generate(self, inputs: InputAssignment, circuit: Circuit,
                 proving_key: ProvingKey) -> Tuple[Proof, PublicSignals]:
        ctx = {"circuit_id": circuit.circuit_id, "backend": self.name.value}
        if proving_key.backend != self.name.value:
            raise ProofGenerationFailed("proving key belongs to another backend", stage=Stage.PROVE,
                                        ctx={**ctx, "key_backend": proving_key.backend})
        if not circuit.wasm_path:
            raise ProofGenerationFailed("circuit has no witness program", stage=Stage.PROVE, ctx=ctx)

        encoded = normalize_inputs(circuit, inputs)
        with tempfile.TemporaryDirectory(prefix=f"zkbridge-{self.name.value}-", dir=self.work_dir) as tmp:
            tmpdir = Path(tmp)
            input_path = tmpdir / "input.json"
            input_path.write_text(json.dumps(encoded), encoding="utf-8")
            try:
                self.runner.run(
                    [self.name.value, "fullprove", input_path, circuit.wasm_path, proving_key.path,
                     tmpdir / "proof.json", tmpdir / "public.json"],
                    timeout=self.timeout,
                )
                proof_json = load_json(tmpdir / "proof.json")
                public_json = load_json(tmpdir / "public.json")
                proof = self._parse_proof(proof_json, tmpdir)
                signals = parse_public_signals(public_json)
            except SnarkjsError as e:
                raise ProofGenerationFailed(
                    "prover failed",
                    stage=Stage.PROVE,
                    ctx={**ctx, "command": e.command, "returncode": e.returncode,
                         "timed_out": e.timed_out},
                    cause=e,
                ) from e
            except BridgeError as e:
                raise ProofGenerationFailed("prover output malformed", stage=Stage.PROVE,
                                            ctx={**ctx, "detail": e.msg}, cause=e) from e
            except (OSError, ValueError, TypeError) as e:
                raise ProofGenerationFailed("prover output missing or unreadable", stage=Stage.PROVE,
                                            ctx=ctx, cause=e) from e

        log.debug("proof generated: circuit=%s backend=%s public=%d",
                  circuit.circuit_id, self.name.value, len(signals))
        return proof, signals

    @abc.abstractmethod
    def _parse_proof(self, proof_json: Any, tmpdir: Path) -> Proof:
        """Turn the prover's proof.json (public.json sits next to it) into a Proof."""

    # ------------------------------------------------------------------ verify

    @abc.abstractmethod
    def verify_locally(self, proof: Proof, public_signals: PublicSignals,
                       verification_key: VerificationKey) -> bool:
        """
        Off-chain check of `proof` against `verification_key`.

        Returns False for a proof that does not verify. Raises
        `ProofGenerationFailed` (stage ``precheck``) when the check itself
        cannot be carried out.
        """

    def _check_key(self, verification_key: VerificationKey) -> None:
        if verification_key.backend != self.name.value:
            raise ProofGenerationFailed(
                "verification key belongs to another backend",
                stage=Stage.PRECHECK,
                ctx={"backend": self.name.value, "key_backend": verification_key.backend},
            )


def signal_strings(public_signals: PublicSignals) -> list:
    return [str(int(s)) for s in public_signals]


def ensure_mapping(obj: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(obj, Mapping):
        raise ProofGenerationFailed(f"{what} must be a JSON object", stage=Stage.PROVE,
                                    ctx={"type": type(obj).__name__})
    return obj


__all__ = ["ProofBackend", "signal_strings", "ensure_mapping"]
