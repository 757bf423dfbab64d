"""
zkbridge.backends.plonk
=======================

PLONK (KZG, BN254) via snarkjs.

The proof handed to the verifier contract is the opaque byte string printed by

    snarkjs zkey export soliditycalldata public.json proof.json

It is never decomposed here. The prover's proof.json is kept on the
`PlonkProof` only so `verify_locally` can hand it back to
``snarkjs plonk verify``.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path
from typing import Any

from ..adapters.snarkjs_cli import SnarkjsError
from ..adapters.snarkjs_loader import parse_plonk_blob, split_solidity_calldata
from ..errors import ProofGenerationFailed, Stage
from ..types import BackendName, PlonkProof, Proof, PublicSignals, VerificationKey
from .base import ProofBackend, ensure_mapping, signal_strings

log = logging.getLogger(__name__)


class PlonkBackend(ProofBackend):
    name = BackendName.PLONK

    def _parse_proof(self, proof_json: Any, tmpdir: Path) -> Proof:
        source = dict(ensure_mapping(proof_json, "PLONK proof"))
        text = self.runner.run(
            ["zkey", "export", "soliditycalldata", tmpdir / "public.json", tmpdir / "proof.json"],
            timeout=self.timeout,
        )
        args = split_solidity_calldata(text)
        if len(args) != 2:
            raise ProofGenerationFailed("unexpected PLONK calldata export", stage=Stage.PROVE,
                                        ctx={"args": len(args)})
        blob = parse_plonk_blob(args[0])
        if not blob:
            raise ProofGenerationFailed("empty PLONK proof", stage=Stage.PROVE)
        return PlonkProof(blob=blob, source=source)

    def verify_locally(self, proof: Proof, public_signals: PublicSignals,
                       verification_key: VerificationKey) -> bool:
        self._check_key(verification_key)
        if not isinstance(proof, PlonkProof):
            raise ProofGenerationFailed("not a PLONK proof", stage=Stage.PRECHECK,
                                        ctx={"type": type(proof).__name__})
        if proof.source is None:
            raise ProofGenerationFailed("PLONK proof carries no prover JSON", stage=Stage.PRECHECK)

        with tempfile.TemporaryDirectory(prefix="zkbridge-plonk-verify-", dir=self.work_dir) as tmp:
            tmpdir = Path(tmp)
            files = {
                "vk.json": verification_key.data,
                "public.json": signal_strings(public_signals),
                "proof.json": proof.source,
            }
            for name, obj in files.items():
                (tmpdir / name).write_text(json.dumps(obj), encoding="utf-8")
            try:
                self.runner.run(
                    ["plonk", "verify", tmpdir / "vk.json", tmpdir / "public.json", tmpdir / "proof.json"],
                    timeout=self.timeout,
                )
            except SnarkjsError as e:
                if e.returncode is not None and not e.timed_out:
                    log.debug("plonk precheck: rejected (exit %s)", e.returncode)
                    return False
                raise ProofGenerationFailed(
                    "PLONK local verification could not run",
                    stage=Stage.PRECHECK,
                    ctx={"command": e.command, "timed_out": e.timed_out},
                    cause=e,
                ) from e
        log.debug("plonk precheck: accepted")
        return True


__all__ = ["PlonkBackend"]
