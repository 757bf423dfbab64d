"""
zkbridge
========

Bridge an off-chain circom/snarkjs proving pipeline to an on-chain verifier
contract: witness -> proof (Groth16 or PLONK) -> calldata -> ``verifyProof``.

Quick start
-----------
    from zkbridge import KeyRegistry, VerificationOrchestrator

    registry = KeyRegistry()
    registry.load_manifest("circuits.yaml")
    outcome = VerificationOrchestrator(registry).verify("multiplier3", {"a": 2, "b": 3, "c": 4}, "groth16")
    assert outcome.accepted

Subpackages
-----------
- zkbridge.codec     field elements and curve points as calldata strings
- zkbridge.adapters  snarkjs subprocess runner and JSON loaders
- zkbridge.backends  Groth16 / PLONK proof backends
"""

from __future__ import annotations

__version__ = "0.1.0"

from .codec import BASE_MODULUS, SCALAR_MODULUS, FieldElement, decode, encode
from .config import BridgeConfig, get_config, reload_config
from .errors import (BridgeError, CalldataShapeError, MalformedField, ProofGenerationFailed,
                     Stage, SubmissionError, WitnessMismatch)
from .orchestrator import VerificationOrchestrator
from .registry import KeyRegistry, default_registry, load_record
from .transcode import parse_solidity_calldata, transcode
from .types import (BackendName, Circuit, Groth16Calldata, Groth16Proof, PlonkCalldata,
                    PlonkProof, State, VerificationOutcome, Witness)
from .witness import compute_witness

__all__ = [
    "__version__",
    # codec
    "FieldElement",
    "SCALAR_MODULUS",
    "BASE_MODULUS",
    "encode",
    "decode",
    # model
    "BackendName",
    "Circuit",
    "Witness",
    "Groth16Proof",
    "PlonkProof",
    "Groth16Calldata",
    "PlonkCalldata",
    "State",
    "VerificationOutcome",
    # errors
    "Stage",
    "BridgeError",
    "MalformedField",
    "WitnessMismatch",
    "ProofGenerationFailed",
    "CalldataShapeError",
    "SubmissionError",
    # pipeline
    "compute_witness",
    "transcode",
    "parse_solidity_calldata",
    "KeyRegistry",
    "default_registry",
    "load_record",
    "VerificationOrchestrator",
    # config
    "BridgeConfig",
    "get_config",
    "reload_config",
]
