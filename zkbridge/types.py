"""
zkbridge.types
==============

Typed records for one prove -> transcode -> submit cycle, using **msgspec**.

This module defines:
- `Circuit`: declared shape of a compiled circuit (signal count, public range,
  input names) plus the witness-program artifact path.
- `ProvingKey` / `VerificationKey` / `KeyRecord`: setup artifacts for one
  circuit+backend pair, immutable once loaded.
- `Witness`: the full signal vector, index 0 is the constant 1.
- `Groth16Proof` / `PlonkProof`: disjoint tagged proof variants.
- `Groth16Calldata` / `PlonkCalldata`: the exact verifier-contract arguments.
- `VerificationOutcome`: accepted / rejected / errored, with the state trace.

Conventions
-----------
- Field values are `FieldElement`s internally and decimal strings in calldata.
- Digests are ``"sha3-256:<hex>"`` over canonical JSON (sorted keys, compact
  separators) or over raw artifact bytes.
"""

from __future__ import annotations

import json
from enum import Enum
from hashlib import sha3_256
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import msgspec

from .codec.field import FieldElement

__all__ = [
    "BackendName",
    "State",
    "InputsAbi",
    "OutcomeStatus",
    "Circuit",
    "ProvingKey",
    "VerificationKey",
    "KeyRecord",
    "Witness",
    "Groth16Proof",
    "PlonkProof",
    "Proof",
    "PublicSignals",
    "Groth16Calldata",
    "PlonkCalldata",
    "Calldata",
    "VerificationOutcome",
    "canonical_json_bytes",
    "sha3_256_hex",
    "digest_bytes",
    "digest_json",
]


# -----------------------------------------------------------------------------
# Enums / aliases
# -----------------------------------------------------------------------------

class BackendName(str, Enum):
    """Supported proof systems."""
    GROTH16 = "groth16"
    PLONK = "plonk"


class State(str, Enum):
    """Verification state machine."""
    IDLE = "idle"
    WITNESS_COMPUTED = "witness_computed"
    PROOF_GENERATED = "proof_generated"
    CALLDATA_READY = "calldata_ready"
    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    ERRORED = "errored"


class InputsAbi(str, Enum):
    """How the Groth16 verifier declares its public inputs: `uint256[N]` or `uint256[]`."""
    FIXED = "fixed"
    DYNAMIC = "dynamic"


class OutcomeStatus(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    ERRORED = "errored"


PublicSignals = Tuple[FieldElement, ...]


# -----------------------------------------------------------------------------
# Circuit & keys
# -----------------------------------------------------------------------------

class Circuit(msgspec.Struct, frozen=True):
    """
    Declared circuit shape.

    Fields:
        circuit_id: stable identifier (e.g. "multiplier3").
        wasm_path: compiled witness program (circom `<name>_js/<name>.wasm`).
        signal_count: total witness length, if known; checked after evaluation.
        public_start: index of the first public output in the witness.
        public_count: number of public outputs (the contract's public input count).
        input_names: declared input signal names; None disables the name check.
    """
    circuit_id: str
    wasm_path: str = ""
    signal_count: Optional[int] = None
    public_start: int = 1
    public_count: int = 0
    input_names: Optional[Tuple[str, ...]] = None

    @property
    def public_stop(self) -> int:
        return self.public_start + self.public_count


class ProvingKey(msgspec.Struct, frozen=True):
    """Opaque proving-key artifact (snarkjs .zkey); only its path and digest are held."""
    backend: str
    curve: str
    path: str
    digest: str


class VerificationKey(msgspec.Struct, frozen=True):
    """Verification key JSON as exported by `snarkjs zkey export verificationkey`."""
    backend: str
    curve: str
    data: Dict[str, Any]
    digest: str
    path: Optional[str] = None


class KeyRecord(msgspec.Struct, frozen=True):
    """Everything needed to prove and verify for one (circuit, backend) pair."""
    circuit: Circuit
    proving_key: ProvingKey
    verification_key: Optional[VerificationKey] = None
    verifier_address: Optional[str] = None
    inputs_abi: InputsAbi = InputsAbi.FIXED
    meta: Dict[str, Any] = msgspec.field(default_factory=dict)

    @property
    def backend(self) -> str:
        return self.proving_key.backend

    @property
    def key(self) -> Tuple[str, str]:
        return (self.circuit.circuit_id, self.proving_key.backend)


# -----------------------------------------------------------------------------
# Witness & proofs
# -----------------------------------------------------------------------------

class Witness(msgspec.Struct, frozen=True):
    values: Tuple[FieldElement, ...]
    public_start: int = 1
    public_count: int = 0

    def __len__(self) -> int:
        return len(self.values)

    def __getitem__(self, i: int) -> FieldElement:
        return self.values[i]

    def public_outputs(self) -> PublicSignals:
        return self.values[self.public_start:self.public_start + self.public_count]


class Groth16Proof(msgspec.Struct, frozen=True, tag="groth16"):
    """
    Affine Groth16 proof points in natural (prover) order:
        a = (Ax, Ay)
        b = ((Bx_c0, Bx_c1), (By_c0, By_c1))
        c = (Cx, Cy)
    """
    a: Sequence[FieldElement]
    b: Sequence[Sequence[FieldElement]]
    c: Sequence[FieldElement]


class PlonkProof(msgspec.Struct, frozen=True, tag="plonk"):
    """
    Opaque PLONK proof bytes exactly as the prover serialized them for Solidity.

    `source` is the prover's proof.json, carried only so the optional local
    pre-check can hand it back to `snarkjs plonk verify`. Calldata never reads it.
    """
    blob: bytes
    source: Optional[Dict[str, Any]] = None


Proof = Union[Groth16Proof, PlonkProof]


# -----------------------------------------------------------------------------
# Calldata
# -----------------------------------------------------------------------------

class Groth16Calldata(msgspec.Struct, frozen=True, tag="groth16"):
    """Arguments for `verifyProof(uint[2] a, uint[2][2] b, uint[2] c, uint[] input)`."""
    a: Tuple[str, str]
    b: Tuple[Tuple[str, str], Tuple[str, str]]
    c: Tuple[str, str]
    input: Tuple[str, ...]

    def args(self) -> Tuple[List[str], List[List[str]], List[str], List[str]]:
        return (
            list(self.a),
            [list(self.b[0]), list(self.b[1])],
            list(self.c),
            list(self.input),
        )

    def to_json(self) -> bytes:
        return canonical_json_bytes(self.args())


class PlonkCalldata(msgspec.Struct, frozen=True, tag="plonk"):
    """Arguments for `verifyProof(bytes proof, uint[] publicSignals)`."""
    proof: str
    public_signals: Tuple[str, ...]

    def args(self) -> Tuple[str, List[str]]:
        return (self.proof, list(self.public_signals))

    def to_json(self) -> bytes:
        return canonical_json_bytes(self.args())


Calldata = Union[Groth16Calldata, PlonkCalldata]


# -----------------------------------------------------------------------------
# Outcome
# -----------------------------------------------------------------------------

class VerificationOutcome(msgspec.Struct, frozen=True):
    """
    Result of one verification request.

    Fields:
        status: accepted | rejected | errored.
        circuit_id / backend: what was verified.
        state: final state of the machine.
        trace: every state visited, in order (starts with "idle").
        error: BridgeError.to_dict() for errored outcomes.
        public_signals: decimal public signals, when proof generation got that far.
    """
    status: OutcomeStatus
    circuit_id: str
    backend: str
    state: State
    trace: Tuple[State, ...] = ()
    error: Optional[Dict[str, Any]] = None
    public_signals: Tuple[str, ...] = ()

    @property
    def accepted(self) -> bool:
        return self.status is OutcomeStatus.ACCEPTED

    @property
    def rejected(self) -> bool:
        return self.status is OutcomeStatus.REJECTED

    @property
    def errored(self) -> bool:
        return self.status is OutcomeStatus.ERRORED

    @property
    def failed_stage(self) -> Optional[str]:
        return self.error.get("stage") if self.error else None

    def to_dict(self) -> Dict[str, Any]:
        return msgspec.to_builtins(self)


# -----------------------------------------------------------------------------
# Hashing helpers
# -----------------------------------------------------------------------------

def canonical_json_bytes(obj: Any) -> bytes:
    """Deterministic JSON bytes: sorted keys, compact separators, UTF-8."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def sha3_256_hex(data: bytes) -> str:
    return sha3_256(data).hexdigest()


def digest_bytes(data: bytes) -> str:
    return f"sha3-256:{sha3_256_hex(data)}"


def digest_json(obj: Any) -> str:
    return digest_bytes(canonical_json_bytes(obj))
