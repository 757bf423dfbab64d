"""
Verification orchestrator.

Drives one request through the pipeline and reports where it ended up:

    idle -> witness_computed -> proof_generated -> calldata_ready -> submitted
         -> accepted | rejected | errored

`verify` never raises for a stage failure: any `BridgeError` becomes an
``errored`` outcome naming the stage and error kind. Nothing is retried; a
failed request is terminal and the caller decides what to do next.

The staged methods (`compute_witness`, `generate`, `transcode`, `submit`)
expose each step separately and do raise their own error kinds.

External work (witness program, prover, RPC) is blocking and bounded by its
own timeout from `BridgeConfig`; `verify_async` moves the whole request onto a
worker thread so callers can run many at once.
"""

from __future__ import annotations

import asyncio
import logging
from threading import RLock
from typing import Dict, List, Mapping, Optional, Tuple, Union

from .adapters.snarkjs_cli import SnarkjsRunner
from .backends import ProofBackend, backend_name, get_backend
from .config import BridgeConfig, get_config
from .contract import EthVerifierContract, RpcClient, VerifierContract
from .errors import (BridgeError, ProofGenerationFailed, RegistryError, Stage,
                     SubmissionError, VerificationTimeout, WitnessMismatch)
from .registry import KeyRegistry
from .transcode import transcode as _transcode
from .types import (BackendName, Calldata, InputsAbi, KeyRecord, OutcomeStatus, Proof,
                    PublicSignals, State, VerificationOutcome, Witness)
from .witness import CircuitEvaluator, InputAssignment, SnarkjsWitnessEvaluator
from .witness import compute_witness as _compute_witness

log = logging.getLogger(__name__)

ContractKey = Tuple[str, str]


class _Run:
    """Per-request state and trace; never shared between requests."""

    def __init__(self, circuit_id: str, backend: str):
        self.circuit_id = circuit_id
        self.backend = backend
        self.state = State.IDLE
        self.trace: List[State] = [State.IDLE]
        self.public_signals: Tuple[str, ...] = ()

    def advance(self, state: State) -> None:
        log.debug("%s/%s: %s -> %s", self.circuit_id, self.backend, self.state.value, state.value)
        self.state = state
        self.trace.append(state)

    def outcome(self, status: OutcomeStatus, error: Optional[BridgeError] = None) -> VerificationOutcome:
        return VerificationOutcome(
            status=status,
            circuit_id=self.circuit_id,
            backend=self.backend,
            state=self.state,
            trace=tuple(self.trace),
            error=error.to_dict() if error is not None else None,
            public_signals=self.public_signals,
        )


class VerificationOrchestrator:
    """
    Entry point: ``verify(circuit_id, inputs, backend) -> VerificationOutcome``.

    Collaborators are injectable:
        registry:  KeyRegistry holding (circuit, backend) -> KeyRecord
        evaluator: CircuitEvaluator (default: snarkjs wtns)
        backends:  name -> ProofBackend (default: built on demand from config)
        contracts: (circuit_id, backend) -> VerifierContract
                   (default: EthVerifierContract at the record's verifier_address)
    """

    def __init__(
        self,
        registry: KeyRegistry,
        *,
        evaluator: Optional[CircuitEvaluator] = None,
        backends: Optional[Mapping[Union[str, BackendName], ProofBackend]] = None,
        contracts: Optional[Mapping[ContractKey, VerifierContract]] = None,
        config: Optional[BridgeConfig] = None,
        rpc: Optional[RpcClient] = None,
    ):
        self.config = config or get_config()
        self.registry = registry
        self._runner = SnarkjsRunner(self.config.snarkjs_cmd)
        self.evaluator = evaluator or SnarkjsWitnessEvaluator(
            self._runner, timeout=self.config.witness_timeout, work_dir=self.config.work_dir)
        self._backends: Dict[BackendName, ProofBackend] = {
            backend_name(k): v for k, v in (backends or {}).items()}
        self._contracts: Dict[ContractKey, VerifierContract] = dict(contracts or {})
        self._rpc = rpc
        self._lock = RLock()

    # ------------------------------------------------------------------ wiring

    def backend(self, name: Union[str, BackendName]) -> ProofBackend:
        key = backend_name(name)
        with self._lock:
            if key not in self._backends:
                self._backends[key] = get_backend(key, self._runner, timeout=self.config.prove_timeout,
                                                  work_dir=self.config.work_dir)
            return self._backends[key]

    def contract(self, record: KeyRecord) -> VerifierContract:
        with self._lock:
            found = self._contracts.get(record.key)
            if found is not None:
                return found
            if not record.verifier_address:
                raise SubmissionError("no verifier contract for circuit", stage=Stage.SUBMIT,
                                      ctx={"circuit_id": record.circuit.circuit_id, "backend": record.backend})
            if self._rpc is None:
                self._rpc = RpcClient(self.config.rpc_url, timeout=self.config.rpc_timeout,
                                      max_retries=self.config.rpc_max_retries)
            try:
                public_count = (record.circuit.public_count
                                if record.inputs_abi is InputsAbi.FIXED else None)
                contract = EthVerifierContract(record.verifier_address, self._rpc,
                                               public_count=public_count)
            except ValueError as e:
                raise SubmissionError("invalid verifier address", stage=Stage.SUBMIT,
                                      ctx={"circuit_id": record.circuit.circuit_id}, cause=e) from e
            self._contracts[record.key] = contract
            return contract

    def record(self, circuit_id: str, backend: Union[str, BackendName]) -> KeyRecord:
        try:
            return self.registry.get(circuit_id, backend)
        except ValueError as e:
            raise RegistryError(str(e), stage=Stage.REGISTRY, ctx={"circuit_id": circuit_id}) from e

    # ------------------------------------------------------------------ stages

    def compute_witness(self, record: KeyRecord, inputs: InputAssignment) -> Witness:
        return _compute_witness(record.circuit, inputs, self.evaluator)

    def generate(self, record: KeyRecord, inputs: InputAssignment,
                 witness: Optional[Witness] = None) -> Tuple[Proof, PublicSignals]:
        """
        Run the prover. With a witness, the prover's public signals must equal
        the witness public range; with `config.local_precheck`, the proof must
        also pass the backend's off-chain check.
        """
        backend = self.backend(record.backend)
        proof, signals = backend.generate(inputs, record.circuit, record.proving_key)
        ctx = {"circuit_id": record.circuit.circuit_id, "backend": record.backend}

        if witness is not None and tuple(signals) != witness.public_outputs():
            raise WitnessMismatch(
                "prover public signals differ from the witness public outputs",
                stage=Stage.PROVE,
                ctx={**ctx, "prover_len": len(signals), "witness_len": witness.public_count},
            )

        if self.config.local_precheck:
            if record.verification_key is None:
                raise ProofGenerationFailed("local pre-check needs a verification key",
                                            stage=Stage.PRECHECK, ctx=ctx)
            if not backend.verify_locally(proof, signals, record.verification_key):
                raise ProofGenerationFailed("proof rejected by local pre-check",
                                            stage=Stage.PRECHECK, ctx=ctx)
        return proof, signals

    def transcode(self, proof: Proof, public_signals: PublicSignals) -> Calldata:
        return _transcode(proof, public_signals)

    def submit(self, record: KeyRecord, calldata: Calldata) -> bool:
        return self.contract(record).verify_proof(calldata)

    # ------------------------------------------------------------------ pipeline

    def verify(self, circuit_id: str, inputs: InputAssignment,
               backend: Union[str, BackendName] = BackendName.GROTH16) -> VerificationOutcome:
        run = _Run(circuit_id, str(getattr(backend, "value", backend)))
        try:
            record = self.record(circuit_id, backend)
            run.backend = record.backend

            witness = self.compute_witness(record, inputs)
            run.advance(State.WITNESS_COMPUTED)

            proof, signals = self.generate(record, inputs, witness)
            run.public_signals = tuple(str(s.value) for s in signals)
            run.advance(State.PROOF_GENERATED)

            calldata = self.transcode(proof, signals)
            run.advance(State.CALLDATA_READY)

            run.advance(State.SUBMITTED)
            ok = self.submit(record, calldata)
        except BridgeError as e:
            run.advance(State.ERRORED)
            log.info("verify %s/%s: errored at %s (%s)", run.circuit_id, run.backend,
                     e.to_dict()["stage"], e.code.value)
            return run.outcome(OutcomeStatus.ERRORED, e)

        run.advance(State.ACCEPTED if ok else State.REJECTED)
        log.info("verify %s/%s: %s", run.circuit_id, run.backend, run.state.value)
        return run.outcome(OutcomeStatus.ACCEPTED if ok else OutcomeStatus.REJECTED)

    async def verify_async(self, circuit_id: str, inputs: InputAssignment,
                           backend: Union[str, BackendName] = BackendName.GROTH16, *,
                           timeout: Optional[float] = None) -> VerificationOutcome:
        """
        Run `verify` on a worker thread. On `timeout` the caller gets an
        errored outcome at once; the worker's external processes still end at
        their own configured timeouts.
        """
        try:
            return await asyncio.wait_for(asyncio.to_thread(self.verify, circuit_id, inputs, backend),
                                          timeout)
        except asyncio.TimeoutError:
            run = _Run(circuit_id, str(getattr(backend, "value", backend)))
            run.advance(State.ERRORED)
            err = VerificationTimeout("verification timed out", stage=Stage.ORCHESTRATE,
                                      ctx={"timeout": timeout})
            log.info("verify %s/%s: timed out after %ss", circuit_id, run.backend, timeout)
            return run.outcome(OutcomeStatus.ERRORED, err)


__all__ = ["VerificationOrchestrator"]
