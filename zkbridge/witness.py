"""
Witness adapter.

`compute_witness` validates an input assignment against a circuit's declared
inputs, hands it to an external `CircuitEvaluator`, and checks the returned
signal vector before anything downstream sees it:

- length equals the circuit's declared signal count (when declared),
- ``witness[0] == 1``,
- the public-output range ``[public_start, public_start + public_count)`` fits.

A failure here usually means the compiled circuit and the registered keys have
drifted apart; it is reported as `WitnessMismatch` without echoing input
values.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from .adapters.snarkjs_cli import Runner, SnarkjsError, SnarkjsRunner
from .adapters.snarkjs_loader import load_json, parse_int
from .codec.field import SCALAR_MODULUS, FieldElement, encode
from .errors import BridgeError, MalformedField, Stage, WitnessMismatch
from .types import Circuit, Witness

log = logging.getLogger(__name__)

InputValue = Union[int, FieldElement, Sequence[Any]]
InputAssignment = Mapping[str, InputValue]


class CircuitEvaluator(Protocol):
    """External witness calculator: returns the raw signal vector."""

    def evaluate(self, circuit: Circuit, inputs: Mapping[str, Any]) -> Sequence[Union[int, str]]:
        ...


# -----------------------------------------------------------------------------
# Input assignment
# -----------------------------------------------------------------------------

def _encode_value(name: str, value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [_encode_value(name, v) for v in value]
    if isinstance(value, bool) or not isinstance(value, (int, FieldElement)):
        raise MalformedField(
            "input must be an int, FieldElement or list of those",
            stage=Stage.WITNESS,
            ctx={"signal": name, "type": type(value).__name__},
        )
    try:
        return encode(value, SCALAR_MODULUS)
    except MalformedField as e:
        e.stage = Stage.WITNESS
        raise e.with_context(signal=name)


def normalize_inputs(circuit: Circuit, inputs: InputAssignment) -> Dict[str, Any]:
    """
    Check names against the circuit and encode every value as a decimal string.

    Missing and unexpected names raise `WitnessMismatch`; out-of-range values
    raise `MalformedField` (never reduced modulo p).
    """
    if not isinstance(inputs, Mapping):
        raise WitnessMismatch("input assignment must be a mapping", stage=Stage.WITNESS,
                              ctx={"type": type(inputs).__name__})
    if circuit.input_names is not None:
        declared = set(circuit.input_names)
        given = set(inputs)
        missing = sorted(declared - given)
        extra = sorted(given - declared)
        if missing or extra:
            raise WitnessMismatch(
                "input names do not match the circuit",
                stage=Stage.WITNESS,
                ctx={"circuit_id": circuit.circuit_id, "missing": missing, "unexpected": extra},
            )
    return {name: _encode_value(name, value) for name, value in inputs.items()}


# -----------------------------------------------------------------------------
# Post-conditions
# -----------------------------------------------------------------------------

def check_witness(circuit: Circuit, raw: Sequence[Union[int, str]]) -> Witness:
    ctx = {"circuit_id": circuit.circuit_id, "length": len(raw)}
    if circuit.signal_count is not None and len(raw) != circuit.signal_count:
        raise WitnessMismatch("witness length differs from declared signal count",
                              stage=Stage.WITNESS, ctx={**ctx, "expected": circuit.signal_count})
    if len(raw) == 0:
        raise WitnessMismatch("empty witness", stage=Stage.WITNESS, ctx=ctx)
    try:
        values = tuple(FieldElement(parse_int(v), SCALAR_MODULUS) for v in raw)
    except MalformedField as e:
        raise WitnessMismatch("witness contains a non-canonical value", stage=Stage.WITNESS,
                              ctx=ctx, cause=e) from e
    if values[0].value != 1:
        raise WitnessMismatch("witness[0] must be the constant 1", stage=Stage.WITNESS, ctx=ctx)
    if circuit.public_start < 1 or circuit.public_count < 0 or circuit.public_stop > len(values):
        raise WitnessMismatch(
            "public output range does not fit the witness",
            stage=Stage.WITNESS,
            ctx={**ctx, "public_start": circuit.public_start, "public_count": circuit.public_count},
        )
    return Witness(values=values, public_start=circuit.public_start, public_count=circuit.public_count)


def compute_witness(circuit: Circuit, inputs: InputAssignment, evaluator: CircuitEvaluator) -> Witness:
    """Validate inputs, run the external evaluator, and check the result."""
    encoded = normalize_inputs(circuit, inputs)
    try:
        raw = list(evaluator.evaluate(circuit, encoded))
    except BridgeError:
        raise
    except Exception as e:
        raise WitnessMismatch("circuit evaluator failed", stage=Stage.WITNESS,
                              ctx={"circuit_id": circuit.circuit_id, "error": type(e).__name__},
                              cause=e) from e
    witness = check_witness(circuit, raw)
    log.debug("witness computed: circuit=%s signals=%d public=%d",
              circuit.circuit_id, len(witness), circuit.public_count)
    return witness


# -----------------------------------------------------------------------------
# snarkjs-backed evaluator
# -----------------------------------------------------------------------------

class SnarkjsWitnessEvaluator:
    """
    Runs the circom witness program through snarkjs:

        snarkjs wtns calculate <circuit.wasm> input.json witness.wtns
        snarkjs wtns export json witness.wtns witness.json
    """

    def __init__(self, runner: Optional[Runner] = None, *, timeout: float = 120.0,
                 work_dir: Optional[Path] = None):
        self.runner = runner or SnarkjsRunner()
        self.timeout = timeout
        self.work_dir = work_dir

    def evaluate(self, circuit: Circuit, inputs: Mapping[str, Any]) -> List[Union[int, str]]:
        if not circuit.wasm_path:
            raise WitnessMismatch("circuit has no witness program", stage=Stage.WITNESS,
                                  ctx={"circuit_id": circuit.circuit_id})
        with tempfile.TemporaryDirectory(prefix="zkbridge-wtns-", dir=self.work_dir) as tmp:
            tmpdir = Path(tmp)
            input_path = tmpdir / "input.json"
            wtns_path = tmpdir / "witness.wtns"
            json_path = tmpdir / "witness.json"
            input_path.write_text(json.dumps(inputs), encoding="utf-8")
            try:
                self.runner.run(["wtns", "calculate", circuit.wasm_path, input_path, wtns_path],
                                timeout=self.timeout)
                self.runner.run(["wtns", "export", "json", wtns_path, json_path],
                                timeout=self.timeout)
                raw = load_json(json_path)
            except SnarkjsError as e:
                raise WitnessMismatch(
                    "witness calculation failed",
                    stage=Stage.WITNESS,
                    ctx={"circuit_id": circuit.circuit_id, "command": e.command,
                         "returncode": e.returncode, "timed_out": e.timed_out},
                    cause=e,
                ) from e
            except (OSError, ValueError) as e:
                raise WitnessMismatch("witness output unreadable", stage=Stage.WITNESS,
                                      ctx={"circuit_id": circuit.circuit_id}, cause=e) from e
        if not isinstance(raw, list):
            raise WitnessMismatch("witness output is not a list", stage=Stage.WITNESS,
                                  ctx={"circuit_id": circuit.circuit_id})
        return raw


__all__ = [
    "InputAssignment",
    "CircuitEvaluator",
    "SnarkjsWitnessEvaluator",
    "normalize_inputs",
    "check_witness",
    "compute_witness",
]
