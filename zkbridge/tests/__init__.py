"""
zkbridge.tests helpers

Fakes and fixtures shared by zkbridge tests. Nothing here needs Node.js,
snarkjs or a running chain.

Exports:
- configure_test_logging() -> None        (ZKBRIDGE_TEST_LOG=1 enables INFO logs)
- MULTIPLIER2 / MULTIPLIER3                circuit declarations
- MultiplierEvaluator                      CircuitEvaluator for the two circuits
- FakeSnarkjs                              Runner answering snarkjs subcommands from canned data
- FakeVerifier                             VerifierContract that accepts a fixed calldata set
- make_record(circuit, backend, tmp_path)  KeyRecord with a throwaway zkey
- groth16_setup(public_signals)            synthetic (vk_json, proof_json) that verifies
- snarkjs_groth16_calldata(proof, public)  the text `zkey export soliditycalldata` prints
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from zkbridge.adapters.snarkjs_cli import SnarkjsError
from zkbridge.codec.field import SCALAR_MODULUS
from zkbridge.registry import load_record
from zkbridge.types import Calldata, Circuit, KeyRecord

# --- Logging ---------------------------------------------------------------------


def env_flag(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return str(v).strip().lower() in {"1", "true", "yes", "on"}


def configure_test_logging(level: int = logging.INFO) -> None:
    if env_flag("ZKBRIDGE_TEST_LOG", False):
        logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
        logging.getLogger("zkbridge").setLevel(level)


# --- Circuits ----------------------------------------------------------------------

# "multiply two numbers": witness = [1, c, a, b], c = a*b public
MULTIPLIER2 = Circuit(
    circuit_id="multiplier2",
    wasm_path="circuits/Multiplier2_js/Multiplier2.wasm",
    signal_count=4,
    public_start=1,
    public_count=1,
    input_names=("a", "b"),
)

# "multiply three numbers": witness = [1, d, e, a, b, c], d = a*b and e = d*c public
MULTIPLIER3 = Circuit(
    circuit_id="multiplier3",
    wasm_path="circuits/Multiplier3_js/Multiplier3.wasm",
    signal_count=6,
    public_start=1,
    public_count=2,
    input_names=("a", "b", "c"),
)


def multiplier_witness(circuit_id: str, inputs: Mapping[str, Any]) -> List[int]:
    vals = {k: int(v) for k, v in inputs.items()}
    if circuit_id == "multiplier2":
        a, b = vals["a"], vals["b"]
        return [1, (a * b) % SCALAR_MODULUS, a, b]
    a, b, c = vals["a"], vals["b"], vals["c"]
    d = (a * b) % SCALAR_MODULUS
    return [1, d, (d * c) % SCALAR_MODULUS, a, b, c]


class MultiplierEvaluator:
    """In-process stand-in for the compiled witness programs."""

    def __init__(self, tamper: Optional[Callable[[List[int]], List[Any]]] = None):
        self.tamper = tamper
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    def evaluate(self, circuit: Circuit, inputs: Mapping[str, Any]) -> List[Any]:
        self.calls.append((circuit.circuit_id, dict(inputs)))
        w = multiplier_witness(circuit.circuit_id, inputs)
        return self.tamper(w) if self.tamper else w


# --- snarkjs stand-in -------------------------------------------------------------


class FakeSnarkjs:
    """
    Runner that answers the snarkjs subcommands zkbridge uses:

        wtns calculate / wtns export json
        groth16|plonk fullprove
        zkey export soliditycalldata
        plonk verify

    `fail` names a subcommand (e.g. "fullprove") that exits non-zero;
    `timeout_on` names one that times out.
    """

    def __init__(
        self,
        *,
        witness: Optional[Sequence[Any]] = None,
        proof: Optional[Mapping[str, Any]] = None,
        public: Optional[Sequence[Any]] = None,
        calldata: str = "",
        verify_ok: bool = True,
        fail: Optional[str] = None,
        timeout_on: Optional[str] = None,
    ):
        self.witness = list(witness or [])
        self.proof = dict(proof or {})
        self.public = list(public or [])
        self.calldata = calldata
        self.verify_ok = verify_ok
        self.fail = fail
        self.timeout_on = timeout_on
        self.calls: List[List[str]] = []
        self.written: Dict[str, Any] = {}

    def run(self, args: Sequence[Any], *, timeout: float, cwd: Any = None) -> str:
        argv = [str(a) for a in args]
        self.calls.append(argv)
        command = " ".join(argv[:3])
        if self.timeout_on and self.timeout_on in command:
            raise SnarkjsError(f"snarkjs {command} timed out", command=command, timed_out=True)
        if self.fail and self.fail in command:
            raise SnarkjsError(f"snarkjs {command} exited with 1", command=command, returncode=1)

        if argv[:2] == ["wtns", "calculate"]:
            Path(argv[4]).write_bytes(b"wtns")
        elif argv[:3] == ["wtns", "export", "json"]:
            Path(argv[4]).write_text(json.dumps([str(v) for v in self.witness]), encoding="utf-8")
        elif len(argv) > 1 and argv[1] == "fullprove":
            self.written["input"] = json.loads(Path(argv[2]).read_text(encoding="utf-8"))
            Path(argv[5]).write_text(json.dumps(self.proof), encoding="utf-8")
            Path(argv[6]).write_text(json.dumps([str(v) for v in self.public]), encoding="utf-8")
        elif argv[:3] == ["zkey", "export", "soliditycalldata"]:
            return self.calldata
        elif argv[:2] == ["plonk", "verify"]:
            self.written["verify"] = {Path(p).name: json.loads(Path(p).read_text(encoding="utf-8"))
                                      for p in argv[2:5]}
            if not self.verify_ok:
                raise SnarkjsError("snarkjs plonk verify exited with 1", command="plonk verify",
                                   returncode=1)
            return "[INFO]  snarkJS: OK!\n"
        return ""


# --- Verifier contract stand-in -------------------------------------------------


class FakeVerifier:
    """Accepts exactly the calldata it was told to accept; optionally raises instead."""

    def __init__(self, accept: Optional[Set[bytes]] = None, error: Optional[Exception] = None):
        self.accept = set(accept or ())
        self.error = error
        self.seen: List[Calldata] = []

    def verify_proof(self, calldata: Calldata) -> bool:
        self.seen.append(calldata)
        if self.error is not None:
            raise self.error
        return calldata.to_json() in self.accept


def make_record(circuit: Circuit, backend: str, tmp_path: Path, *,
                vk: Optional[Mapping[str, Any]] = None,
                verifier_address: Optional[str] = None, inputs_abi: str = "fixed") -> KeyRecord:
    zkey = tmp_path / f"{circuit.circuit_id}_{backend}.zkey"
    zkey.write_bytes(f"zkey:{circuit.circuit_id}:{backend}".encode())
    vkey_path = None
    if vk is not None:
        vkey_path = tmp_path / f"{circuit.circuit_id}_{backend}_vkey.json"
        vkey_path.write_text(json.dumps(vk), encoding="utf-8")
    return load_record(circuit, backend, zkey, vkey_path=vkey_path, verifier_address=verifier_address,
                       inputs_abi=inputs_abi)


# --- Synthetic Groth16 instance (py_ecc) --------------------------------------------


def _n(c: Any) -> int:
    return int(c.n) if hasattr(c, "n") else int(c)


def _g1_json(P: Any) -> List[str]:
    from py_ecc.optimized_bn128 import normalize

    x, y = normalize(P)
    return [str(_n(x)), str(_n(y)), "1"]


def _g2_json(Q: Any) -> List[List[str]]:
    from py_ecc.optimized_bn128 import normalize

    x, y = normalize(Q)
    return [[str(_n(c)) for c in x.coeffs], [str(_n(c)) for c in y.coeffs], ["1", "0"]]


def groth16_setup(public_signals: Sequence[int], *, seed: int = 7) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Build a verification key and a proof that satisfy the Groth16 equation
    for `public_signals`, by picking every discrete log and solving for C:

        a*b = alpha*beta + vk_x*gamma + c*delta   (mod r)
    """
    from py_ecc.optimized_bn128 import G1, G2, multiply

    r = SCALAR_MODULUS
    alpha, beta, gamma, delta = (seed * k + 3 for k in (11, 13, 17, 19))
    ic = [seed * 23 + 5 * i + 1 for i in range(len(public_signals) + 1)]
    a, b = seed * 29 + 1, seed * 31 + 2

    vk_x = (ic[0] + sum(s * ic[i + 1] for i, s in enumerate(public_signals))) % r
    c = ((a * b - alpha * beta - vk_x * gamma) * pow(delta, -1, r)) % r

    vk = {
        "protocol": "groth16",
        "curve": "bn128",
        "nPublic": len(public_signals),
        "vk_alpha_1": _g1_json(multiply(G1, alpha)),
        "vk_beta_2": _g2_json(multiply(G2, beta)),
        "vk_gamma_2": _g2_json(multiply(G2, gamma)),
        "vk_delta_2": _g2_json(multiply(G2, delta)),
        "IC": [_g1_json(multiply(G1, k)) for k in ic],
    }
    proof = {
        "pi_a": _g1_json(multiply(G1, a)),
        "pi_b": _g2_json(multiply(G2, b)),
        "pi_c": _g1_json(multiply(G1, c)),
        "protocol": "groth16",
        "curve": "bn128",
    }
    return vk, proof


def snarkjs_groth16_calldata(proof: Mapping[str, Any], public: Sequence[Any]) -> str:
    """Same text snarkjs prints: 0x-padded hex words, B pairs already swapped."""
    def h(v: Any) -> str:
        return '"0x' + format(int(v), "064x") + '"'

    a = f"[{h(proof['pi_a'][0])}, {h(proof['pi_a'][1])}]"
    b = (f"[[{h(proof['pi_b'][0][1])}, {h(proof['pi_b'][0][0])}],"
         f"[{h(proof['pi_b'][1][1])}, {h(proof['pi_b'][1][0])}]]")
    c = f"[{h(proof['pi_c'][0])}, {h(proof['pi_c'][1])}]"
    inputs = "[" + ",".join(h(v) for v in public) + "]"
    return f"{a},{b},{c},{inputs}\n"


__all__ = [
    "env_flag",
    "configure_test_logging",
    "MULTIPLIER2",
    "MULTIPLIER3",
    "multiplier_witness",
    "MultiplierEvaluator",
    "FakeSnarkjs",
    "FakeVerifier",
    "make_record",
    "groth16_setup",
    "snarkjs_groth16_calldata",
]
