"""
Verifier-contract port.

`VerifierContract` is the one operation the orchestrator needs from the chain:
``verify_proof(calldata) -> bool``. `EthVerifierContract` implements it as a
read-only ``eth_call`` against a snarkjs-generated verifier:

    Groth16: verifyProof(uint256[2], uint256[2][2], uint256[2], uint256[N])
    PLONK:   verifyProof(bytes, uint256[])

ABI encoding is `eth_abi`, the selector comes from `eth_utils`, and transport
is JSON-RPC 2.0 over `httpx` (`RpcClient`). Transport errors are retried a
bounded number of times; JSON-RPC errors and reverts never are.

Example:
    rpc = RpcClient("http://127.0.0.1:8545")
    verifier = EthVerifierContract("0x5FbDB2315678afecb367f032d93F642f64180aa3", rpc, public_count=2)
    ok = verifier.verify_proof(calldata)
"""

from __future__ import annotations

import json
import logging
import random
import time
from dataclasses import dataclass, field
from itertools import count
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Union

import httpx
from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError
from eth_utils import function_signature_to_4byte_selector, is_address

from .errors import SubmissionError, Stage
from .types import Calldata, Groth16Calldata, PlonkCalldata

log = logging.getLogger(__name__)

JSON = Union[dict, list, str, int, float, bool, None]
Params = Union[Sequence[Any], Mapping[str, Any], None]

# execution reverted (geth / anvil / hardhat)
REVERT_CODE = 3


class RpcError(Exception):
    """JSON-RPC error object, or a transport failure after retries (code -32098)."""

    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message
        self.data = data

    @property
    def is_transport(self) -> bool:
        return self.code == -32098

    @property
    def is_revert(self) -> bool:
        return self.code == REVERT_CODE or "revert" in self.message.lower()


def _is_retriable_http(status: int) -> bool:
    return status in (429, 502, 503, 504)


def _jitter_backoff(base: float, factor: float, attempt: int, jitter: float) -> float:
    return base * (factor ** max(attempt - 1, 0)) + random.random() * jitter


class _Retriable(Exception):
    pass


def _params(params: Params) -> Any:
    # JSON-RPC 2.0 allows by-position (array) or by-name (object) params
    if params is None:
        return []
    if isinstance(params, Mapping):
        return dict(params)
    return list(params)


@dataclass
class RpcClient:
    """Synchronous JSON-RPC 2.0 client over HTTP (httpx)."""

    url: str
    timeout: float = 30.0
    max_retries: int = 2
    backoff_base: float = 0.15
    backoff_factor: float = 1.8
    backoff_jitter: float = 0.2
    headers: Optional[Mapping[str, str]] = None
    transport: Optional[httpx.BaseTransport] = None
    _id_counter: Iterable[int] = field(default_factory=lambda: count(start=1))
    _client: Any = field(init=False, default=None)

    def __post_init__(self) -> None:
        merged = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.headers:
            merged.update(dict(self.headers))
        self._client = httpx.Client(timeout=self.timeout, headers=merged, transport=self.transport)

    def __enter__(self) -> "RpcClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()

    def close(self) -> None:
        if self._client is not None:
            self._client.close()

    def request(self, method: str, params: Params = None) -> JSON:
        """Perform one JSON-RPC call and return `result`, or raise RpcError."""
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._id_counter),
            "method": method,
            "params": _params(params),
        }
        last_exc: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 2):  # N retries -> N+1 attempts
            try:
                return self._send_once(payload)
            except (httpx.TransportError, _Retriable) as e:
                last_exc = e
                if attempt > self.max_retries:
                    break
                delay = _jitter_backoff(self.backoff_base, self.backoff_factor, attempt, self.backoff_jitter)
                log.debug("rpc %s transport failure (attempt %d), retrying in %.2fs", method, attempt, delay)
                time.sleep(delay)
        raise RpcError(code=-32098, message="RPC transport failed", data=str(last_exc))

    def _send_once(self, payload: Dict[str, Any]) -> JSON:
        r = self._client.post(self.url, content=json.dumps(payload, separators=(",", ":")))
        if _is_retriable_http(r.status_code):
            raise _Retriable(f"HTTP {r.status_code}")
        try:
            resp = r.json()
        except ValueError as e:
            raise RpcError(code=-32603, message="Non-JSON response from RPC",
                           data=f"HTTP {r.status_code}: {r.text[:256]}") from e
        if not isinstance(resp, dict):
            raise RpcError(code=-32603, message="Invalid JSON-RPC response", data=resp)
        if "error" in resp and resp["error"] is not None:
            err = resp["error"]
            if not isinstance(err, dict):
                raise RpcError(code=-32603, message=str(err))
            raise RpcError(code=int(err.get("code", -32603)), message=str(err.get("message", "")),
                           data=err.get("data"))
        return resp.get("result")


# -----------------------------------------------------------------------------
# Verifier contract
# -----------------------------------------------------------------------------

class VerifierContract(Protocol):
    def verify_proof(self, calldata: Calldata) -> bool:
        ...


def groth16_signature(public_count: Optional[int] = None) -> str:
    inputs = f"uint256[{public_count}]" if public_count is not None else "uint256[]"
    return f"verifyProof(uint256[2],uint256[2][2],uint256[2],{inputs})"


PLONK_SIGNATURE = "verifyProof(bytes,uint256[])"


def _ints(values: Sequence[str]) -> List[int]:
    return [int(v) for v in values]


def _backend_of(calldata: Calldata) -> str:
    return "groth16" if isinstance(calldata, Groth16Calldata) else "plonk"


def encode_call(calldata: Calldata, public_count: Optional[int] = None) -> bytes:
    """Selector + ABI-encoded arguments for `verifyProof`."""
    if isinstance(calldata, Groth16Calldata):
        sig = groth16_signature(public_count)
        a, b, c, inputs = calldata.args()
        types = ["uint256[2]", "uint256[2][2]", "uint256[2]", sig[sig.rindex(",") + 1:-1]]
        args = [_ints(a), [_ints(b[0]), _ints(b[1])], _ints(c), _ints(inputs)]
    elif isinstance(calldata, PlonkCalldata):
        sig = PLONK_SIGNATURE
        types = ["bytes", "uint256[]"]
        proof, signals = calldata.args()
        args = [bytes.fromhex(proof[2:]), _ints(signals)]
    else:
        raise TypeError(f"unsupported calldata type {type(calldata).__name__}")
    return function_signature_to_4byte_selector(sig) + encode(types, args)


class EthVerifierContract:
    """`VerifierContract` backed by `eth_call` on a deployed verifier."""

    def __init__(self, address: str, rpc: RpcClient, *, public_count: Optional[int] = None,
                 block: str = "latest"):
        if not is_address(address):
            raise ValueError(f"not an address: {address!r}")
        self.address = address
        self.rpc = rpc
        self.public_count = public_count
        self.block = block

    def __repr__(self) -> str:
        return f"EthVerifierContract(address={self.address!r}, public_count={self.public_count})"

    def verify_proof(self, calldata: Calldata) -> bool:
        ctx = {"address": self.address, "backend": _backend_of(calldata)}
        try:
            data = encode_call(calldata, self.public_count)
        except (EncodingError, ValueError, TypeError) as e:
            raise SubmissionError("calldata cannot be ABI-encoded", stage=Stage.SUBMIT,
                                  ctx=ctx, cause=e) from e

        try:
            result = self.rpc.request("eth_call", [{"to": self.address, "data": "0x" + data.hex()}, self.block])
        except RpcError as e:
            raise SubmissionError(
                "verifier call reverted" if e.is_revert else "verifier call failed",
                stage=Stage.SUBMIT,
                ctx={**ctx, "rpc_code": e.code, "reverted": e.is_revert, "transport": e.is_transport},
                cause=e,
            ) from e

        if not isinstance(result, str) or result in ("", "0x"):
            raise SubmissionError("verifier returned no data", stage=Stage.SUBMIT,
                                  ctx={**ctx, "reverted": True})
        try:
            (ok,) = decode(["bool"], bytes.fromhex(result[2:] if result.startswith("0x") else result))
        except (DecodingError, ValueError) as e:
            raise SubmissionError("verifier returned a non-bool", stage=Stage.SUBMIT,
                                  ctx={**ctx, "len": len(result)}, cause=e) from e
        log.debug("verifier %s returned %s", self.address, ok)
        return bool(ok)


__all__ = [
    "RpcError",
    "RpcClient",
    "VerifierContract",
    "EthVerifierContract",
    "encode_call",
    "groth16_signature",
    "PLONK_SIGNATURE",
]
