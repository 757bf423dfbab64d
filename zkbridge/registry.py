"""
zkbridge.registry
=================

A small, threadsafe registry of **setup artifacts** keyed by
``(circuit_id, backend)``. Records are loaded once and shared read-only by
every request; a key can be registered exactly once per registry.

Design goals
------------
- Small surface: register, get, find, list, load_manifest.
- Threadsafe updates (RLock).
- Helpful errors with explicit codes (`AlreadyRegistered`, `NotRegistered`).
- Injectable: the orchestrator takes a `KeyRegistry`; `default_registry()` is
  only a process-wide convenience.

Manifest format (YAML or JSON)
------------------------------
    circuits:
      - id: multiplier3
        wasm: build/Multiplier3_js/Multiplier3.wasm
        public_count: 2            # public outputs, start at witness index 1
        inputs: [a, b, c]          # optional input-name check
        signal_count: 5            # optional witness-length check
        keys:
          groth16:
            zkey: build/multiplier3_groth16.zkey
            vkey: build/multiplier3_groth16_vkey.json   # optional
            verifier: "0x5fbdb2315678afecb367f032d93f642f64180aa3"
            inputs_abi: fixed      # or "dynamic" for verifyProof(..., uint256[])
          plonk:
            zkey: build/multiplier3_plonk.zkey

Relative paths resolve against the manifest's directory.
"""

from __future__ import annotations

import json
import logging
from hashlib import sha3_256
from pathlib import Path
from threading import RLock
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import yaml

from .adapters.snarkjs_loader import load_verification_key
from .backends import backend_name
from .errors import AlreadyRegistered, NotRegistered, RegistryError, Stage
from .types import BackendName, Circuit, InputsAbi, KeyRecord, ProvingKey, VerificationKey

log = logging.getLogger(__name__)

DEFAULT_CURVE = "bn128"

RecordKey = Tuple[str, str]


def file_digest(path: Union[str, Path], chunk: int = 1 << 20) -> str:
    """sha3-256 over a file's bytes, streamed (zkeys can be hundreds of MB)."""
    h = sha3_256()
    with open(path, "rb") as f:
        while True:
            block = f.read(chunk)
            if not block:
                break
            h.update(block)
    return f"sha3-256:{h.hexdigest()}"


def load_record(
    circuit: Circuit,
    backend: Union[str, BackendName],
    zkey_path: Union[str, Path],
    *,
    vkey_path: Union[str, Path, None] = None,
    verifier_address: Optional[str] = None,
    curve: str = DEFAULT_CURVE,
    inputs_abi: Union[str, InputsAbi] = InputsAbi.FIXED,
    meta: Optional[Mapping[str, Any]] = None,
) -> KeyRecord:
    """
    Build a KeyRecord from artifacts on disk, hashing the proving key.

    `inputs_abi` selects the Groth16 verifier signature: "fixed" for
    `uint256[public_count]`, "dynamic" for `uint256[]`.
    """
    name = backend_name(backend).value
    ctx = {"circuit_id": circuit.circuit_id, "backend": name}
    try:
        abi = InputsAbi(str(getattr(inputs_abi, "value", inputs_abi)).strip().lower())
    except ValueError:
        raise RegistryError("inputs_abi must be 'fixed' or 'dynamic'", stage=Stage.REGISTRY,
                            ctx={**ctx, "inputs_abi": str(inputs_abi)}) from None
    try:
        pk = ProvingKey(backend=name, curve=curve, path=str(zkey_path), digest=file_digest(zkey_path))
    except OSError as e:
        raise RegistryError("proving key unreadable", stage=Stage.REGISTRY,
                            ctx={**ctx, "path": str(zkey_path)}, cause=e) from e

    vk: Optional[VerificationKey] = None
    if vkey_path is not None:
        try:
            data, digest = load_verification_key(Path(vkey_path))
        except (OSError, ValueError) as e:
            raise RegistryError("verification key unreadable", stage=Stage.REGISTRY,
                                ctx={**ctx, "path": str(vkey_path)}, cause=e) from e
        protocol = str(data.get("protocol", name)).lower()
        if protocol != name:
            raise RegistryError("verification key protocol does not match backend", stage=Stage.REGISTRY,
                                ctx={**ctx, "protocol": protocol})
        vk = VerificationKey(backend=name, curve=str(data.get("curve", curve)), data=data,
                             digest=digest, path=str(vkey_path))
    return KeyRecord(circuit=circuit, proving_key=pk, verification_key=vk,
                     verifier_address=verifier_address, inputs_abi=abi, meta=dict(meta or {}))


class KeyRegistry:
    """Process-wide cache of KeyRecords; safe to share across threads."""

    def __init__(self) -> None:
        self._records: Dict[RecordKey, KeyRecord] = {}
        self._lock = RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._records

    def register(self, record: KeyRecord) -> KeyRecord:
        """Add a record; a second registration for the same key raises AlreadyRegistered."""
        if not record.circuit.circuit_id:
            raise RegistryError("circuit_id must be a non-empty string", stage=Stage.REGISTRY)
        key = record.key
        with self._lock:
            if key in self._records:
                raise AlreadyRegistered(f"{key[0]}/{key[1]} already registered", stage=Stage.REGISTRY,
                                        ctx={"circuit_id": key[0], "backend": key[1]})
            self._records[key] = record
        log.debug("registered keys: circuit=%s backend=%s", key[0], key[1])
        return record

    def get(self, circuit_id: str, backend: Union[str, BackendName]) -> KeyRecord:
        name = backend_name(backend).value
        with self._lock:
            try:
                return self._records[(circuit_id, name)]
            except KeyError:
                raise NotRegistered(f"{circuit_id}/{name} is not registered", stage=Stage.REGISTRY,
                                    ctx={"circuit_id": circuit_id, "backend": name}) from None

    def find(self, circuit_id: str, backend: Union[str, BackendName]) -> Optional[KeyRecord]:
        try:
            return self.get(circuit_id, backend)
        except NotRegistered:
            return None

    def list(self) -> List[RecordKey]:
        """Registered (circuit_id, backend) keys, sorted."""
        with self._lock:
            return sorted(self._records)

    # ------------------------------------------------------------------ manifest

    def load_manifest(self, path: Union[str, Path]) -> List[KeyRecord]:
        """Register every (circuit, backend) listed in a YAML/JSON manifest."""
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise RegistryError("manifest unreadable", stage=Stage.REGISTRY,
                                ctx={"path": str(path)}, cause=e) from e
        try:
            doc = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
        except (ValueError, yaml.YAMLError) as e:
            raise RegistryError("manifest is not valid YAML/JSON", stage=Stage.REGISTRY,
                                ctx={"path": str(path)}, cause=e) from e
        if not isinstance(doc, Mapping) or not isinstance(doc.get("circuits"), list):
            raise RegistryError("manifest needs a 'circuits' list", stage=Stage.REGISTRY,
                                ctx={"path": str(path)})

        base = path.parent
        records = [rec for entry in doc["circuits"] for rec in _manifest_records(entry, base)]
        loaded = [self.register(rec) for rec in records]
        log.info("manifest %s: %d key record(s) loaded", path, len(loaded))
        return loaded


def _resolve(base: Path, p: Any) -> str:
    q = Path(str(p)).expanduser()
    return str(q if q.is_absolute() else base / q)


def _manifest_records(entry: Any, base: Path) -> List[KeyRecord]:
    if not isinstance(entry, Mapping) or not entry.get("id"):
        raise RegistryError("manifest circuit entry needs an 'id'", stage=Stage.REGISTRY)
    cid = str(entry["id"])
    keys = entry.get("keys")
    if not isinstance(keys, Mapping) or not keys:
        raise RegistryError("manifest circuit entry needs 'keys'", stage=Stage.REGISTRY,
                            ctx={"circuit_id": cid})
    inputs = entry.get("inputs")
    try:
        circuit = Circuit(
            circuit_id=cid,
            wasm_path=_resolve(base, entry["wasm"]) if entry.get("wasm") else "",
            signal_count=int(entry["signal_count"]) if entry.get("signal_count") is not None else None,
            public_start=int(entry.get("public_start", 1)),
            public_count=int(entry.get("public_count", 0)),
            input_names=tuple(str(n) for n in inputs) if inputs is not None else None,
        )
    except (TypeError, ValueError) as e:
        raise RegistryError("manifest circuit entry malformed", stage=Stage.REGISTRY,
                            ctx={"circuit_id": cid}, cause=e) from e

    records = []
    for backend, art in keys.items():
        if not isinstance(art, Mapping) or not art.get("zkey"):
            raise RegistryError("manifest key entry needs a 'zkey'", stage=Stage.REGISTRY,
                                ctx={"circuit_id": cid, "backend": str(backend)})
        try:
            name = backend_name(backend)
        except ValueError as e:
            raise RegistryError(str(e), stage=Stage.REGISTRY, ctx={"circuit_id": cid}) from e
        records.append(load_record(
            circuit,
            name,
            _resolve(base, art["zkey"]),
            vkey_path=_resolve(base, art["vkey"]) if art.get("vkey") else None,
            verifier_address=str(art["verifier"]) if art.get("verifier") else None,
            curve=str(art.get("curve", DEFAULT_CURVE)),
            inputs_abi=art.get("inputs_abi", entry.get("inputs_abi", InputsAbi.FIXED)),
        ))
    return records


_DEFAULT: Optional[KeyRegistry] = None
_DEFAULT_LOCK = RLock()


def default_registry() -> KeyRegistry:
    """Lazily created process-wide registry."""
    global _DEFAULT
    with _DEFAULT_LOCK:
        if _DEFAULT is None:
            _DEFAULT = KeyRegistry()
        return _DEFAULT


__all__ = [
    "KeyRegistry",
    "default_registry",
    "load_record",
    "file_digest",
]
