"""
zkbridge.backends
=================

Proof-system variants behind one interface:

- "groth16" -> `Groth16Backend` (snarkjs prover, optional py_ecc pre-check)
- "plonk"   -> `PlonkBackend`   (snarkjs prover and verifier)

Use `get_backend(name)` to construct one by its stable string name.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Type, Union

from ..adapters.snarkjs_cli import Runner
from ..types import BackendName
from .base import ProofBackend
from .groth16 import Groth16Backend
from .plonk import PlonkBackend

_BACKENDS: Dict[BackendName, Type[ProofBackend]] = {
    BackendName.GROTH16: Groth16Backend,
    BackendName.PLONK: PlonkBackend,
}


def backend_name(name: Union[str, BackendName]) -> BackendName:
    """Normalize a backend name; unknown names raise ValueError."""
    try:
        return BackendName(str(getattr(name, "value", name)).strip().lower())
    except ValueError:
        known = ", ".join(b.value for b in BackendName)
        raise ValueError(f"unknown proof backend {name!r} (known: {known})") from None


def get_backend(name: Union[str, BackendName], runner: Optional[Runner] = None, *,
                timeout: float = 900.0, work_dir: Optional[Path] = None) -> ProofBackend:
    return _BACKENDS[backend_name(name)](runner, timeout=timeout, work_dir=work_dir)


__all__ = [
    "ProofBackend",
    "Groth16Backend",
    "PlonkBackend",
    "backend_name",
    "get_backend",
]
