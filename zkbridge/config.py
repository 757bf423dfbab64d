"""
zkbridge configuration.

All fields have sensible defaults and can be overridden via environment
variables. Nothing here imports heavy dependencies.

Environment variables (all optional):

  # External prover / witness calculator
  ZKBRIDGE_SNARKJS_BIN=snarkjs          # may be "npx snarkjs" (split on spaces)
  ZKBRIDGE_WITNESS_TIMEOUT=120          # seconds
  ZKBRIDGE_PROVE_TIMEOUT=900            # seconds
  ZKBRIDGE_WORK_DIR=                    # scratch dir for prover I/O (default: system tmp)

  # Verifier contract (JSON-RPC)
  ZKBRIDGE_RPC_URL=http://127.0.0.1:8545
  ZKBRIDGE_RPC_TIMEOUT=30               # seconds
  ZKBRIDGE_RPC_MAX_RETRIES=2            # transport errors only

  # Pipeline
  ZKBRIDGE_LOCAL_PRECHECK=0             # 1 => verify off-chain before eth_call
  ZKBRIDGE_MANIFEST=./circuits.yaml     # key manifest loaded by the CLI

  # Logging
  ZKBRIDGE_LOG_LEVEL=INFO
"""

from __future__ import annotations

import os
import shlex
from dataclasses import asdict, dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional, Tuple

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


# ------------------------------- helpers ------------------------------------


def _getenv(key: str, default: str | None = None) -> str | None:
    v = os.environ.get(key)
    return v if v is not None and v.strip() != "" else default


def _getenv_float(key: str, default: float) -> float:
    v = _getenv(key)
    if v is None:
        return default
    try:
        return float(v)
    except ValueError as e:
        raise ValueError(f"Invalid number for {key}: {v!r}") from e


def _getenv_int(key: str, default: int) -> int:
    v = _getenv(key)
    if v is None:
        return default
    try:
        return int(v, 10)
    except ValueError as e:
        raise ValueError(f"Invalid int for {key}: {v!r}") from e


def _getenv_bool(key: str, default: bool) -> bool:
    v = _getenv(key)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "on"}


# ------------------------------- config -------------------------------------


@dataclass(frozen=True)
class BridgeConfig:
    """
    Top-level zkbridge configuration.

    - snarkjs_cmd: argv prefix used to invoke snarkjs
    - witness_timeout / prove_timeout: hard limits for the external processes
    - rpc_url / rpc_timeout / rpc_max_retries: verifier contract transport
    - local_precheck: run the backend's off-chain verifier before submitting
    - manifest_path: optional key manifest (YAML/JSON) for the CLI
    - work_dir: scratch directory for prover I/O (None => system temp)
    """

    snarkjs_cmd: Tuple[str, ...] = ("snarkjs",)
    witness_timeout: float = 120.0
    prove_timeout: float = 900.0
    rpc_url: str = "http://127.0.0.1:8545"
    rpc_timeout: float = 30.0
    rpc_max_retries: int = 2
    local_precheck: bool = False
    manifest_path: Optional[Path] = None
    work_dir: Optional[Path] = None
    log_level: str = "INFO"

    def validate(self) -> None:
        if not self.snarkjs_cmd:
            raise ValueError("snarkjs_cmd must not be empty")
        if self.witness_timeout <= 0 or self.prove_timeout <= 0:
            raise ValueError("timeouts must be > 0")
        if self.rpc_timeout <= 0:
            raise ValueError("rpc_timeout must be > 0")
        if self.rpc_max_retries < 0:
            raise ValueError("rpc_max_retries must be >= 0")
        if not self.rpc_url.startswith(("http://", "https://")):
            raise ValueError("rpc_url must be an http(s) URL")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


# ------------------------------- loader -------------------------------------


def _load_from_env() -> BridgeConfig:
    manifest = _getenv("ZKBRIDGE_MANIFEST")
    work_dir = _getenv("ZKBRIDGE_WORK_DIR")
    cfg = BridgeConfig(
        snarkjs_cmd=tuple(shlex.split(_getenv("ZKBRIDGE_SNARKJS_BIN", "snarkjs") or "snarkjs")),
        witness_timeout=_getenv_float("ZKBRIDGE_WITNESS_TIMEOUT", 120.0),
        prove_timeout=_getenv_float("ZKBRIDGE_PROVE_TIMEOUT", 900.0),
        rpc_url=_getenv("ZKBRIDGE_RPC_URL", "http://127.0.0.1:8545") or "",
        rpc_timeout=_getenv_float("ZKBRIDGE_RPC_TIMEOUT", 30.0),
        rpc_max_retries=_getenv_int("ZKBRIDGE_RPC_MAX_RETRIES", 2),
        local_precheck=_getenv_bool("ZKBRIDGE_LOCAL_PRECHECK", False),
        manifest_path=Path(manifest) if manifest else None,
        work_dir=Path(work_dir) if work_dir else None,
        log_level=(_getenv("ZKBRIDGE_LOG_LEVEL", "INFO") or "INFO").upper(),
    )
    cfg.validate()
    return cfg


@lru_cache(maxsize=1)
def get_config() -> BridgeConfig:
    """Process-wide config loaded once from the environment."""
    return _load_from_env()


def reload_config() -> BridgeConfig:
    """Drop the cached config and re-read the environment (tests, CLI overrides)."""
    get_config.cache_clear()
    return get_config()


__all__ = ["BridgeConfig", "get_config", "reload_config"]
