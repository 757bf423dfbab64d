"""
zkbridge.adapters
=================

Glue to the external snarkjs toolchain:

- `snarkjs_cli`    -> blocking subprocess runner with hard timeouts
- `snarkjs_loader` -> strict parsing of snarkjs JSON / calldata text

Neither module verifies anything; they only move data in and out of the
external prover and witness calculator.
"""

from __future__ import annotations

from .snarkjs_cli import Runner, SnarkjsError, SnarkjsRunner
from .snarkjs_loader import (load_json, load_verification_key,
                             parse_groth16_proof, parse_int,
                             parse_plonk_blob, parse_public_signals,
                             split_solidity_calldata, strip_projective)

__all__ = [
    "Runner",
    "SnarkjsError",
    "SnarkjsRunner",
    "load_json",
    "load_verification_key",
    "parse_groth16_proof",
    "parse_int",
    "parse_plonk_blob",
    "parse_public_signals",
    "split_solidity_calldata",
    "strip_projective",
]
