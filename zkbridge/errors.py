"""
Typed exceptions for zkbridge.

Design goals
- Structured: machine-readable code + pipeline stage + human message + context.
- Safe: context describes the offending value (shape, length, field name),
  never the private input itself.
- Composable: wrap lower-level exceptions with preserved causes.

Every pipeline failure is terminal for the request that raised it; nothing in
this package retries on these errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class Stage(str, Enum):
    """Pipeline step during which an error was raised."""

    CODEC = "codec"
    REGISTRY = "registry"
    WITNESS = "witness"
    PROVE = "prove"
    PRECHECK = "precheck"
    TRANSCODE = "transcode"
    SUBMIT = "submit"
    ORCHESTRATE = "orchestrate"


class ErrorCode(str, Enum):
    UNKNOWN = "UNKNOWN"
    MALFORMED_FIELD = "MALFORMED_FIELD"
    WITNESS_MISMATCH = "WITNESS_MISMATCH"
    PROOF_GENERATION_FAILED = "PROOF_GENERATION_FAILED"
    CALLDATA_SHAPE = "CALLDATA_SHAPE"
    SUBMISSION = "SUBMISSION"
    REGISTRY = "REGISTRY"
    ALREADY_REGISTERED = "ALREADY_REGISTERED"
    NOT_REGISTERED = "NOT_REGISTERED"
    TIMEOUT = "TIMEOUT"


@dataclass(eq=False)
class BridgeError(Exception):
    """
    Base structured error.

    Fields:
      msg:   human-readable summary
      stage: pipeline stage (Stage | str)
      ctx:   small dict of contextual fields (ids, lengths, shapes)
      cause: optional underlying exception (not serialized)
    """

    msg: str = "bridge error"
    stage: Stage | str = Stage.CODEC
    ctx: Dict[str, Any] = field(default_factory=dict)
    cause: Optional[BaseException] = None

    code = ErrorCode.UNKNOWN

    def __post_init__(self) -> None:
        if not isinstance(self.ctx, dict):
            self.ctx = {"_ctx_type_error": str(type(self.ctx))}

    def __str__(self) -> str:
        parts = [f"[{self.code.value}@{_stage_str(self.stage)}] {self.msg}"]
        if self.ctx:
            parts.append(f"ctx={self.ctx}")
        if self.cause:
            parts.append(f"cause={self.cause!r}")
        return " ".join(parts)

    def with_context(self, **extra: Any) -> "BridgeError":
        """Merge extra context in place and return self (handy in re-raise paths)."""
        self.ctx.update(extra)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "stage": _stage_str(self.stage),
            "msg": self.msg,
            "ctx": dict(self.ctx),
        }

    @classmethod
    def wrap(
        cls,
        msg: str,
        *,
        stage: Stage | str,
        ctx: Optional[Mapping[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> "BridgeError":
        return cls(msg=msg, stage=stage, ctx=dict(ctx or {}), cause=cause)


def _stage_str(stage: Stage | str) -> str:
    return stage.value if isinstance(stage, Stage) else str(stage)


class MalformedField(BridgeError):
    """A string/int is not a canonical field element (bad syntax or >= modulus)."""

    code = ErrorCode.MALFORMED_FIELD


class WitnessMismatch(BridgeError):
    """Witness post-conditions failed (length, constant slot, public range, names)."""

    code = ErrorCode.WITNESS_MISMATCH


class ProofGenerationFailed(BridgeError):
    """External prover reported unsatisfiability, crashed, timed out or emitted garbage."""

    code = ErrorCode.PROOF_GENERATION_FAILED


class CalldataShapeError(BridgeError):
    """Proof components do not match the verifier's expected arity or nesting."""

    code = ErrorCode.CALLDATA_SHAPE


class SubmissionError(BridgeError):
    """Verifier call reverted or the transport failed."""

    code = ErrorCode.SUBMISSION

    @property
    def reverted(self) -> bool:
        return bool(self.ctx.get("reverted"))


class VerificationTimeout(BridgeError):
    """An async verification did not finish within the caller's deadline."""

    code = ErrorCode.TIMEOUT


class RegistryError(BridgeError):
    code = ErrorCode.REGISTRY


class AlreadyRegistered(RegistryError):
    code = ErrorCode.ALREADY_REGISTERED


class NotRegistered(RegistryError):
    code = ErrorCode.NOT_REGISTERED


__all__ = [
    "Stage",
    "ErrorCode",
    "BridgeError",
    "MalformedField",
    "WitnessMismatch",
    "ProofGenerationFailed",
    "CalldataShapeError",
    "SubmissionError",
    "RegistryError",
    "AlreadyRegistered",
    "NotRegistered",
    "VerificationTimeout",
]
