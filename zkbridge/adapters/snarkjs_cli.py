"""
zkbridge.adapters.snarkjs_cli
=============================

Thin subprocess wrapper around the ``snarkjs`` command line.

Every invocation is a blocking call with a hard timeout; on timeout the child
is killed by `subprocess.run` and a `SnarkjsError` is raised. Callers map that
error onto their own pipeline error kind (witness vs. prove vs. precheck).

The runner is injectable: backends and the witness evaluator accept any object
with a compatible ``run(args, *, timeout, cwd)`` method, which keeps tests free
of Node.js.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Sequence, Tuple, Union

log = logging.getLogger(__name__)

PathLike = Union[str, Path]


class SnarkjsError(Exception):
    """snarkjs exited non-zero, timed out, or could not be started."""

    def __init__(self, message: str, *, command: str = "", returncode: Optional[int] = None,
                 stderr: str = "", timed_out: bool = False):
        super().__init__(message)
        self.message = message
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        self.timed_out = timed_out


class Runner(Protocol):
    def run(self, args: Sequence[str], *, timeout: float, cwd: Optional[PathLike] = None) -> str:
        ...


@dataclass(frozen=True)
class SnarkjsRunner:
    """Runs ``<cmd...> <args...>`` and returns stdout."""

    cmd: Tuple[str, ...] = ("snarkjs",)

    def run(self, args: Sequence[str], *, timeout: float, cwd: Optional[PathLike] = None) -> str:
        argv = [*self.cmd, *[str(a) for a in args]]
        # Subcommand only: argument paths may point at per-request scratch files.
        command = " ".join(argv[: len(self.cmd) + 2])
        log.debug("snarkjs start: %s (timeout=%.0fs)", command, timeout)
        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                check=True,
                timeout=timeout,
                cwd=str(cwd) if cwd is not None else None,
            )
        except subprocess.TimeoutExpired as e:
            raise SnarkjsError(
                f"{command} timed out after {timeout:.0f}s", command=command, timed_out=True
            ) from e
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            raise SnarkjsError(
                f"{command} exited with {e.returncode}",
                command=command,
                returncode=e.returncode,
                stderr=stderr[-2000:],
            ) from e
        except OSError as e:
            raise SnarkjsError(f"could not start {argv[0]!r}: {e}", command=command) from e
        log.debug("snarkjs done: %s (%d bytes stdout)", command, len(result.stdout))
        return result.stdout


__all__ = ["SnarkjsError", "SnarkjsRunner", "Runner", "PathLike"]
