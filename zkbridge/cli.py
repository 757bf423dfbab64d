"""
zkbridge.cli
============

Command line front end.

Commands:
  verify          witness -> proof -> calldata -> eth_call for a registered circuit
  calldata        transcode a snarkjs proof.json + public.json into contract arguments
  parse-calldata  parse the text printed by `snarkjs zkey export soliditycalldata`

Examples:
  zkbridge verify multiplier3 --input input.json --manifest circuits.yaml
  zkbridge verify multiplier3 --input input.json --backend plonk --precheck --json
  zkbridge calldata build/proof.json build/public.json
  zkbridge parse-calldata --backend plonk --file calldata.txt

`verify` exits 0 when the verifier accepts, 1 when it rejects and 2 when the
request errored before a verdict.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .adapters.snarkjs_cli import SnarkjsError, SnarkjsRunner
from .adapters.snarkjs_loader import load_json, parse_groth16_proof, parse_public_signals
from .backends import backend_name
from .config import BridgeConfig, get_config
from .errors import BridgeError
from .orchestrator import VerificationOrchestrator
from .registry import KeyRegistry
from .transcode import parse_solidity_calldata, transcode
from .types import BackendName, Calldata

EXIT_REJECTED = 1
EXIT_ERRORED = 2


def _configure_logging(level: str) -> None:
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=getattr(logging, level.upper(), logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )


def _die(msg: str, code: int = EXIT_ERRORED) -> None:
    typer.echo(msg.rstrip(), err=True)
    raise typer.Exit(code)


def _print_calldata(calldata: Calldata) -> None:
    typer.echo(json.dumps(calldata.args()))


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"zkbridge {__version__}")
        raise typer.Exit(0)


def _backend_option(value: str) -> BackendName:
    try:
        return backend_name(value)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from None


def _plonk_calldata(cfg: BridgeConfig, proof_path: Path, public_path: Path) -> str:
    runner = SnarkjsRunner(cfg.snarkjs_cmd)
    return runner.run(["zkey", "export", "soliditycalldata", public_path, proof_path],
                      timeout=cfg.prove_timeout)


def _outcome_table(console: Console, outcome: Any) -> None:
    t = Table(title=f"{outcome.circuit_id} / {outcome.backend}")
    t.add_column("Field")
    t.add_column("Value")
    t.add_row("status", outcome.status.value)
    t.add_row("state", outcome.state.value)
    t.add_row("trace", " -> ".join(s.value for s in outcome.trace))
    if outcome.public_signals:
        t.add_row("public signals", ", ".join(outcome.public_signals))
    if outcome.error:
        t.add_row("error", f"{outcome.error['code']} at {outcome.error['stage']}: {outcome.error['msg']}")
    console.print(t)


def build_app() -> typer.Typer:
    app = typer.Typer(
        name="zkbridge",
        help="Prove with snarkjs and verify against an on-chain verifier contract",
        no_args_is_help=True,
        add_completion=False,
    )

    @app.callback()
    def _meta(
        version: bool = typer.Option(False, "--version", "-V", help="Print version and exit",
                                     callback=_version_callback, is_eager=True),
        log_level: Optional[str] = typer.Option(None, "--log-level", help="Override ZKBRIDGE_LOG_LEVEL"),
    ) -> None:
        _configure_logging(log_level or get_config().log_level)

    @app.command("verify")
    def verify_cmd(
        circuit_id: str = typer.Argument(..., help="Circuit id from the key manifest"),
        input_path: Path = typer.Option(..., "--input", "-i", help="JSON file with the input assignment"),
        backend: str = typer.Option("groth16", "--backend", "-b", help="groth16 | plonk"),
        manifest: Optional[Path] = typer.Option(None, "--manifest", "-m",
                                                help="Key manifest (overrides ZKBRIDGE_MANIFEST)"),
        rpc_url: Optional[str] = typer.Option(None, "--rpc-url", help="Override ZKBRIDGE_RPC_URL"),
        precheck: bool = typer.Option(False, "--precheck", help="Verify locally before the contract call"),
        json_out: bool = typer.Option(False, "--json", help="Print machine-readable outcome"),
    ) -> None:
        """Run the full pipeline for one input assignment."""
        name = _backend_option(backend)
        cfg = get_config()
        overrides = {}
        if rpc_url:
            overrides["rpc_url"] = rpc_url
        if precheck:
            overrides["local_precheck"] = True
        if overrides:
            cfg = dataclasses.replace(cfg, **overrides)
            try:
                cfg.validate()
            except ValueError as e:
                _die(f"[verify] {e}")

        manifest = manifest or cfg.manifest_path
        if manifest is None:
            _die("[verify] no key manifest: pass --manifest or set ZKBRIDGE_MANIFEST")
        registry = KeyRegistry()
        try:
            registry.load_manifest(manifest)
            inputs = load_json(input_path)
        except (BridgeError, OSError, ValueError) as e:
            _die(f"[verify] {e}")
        if not isinstance(inputs, dict):
            _die("[verify] input file must hold a JSON object")

        outcome = VerificationOrchestrator(registry, config=cfg).verify(circuit_id, inputs, name)
        if json_out:
            typer.echo(json.dumps(outcome.to_dict(), indent=2, sort_keys=True))
        else:
            _outcome_table(Console(), outcome)
        if outcome.errored:
            raise typer.Exit(EXIT_ERRORED)
        if outcome.rejected:
            raise typer.Exit(EXIT_REJECTED)

    @app.command("calldata")
    def calldata_cmd(
        proof_path: Path = typer.Argument(..., help="snarkjs proof.json"),
        public_path: Path = typer.Argument(..., help="snarkjs public.json"),
        backend: str = typer.Option("groth16", "--backend", "-b", help="groth16 | plonk"),
    ) -> None:
        """Print the verifier-contract arguments for an existing proof as JSON."""
        name = _backend_option(backend)
        try:
            if name is BackendName.GROTH16:
                proof = parse_groth16_proof(load_json(proof_path))
                calldata = transcode(proof, parse_public_signals(load_json(public_path)))
            else:
                text = _plonk_calldata(get_config(), proof_path, public_path)
                calldata = parse_solidity_calldata(text, name)
        except (BridgeError, SnarkjsError, OSError, ValueError) as e:
            _die(f"[calldata] {e}")
            return
        _print_calldata(calldata)

    @app.command("parse-calldata")
    def parse_calldata_cmd(
        text: Optional[str] = typer.Argument(None, help="soliditycalldata text (or use --file)"),
        file: Optional[Path] = typer.Option(None, "--file", "-f", help="Read the text from a file"),
        backend: str = typer.Option("groth16", "--backend", "-b", help="groth16 | plonk"),
    ) -> None:
        """Normalize soliditycalldata output into decimal contract arguments."""
        name = _backend_option(backend)
        if (text is None) == (file is None):
            _die("[parse-calldata] give exactly one of TEXT or --file")
        try:
            raw = file.read_text(encoding="utf-8") if file is not None else text
            calldata = parse_solidity_calldata(raw or "", name)
        except (BridgeError, OSError) as e:
            _die(f"[parse-calldata] {e}")
            return
        _print_calldata(calldata)

    return app


app = build_app()


def main(argv: Optional[list[str]] = None) -> int:
    app(args=argv)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
