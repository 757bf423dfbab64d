from __future__ import annotations

import json
import os

import pytest
import typer.testing
import yaml

from zkbridge import __version__, cli
from zkbridge.backends import Groth16Backend
from zkbridge.config import reload_config
from zkbridge.orchestrator import VerificationOrchestrator
from zkbridge.tests import FakeSnarkjs, FakeVerifier, MultiplierEvaluator, snarkjs_groth16_calldata

runner = typer.testing.CliRunner()

PROOF_JSON = {
    "pi_a": ["101", "102", "1"],
    "pi_b": [["201", "202"], ["203", "204"], ["1", "0"]],
    "pi_c": ["301", "302", "1"],
}
EXPECTED_ARGS = [["101", "102"], [["202", "201"], ["204", "203"]], ["301", "302"], ["6", "24"]]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for k in list(os.environ):
        if k.startswith("ZKBRIDGE_"):
            monkeypatch.delenv(k)
    reload_config()
    yield
    reload_config()


def test_version():
    result = runner.invoke(cli.app, ["--version"])
    assert result.exit_code == 0
    assert result.output.strip() == f"zkbridge {__version__}"


def test_help_lists_commands():
    result = runner.invoke(cli.app, ["--help"])
    assert result.exit_code == 0
    for cmd in ("verify", "calldata", "parse-calldata"):
        assert cmd in result.output


# --- parse-calldata / calldata ------------------------------------------------------


def test_parse_calldata_text():
    text = snarkjs_groth16_calldata(PROOF_JSON, ["6", "24"])
    result = runner.invoke(cli.app, ["parse-calldata", text])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == EXPECTED_ARGS


def test_parse_calldata_plonk_file(tmp_path):
    f = tmp_path / "calldata.txt"
    f.write_text('0x0a0b,["0x06","0x18"]\n', encoding="utf-8")
    result = runner.invoke(cli.app, ["parse-calldata", "--backend", "plonk", "--file", str(f)])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == ["0x0a0b", ["6", "24"]]


@pytest.mark.parametrize(
    "args",
    [
        ["parse-calldata"],
        ["parse-calldata", '["0x01"]'],
        ["parse-calldata", "--backend", "stark", '["0x01"]'],
    ],
    ids=["no-input", "bad-shape", "bad-backend"],
)
def test_parse_calldata_errors(args):
    assert runner.invoke(cli.app, args).exit_code == 2


def test_calldata_from_proof_files(tmp_path):
    proof = tmp_path / "proof.json"
    public = tmp_path / "public.json"
    proof.write_text(json.dumps(PROOF_JSON), encoding="utf-8")
    public.write_text(json.dumps(["6", "24"]), encoding="utf-8")

    result = runner.invoke(cli.app, ["calldata", str(proof), str(public)])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == EXPECTED_ARGS


def test_calldata_rejects_out_of_range_signal(tmp_path):
    proof = tmp_path / "proof.json"
    public = tmp_path / "public.json"
    proof.write_text(json.dumps(PROOF_JSON), encoding="utf-8")
    public.write_text(json.dumps(["-1"]), encoding="utf-8")
    result = runner.invoke(cli.app, ["calldata", str(proof), str(public)])
    assert result.exit_code == 2
    assert "MALFORMED_FIELD" in result.output


# --- verify -------------------------------------------------------------------------


@pytest.fixture
def manifest(tmp_path):
    (tmp_path / "m3.zkey").write_bytes(b"zkey")
    path = tmp_path / "circuits.yaml"
    path.write_text(yaml.safe_dump({
        "circuits": [{
            "id": "multiplier3",
            "wasm": "Multiplier3_js/Multiplier3.wasm",
            "signal_count": 6,
            "public_count": 2,
            "inputs": ["a", "b", "c"],
            "keys": {"groth16": {"zkey": "m3.zkey"}},
        }]
    }), encoding="utf-8")
    inputs = tmp_path / "input.json"
    inputs.write_text(json.dumps({"a": 2, "b": 3, "c": 4}), encoding="utf-8")
    return path, inputs


def _wire(monkeypatch, verifier):
    def factory(registry, *, config=None):
        return VerificationOrchestrator(
            registry,
            evaluator=MultiplierEvaluator(),
            backends={"groth16": Groth16Backend(FakeSnarkjs(proof=PROOF_JSON, public=[6, 24]), timeout=5)},
            contracts={("multiplier3", "groth16"): verifier},
            config=config,
        )

    monkeypatch.setattr(cli, "VerificationOrchestrator", factory)


@pytest.mark.parametrize("accepted,code", [(True, 0), (False, 1)])
def test_verify_exit_codes(monkeypatch, manifest, accepted, code):
    path, inputs = manifest
    good = json.dumps(EXPECTED_ARGS, sort_keys=True, separators=(",", ":")).encode()
    _wire(monkeypatch, FakeVerifier(accept={good} if accepted else set()))

    result = runner.invoke(cli.app, ["verify", "multiplier3", "-i", str(inputs), "-m", str(path), "--json"])
    assert result.exit_code == code, result.output
    out = json.loads(result.output)
    assert out["status"] == ("accepted" if accepted else "rejected")
    assert out["trace"][0] == "idle" and out["public_signals"] == ["6", "24"]


def test_verify_errored_outcome_renders_table(monkeypatch, manifest, tmp_path):
    path, _ = manifest
    bad = tmp_path / "bad_input.json"
    bad.write_text(json.dumps({"a": 2}), encoding="utf-8")
    _wire(monkeypatch, FakeVerifier())

    result = runner.invoke(cli.app, ["verify", "multiplier3", "-i", str(bad), "-m", str(path)])
    assert result.exit_code == 2
    assert "WITNESS_MISMATCH" in result.output


def test_verify_needs_a_manifest(tmp_path):
    inputs = tmp_path / "input.json"
    inputs.write_text("{}", encoding="utf-8")
    result = runner.invoke(cli.app, ["verify", "multiplier3", "-i", str(inputs)])
    assert result.exit_code == 2
    assert "manifest" in result.output


def test_verify_rejects_bad_rpc_url(manifest):
    path, inputs = manifest
    result = runner.invoke(cli.app, ["verify", "multiplier3", "-i", str(inputs), "-m", str(path),
                                     "--rpc-url", "ftp://nope"])
    assert result.exit_code == 2
    assert "rpc_url" in result.output
