from __future__ import annotations

import json

import pytest

from zkbridge.adapters.snarkjs_loader import (is_groth16_proof, load_json, load_verification_key,
                                              parse_groth16_proof, parse_int, parse_plonk_blob,
                                              parse_public_signals, split_solidity_calldata,
                                              strip_projective)
from zkbridge.codec import BASE_MODULUS, SCALAR_MODULUS
from zkbridge.errors import MalformedField

PROOF = {
    "pi_a": ["11", "12", "1"],
    "pi_b": [["21", "22"], ["23", "24"], ["1", "0"]],
    "pi_c": ["31", "32", "1"],
    "protocol": "groth16",
    "curve": "bn128",
}


def test_projective_marker_is_stripped():
    p = parse_groth16_proof(PROOF)
    assert [c.value for c in p.a] == [11, 12]
    assert [[c.value for c in fq2] for fq2 in p.b] == [[21, 22], [23, 24]]
    assert [c.value for c in p.c] == [31, 32]
    assert all(c.modulus == BASE_MODULUS for c in p.a)


def test_bundle_form_is_accepted():
    bundle = {"proof": PROOF, "publicSignals": ["6", "24"]}
    assert is_groth16_proof(bundle)
    assert parse_groth16_proof(bundle) == parse_groth16_proof(PROOF)
    signals = parse_public_signals(bundle)
    assert [s.value for s in signals] == [6, 24]
    assert all(s.modulus == SCALAR_MODULUS for s in signals)


def test_non_marker_third_coordinate_is_kept_for_the_transcoder():
    assert strip_projective(["1", "2", "5"], 1) == ["1", "2", "5"]
    assert strip_projective([["1", "2"], ["3", "4"], ["0", "0"]], 2) == [["1", "2"], ["3", "4"], ["0", "0"]]
    p = parse_groth16_proof({**PROOF, "pi_a": ["11", "12", "7"]})
    assert len(p.a) == 3


def test_truncated_proof_is_parsed_without_arity_check():
    p = parse_groth16_proof({**PROOF, "pi_c": ["31"]})
    assert len(p.c) == 1


def test_missing_component_is_malformed():
    with pytest.raises(MalformedField):
        parse_groth16_proof({"pi_a": ["1", "2"], "pi_b": []})
    with pytest.raises(MalformedField):
        parse_groth16_proof({**PROOF, "pi_b": "nope"})


@pytest.mark.parametrize("raw,expected", [(5, 5), ("5", 5), ("0x10", 16), ("123n", 123), ("0xffn", 255)])
def test_parse_int_forms(raw, expected):
    assert parse_int(raw) == expected


@pytest.mark.parametrize("raw", [-1, True, 1.0, "-5", "5 ", None])
def test_parse_int_is_strict(raw):
    with pytest.raises(MalformedField):
        parse_int(raw)


def test_public_signals_out_of_range_are_rejected():
    with pytest.raises(MalformedField):
        parse_public_signals([str(SCALAR_MODULUS)])
    with pytest.raises(MalformedField):
        parse_public_signals({"publicSignals": "6"})


def test_load_json_sources(tmp_path):
    path = tmp_path / "vk.json"
    path.write_text(json.dumps({"protocol": "groth16", "b": 1, "a": 2}), encoding="utf-8")
    assert load_json(path) == load_json(str(path)) == load_json(path.read_bytes())
    with pytest.raises(ValueError):
        load_json("{not json")

    vk, digest = load_verification_key(path)
    assert vk["protocol"] == "groth16"
    assert digest.startswith("sha3-256:") and len(digest) == len("sha3-256:") + 64
    # digest is over canonical JSON, so key order does not matter
    assert load_verification_key({"a": 2, "b": 1, "protocol": "groth16"})[1] == digest


def test_split_groth16_calldata():
    text = '["0x01", "0x02"],[["0x03", "0x04"],["0x05", "0x06"]],["0x07", "0x08"],["0x06","0x18"]\n'
    args = split_solidity_calldata(text)
    assert len(args) == 4
    assert args[1] == [["0x03", "0x04"], ["0x05", "0x06"]]
    assert args[3] == ["0x06", "0x18"]


def test_split_legacy_plonk_calldata():
    text = '0xdeadbeef,["0x06","0x18"]'
    assert split_solidity_calldata(text) == ["0xdeadbeef", ["0x06", "0x18"]]
    assert split_solidity_calldata("   ") == []


def test_plonk_blob_forms():
    assert parse_plonk_blob("0xdeadbeef") == bytes.fromhex("deadbeef")
    words = parse_plonk_blob(["0x01", "0x02"])
    assert len(words) == 64 and words[31] == 1 and words[63] == 2
    for bad in ("deadbeef", "0xabc", "0xzz", 7):
        with pytest.raises(MalformedField):
            parse_plonk_blob(bad)
    with pytest.raises(MalformedField):
        parse_plonk_blob([hex(1 << 256)])
