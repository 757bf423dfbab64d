from __future__ import annotations

import pytest

from zkbridge.codec import SCALAR_MODULUS, FieldElement
from zkbridge.errors import MalformedField, Stage, WitnessMismatch
from zkbridge.tests import (MULTIPLIER2, MULTIPLIER3, FakeSnarkjs, MultiplierEvaluator,
                            configure_test_logging)
from zkbridge.types import Circuit
from zkbridge.witness import SnarkjsWitnessEvaluator, check_witness, compute_witness, normalize_inputs

configure_test_logging()


def test_multiply_two_numbers():
    w = compute_witness(MULTIPLIER2, {"a": 2, "b": 3}, MultiplierEvaluator())
    assert w[0].value == 1
    assert w[1].value == 6
    assert [s.value for s in w.public_outputs()] == [6]


def test_multiply_three_numbers():
    w = compute_witness(MULTIPLIER3, {"a": 2, "b": 3, "c": 4}, MultiplierEvaluator())
    assert [v.value for v in w.values[:3]] == [1, 6, 24]
    assert [s.value for s in w.public_outputs()] == [6, 24]
    assert len(w) == MULTIPLIER3.signal_count


def test_inputs_are_handed_over_as_decimal_strings():
    ev = MultiplierEvaluator()
    compute_witness(MULTIPLIER2, {"a": FieldElement(2), "b": 3}, ev)
    assert ev.calls == [("multiplier2", {"a": "2", "b": "3"})]


def test_nested_inputs_are_encoded_elementwise():
    circuit = Circuit(circuit_id="vec", input_names=("xs",))
    assert normalize_inputs(circuit, {"xs": [1, [2, 3]]}) == {"xs": ["1", ["2", "3"]]}


@pytest.mark.parametrize("inputs", [{"a": 2}, {"a": 2, "b": 3, "z": 1}, {}])
def test_input_name_mismatch(inputs):
    ev = MultiplierEvaluator()
    with pytest.raises(WitnessMismatch) as ei:
        compute_witness(MULTIPLIER2, inputs, ev)
    assert ei.value.stage is Stage.WITNESS
    assert ev.calls == []


@pytest.mark.parametrize("value", [SCALAR_MODULUS, -1, "2", 2.0, True])
def test_out_of_range_or_mistyped_input_is_malformed(value):
    with pytest.raises(MalformedField) as ei:
        compute_witness(MULTIPLIER2, {"a": value, "b": 3}, MultiplierEvaluator())
    assert ei.value.ctx["signal"] == "a"


def test_undeclared_inputs_skip_the_name_check():
    circuit = Circuit(circuit_id="free", public_count=1)
    assert normalize_inputs(circuit, {"anything": 1}) == {"anything": "1"}


@pytest.mark.parametrize(
    "tamper,why",
    [
        (lambda w: w[:-1], "length"),
        (lambda w: [2] + w[1:], "constant"),
        (lambda w: w[:1] + [SCALAR_MODULUS] + w[2:], "canonical"),
        (lambda w: [], "empty"),
    ],
)
def test_witness_postconditions(tamper, why):
    with pytest.raises(WitnessMismatch):
        compute_witness(MULTIPLIER3, {"a": 2, "b": 3, "c": 4}, MultiplierEvaluator(tamper=tamper))


def test_public_range_must_fit():
    circuit = Circuit(circuit_id="short", public_start=1, public_count=5)
    with pytest.raises(WitnessMismatch) as ei:
        check_witness(circuit, [1, 6, 2, 3])
    assert ei.value.ctx["public_count"] == 5


def test_snarkjs_evaluator_runs_calculate_then_export():
    fake = FakeSnarkjs(witness=[1, 6, 24, 2, 3, 4])
    ev = SnarkjsWitnessEvaluator(fake, timeout=5)
    w = compute_witness(MULTIPLIER3, {"a": 2, "b": 3, "c": 4}, ev)
    assert [v.value for v in w.public_outputs()] == [6, 24]
    assert [c[:2] for c in fake.calls] == [["wtns", "calculate"], ["wtns", "export"]]
    assert fake.calls[0][2] == MULTIPLIER3.wasm_path


def test_snarkjs_evaluator_failure_is_witness_mismatch():
    ev = SnarkjsWitnessEvaluator(FakeSnarkjs(fail="wtns calculate"), timeout=5)
    with pytest.raises(WitnessMismatch) as ei:
        compute_witness(MULTIPLIER3, {"a": 2, "b": 3, "c": 4}, ev)
    assert ei.value.ctx["returncode"] == 1


def test_snarkjs_evaluator_needs_wasm():
    ev = SnarkjsWitnessEvaluator(FakeSnarkjs(), timeout=5)
    with pytest.raises(WitnessMismatch):
        ev.evaluate(Circuit(circuit_id="nowasm"), {})
