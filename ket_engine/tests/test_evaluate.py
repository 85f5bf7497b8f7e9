"""Gate evaluation: lookup, input range validation and host-side checks."""
import logging

import numpy as np
import pytest

from ket_engine.circuit.context import (
    INPUT_RANGE_A, INPUT_RANGE_B, AuxiliaryRanges, BitRange, CircuitEvalContext,
)
from ket_engine.circuit.evaluate import apply_gate, evaluate
from ket_engine.coder.types import BYTE_CODERS, FLOAT_CODERS
from ket_engine.config import EngineConfig
from ket_engine.errors import ContractViolation, KetEngineError, MissingContext, NumericBoundaryViolation
from ket_engine.kernel.ref_dispatch import check_program, dispatch
from ket_engine.shader.args import ShaderArg
from ket_engine.shader.expr import OUT_ID, SPAN, cos, mod, sin, uniform, vec2
from ket_engine.shader.ket import Shape, ket_args, ket_shader_permute, ket_shader_phase
from ket_engine.tests.fixtures.states import make_context, random_state


def _state(n, coder=FLOAT_CODERS):
    return coder.vec2.data_to_texture(random_state(n))


# ── synthesis ────────────────────────────────────────────────────────

def test_evaluate_returns_bound_program():
    state = _state(5)
    program = evaluate("+=A", 2, 1, {INPUT_RANGE_A: (3, 2)}, state=state)
    assert program.shape is Shape.PERMUTATION
    assert program.span == 2 and program.row == 1
    assert program.state is state
    assert program.arg_value("srcOffset") == 8.0
    assert program.arg_value("srcSpan") == 4.0
    assert program.arg_value("factor") == 1.0


def test_full_serialized_id_accepted():
    program = evaluate("inc3", 3, 0, state=_state(3))
    assert program.arg_value("amount") == 1.0
    assert program.span == 3


def test_addition_is_rewired_onto_upper_half():
    program = evaluate("add", 4, 1, state=_state(6))
    assert program.row == 3
    assert program.span == 2
    assert program.arg_value("srcOffset") == 2.0
    assert program.arg_value("srcSpan") == 4.0


def test_coder_by_name_matches_state():
    state = _state(3, BYTE_CODERS)
    program = evaluate("dec", 2, 0, state=state, coder="bytes")
    assert program.coder is BYTE_CODERS
    with pytest.raises(ContractViolation, match="stores amplitudes"):
        evaluate("dec", 2, 0, state=state, coder="floats")


def test_config_coder_used_by_default():
    psi = random_state(3)
    out = apply_gate(psi, "inc", 3, 0, config=EngineConfig(coder="bytes"))
    np.testing.assert_array_equal(out, np.roll(psi, 1))


def test_dispatch_does_not_touch_input():
    state = _state(4)
    before = state.pixels.copy()
    program = evaluate("inc", 4, 0, state=state)
    out = dispatch(program)
    assert out is not state
    assert out.pixels is not state.pixels
    np.testing.assert_array_equal(state.pixels, before)


def test_auxiliary_ranges_object_accepted():
    ranges = AuxiliaryRanges(input_a=BitRange(0, 1), input_b=BitRange(1, 1))
    program = evaluate("^A=B", 1, 2, ranges, state=_state(3))
    assert program.shape is Shape.GENERAL


# ── rejected inputs ──────────────────────────────────────────────────

def test_missing_input_range():
    with pytest.raises(MissingContext, match="Input Range A") as info:
        evaluate("+=A", 2, 0, {}, state=_state(4))
    assert info.value.missing == [INPUT_RANGE_A]
    assert info.value.gate == "+=A2"


def test_comparison_needs_both_ranges():
    with pytest.raises(MissingContext) as info:
        evaluate("^A<B", 1, 0, {INPUT_RANGE_A: (1, 1)}, state=_state(3))
    assert info.value.missing == [INPUT_RANGE_B]


@pytest.mark.parametrize("ranges", [
    {INPUT_RANGE_A: (1, 2)},
    {INPUT_RANGE_A: (2, 2)},
    {INPUT_RANGE_A: (3, 1)},
])
def test_input_overlapping_target(ranges):
    with pytest.raises(ContractViolation, match="overlaps target"):
        evaluate("+=A", 2, 2, ranges, state=_state(5))


def test_input_outside_state():
    with pytest.raises(ContractViolation, match="outside 4 qubit"):
        evaluate("+=A", 2, 0, {INPUT_RANGE_A: (2, 3)}, state=_state(4))


def test_gate_outside_state():
    with pytest.raises(ContractViolation, match="outside 3 qubit"):
        evaluate("inc", 2, 2, state=_state(3))


def test_unknown_gate():
    with pytest.raises(ContractViolation, match="unknown gate id"):
        evaluate("cnot", 1, 0, state=_state(2))


@pytest.mark.parametrize("span", [0, 17, -1])
def test_span_out_of_range(span):
    with pytest.raises(ContractViolation, match="out of range"):
        evaluate("inc", span, 0, state=_state(2))


def test_family_minimum_span():
    with pytest.raises(ContractViolation, match=r"span 1 out of range \[2, 16\]"):
        evaluate("add", 1, 0, state=_state(2))


def test_single_gate_span_must_match():
    with pytest.raises(ContractViolation, match="has span 1"):
        evaluate("^A<B", 2, 0, {INPUT_RANGE_A: (2, 1), INPUT_RANGE_B: (3, 1)}, state=_state(4))


def test_unknown_range_name():
    with pytest.raises(ContractViolation, match="unknown input range"):
        evaluate("inc", 1, 0, {"Input Range C": (1, 1)}, state=_state(2))


@pytest.mark.parametrize("value", [(1,), (1, 0), (-1, 1), {"offset": 1}, "1:1"])
def test_malformed_range(value):
    with pytest.raises(ContractViolation):
        evaluate("+=A", 1, 0, {INPUT_RANGE_A: value}, state=_state(3))


def test_too_many_qubits():
    with pytest.raises(ContractViolation, match="max_qubit_count"):
        evaluate("inc", 1, 0, state=_state(5), config=EngineConfig(max_span=4, max_qubit_count=4))


def test_errors_share_a_base():
    for cls in (ContractViolation, MissingContext, NumericBoundaryViolation):
        assert issubclass(cls, KetEngineError)
    assert issubclass(ContractViolation, ValueError)


def test_rejection_is_logged(caplog):
    with caplog.at_level(logging.WARNING, logger="ket_engine"):
        with pytest.raises(MissingContext):
            evaluate("-=A", 1, 0, state=_state(2))
    assert any("rejected -=A" in r.getMessage() for r in caplog.records)


# ── host-side checks ─────────────────────────────────────────────────

def test_context_ranges():
    ctx = make_context(random_state(3), ranges={INPUT_RANGE_B: {"offset": 1, "length": 2}})
    assert ctx.input_range(INPUT_RANGE_B) == BitRange(1, 2)
    assert ctx.ranges.items() == [(INPUT_RANGE_B, BitRange(1, 2))]
    with pytest.raises(MissingContext):
        ctx.input_range(INPUT_RANGE_A)
    assert isinstance(ctx, CircuitEvalContext)


def _bad_permutation(body):
    ctx = make_context(random_state(3))
    return ket_shader_permute(body, span=2).with_args(*ket_args(ctx))


def test_non_integer_permutation_rejected():
    with pytest.raises(NumericBoundaryViolation, match="non-integer"):
        check_program(_bad_permutation(OUT_ID / 2.0))


def test_out_of_range_permutation_rejected():
    with pytest.raises(NumericBoundaryViolation, match="outside"):
        check_program(_bad_permutation(OUT_ID + 1.0))


def test_non_bijective_permutation_rejected():
    with pytest.raises(NumericBoundaryViolation, match="bijection"):
        check_program(_bad_permutation(mod(OUT_ID, 2.0)))


def test_non_unit_phase_rejected():
    ctx = make_context(random_state(2))
    program = ket_shader_phase(vec2(uniform("r"), 0.0), span=1).with_args(
        *ket_args(ctx), ShaderArg.float("r", 2.0))
    with pytest.raises(NumericBoundaryViolation, match="magnitude"):
        check_program(program)


def test_unit_phase_accepted():
    ctx = make_context(random_state(2))
    program = ket_shader_phase(vec2(cos(OUT_ID), sin(OUT_ID)), span=2).with_args(*ket_args(ctx))
    check_program(program)


def test_valid_permutation_accepted():
    check_program(_bad_permutation(mod(OUT_ID + 1.0, SPAN)))


def test_dispatch_rejects_out_of_range_preimage():
    with pytest.raises(NumericBoundaryViolation, match="outside"):
        dispatch(_bad_permutation(OUT_ID + 1.0))


def test_debug_checks_can_be_disabled(monkeypatch):
    calls = []
    monkeypatch.setattr("ket_engine.circuit.evaluate.check_program",
                        lambda *a, **k: calls.append(a))
    evaluate("inc", 1, 0, state=_state(2), config=EngineConfig(debug_checks=False))
    assert calls == []
    evaluate("inc", 1, 0, state=_state(2))
    assert len(calls) == 1
