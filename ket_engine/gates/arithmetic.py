"""Arithmetic gates: increment, addition, input-range arithmetic, flips, comparisons.

All registers are little-endian blocks of qubits. Permutation bodies return
the *preimage*: the out_id whose amplitude should land at the current one.
"""
from __future__ import annotations

from typing import Callable

import numpy as np

from ket_engine.circuit.context import INPUT_RANGE_A, INPUT_RANGE_B, CircuitEvalContext
from ket_engine.config import DEFAULT_CONFIG
from ket_engine.gates.gate import Gate, GateKind, generate_family
from ket_engine.kernel.matrix import generate_transition
from ket_engine.shader.args import ShaderArg
from ket_engine.shader.expr import (
    OUT_ID, SPAN, Body, Expr, eq, inp, local, mod, ne, range_value, select, uniform,
)
from ket_engine.shader.ket import ProgramDescriptor, Shape, ket_args, ket_shader, ket_shader_permute

MAX_SPAN = DEFAULT_CONFIG.max_span

# Dense matrices are only attached below these spans.
INCREMENT_MATRIX_SPAN_LIMIT = 4
ADDITION_MATRIX_SPAN_LIMIT = 5


# ── dense matrices ───────────────────────────────────────────────────

def make_offset_matrix(offset: int, span: int) -> np.ndarray:
    mask = (1 << span) - 1
    return generate_transition(1 << span, lambda e: (e + offset) & mask)


def make_addition_matrix(span: int, sign: int) -> np.ndarray:
    """b += a (sign=+1) or b -= a (sign=-1), a = low floor(span/2) bits."""
    sa = span // 2
    sb = span - sa

    def f(e: int) -> int:
        a = e & ((1 << sa) - 1)
        b = e >> sa
        b = (b + sign * a) & ((1 << sb) - 1)
        return a | (b << sa)
    return generate_transition(1 << span, f)


# ── program templates ────────────────────────────────────────────────

INCREMENT_SHADER = ket_shader_permute(
    mod(OUT_ID - uniform("amount") + SPAN, SPAN),
    name="increment")


def increment_shader_func(ctx: CircuitEvalContext, span: int, amount: int) -> ProgramDescriptor:
    return INCREMENT_SHADER.with_args(
        *ket_args(ctx, span),
        ShaderArg.float("amount", amount))


_SRC = range_value(uniform("srcOffset"), uniform("srcSpan"))
_D = local("d")

FLIP_SHADER = ket_shader_permute(Body(
    select(OUT_ID >= _D, OUT_ID, mod(_D - 1.0 - OUT_ID, SPAN)),
    lets=(("d", _SRC),)),
    name="flip_below")

FLIP_SHADER_2 = ket_shader_permute(Body(
    select(OUT_ID > _D, OUT_ID, mod(_D - OUT_ID, SPAN)),
    lets=(("d", _SRC),)),
    name="flip_at_or_below")


def flip_shader_func(ctx: CircuitEvalContext, span: int, src_offset: int, src_span: int,
                     inclusive: bool = False) -> ProgramDescriptor:
    shader = FLIP_SHADER_2 if inclusive else FLIP_SHADER
    return shader.with_args(
        *ket_args(ctx, span),
        ShaderArg.float("srcOffset", 1 << src_offset),
        ShaderArg.float("srcSpan", 1 << src_span))


ADDITION_SHADER = ket_shader_permute(Body(
    mod(OUT_ID + SPAN - _D, SPAN),
    lets=(("a", _SRC),
          ("d", mod(local("a") * uniform("factor"), SPAN)))),
    name="addition")


def addition_shader_func(ctx: CircuitEvalContext, span: int, src_offset: int, src_span: int,
                         scale_factor: int) -> ProgramDescriptor:
    return ADDITION_SHADER.with_args(
        *ket_args(ctx, span),
        ShaderArg.float("srcOffset", 1 << src_offset),
        ShaderArg.float("srcSpan", 1 << src_span),
        ShaderArg.float("factor", scale_factor))


def comparison_shader(compare: Callable[[Expr, Expr], Expr], name: str) -> Callable:
    """Toggle the target qubit when compare(input A, input B) holds."""
    lhs, rhs = local("lhs"), local("rhs")
    shader = ket_shader(Body(
        select(compare(lhs, rhs), inp(1.0 - OUT_ID), inp(OUT_ID)),
        lets=(("lhs", range_value(uniform("lhsOffset"), uniform("lhsSpan"))),
              ("rhs", range_value(uniform("rhsOffset"), uniform("rhsSpan"))))),
        span=1,
        name=name)

    def shader_func(ctx: CircuitEvalContext) -> ProgramDescriptor:
        a = ctx.input_range(INPUT_RANGE_A)
        b = ctx.input_range(INPUT_RANGE_B)
        return shader.with_args(
            *ket_args(ctx, 1),
            ShaderArg.float("lhsOffset", 1 << a.offset),
            ShaderArg.float("rhsOffset", 1 << b.offset),
            ShaderArg.float("lhsSpan", 1 << a.length),
            ShaderArg.float("rhsSpan", 1 << b.length))
    return shader_func


# ── families ─────────────────────────────────────────────────────────

IncrementFamily = generate_family(GateKind.INCREMENT, 1, MAX_SPAN, lambda span: Gate(
    GateKind.INCREMENT,
    "++",
    "Increment Gate",
    "Adds 1 to the little-endian number represented by a block of qubits.",
    span,
    Shape.PERMUTATION,
    lambda ctx: increment_shader_func(ctx, span, +1),
    known_matrix=make_offset_matrix(1, span) if span < INCREMENT_MATRIX_SPAN_LIMIT else None))

DecrementFamily = generate_family(GateKind.DECREMENT, 1, MAX_SPAN, lambda span: Gate(
    GateKind.DECREMENT,
    "- -",
    "Decrement Gate",
    "Subtracts 1 from the little-endian number represented by a block of qubits.",
    span,
    Shape.PERMUTATION,
    lambda ctx: increment_shader_func(ctx, span, -1),
    known_matrix=make_offset_matrix(-1, span) if span < INCREMENT_MATRIX_SPAN_LIMIT else None))


def _half_register_shader(span: int, sign: int):
    sa = span // 2
    sb = span - sa
    return lambda ctx: addition_shader_func(ctx.with_row(ctx.row + sa), sb, ctx.row, sa, sign)


AdditionFamily = generate_family(GateKind.ADDITION, 2, MAX_SPAN, lambda span: Gate(
    GateKind.ADDITION,
    "b+=a",
    "Addition Gate",
    "Adds a little-endian number into another.",
    span,
    Shape.PERMUTATION,
    _half_register_shader(span, +1),
    known_matrix=make_addition_matrix(span, +1) if span < ADDITION_MATRIX_SPAN_LIMIT else None))

SubtractionFamily = generate_family(GateKind.SUBTRACTION, 2, MAX_SPAN, lambda span: Gate(
    GateKind.SUBTRACTION,
    "b-=a",
    "Subtraction Gate",
    "Subtracts a little-endian number from another.",
    span,
    Shape.PERMUTATION,
    _half_register_shader(span, -1),
    known_matrix=make_addition_matrix(span, -1) if span < ADDITION_MATRIX_SPAN_LIMIT else None))


def _input_a_shader(span: int, build: Callable) -> Callable:
    def shader_func(ctx: CircuitEvalContext) -> ProgramDescriptor:
        a = ctx.input_range(INPUT_RANGE_A)
        return build(ctx, span, a.offset, a.length)
    return shader_func


PlusAFamily = generate_family(GateKind.PLUS_A, 1, MAX_SPAN, lambda span: Gate(
    GateKind.PLUS_A,
    "+A",
    "Addition Gate [input A]",
    "Adds 'input A' into the qubits covered by this gate.",
    span,
    Shape.PERMUTATION,
    _input_a_shader(span, lambda ctx, s, o, n: addition_shader_func(ctx, s, o, n, +1)),
    required_context_keys=(INPUT_RANGE_A,)))

MinusAFamily = generate_family(GateKind.MINUS_A, 1, MAX_SPAN, lambda span: Gate(
    GateKind.MINUS_A,
    "−A",
    "Subtraction Gate [input A]",
    "Subtracts 'input A' out of the qubits covered by this gate.",
    span,
    Shape.PERMUTATION,
    _input_a_shader(span, lambda ctx, s, o, n: addition_shader_func(ctx, s, o, n, -1)),
    required_context_keys=(INPUT_RANGE_A,)))

FlipBelowFamily = generate_family(GateKind.FLIP_BELOW, 1, MAX_SPAN, lambda span: Gate(
    GateKind.FLIP_BELOW,
    "Flip<A",
    "Flip Gate [input A]",
    "Reverses the order of the states below 'input A', leaving the others alone.",
    span,
    Shape.PERMUTATION,
    _input_a_shader(span, flip_shader_func),
    required_context_keys=(INPUT_RANGE_A,)))

FlipAtOrBelowFamily = generate_family(GateKind.FLIP_AT_OR_BELOW, 1, MAX_SPAN, lambda span: Gate(
    GateKind.FLIP_AT_OR_BELOW,
    "Flip≤A",
    "Flip Gate [input A]",
    "Reverses the order of the states at or below 'input A', leaving the others alone.",
    span,
    Shape.PERMUTATION,
    _input_a_shader(span, lambda ctx, s, o, n: flip_shader_func(ctx, s, o, n, inclusive=True)),
    required_context_keys=(INPUT_RANGE_A,)))


def _comparison_gate(kind: GateKind, symbol: str, name: str, blurb: str,
                     compare: Callable[[Expr, Expr], Expr]) -> Gate:
    return Gate(
        kind,
        symbol,
        name,
        blurb,
        1,
        Shape.GENERAL,
        comparison_shader(compare, kind.value),
        required_context_keys=(INPUT_RANGE_A, INPUT_RANGE_B),
        sized=False)


ALessThanB = _comparison_gate(
    GateKind.A_LESS_THAN_B, "⊕A<B", "Less-Than Gate [inputs A, B]",
    "Toggles the target if 'input A' is less than 'input B'.",
    lambda a, b: a < b)

AGreaterThanB = _comparison_gate(
    GateKind.A_GREATER_THAN_B, "⊕A>B", "Greater-Than Gate [inputs A, B]",
    "Toggles the target if 'input A' is greater than 'input B'.",
    lambda a, b: a > b)

ALessThanOrEqualToB = _comparison_gate(
    GateKind.A_AT_MOST_B, "⊕A≤B", "At-Most Gate [inputs A, B]",
    "Toggles the target if 'input A' is at most 'input B'.",
    lambda a, b: a <= b)

AGreaterThanOrEqualToB = _comparison_gate(
    GateKind.A_AT_LEAST_B, "⊕A≥B", "At-Least Gate [inputs A, B]",
    "Toggles the target if 'input A' is at least 'input B'.",
    lambda a, b: a >= b)

AEqualToB = _comparison_gate(
    GateKind.A_EQUAL_TO_B, "⊕A=B", "Equality Gate [inputs A, B]",
    "Toggles the target if 'input A' is equal to 'input B'.",
    eq)

ANotEqualToB = _comparison_gate(
    GateKind.A_NOT_EQUAL_TO_B, "⊕A≠B", "Inequality Gate [inputs A, B]",
    "Toggles the target if 'input A' is not equal to 'input B'.",
    ne)

FAMILIES = (
    IncrementFamily,
    DecrementFamily,
    AdditionFamily,
    SubtractionFamily,
    PlusAFamily,
    MinusAFamily,
    FlipBelowFamily,
    FlipAtOrBelowFamily,
)

COMPARISONS = (
    ALessThanB,
    AGreaterThanB,
    AEqualToB,
    ANotEqualToB,
    ALessThanOrEqualToB,
    AGreaterThanOrEqualToB,
)

ALL = tuple(g for fam in FAMILIES for g in fam.all) + COMPARISONS
