"""Phase-gradient gates: |k⟩ → e^{±iπk/2^n}|k⟩ over an n-qubit block."""
from __future__ import annotations

import math

import numpy as np

from ket_engine.circuit.context import CircuitEvalContext
from ket_engine.config import DEFAULT_CONFIG
from ket_engine.gates.gate import Gate, GateKind, generate_family
from ket_engine.kernel.matrix import generate_diagonal
from ket_engine.shader.args import ShaderArg
from ket_engine.shader.expr import OUT_ID, cos, sin, uniform, vec2
from ket_engine.shader.ket import ProgramDescriptor, Shape, ket_args, ket_shader_phase

MAX_SPAN = DEFAULT_CONFIG.max_span
PHASE_MATRIX_SPAN_LIMIT = 4

_ANGLE = OUT_ID * uniform("factor")

PHASE_GRADIENT_SHADER = ket_shader_phase(vec2(cos(_ANGLE), sin(_ANGLE)), name="phase_gradient")


def phase_gradient_shader_func(ctx: CircuitEvalContext, span: int, sign: int) -> ProgramDescriptor:
    return PHASE_GRADIENT_SHADER.with_args(
        *ket_args(ctx, span),
        ShaderArg.float("factor", sign * math.pi / (1 << span)))


def make_phase_gradient_matrix(span: int, sign: int) -> np.ndarray:
    return generate_diagonal(1 << span, lambda k: np.exp(1j * sign * math.pi * k / (1 << span)))


PhaseGradientFamily = generate_family(GateKind.PHASE_GRADIENT, 1, MAX_SPAN, lambda span: Gate(
    GateKind.PHASE_GRADIENT,
    "Grad^½",
    "Half Turn Phase Gradient Gate",
    "Phases each state by an amount proportional to its little-endian value.",
    span,
    Shape.PHASE,
    lambda ctx: phase_gradient_shader_func(ctx, span, +1),
    known_matrix=make_phase_gradient_matrix(span, +1) if span < PHASE_MATRIX_SPAN_LIMIT else None))

PhaseUngradientFamily = generate_family(GateKind.PHASE_UNGRADIENT, 1, MAX_SPAN, lambda span: Gate(
    GateKind.PHASE_UNGRADIENT,
    "Grad^-½",
    "Inverse Half Turn Phase Gradient Gate",
    "Counter-phases each state by an amount proportional to its little-endian value.",
    span,
    Shape.PHASE,
    lambda ctx: phase_gradient_shader_func(ctx, span, -1),
    known_matrix=make_phase_gradient_matrix(span, -1) if span < PHASE_MATRIX_SPAN_LIMIT else None))

FAMILIES = (PhaseGradientFamily, PhaseUngradientFamily)

ALL = tuple(g for fam in FAMILIES for g in fam.all)
