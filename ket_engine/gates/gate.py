"""Gate metadata and families.

A Gate carries what the evaluator needs: its size, which input ranges it
reads, the shape of program it produces, an optional dense matrix for small
spans, and the function that synthesizes its program for a context.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from ket_engine.errors import ContractViolation
from ket_engine.shader.ket import ProgramDescriptor, Shape


class GateKind(enum.Enum):
    INCREMENT = "inc"
    DECREMENT = "dec"
    ADDITION = "add"
    SUBTRACTION = "sub"
    PLUS_A = "+=A"
    MINUS_A = "-=A"
    FLIP_BELOW = "Flip<A"
    FLIP_AT_OR_BELOW = "Flip<=A"
    A_LESS_THAN_B = "^A<B"
    A_GREATER_THAN_B = "^A>B"
    A_AT_MOST_B = "^A<=B"
    A_AT_LEAST_B = "^A>=B"
    A_EQUAL_TO_B = "^A=B"
    A_NOT_EQUAL_TO_B = "^A!=B"
    PHASE_GRADIENT = "PhaseGradient"
    PHASE_UNGRADIENT = "PhaseUngradient"


@dataclass(frozen=True, eq=False)
class Gate:
    kind: GateKind
    symbol: str
    name: str
    blurb: str
    span: int
    shape: Shape
    shader_func: Callable[..., ProgramDescriptor]
    required_context_keys: tuple[str, ...] = ()
    known_matrix: Optional[np.ndarray] = None
    sized: bool = True     # serialized id carries the span

    @property
    def serialized_id(self) -> str:
        return f"{self.kind.value}{self.span}" if self.sized else self.kind.value

    def custom_shader(self, ctx) -> ProgramDescriptor:
        return self.shader_func(ctx)

    def __repr__(self) -> str:
        return f"Gate({self.serialized_id!r})"


@dataclass(frozen=True, eq=False)
class GateFamily:
    """One gate per span in [min_span, max_span], sharing a body generator."""

    kind: GateKind
    min_span: int
    max_span: int
    all: tuple[Gate, ...]

    def of_size(self, span: int) -> Gate:
        if not self.min_span <= span <= self.max_span:
            raise ContractViolation(
                f"{self.kind.value}: span {span} out of range [{self.min_span}, {self.max_span}]"
            )
        return self.all[span - self.min_span]


def generate_family(kind: GateKind, min_span: int, max_span: int,
                    maker: Callable[[int], Gate]) -> GateFamily:
    gates = tuple(maker(span) for span in range(min_span, max_span + 1))
    for span, g in zip(range(min_span, max_span + 1), gates):
        if g.span != span or g.kind is not kind:
            raise ValueError(f"family {kind.value} produced {g!r} for span {span}")
    return GateFamily(kind, min_span, max_span, gates)
