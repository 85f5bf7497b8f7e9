"""Ket programs: the three canonical shapes of a per-amplitude transform.

Every program reads the state texture through the vec2 input part named
``ket`` and writes a texture of the same size. For the output pixel holding
global index ``full_out_id`` the body sees

    out_id = mod(floor(full_out_id / 2^row), 2^span)

i.e. the value of the gate's own qubit slice, and ``inp(k)`` reads the
amplitude of the basis state that differs only by having that slice set to
``k``.

  GENERAL      body returns the new amplitude (vec2) from inp(...) and out_id
  PERMUTATION  body returns the out_id whose amplitude moves here (preimage)
  PHASE        body returns the unit vec2 the current amplitude is multiplied by
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

from ket_engine.coder.parts import ShaderPart
from ket_engine.coder.texture import PixelFormat, size_power_of
from ket_engine.coder.types import BYTE_CODERS, FLOAT_CODERS, ShaderCoder
from ket_engine.errors import ContractViolation
from ket_engine.shader.args import ShaderArg
from ket_engine.shader.expr import Body, Call, Expr, Ref

if TYPE_CHECKING:
    from ket_engine.circuit.context import CircuitEvalContext

log = logging.getLogger(__name__)

KET_INPUT = "ket"
ROW_POW = "_gen_row_pow"
SPAN = "span"
BUILTIN_NAMES = frozenset({"out_id", "full_out_id", SPAN, ROW_POW})

_RESULT_KIND = {"general": "vec2", "permutation": "float", "phase": "vec2"}
_CODER_BY_FORMAT = {
    PixelFormat.FLOAT_RGBA: FLOAT_CODERS,
    PixelFormat.BYTE_RGBA: BYTE_CODERS,
}


class Shape(enum.Enum):
    GENERAL = "general"
    PERMUTATION = "permutation"
    PHASE = "phase"


@dataclass(frozen=True, eq=False)
class ProgramDescriptor:
    """A fully bound program, ready for dispatch against its state texture."""

    name: str
    shape: Shape
    body: Body
    coder: ShaderCoder
    input_parts: tuple[tuple[str, ShaderPart], ...]
    output_part: ShaderPart
    args: tuple[ShaderArg, ...]

    def arg(self, name: str) -> ShaderArg:
        for a in self.args:
            if a.name == name:
                return a
        raise KeyError(name)

    def arg_value(self, name: str):
        return self.arg(name).value

    def bindings(self) -> list[tuple[str, object]]:
        return [(a.name, a.value) for a in self.args]

    @property
    def span(self) -> int:
        return size_power_of(int(self.arg_value(SPAN)))

    @property
    def row(self) -> int:
        return size_power_of(int(self.arg_value(ROW_POW)))

    @property
    def state(self):
        return self.arg_value(f"_gen_{KET_INPUT}_tex")

    def source(self) -> str:
        """GLSL fragment source for this program."""
        from ket_engine.shader.glsl import lower
        return lower(self)

    def __repr__(self) -> str:
        return f"ProgramDescriptor({self.name!r}, {self.shape.name}, span={self.span}, row={self.row})"


@dataclass(frozen=True, eq=False)
class KetShader:
    """An unbound program: shape + body, waiting for its arguments."""

    shape: Shape
    body: Body
    span: int | None = None
    name: str = "ket"

    def __post_init__(self):
        self.body.validate()
        want = _RESULT_KIND[self.shape.value]
        if self.body.result.kind != want:
            raise TypeError(
                f"{self.shape.name} body must return a {want}, got {self.body.result.kind}"
            )
        if self.shape is not Shape.GENERAL:
            if any(isinstance(n, Call) and n.fn == "inp" for n in self.body.nodes()):
                raise TypeError(f"{self.shape.name} body may not read amplitudes with inp()")
        for name in self.body.uniforms():
            if name in BUILTIN_NAMES or name.startswith("_gen_"):
                raise TypeError(f"uniform name {name!r} is reserved")
        for node in self.body.nodes():
            if isinstance(node, Ref) and node.scope == "builtin" and node.name not in BUILTIN_NAMES:
                raise TypeError(f"unknown builtin {node.name!r}")

    def with_args(self, *args: ShaderArg) -> ProgramDescriptor:
        args = list(args)
        names = [a.name for a in args]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ContractViolation(f"{self.name}: arguments bound twice: {dupes}")

        if SPAN not in names:
            if self.span is None:
                raise ContractViolation(f"{self.name}: no span given at construction or binding")
            args.append(ShaderArg.float(SPAN, 1 << self.span))
        elif self.span is not None and args[names.index(SPAN)].value != float(1 << self.span):
            raise ContractViolation(
                f"{self.name}: bound span {args[names.index(SPAN)].value} != 2^{self.span}"
            )

        by_name = {a.name: a for a in args}
        state_arg = by_name.get(f"_gen_{KET_INPUT}_tex")
        if state_arg is None or state_arg.kind != "texture":
            raise ContractViolation(f"{self.name}: state texture is not bound; use ket_args()")
        coder = _CODER_BY_FORMAT[state_arg.value.pixel_format]
        input_part = coder.vec2.input_part_getter(KET_INPUT)
        output_part = coder.vec2.output_part

        expected: dict[str, str] = {SPAN: "float", ROW_POW: "float"}
        for a in input_part.args_for(state_arg.value) + output_part.args_for(state_arg.value):
            expected[a.name] = a.kind
        expected.update(self.body.uniforms())

        missing = sorted(set(expected) - set(by_name))
        if missing:
            raise ContractViolation(f"{self.name}: unbound uniform(s) {missing}")
        extra = sorted(set(by_name) - set(expected))
        if extra:
            raise ContractViolation(f"{self.name}: unknown argument(s) {extra}")
        for n, kind in expected.items():
            if by_name[n].kind != kind:
                raise ContractViolation(
                    f"{self.name}: argument {n!r} is a {by_name[n].kind}, expected {kind}"
                )
        _check_pow2(self.name, SPAN, by_name[SPAN].value, minimum=2)
        _check_pow2(self.name, ROW_POW, by_name[ROW_POW].value, minimum=1)

        return ProgramDescriptor(
            name=self.name,
            shape=self.shape,
            body=self.body,
            coder=coder,
            input_parts=((KET_INPUT, input_part),),
            output_part=output_part,
            args=tuple(args),
        )


def _check_pow2(program: str, name: str, value: float, minimum: int) -> None:
    v = int(value)
    if v != value or v < minimum or v & (v - 1):
        raise ContractViolation(f"{program}: {name}={value} is not a power of two >= {minimum}")


def _as_body(body: Union[Body, Expr]) -> Body:
    return body if isinstance(body, Body) else Body(body)


def ket_shader(body: Union[Body, Expr], span: int | None = None, name: str = "ket") -> KetShader:
    """General transform: the body returns the new amplitude."""
    return KetShader(Shape.GENERAL, _as_body(body), span, name)


def ket_shader_permute(body: Union[Body, Expr], span: int | None = None,
                       name: str = "ket_permute") -> KetShader:
    """Permutation: the body returns the out_id whose amplitude lands here."""
    return KetShader(Shape.PERMUTATION, _as_body(body), span, name)


def ket_shader_phase(body: Union[Body, Expr], span: int | None = None,
                     name: str = "ket_phase") -> KetShader:
    """Phase: the body returns the unit multiplier for the current amplitude."""
    return KetShader(Shape.PHASE, _as_body(body), span, name)


def check_span(span: int, max_span: int) -> None:
    if not isinstance(span, int) or isinstance(span, bool):
        raise ContractViolation(f"span must be an int, got {span!r}")
    if span < 1 or span > max_span:
        raise ContractViolation(f"span {span} out of range [1, {max_span}]")


def ket_args(ctx: "CircuitEvalContext", span: int | None = None) -> list[ShaderArg]:
    """Bindings every ket program needs: state in/out, row and (optionally) span."""
    if ctx.row < 0 or ctx.row >= ctx.qubit_count:
        raise ContractViolation(f"row {ctx.row} out of range [0, {ctx.qubit_count})")
    vec2 = ctx.coder.vec2
    args = [
        *vec2.input_part_getter(KET_INPUT).args_for(ctx.state),
        *vec2.output_part.args_for(ctx.state),
        ShaderArg.float(ROW_POW, 1 << ctx.row),
    ]
    if span is not None:
        check_span(span, ctx.config.max_span)
        if ctx.row + span > ctx.qubit_count:
            raise ContractViolation(
                f"span {span} at row {ctx.row} exceeds {ctx.qubit_count} qubit(s)"
            )
        args.append(ShaderArg.float(SPAN, 1 << span))
    log.debug("ket_args row=%d span=%s state=%r", ctx.row, span, ctx.state)
    return args
