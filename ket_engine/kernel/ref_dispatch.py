"""Reference dispatcher: runs a ProgramDescriptor on the host with numpy.

Executes a program the way the device does. Every output pixel is computed
independently from the frozen input texture, all index arithmetic is done in
float32, and the result goes to a new texture (input and output never alias).
"""
from __future__ import annotations

import logging
import operator
from typing import Callable

import numpy as np

from ket_engine.coder.texture import Texture
from ket_engine.coder.types import complex_to_vec2, vec2_to_complex
from ket_engine.errors import NumericBoundaryViolation
from ket_engine.shader.expr import BinOp, Body, Call, Compare, Const, Expr, Ref, Select
from ket_engine.shader.ket import ROW_POW, SPAN, ProgramDescriptor, Shape

log = logging.getLogger(__name__)

F32 = np.float32


# ── expression evaluation ────────────────────────────────────────────

def _glsl_mod(a, b):
    # GLSL: mod(x, y) = x - y * floor(x / y)
    return a - b * np.floor(a / b)


_BINOPS = {"+": operator.add, "-": operator.sub, "*": operator.mul, "/": operator.truediv}
_COMPARES = {
    "<": operator.lt, "<=": operator.le, ">": operator.gt, ">=": operator.ge,
    "==": operator.eq, "!=": operator.ne,
}
_CALLS: dict[str, Callable] = {
    "mod": _glsl_mod,
    "floor": np.floor,
    "abs": np.abs,
    "cos": np.cos,
    "sin": np.sin,
    "float": lambda c: np.asarray(c).astype(F32),
    "vec2": lambda x, y: (np.asarray(x, dtype=F32) + 1j * np.asarray(y, dtype=F32)).astype(np.complex64),
    "cmul": lambda a, b: (a * b).astype(np.complex64),
}


class _Env:
    def __init__(self, values: dict, inp: Callable | None):
        self.values = values
        self.inp = inp


def _eval(e: Expr, env: _Env):
    if isinstance(e, Const):
        return F32(e.value)
    if isinstance(e, Ref):
        try:
            return env.values[e.name]
        except KeyError:
            raise NameError(f"{e.scope} {e.name!r} has no value") from None
    if isinstance(e, BinOp):
        return _BINOPS[e.op](_eval(e.lhs, env), _eval(e.rhs, env))
    if isinstance(e, Compare):
        return _COMPARES[e.op](_eval(e.lhs, env), _eval(e.rhs, env))
    if isinstance(e, Select):
        return np.where(_eval(e.cond, env), _eval(e.if_true, env), _eval(e.if_false, env))
    if isinstance(e, Call):
        args = [_eval(a, env) for a in e.args]
        if e.fn == "inp":
            if env.inp is None:
                raise NameError("inp() is not available in this program shape")
            return env.inp(args[0])
        return _CALLS[e.fn](*args)
    raise TypeError(f"cannot evaluate {type(e).__name__}")


def evaluate_expr(e: Expr, values: dict, inp: Callable | None = None):
    """Evaluate one expression against named float32/complex64 values."""
    return _eval(e, _Env(values, inp))


def _eval_body(body: Body, env: _Env, n: int) -> np.ndarray:
    for name, e in body.lets:
        env.values[name] = np.broadcast_to(_eval(e, env), (n,))
    return np.broadcast_to(_eval(body.result, env), (n,))


# ── program execution ────────────────────────────────────────────────

def _uniform_values(program: ProgramDescriptor) -> dict:
    values = {}
    for a in program.args:
        if a.kind == "float":
            values[a.name] = F32(a.value)
        elif a.kind == "vec2":
            values[a.name] = np.complex64(complex(*a.value))
        elif a.kind == "vec4":
            values[a.name] = np.asarray(a.value, dtype=F32)
    return values


def _indices(full: np.ndarray, n: int, what: str) -> np.ndarray:
    if not np.all(np.isfinite(full)) or np.any(full != np.floor(full)):
        raise NumericBoundaryViolation(f"{what}: non-integer amplitude index")
    idx = full.astype(np.int64)
    if idx.min(initial=0) < 0 or idx.max(initial=0) >= n:
        raise NumericBoundaryViolation(f"{what}: amplitude index outside [0, {n})")
    return idx


def _run(program: ProgramDescriptor, amps: np.ndarray | None, n: int):
    """Evaluate the body for all n output pixels. Returns (result, env values)."""
    values = _uniform_values(program)
    full = np.arange(n, dtype=F32)
    row_pow = values[ROW_POW]
    span_pow = values[SPAN]
    out_id = _glsl_mod(np.floor(full / row_pow), span_pow)
    values.update(full_out_id=full, out_id=out_id)

    inp = None
    if amps is not None:
        def inp(k):
            src = full + (np.asarray(k, dtype=F32) - out_id) * row_pow
            return amps[_indices(np.broadcast_to(src, (n,)), n, program.name)]

    result = _eval_body(program.body, _Env(values, inp), n)
    return result, values


def dispatch(program: ProgramDescriptor) -> Texture:
    """Run the program against its bound state texture and return the output texture."""
    coder = program.coder.vec2
    state = program.state
    amps = vec2_to_complex(coder.texture_to_data(state))
    n = len(amps)
    result, values = _run(program, amps, n)

    if program.shape is Shape.GENERAL:
        out = result
    elif program.shape is Shape.PERMUTATION:
        src = values["full_out_id"] + (result - values["out_id"]) * values[ROW_POW]
        out = amps[_indices(src, n, program.name)]
    else:
        out = amps * result

    log.debug("dispatched %r over %d amplitude(s)", program, n)
    return coder.data_to_texture(complex_to_vec2(np.asarray(out, dtype=np.complex64)))


def run_on_amplitudes(program: ProgramDescriptor) -> np.ndarray:
    """Dispatch and decode: the new amplitudes as complex64."""
    return vec2_to_complex(program.coder.vec2.texture_to_data(dispatch(program)))


def check_program(program: ProgramDescriptor, phase_tolerance: float = 1e-5) -> None:
    """Verify permutation/phase bodies over the whole state; raise on violation."""
    if program.shape is Shape.GENERAL:
        return
    n = 1 << program.coder.vec2.array_power_size_of_texture(program.state)
    result, values = _run(program, None, n)

    if program.shape is Shape.PERMUTATION:
        span_pow = values[SPAN]
        if not np.all(np.isfinite(result)) or np.any(result != np.floor(result)):
            raise NumericBoundaryViolation(f"{program.name}: permutation returned a non-integer")
        if np.any(result < 0) or np.any(result >= span_pow):
            bad = result[(result < 0) | (result >= span_pow)][0]
            raise NumericBoundaryViolation(
                f"{program.name}: permutation returned {bad}, outside [0, {int(span_pow)})"
            )
        src = (values["full_out_id"] + (result - values["out_id"]) * values[ROW_POW]).astype(np.int64)
        if len(np.unique(src)) != n:
            raise NumericBoundaryViolation(f"{program.name}: permutation is not a bijection")
    else:
        err = np.max(np.abs(np.abs(result.astype(np.complex128)) - 1.0), initial=0.0)
        if err > phase_tolerance:
            raise NumericBoundaryViolation(
                f"{program.name}: phase magnitude deviates from 1 by {err:.3g}"
            )
