"""Lower a ProgramDescriptor to GLSL ES 1.00 fragment source."""
from __future__ import annotations

from typing import Callable

from ket_engine.shader.expr import BinOp, Body, Call, Compare, Const, Expr, Ref, Select
from ket_engine.shader.ket import KET_INPUT, ROW_POW, SPAN, ProgramDescriptor, Shape

HEADER = """precision highp float;
precision highp int;"""

KET_HELPERS = f"""
    ///////////// ket ////////////
    uniform float {SPAN};
    uniform float {ROW_POW};
    float full_out_id;
    float out_id;

    vec2 cmul(vec2 a, vec2 b) {{
        return vec2(a.x*b.x - a.y*b.y, a.x*b.y + a.y*b.x);
    }}

    vec2 inp(float k) {{
        return read_{KET_INPUT}(full_out_id + (k - out_id) * {ROW_POW});
    }}"""

_SHAPE_FUNC = {
    Shape.GENERAL: ("vec2", "_gen_transform", "return _gen_transform();"),
    Shape.PERMUTATION: ("float", "_gen_permute", "return inp(_gen_permute());"),
    Shape.PHASE: ("vec2", "_gen_phase", f"return cmul(read_{KET_INPUT}(k), _gen_phase());"),
}


def _const(e: Const) -> str:
    v = e.value
    text = f"{v:.1f}" if v == int(v) and abs(v) < 1e15 else repr(v)
    return f"({text})" if v < 0 else text


def _ref(e: Ref) -> str:
    return e.name


def _binop(e: BinOp) -> str:
    return f"({emit(e.lhs)} {e.op} {emit(e.rhs)})"


def _compare(e: Compare) -> str:
    return f"({emit(e.lhs)} {e.op} {emit(e.rhs)})"


def _call(e: Call) -> str:
    return f"{e.fn}({', '.join(emit(a) for a in e.args)})"


def _select(e: Select) -> str:
    return f"({emit(e.cond)} ? {emit(e.if_true)} : {emit(e.if_false)})"


_EMITTERS: dict[type, Callable] = {
    Const: _const,
    Ref: _ref,
    BinOp: _binop,
    Compare: _compare,
    Call: _call,
    Select: _select,
}


def emit(e: Expr) -> str:
    """GLSL text of one expression."""
    try:
        return _EMITTERS[type(e)](e)
    except KeyError:
        raise TypeError(f"cannot lower {type(e).__name__}") from None


def emit_body(body: Body, indent: str = "        ") -> str:
    lines = [f"{indent}float {name} = {emit(e)};" for name, e in body.lets]
    lines.append(f"{indent}return {emit(body.result)};")
    return "\n".join(lines)


def lower(program: ProgramDescriptor) -> str:
    parts = [p for _, p in program.input_parts] + [program.output_part]
    libs: list[str] = []
    for p in parts:
        for lib in p.libs:
            if lib not in libs:
                libs.append(lib)

    uniforms = "\n".join(
        f"    uniform {kind} {name};" for name, kind in program.body.uniforms().items()
    )
    ret_type, func, output_ret = _SHAPE_FUNC[program.shape]
    main = f"""
    ///////////// {program.name} ({program.shape.value}) ////////////
{uniforms}

    {ret_type} {func}() {{
{emit_body(program.body)}
    }}

    vec2 outputFor(float k) {{
        full_out_id = k;
        out_id = mod(floor(k / {ROW_POW}), {SPAN});
        {output_ret}
    }}"""

    return "\n".join([HEADER, *libs, *(p.code for p in parts), KET_HELPERS, main]) + "\n"
