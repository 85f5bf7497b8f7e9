"""Shader parts: the read/write snippets that sit between a program and its textures.

Some devices cannot render into float textures, so values may have to be
packed into bytes before storing and unpacked after sampling. Instead of
every program doing that itself, each input and output goes through a part
taken from the active coder.

Every input part named ``x`` exposes to the program:
    float/vec2/vec4 read_x(float k)   value at logical index k
    float len_x()                      number of logical elements
Every output part expects the program to define ``outputFor(float k)`` and
provides ``main()`` plus ``len_output()``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from ket_engine.shader.args import ShaderArg


@dataclass(frozen=True)
class ShaderPart:
    code: str
    libs: tuple[str, ...] = ()
    args_for: Callable[..., list[ShaderArg]] = field(default=lambda texture: [])


# ── helpers ──────────────────────────────────────────────────────────

def _pre(name: str) -> str:
    return f"_gen_{name}"


def _input_args(name: str) -> Callable[..., list[ShaderArg]]:
    pre = _pre(name)

    def args_for(texture) -> list[ShaderArg]:
        return [
            ShaderArg.texture(f"{pre}_tex", texture),
            ShaderArg.vec2(f"{pre}_size", texture.width, texture.height),
        ]
    return args_for


def _output_args(texture) -> list[ShaderArg]:
    return [
        ShaderArg.vec2("_gen_output_size", texture.width, texture.height),
        ShaderArg.float("_gen_secret_half", 0.5),
    ]


def _input_head(name: str, title: str) -> str:
    pre = _pre(name)
    return f"""
        ///////////// {title}({name}) ////////////
        uniform sampler2D {pre}_tex;
        uniform vec2 {pre}_size;

        vec4 {pre}_pixel(float p) {{
            vec2 uv = vec2(mod(p, {pre}_size.x) + 0.5,
                           floor(p / {pre}_size.x) + 0.5) / {pre}_size;
            return texture2D({pre}_tex, uv);
        }}

        float len_{name}() {{
            return {pre}_size.x * {pre}_size.y{{per_pixel}};
        }}"""


def _output_main(title: str, value_type: str, write: str, per_pixel: str = "") -> str:
    return f"""
    ///////////// {title} ////////////
    {value_type} outputFor(float k);

    uniform vec2 _gen_output_size;
    uniform float _gen_secret_half;

    float len_output() {{
        return _gen_output_size.x * _gen_output_size.y{per_pixel};
    }}

    void main() {{
        vec2 xy = gl_FragCoord.xy - vec2(_gen_secret_half, _gen_secret_half);
        float k = xy.y * _gen_output_size.x + xy.x;
        {write}
    }}"""


# ── booleans (shared by both coder families) ─────────────────────────

def bool_input_part(name: str) -> ShaderPart:
    pre = _pre(name)
    return ShaderPart(f"""
        ///////////// boolInput({name}) ////////////
        uniform sampler2D {pre}_tex;
        uniform vec2 {pre}_size;

        float read_{name}(float k) {{
            vec2 uv = vec2(mod(k, {pre}_size.x) + 0.5,
                           floor(k / {pre}_size.x) + 0.5) / {pre}_size;
            return float(texture2D({pre}_tex, uv).x == 1.0);
        }}

        float len_{name}() {{
            return {pre}_size.x * {pre}_size.y;
        }}""",
        (),
        _input_args(name))


BOOL_OUTPUT_PART = ShaderPart(
    _output_main("BOOL_OUTPUT_AS_BYTE", "bool",
                 "gl_FragColor = vec4(float(outputFor(k)), 0.0, 0.0, 0.0);"),
    (),
    _output_args)


# ── float textures ───────────────────────────────────────────────────

_SWIZZLE = {"float": ".x", "vec2": ".xy", "vec4": ""}


def _float_input_part_getter(value_type: str) -> Callable[[str], ShaderPart]:
    def getter(name: str) -> ShaderPart:
        pre = _pre(name)
        head = _input_head(name, f"{value_type}InputFromFloats").replace("{per_pixel}", "")
        return ShaderPart(head + f"""

        {value_type} read_{name}(float k) {{
            return {pre}_pixel(k){_SWIZZLE[value_type]};
        }}""",
            (),
            _input_args(name))
    return getter


float_input_part_from_floats = _float_input_part_getter("float")
vec2_input_part_from_floats = _float_input_part_getter("vec2")
vec4_input_part_from_floats = _float_input_part_getter("vec4")

FLOAT_OUTPUT_PART_AS_FLOATS = ShaderPart(
    _output_main("FLOAT_OUTPUT_AS_FLOATS", "float",
                 "gl_FragColor = vec4(outputFor(k), 0.0, 0.0, 0.0);"),
    (),
    _output_args)

VEC2_OUTPUT_PART_AS_FLOATS = ShaderPart(
    _output_main("VEC2_OUTPUT_AS_FLOATS", "vec2",
                 "gl_FragColor = vec4(outputFor(k), 0.0, 0.0);"),
    (),
    _output_args)

VEC4_OUTPUT_PART_AS_FLOATS = ShaderPart(
    _output_main("VEC4_OUTPUT_AS_FLOATS", "vec4",
                 "gl_FragColor = outputFor(k);"),
    (),
    _output_args)


# ── byte-packed textures ─────────────────────────────────────────────
# A float32 is stored as its four little-endian IEEE-754 bytes in the
# RGBA channels of one pixel: x holds the low mantissa byte, w the sign bit
# and the top seven exponent bits. Subnormals are written with a zero exponent;
# -0.0 is written as +0.0 since GLSL ES 1.00 cannot observe the sign of zero,
# and infinities and NaN have no packed form.

BYTES_TO_FLOAT_LIB = """
    float _gen_bytes_to_float(vec4 v) {
        vec4 b = floor(v * 255.0 + 0.5);
        float sign = b.w >= 128.0 ? -1.0 : 1.0;
        float exponent = mod(b.w, 128.0) * 2.0 + floor(b.z / 128.0);
        float mantissa = mod(b.z, 128.0) * 65536.0 + b.y * 256.0 + b.x;
        if (exponent == 0.0) {
            return sign * mantissa * exp2(-149.0);
        }
        return sign * (1.0 + mantissa * exp2(-23.0)) * exp2(exponent - 127.0);
    }"""

FLOAT_TO_BYTES_LIB = """
    vec4 _gen_float_to_bytes(float f) {
        if (f == 0.0) {
            return vec4(0.0);
        }
        float sign = f < 0.0 ? 128.0 : 0.0;
        float a = abs(f);
        if (a < exp2(-126.0)) {
            float d = floor(a * exp2(126.0) * 8388608.0 + 0.5);
            return vec4(mod(d, 256.0), mod(floor(d / 256.0), 256.0), floor(d / 65536.0), sign) / 255.0;
        }
        float exponent = floor(log2(a));
        float mantissa = a / exp2(exponent) - 1.0;
        if (mantissa < 0.0) {
            exponent -= 1.0;
            mantissa = a / exp2(exponent) - 1.0;
        }
        if (mantissa >= 1.0) {
            exponent += 1.0;
            mantissa = a / exp2(exponent) - 1.0;
        }
        float biased = exponent + 127.0;
        float m = floor(mantissa * 8388608.0 + 0.5);
        vec4 b;
        b.x = mod(m, 256.0);
        b.y = mod(floor(m / 256.0), 256.0);
        b.z = floor(m / 65536.0) + mod(biased, 2.0) * 128.0;
        b.w = floor(biased / 2.0) + sign;
        return b / 255.0;
    }"""

_BYTE_READERS = {
    "float": ("", "return _gen_bytes_to_float({pre}_pixel(k));"),
    "vec2": (" / 2.0", """return vec2(_gen_bytes_to_float({pre}_pixel(k * 2.0)),
                        _gen_bytes_to_float({pre}_pixel(k * 2.0 + 1.0)));"""),
    "vec4": (" / 4.0", """return vec4(_gen_bytes_to_float({pre}_pixel(k * 4.0)),
                        _gen_bytes_to_float({pre}_pixel(k * 4.0 + 1.0)),
                        _gen_bytes_to_float({pre}_pixel(k * 4.0 + 2.0)),
                        _gen_bytes_to_float({pre}_pixel(k * 4.0 + 3.0)));"""),
}


def _byte_input_part_getter(value_type: str) -> Callable[[str], ShaderPart]:
    per_pixel, read = _BYTE_READERS[value_type]

    def getter(name: str) -> ShaderPart:
        pre = _pre(name)
        head = _input_head(name, f"{value_type}InputFromBytes").replace("{per_pixel}", per_pixel)
        return ShaderPart(head + f"""

        {value_type} read_{name}(float k) {{
            {read.format(pre=pre)}
        }}""",
            (BYTES_TO_FLOAT_LIB,),
            _input_args(name))
    return getter


float_input_part_from_bytes = _byte_input_part_getter("float")
vec2_input_part_from_bytes = _byte_input_part_getter("vec2")
vec4_input_part_from_bytes = _byte_input_part_getter("vec4")

FLOAT_OUTPUT_PART_AS_BYTES = ShaderPart(
    _output_main("FLOAT_OUTPUT_AS_BYTES", "float",
                 "gl_FragColor = _gen_float_to_bytes(outputFor(k));"),
    (FLOAT_TO_BYTES_LIB,),
    _output_args)

VEC2_OUTPUT_PART_AS_BYTES = ShaderPart(
    _output_main("VEC2_OUTPUT_AS_BYTES", "vec2", """vec2 v = outputFor(floor(k / 2.0));
        float c = mod(k, 2.0) == 0.0 ? v.x : v.y;
        gl_FragColor = _gen_float_to_bytes(c);""", " / 2.0"),
    (FLOAT_TO_BYTES_LIB,),
    _output_args)

VEC4_OUTPUT_PART_AS_BYTES = ShaderPart(
    _output_main("VEC4_OUTPUT_AS_BYTES", "vec4", """vec4 v = outputFor(floor(k / 4.0));
        vec4 pick = vec4(equal(vec4(0.0, 1.0, 2.0, 3.0), vec4(mod(k, 4.0))));
        gl_FragColor = _gen_float_to_bytes(dot(v, pick));""", " / 4.0"),
    (FLOAT_TO_BYTES_LIB,),
    _output_args)
