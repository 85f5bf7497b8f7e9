"""Type coders: round trips, pixel layouts, and contract violations."""
import numpy as np
import pytest

from ket_engine.coder.texture import PixelFormat, Texture, dims_for_power
from ket_engine.coder.types import (
    BYTE_CODERS, FLOAT_CODERS, complex_to_vec2, decode, encode, get_coder,
    required_pixel_power, texture_layout, vec2_to_complex,
)
from ket_engine.errors import ContractViolation

CODERS = [FLOAT_CODERS, BYTE_CODERS]


def _sample(type_name: str, n: int, seed: int = 3) -> np.ndarray:
    rng = np.random.default_rng(seed)
    if type_name == "bool":
        return rng.integers(0, 2, size=n).astype(bool)
    width = {"float": 1, "vec2": 2, "vec4": 4}[type_name]
    vals = rng.normal(size=n * width).astype(np.float32) * 100
    return vals if width == 1 else vals.reshape(n, width)


# ── round trips ──────────────────────────────────────────────────────

@pytest.mark.parametrize("coder", CODERS, ids=lambda c: c.name)
@pytest.mark.parametrize("type_name", ["bool", "float", "vec2", "vec4"])
@pytest.mark.parametrize("n", [1, 2, 8, 64])
def test_round_trip(coder, type_name, n):
    single = coder.of(type_name)
    data = _sample(type_name, n)
    tex = encode(single, data)
    assert tex.pixel_format is single.pixel_format
    assert single.array_power_size_of_texture(tex) == int(np.log2(n))
    back = decode(single, tex)
    np.testing.assert_array_equal(back, data)


def test_round_trip_special_floats():
    data = np.array([0.0, -0.0, 1e-40, -3.5e38, np.inf, -np.inf, 1.0, -2.5], dtype=np.float32)
    for coder in CODERS:
        back = decode(coder.float, encode(coder.float, data))
        np.testing.assert_array_equal(back, data)
        assert np.signbit(back[1])


@pytest.mark.parametrize("coder", CODERS, ids=lambda c: c.name)
@pytest.mark.parametrize("type_name", ["float", "vec2", "vec4"])
def test_encoded_texture_does_not_alias_input(coder, type_name):
    single = coder.of(type_name)
    data = np.ones(4, dtype=np.float32) if type_name == "float" else \
        np.ones((4, single.element_width), dtype=np.float32)
    tex = encode(single, data)
    assert not np.shares_memory(tex.pixels, data)
    data[:] = 99.0
    np.testing.assert_array_equal(decode(single, tex), np.ones_like(data))


def test_complex_amplitudes_round_trip():
    amps = np.array([1 + 2j, -0.5j, 0.25, 3 - 4j], dtype=np.complex64)
    for coder in CODERS:
        back = vec2_to_complex(decode(coder.vec2, encode(coder.vec2, amps)))
        np.testing.assert_array_equal(back, amps)


# ── layouts ──────────────────────────────────────────────────────────

def test_float_texture_vec2_is_spread_into_vec4_pixels():
    data = np.array([[1, 2], [3, 4]], dtype=np.float32)
    tex = encode(FLOAT_CODERS.vec2, data)
    assert FLOAT_CODERS.vec2.need_rearranging_to_be_in_vec4_format
    np.testing.assert_array_equal(tex.flat_pixels(), [[1, 2, 0, 0], [3, 4, 0, 0]])


def test_byte_texture_float_is_little_endian_ieee():
    tex = encode(BYTE_CODERS.float, np.array([1.0], dtype=np.float32))
    np.testing.assert_array_equal(tex.flat_pixels(), [[0, 0, 128, 63]])


def test_byte_texture_vec2_uses_two_pixels_per_element():
    tex = encode(BYTE_CODERS.vec2, np.zeros((4, 2), dtype=np.float32))
    assert tex.pixel_count == 8
    assert BYTE_CODERS.vec2.power_size_overhead == 1
    assert BYTE_CODERS.vec4.power_size_overhead == 2


def test_bool_pixels_and_lossy_decode():
    tex = encode(FLOAT_CODERS.bool, np.array([True, False, True, True]))
    np.testing.assert_array_equal(tex.flat_pixels()[:, 0], [255, 0, 255, 255])
    # Anything but an exact 1.0 reads back as False.
    pixels = np.zeros((4, 4), dtype=np.uint8)
    pixels[:, 0] = [255, 254, 1, 128]
    back = decode(FLOAT_CODERS.bool, Texture.from_flat(pixels, PixelFormat.BYTE_RGBA))
    np.testing.assert_array_equal(back, [True, False, False, False])


def test_row_major_dimensions():
    assert dims_for_power(0) == (1, 1)
    assert dims_for_power(1) == (2, 1)
    assert dims_for_power(5) == (8, 4)
    tex = encode(FLOAT_CODERS.float, np.arange(8, dtype=np.float32))
    assert (tex.width, tex.height) == (4, 2)
    # k = 5 sits at x = 5 mod 4 = 1, y = floor(5 / 4) = 1
    assert tex.pixels[1, 1, 0] == 5.0


@pytest.mark.parametrize("coder,type_name,power,expected", [
    (FLOAT_CODERS, "vec2", 4, 4),
    (BYTE_CODERS, "float", 4, 4),
    (BYTE_CODERS, "vec2", 4, 5),
    (BYTE_CODERS, "vec4", 3, 5),
    (BYTE_CODERS, "bool", 0, 0),
])
def test_required_pixel_power(coder, type_name, power, expected):
    single = coder.of(type_name)
    assert required_pixel_power(single, power) == expected
    w, h, fmt = texture_layout(single, power)
    assert w * h == 1 << expected
    assert fmt is single.pixel_format


# ── contract violations ──────────────────────────────────────────────

def test_non_power_of_two_length_rejected():
    with pytest.raises(ContractViolation, match="power of two"):
        encode(FLOAT_CODERS.float, np.zeros(3, dtype=np.float32))


def test_wrong_element_width_rejected():
    with pytest.raises(ContractViolation, match="width 2"):
        encode(FLOAT_CODERS.vec2, np.zeros((4, 3), dtype=np.float32))


def test_bool_coder_needs_bool_array():
    with pytest.raises(ContractViolation, match="boolean"):
        encode(FLOAT_CODERS.bool, np.array([0, 1, 1, 0]))


def test_wrong_pixel_format_rejected():
    tex = encode(FLOAT_CODERS.vec2, np.zeros((4, 2), dtype=np.float32))
    with pytest.raises(ContractViolation, match="format"):
        decode(BYTE_CODERS.vec2, tex)


def test_texture_smaller_than_overhead_rejected():
    tex = Texture.of_power(1, PixelFormat.BYTE_RGBA)
    with pytest.raises(ContractViolation, match="smaller than one element"):
        decode(BYTE_CODERS.vec4, tex)


def test_non_power_of_two_texture_rejected():
    with pytest.raises(ContractViolation, match="power of two"):
        Texture(3, 2, PixelFormat.FLOAT_RGBA)


def test_unknown_coder_name():
    assert get_coder("bytes") is BYTE_CODERS
    with pytest.raises(ContractViolation, match="unknown coder"):
        get_coder("halfs")


def test_complex_helpers():
    v = complex_to_vec2(np.array([1 + 2j]))
    np.testing.assert_array_equal(v, [[1, 2]])
    assert vec2_to_complex(v)[0] == 1 + 2j
