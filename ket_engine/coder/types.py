"""Type coders: how logical arrays live in device textures.

A SingleTypeCoder fixes, for one value type (bool, float, vec2, vec4):
  - the shader parts used to read it as an input and write it as an output,
  - the power-of-two pixel overhead per logical element,
  - the device pixel format,
  - host converters data → pixel rows and pixel rows → data.

Two families exist. FLOAT_CODERS stores one element per RGBA float pixel,
zero-filling unused channels. BYTE_CODERS stores each float32 as four bytes
in one RGBA8 pixel, so a vec2 needs two pixels and a vec4 four.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np

from ket_engine.coder import parts
from ket_engine.coder.texture import PixelFormat, Texture, dims_for_power, size_power_of
from ket_engine.errors import ContractViolation


@dataclass(frozen=True)
class SingleTypeCoder:
    name: str
    element_width: int      # 0 for scalars, else components per element
    input_part_getter: Callable[[str], parts.ShaderPart]
    output_part: parts.ShaderPart
    power_size_overhead: int
    pixel_format: PixelFormat
    data_to_pixels: Callable[[np.ndarray], np.ndarray]
    pixels_to_data: Callable[[np.ndarray], np.ndarray]
    need_rearranging_to_be_in_vec4_format: bool

    def array_power_size_of_texture(self, tex: Texture) -> int:
        power = tex.size_power - self.power_size_overhead
        if power < 0:
            raise ContractViolation(
                f"{self.name}: texture of 2^{tex.size_power} pixels is smaller than "
                f"one element (overhead {self.power_size_overhead})"
            )
        return power

    def required_pixel_power(self, logical_power: int) -> int:
        if logical_power < 0:
            raise ContractViolation(f"negative logical size power {logical_power}")
        return logical_power + self.power_size_overhead

    def texture_layout(self, logical_power: int) -> tuple[int, int, PixelFormat]:
        """(width, height, pixel_format) to allocate for 2^logical_power elements."""
        w, h = dims_for_power(self.required_pixel_power(logical_power))
        return w, h, self.pixel_format

    def _normalize(self, data) -> np.ndarray:
        arr = np.asarray(data)
        if self.name == "vec2" and np.iscomplexobj(arr):
            arr = complex_to_vec2(arr)
        expected_ndim = 1 if self.element_width == 0 else 2
        if arr.ndim != expected_ndim or (expected_ndim == 2 and arr.shape[1] != self.element_width):
            raise ContractViolation(
                f"{self.name}: expected elements of width {self.element_width or 1}, "
                f"got array of shape {arr.shape}"
            )
        size_power_of(len(arr))
        if self.name == "bool":
            if arr.dtype != np.bool_:
                raise ContractViolation(f"bool: expected a boolean array, got {arr.dtype}")
            return arr
        return np.ascontiguousarray(arr, dtype=np.float32)

    def data_to_texture(self, data) -> Texture:
        arr = self._normalize(data)
        return Texture.from_flat(self.data_to_pixels(arr), self.pixel_format)

    def texture_to_data(self, tex: Texture) -> np.ndarray:
        if tex.pixel_format is not self.pixel_format:
            raise ContractViolation(
                f"{self.name}: texture format {tex.pixel_format.name} != {self.pixel_format.name}"
            )
        self.array_power_size_of_texture(tex)
        return self.pixels_to_data(tex.flat_pixels())


@dataclass(frozen=True)
class ShaderCoder:
    """The four type coders of one texture strategy."""

    name: str
    bool: SingleTypeCoder
    float: SingleTypeCoder
    vec2: SingleTypeCoder
    vec4: SingleTypeCoder

    def of(self, type_name: str) -> SingleTypeCoder:
        if type_name not in ("bool", "float", "vec2", "vec4"):
            raise ContractViolation(f"unknown value type {type_name!r}")
        return getattr(self, type_name)


# ── complex helpers ──────────────────────────────────────────────────

def complex_to_vec2(amps) -> np.ndarray:
    amps = np.asarray(amps)
    return np.stack([amps.real, amps.imag], axis=-1).astype(np.float32)


def vec2_to_complex(vals: np.ndarray) -> np.ndarray:
    vals = np.asarray(vals, dtype=np.float32)
    return (vals[..., 0] + 1j * vals[..., 1]).astype(np.complex64)


# ── converters ───────────────────────────────────────────────────────

def _bools_to_pixels(arr: np.ndarray) -> np.ndarray:
    out = np.zeros((len(arr), 4), dtype=np.uint8)
    out[:, 0] = np.where(arr, 255, 0)
    return out


def _pixels_to_bools(pixels: np.ndarray) -> np.ndarray:
    # Same test the shader makes: normalized value exactly 1.0.
    return pixels[:, 0].astype(np.float32) / np.float32(255.0) == 1.0


def _spread_into_vec4(width: int) -> Callable[[np.ndarray], np.ndarray]:
    def to_pixels(arr: np.ndarray) -> np.ndarray:
        out = np.zeros((len(arr), 4), dtype=np.float32)
        out[:, :width] = arr.reshape(len(arr), width)
        return out
    return to_pixels


def _gather_from_vec4(width: int) -> Callable[[np.ndarray], np.ndarray]:
    def to_data(pixels: np.ndarray) -> np.ndarray:
        data = pixels[:, :width].copy()
        return data[:, 0] if width == 1 else data
    return to_data


def _floats_to_bytes(arr: np.ndarray) -> np.ndarray:
    # copy so the texture never aliases the caller's array
    return np.array(arr, dtype="<f4", order="C", copy=True).reshape(-1).view(np.uint8).reshape(-1, 4)


def _bytes_to_floats(width: int) -> Callable[[np.ndarray], np.ndarray]:
    def to_data(pixels: np.ndarray) -> np.ndarray:
        floats = np.ascontiguousarray(pixels, dtype=np.uint8).reshape(-1).view("<f4")
        floats = floats.astype(np.float32)
        return floats if width == 1 else floats.reshape(-1, width)
    return to_data


# ── coder families ───────────────────────────────────────────────────

BOOL_TYPE_CODER = SingleTypeCoder(
    "bool", 0,
    parts.bool_input_part,
    parts.BOOL_OUTPUT_PART,
    0,
    PixelFormat.BYTE_RGBA,
    _bools_to_pixels,
    _pixels_to_bools,
    False)

FLOAT_CODERS = ShaderCoder(
    "floats",
    BOOL_TYPE_CODER,
    SingleTypeCoder(
        "float", 0,
        parts.float_input_part_from_floats,
        parts.FLOAT_OUTPUT_PART_AS_FLOATS,
        0,
        PixelFormat.FLOAT_RGBA,
        _spread_into_vec4(1),
        _gather_from_vec4(1),
        True),
    SingleTypeCoder(
        "vec2", 2,
        parts.vec2_input_part_from_floats,
        parts.VEC2_OUTPUT_PART_AS_FLOATS,
        0,
        PixelFormat.FLOAT_RGBA,
        _spread_into_vec4(2),
        _gather_from_vec4(2),
        True),
    SingleTypeCoder(
        "vec4", 4,
        parts.vec4_input_part_from_floats,
        parts.VEC4_OUTPUT_PART_AS_FLOATS,
        0,
        PixelFormat.FLOAT_RGBA,
        lambda arr: np.array(arr, dtype=np.float32, order="C", copy=True),
        lambda pixels: pixels.copy(),
        False),
)

BYTE_CODERS = ShaderCoder(
    "bytes",
    BOOL_TYPE_CODER,
    SingleTypeCoder(
        "float", 0,
        parts.float_input_part_from_bytes,
        parts.FLOAT_OUTPUT_PART_AS_BYTES,
        0,
        PixelFormat.BYTE_RGBA,
        _floats_to_bytes,
        _bytes_to_floats(1),
        False),
    SingleTypeCoder(
        "vec2", 2,
        parts.vec2_input_part_from_bytes,
        parts.VEC2_OUTPUT_PART_AS_BYTES,
        1,
        PixelFormat.BYTE_RGBA,
        _floats_to_bytes,
        _bytes_to_floats(2),
        False),
    SingleTypeCoder(
        "vec4", 4,
        parts.vec4_input_part_from_bytes,
        parts.VEC4_OUTPUT_PART_AS_BYTES,
        2,
        PixelFormat.BYTE_RGBA,
        _floats_to_bytes,
        _bytes_to_floats(4),
        False),
)

_CODERS = {c.name: c for c in (FLOAT_CODERS, BYTE_CODERS)}


def get_coder(name: str) -> ShaderCoder:
    try:
        return _CODERS[name]
    except KeyError:
        raise ContractViolation(f"unknown coder {name!r}, expected one of {sorted(_CODERS)}") from None


# ── module-level contract ────────────────────────────────────────────

def encode(coder: SingleTypeCoder, data) -> Texture:
    """Pack a logical array into a texture."""
    return coder.data_to_texture(data)


def decode(coder: SingleTypeCoder, tex: Texture) -> np.ndarray:
    """Unpack a texture back into its logical array."""
    return coder.texture_to_data(tex)


def required_pixel_power(coder: SingleTypeCoder, logical_power: int) -> int:
    return coder.required_pixel_power(logical_power)


def texture_layout(coder: SingleTypeCoder, logical_power: int) -> tuple[int, int, PixelFormat]:
    return coder.texture_layout(logical_power)
