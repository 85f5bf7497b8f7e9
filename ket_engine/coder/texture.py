"""Host-side description of a device pixel buffer.

Layout convention: ROW-MAJOR.
  pixel k sits at (x, y) = (k mod width, floor(k / width)),
  i.e. ``pixels[y, x]`` in the (height, width, channels) array.
A texture of 2^p pixels is 2^ceil(p/2) wide and 2^floor(p/2) tall.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass

import numpy as np

from ket_engine.errors import ContractViolation


class PixelFormat(enum.Enum):
    """Pixel storage of a texture: (element dtype, channels, GL type name)."""

    BYTE_RGBA = (np.dtype(np.uint8), 4, "UNSIGNED_BYTE")
    FLOAT_RGBA = (np.dtype(np.float32), 4, "FLOAT")

    @property
    def dtype(self) -> np.dtype:
        return self.value[0]

    @property
    def channels(self) -> int:
        return self.value[1]

    @property
    def gl_type(self) -> str:
        return self.value[2]


def size_power_of(n: int) -> int:
    """log2(n) for a positive power of two, else ContractViolation."""
    if not isinstance(n, (int, np.integer)) or n < 1 or n & (n - 1):
        raise ContractViolation(f"size {n!r} is not a positive power of two")
    return int(n).bit_length() - 1


def dims_for_power(power: int) -> tuple[int, int]:
    """(width, height) of a texture holding 2^power pixels."""
    if power < 0:
        raise ContractViolation(f"negative texture size power {power}")
    return 1 << ((power + 1) >> 1), 1 << (power >> 1)


@dataclass(frozen=True, eq=False)
class Texture:
    width: int
    height: int
    pixel_format: PixelFormat
    pixels: np.ndarray | None = None

    def __post_init__(self):
        size_power_of(self.width)
        size_power_of(self.height)
        if self.pixels is not None:
            expected = (self.height, self.width, self.pixel_format.channels)
            if self.pixels.shape != expected:
                raise ContractViolation(
                    f"pixel array shape {self.pixels.shape} != {expected}"
                )
            if self.pixels.dtype != self.pixel_format.dtype:
                raise ContractViolation(
                    f"pixel dtype {self.pixels.dtype} != {self.pixel_format.dtype}"
                )

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def size_power(self) -> int:
        return size_power_of(self.pixel_count)

    @classmethod
    def of_power(cls, power: int, pixel_format: PixelFormat) -> "Texture":
        """Allocate a zeroed texture of 2^power pixels."""
        w, h = dims_for_power(power)
        return cls(w, h, pixel_format,
                   np.zeros((h, w, pixel_format.channels), dtype=pixel_format.dtype))

    @classmethod
    def from_flat(cls, flat: np.ndarray, pixel_format: PixelFormat) -> "Texture":
        """Wrap a (pixel_count, channels) array laid out row-major."""
        flat = np.ascontiguousarray(flat, dtype=pixel_format.dtype)
        if flat.ndim != 2 or flat.shape[1] != pixel_format.channels:
            raise ContractViolation(
                f"expected (n, {pixel_format.channels}) pixel rows, got {flat.shape}"
            )
        w, h = dims_for_power(size_power_of(flat.shape[0]))
        return cls(w, h, pixel_format, flat.reshape(h, w, pixel_format.channels))

    def flat_pixels(self) -> np.ndarray:
        """Pixels as a (pixel_count, channels) view in row-major order."""
        if self.pixels is None:
            raise ContractViolation("texture has no host-side pixel data")
        return self.pixels.reshape(self.pixel_count, self.pixel_format.channels)

    def __repr__(self) -> str:
        return f"Texture({self.width}x{self.height}, {self.pixel_format.name})"
