"""Per-evaluation context: where a gate sits and which ranges it may read.

Endianness convention: LITTLE-ENDIAN.
  qubit 0 = bit 0 (LSB) of the state-vector index, so a range at offset o
  with length L holds the value floor(index / 2^o) mod 2^L.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Mapping, Union

from ket_engine.coder.texture import Texture
from ket_engine.coder.types import FLOAT_CODERS, ShaderCoder
from ket_engine.config import DEFAULT_CONFIG, EngineConfig
from ket_engine.errors import ContractViolation, MissingContext

INPUT_RANGE_A = "Input Range A"
INPUT_RANGE_B = "Input Range B"
RANGE_NAMES = (INPUT_RANGE_A, INPUT_RANGE_B)

_FIELD_FOR = {INPUT_RANGE_A: "input_a", INPUT_RANGE_B: "input_b"}


@dataclass(frozen=True)
class BitRange:
    offset: int
    length: int

    def __post_init__(self):
        for label, v in (("offset", self.offset), ("length", self.length)):
            if not isinstance(v, int) or isinstance(v, bool):
                raise ContractViolation(f"range {label} must be an int, got {v!r}")
        if self.offset < 0:
            raise ContractViolation(f"range offset {self.offset} is negative")
        if self.length < 1:
            raise ContractViolation(f"range length {self.length} must be at least 1")

    @property
    def end(self) -> int:
        return self.offset + self.length

    def overlaps(self, offset: int, length: int) -> bool:
        return self.offset < offset + length and offset < self.end

    def extract(self, full_id: int) -> int:
        """Value held by this range in basis state ``full_id``."""
        return (full_id >> self.offset) & ((1 << self.length) - 1)


RangeLike = Union[BitRange, tuple, Mapping]


def _as_range(name: str, value: RangeLike) -> BitRange:
    if isinstance(value, BitRange):
        return value
    if isinstance(value, Mapping):
        try:
            return BitRange(value["offset"], value["length"])
        except KeyError as e:
            raise ContractViolation(f"{name}: missing {e.args[0]!r}") from None
    if isinstance(value, tuple) and len(value) == 2:
        return BitRange(*value)
    raise ContractViolation(f"{name}: expected (offset, length), got {value!r}")


@dataclass(frozen=True)
class AuxiliaryRanges:
    """The named input ranges supplied by the surrounding circuit column."""

    input_a: BitRange | None = None
    input_b: BitRange | None = None

    @classmethod
    def from_mapping(cls, ranges: Mapping[str, RangeLike] | None) -> "AuxiliaryRanges":
        if ranges is None:
            return cls()
        if isinstance(ranges, AuxiliaryRanges):
            return ranges
        unknown = sorted(set(ranges) - set(RANGE_NAMES))
        if unknown:
            raise ContractViolation(f"unknown input range name(s) {unknown}, expected {RANGE_NAMES}")
        return cls(**{_FIELD_FOR[k]: _as_range(k, v) for k, v in ranges.items()})

    def get(self, name: str) -> BitRange | None:
        if name not in _FIELD_FOR:
            raise ContractViolation(f"unknown input range name {name!r}")
        return getattr(self, _FIELD_FOR[name])

    def items(self) -> list[tuple[str, BitRange]]:
        return [(n, self.get(n)) for n in RANGE_NAMES if self.get(n) is not None]

    def require(self, gate: str, names) -> None:
        missing = [n for n in names if self.get(n) is None]
        if missing:
            raise MissingContext(gate, missing)


@dataclass(frozen=True, eq=False)
class CircuitEvalContext:
    row: int
    state: Texture
    coder: ShaderCoder = FLOAT_CODERS
    ranges: AuxiliaryRanges = field(default_factory=AuxiliaryRanges)
    config: EngineConfig = DEFAULT_CONFIG

    def __post_init__(self):
        if self.state.pixel_format is not self.coder.vec2.pixel_format:
            raise ContractViolation(
                f"state texture is {self.state.pixel_format.name}, coder "
                f"{self.coder.name!r} stores amplitudes as {self.coder.vec2.pixel_format.name}"
            )
        if self.qubit_count > self.config.max_qubit_count:
            raise ContractViolation(
                f"{self.qubit_count} qubits exceeds max_qubit_count={self.config.max_qubit_count}"
            )

    @property
    def qubit_count(self) -> int:
        return self.coder.vec2.array_power_size_of_texture(self.state)

    def with_row(self, row: int) -> "CircuitEvalContext":
        return replace(self, row=row)

    def input_range(self, name: str) -> BitRange:
        r = self.ranges.get(name)
        if r is None:
            raise MissingContext(f"row {self.row}", [name])
        return r
