"""Typed uniform bindings for a synthesized program."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ket_engine.errors import ContractViolation

KINDS = ("float", "vec2", "vec4", "texture")


@dataclass(frozen=True)
class ShaderArg:
    """One (name, kind, value) binding of a program uniform."""

    name: str
    kind: str
    value: Any

    def __post_init__(self):
        if self.kind not in KINDS:
            raise ContractViolation(f"unknown uniform kind {self.kind!r}")

    @staticmethod
    def float(name: str, value) -> "ShaderArg":
        return ShaderArg(name, "float", float(value))

    @staticmethod
    def vec2(name: str, x, y) -> "ShaderArg":
        return ShaderArg(name, "vec2", (float(x), float(y)))

    @staticmethod
    def vec4(name: str, x, y, z, w) -> "ShaderArg":
        return ShaderArg(name, "vec4", (float(x), float(y), float(z), float(w)))

    @staticmethod
    def texture(name: str, texture) -> "ShaderArg":
        return ShaderArg(name, "texture", texture)

    def glsl_type(self) -> str:
        return "sampler2D" if self.kind == "texture" else self.kind
