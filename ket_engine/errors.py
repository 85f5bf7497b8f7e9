"""Error taxonomy for program synthesis and texture coding.

All errors are raised on the host, before anything is dispatched, and are
never retried: synthesis is pure, so the same input fails the same way.
"""
from __future__ import annotations


class KetEngineError(Exception):
    """Base class for every error raised by ket_engine."""


class ContractViolation(KetEngineError, ValueError):
    """Malformed coder input, bad span, unknown gate, or overlapping ranges."""


class MissingContext(KetEngineError, LookupError):
    """A gate needs an auxiliary input range that was not supplied."""

    def __init__(self, gate: str, missing: list[str]):
        self.gate = gate
        self.missing = list(missing)
        super().__init__(f"{gate}: missing required input range(s) {self.missing}")


class NumericBoundaryViolation(KetEngineError, AssertionError):
    """A synthesized body produced a value outside its contract.

    Permutation bodies must return an integer preimage in [0, 2^span) that is
    a bijection; phase bodies must return a unit-magnitude multiplier.
    """
