"""
Configuration for program synthesis.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Optional

from ket_engine.errors import ContractViolation

CODER_NAMES = ("floats", "bytes")

# Every index is carried in a float32 register on the device; integers stay
# exact below 2^24, so spans and circuit sizes are capped well under that.
FLOAT_EXACT_BITS = 24


@dataclass(frozen=True)
class EngineConfig:
    """Configuration for gate evaluation."""

    # Limits
    max_span: int = 16
    max_qubit_count: int = 16

    # Texture encoding: "floats" needs float textures, "bytes" packs into RGBA8
    coder: str = "floats"

    # Host-side checks of permutation/phase bodies before a program is returned
    debug_checks: bool = True
    phase_tolerance: float = 1e-5

    # Level applied to the ket_engine logger on each evaluate(); None leaves it alone
    log_level: Optional[str] = None

    def validate(self) -> "EngineConfig":
        if self.coder not in CODER_NAMES:
            raise ContractViolation(f"unknown coder {self.coder!r}, expected one of {CODER_NAMES}")
        if self.max_span < 1:
            raise ContractViolation(f"max_span must be positive, got {self.max_span}")
        if self.max_qubit_count < self.max_span:
            raise ContractViolation(
                f"max_qubit_count={self.max_qubit_count} < max_span={self.max_span}"
            )
        if self.max_qubit_count >= FLOAT_EXACT_BITS:
            raise ContractViolation(
                f"max_qubit_count={self.max_qubit_count} would exceed exact float32 indexing"
            )
        if self.phase_tolerance <= 0:
            raise ContractViolation(f"phase_tolerance must be positive, got {self.phase_tolerance}")
        if self.log_level is not None and \
                not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ContractViolation(f"unknown log_level {self.log_level!r}")
        return self

    def with_overrides(self, **kwargs) -> "EngineConfig":
        return replace(self, **kwargs).validate()

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build a config from KET_ENGINE_* environment variables."""
        overrides: dict = {}
        coder = os.environ.get("KET_ENGINE_CODER")
        if coder is not None:
            overrides["coder"] = coder
        checks = os.environ.get("KET_ENGINE_DEBUG_CHECKS")
        if checks is not None:
            overrides["debug_checks"] = checks.strip().lower() not in ("0", "false", "no", "off")
        level = os.environ.get("KET_ENGINE_LOG_LEVEL")
        if level is not None:
            overrides["log_level"] = level.upper()
        return cls(**overrides).validate()


# Default configuration instance
DEFAULT_CONFIG = EngineConfig()
