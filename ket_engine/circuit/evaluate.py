"""Gate evaluation: the single entry point from a circuit column to a program.

    evaluate("add", 4, row=0, {}, state=tex)          → ProgramDescriptor
    apply_gate(psi, "+=A", 2, 0, {"Input Range A": (2, 2)})  → new amplitudes

Required input ranges are validated here, once, before any gate code runs.
"""
from __future__ import annotations

import logging
from typing import Mapping, Optional, Union

import numpy as np

from ket_engine.circuit.context import AuxiliaryRanges, CircuitEvalContext
from ket_engine.coder.texture import Texture
from ket_engine.coder.types import ShaderCoder, get_coder
from ket_engine.config import DEFAULT_CONFIG, EngineConfig
from ket_engine.errors import ContractViolation, MissingContext
from ket_engine.gates.catalog import lookup
from ket_engine.gates.gate import Gate
from ket_engine.kernel.ref_dispatch import check_program, run_on_amplitudes
from ket_engine.shader.ket import ProgramDescriptor, check_span
from ket_engine.utils.logging_config import configure_logging

log = logging.getLogger(__name__)

CoderLike = Union[ShaderCoder, str, None]


def _resolve_coder(coder: CoderLike, config: EngineConfig) -> ShaderCoder:
    if coder is None:
        return get_coder(config.coder)
    if isinstance(coder, str):
        return get_coder(coder)
    return coder


def _check_placement(gate: Gate, ctx: CircuitEvalContext) -> None:
    n = ctx.qubit_count
    if ctx.row < 0 or ctx.row + gate.span > n:
        raise ContractViolation(
            f"{gate.serialized_id}: rows {ctx.row}..{ctx.row + gate.span - 1} outside {n} qubit(s)"
        )
    for name in gate.required_context_keys:
        r = ctx.input_range(name)
        if r.end > n:
            raise ContractViolation(
                f"{gate.serialized_id}: {name} covers qubits {r.offset}..{r.end - 1} "
                f"outside {n} qubit(s)"
            )
        if r.overlaps(ctx.row, gate.span):
            raise ContractViolation(
                f"{gate.serialized_id}: {name} ({r.offset}, {r.length}) overlaps target "
                f"qubits {ctx.row}..{ctx.row + gate.span - 1}"
            )


def evaluate(
    gate_id: str,
    span: int,
    row: int,
    auxiliary_ranges: Optional[Union[AuxiliaryRanges, Mapping]] = None,
    *,
    state: Texture,
    coder: CoderLike = None,
    config: Optional[EngineConfig] = None,
) -> ProgramDescriptor:
    """Synthesize the program applying ``gate_id`` of size ``span`` at ``row``."""
    config = (config or DEFAULT_CONFIG).validate()
    configure_logging(config)
    try:
        check_span(span, config.max_span)
        gate = lookup(gate_id, span)
        ranges = AuxiliaryRanges.from_mapping(auxiliary_ranges)
        ranges.require(gate.serialized_id, gate.required_context_keys)
        ctx = CircuitEvalContext(row, state, _resolve_coder(coder, config), ranges, config)
        _check_placement(gate, ctx)
    except (ContractViolation, MissingContext) as e:
        log.warning("rejected %s (span=%s, row=%s): %s", gate_id, span, row, e)
        raise

    program = gate.custom_shader(ctx)
    if config.debug_checks:
        check_program(program, config.phase_tolerance)
    log.debug("synthesized %s at row %d -> %r", gate.serialized_id, row, program)
    return program


def apply_gate(
    amplitudes,
    gate_id: str,
    span: int,
    row: int,
    auxiliary_ranges: Optional[Union[AuxiliaryRanges, Mapping]] = None,
    *,
    coder: CoderLike = None,
    config: Optional[EngineConfig] = None,
) -> np.ndarray:
    """Encode amplitudes, run the gate's program on the host, decode the result."""
    config = (config or DEFAULT_CONFIG).validate()
    resolved = _resolve_coder(coder, config)
    state = resolved.vec2.data_to_texture(np.asarray(amplitudes, dtype=np.complex64))
    program = evaluate(gate_id, span, row, auxiliary_ranges,
                       state=state, coder=resolved, config=config)
    return run_on_amplitudes(program)
