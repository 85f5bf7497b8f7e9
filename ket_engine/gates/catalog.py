"""All known gates, addressable by family key + span or by serialized id."""
from __future__ import annotations

from ket_engine.errors import ContractViolation
from ket_engine.gates import arithmetic, phase
from ket_engine.gates.gate import Gate

FAMILIES = arithmetic.FAMILIES + phase.FAMILIES
SINGLES = arithmetic.COMPARISONS
ALL_GATES: tuple[Gate, ...] = arithmetic.ALL + phase.ALL

_FAMILY_BY_KEY = {fam.kind.value: fam for fam in FAMILIES}
_SINGLE_BY_KEY = {g.kind.value: g for g in SINGLES}
_BY_ID: dict[str, Gate] = {}
for _g in ALL_GATES:
    if _g.serialized_id in _BY_ID:
        raise RuntimeError(f"duplicate serialized gate id {_g.serialized_id!r}")
    _BY_ID[_g.serialized_id] = _g
del _g


def gate_by_id(serialized_id: str) -> Gate:
    try:
        return _BY_ID[serialized_id]
    except KeyError:
        raise ContractViolation(f"unknown gate id {serialized_id!r}") from None


def lookup(gate_id: str, span: int) -> Gate:
    """Resolve ``gate_id`` (family key like "inc", or full id like "inc3") at ``span``."""
    fam = _FAMILY_BY_KEY.get(gate_id)
    if fam is not None:
        return fam.of_size(span)
    gate = _SINGLE_BY_KEY.get(gate_id) or gate_by_id(gate_id)
    if gate.span != span:
        raise ContractViolation(f"gate {gate.serialized_id!r} has span {gate.span}, not {span}")
    return gate


def known_ids() -> list[str]:
    return sorted(_BY_ID)
