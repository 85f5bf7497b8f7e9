"""Phase-gradient gates."""
import numpy as np
import pytest

from ket_engine.circuit.evaluate import apply_gate
from ket_engine.coder.types import BYTE_CODERS, FLOAT_CODERS
from ket_engine.gates import phase
from ket_engine.gates.phase import PhaseGradientFamily, PhaseUngradientFamily, make_phase_gradient_matrix
from ket_engine.shader.ket import Shape
from ket_engine.tests.fixtures.states import assert_program_acts_like_matrix, random_state

WITH_MATRIX = [g for g in phase.ALL if g.known_matrix is not None]


@pytest.mark.parametrize("coder", [FLOAT_CODERS, BYTE_CODERS], ids=lambda c: c.name)
@pytest.mark.parametrize("gate", WITH_MATRIX, ids=lambda g: g.serialized_id)
def test_known_matrix_matches_program(gate, coder):
    assert_program_acts_like_matrix(gate.custom_shader, gate.known_matrix, coder)


def test_gradient_beyond_matrix_limit():
    assert_program_acts_like_matrix(
        PhaseGradientFamily.of_size(5).custom_shader, make_phase_gradient_matrix(5, +1))


def test_gradient_and_ungradient_cancel():
    psi = random_state(5)
    there = apply_gate(psi, "PhaseGradient", 4, 1)
    back = apply_gate(there, "PhaseUngradient", 4, 1)
    np.testing.assert_allclose(back, psi, atol=1e-6)
    np.testing.assert_allclose(np.abs(there), np.abs(psi), atol=1e-6)


def test_single_qubit_gradient_is_s_gate():
    psi = random_state(1)
    out = apply_gate(psi, "PhaseGradient", 1, 0)
    np.testing.assert_allclose(out, [psi[0], 1j * psi[1]], atol=1e-6)


def test_metadata():
    g = PhaseGradientFamily.of_size(3)
    assert g.shape is Shape.PHASE
    assert g.serialized_id == "PhaseGradient3"
    assert PhaseUngradientFamily.of_size(16).known_matrix is None
    np.testing.assert_allclose(np.abs(np.diag(g.known_matrix)), 1.0)
