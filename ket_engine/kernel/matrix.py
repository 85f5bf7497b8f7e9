"""Dense-matrix helpers (oracle for small spans).

Convention: column i of a transition matrix is the image of basis state i.
Endianness: little-endian, a span at ``row`` covers index bits row .. row+span-1.
"""
from __future__ import annotations

from typing import Callable

import numpy as np


def generate_transition(n: int, f: Callable[[int], int]) -> np.ndarray:
    """n×n permutation matrix sending basis state i to f(i)."""
    M = np.zeros((n, n), dtype=np.complex128)
    for i in range(n):
        M[f(i), i] = 1.0
    return M


def generate_diagonal(n: int, f: Callable[[int], complex]) -> np.ndarray:
    return np.diag(np.array([f(i) for i in range(n)], dtype=np.complex128))


def is_permutation_matrix(M: np.ndarray) -> bool:
    M = np.asarray(M)
    if M.ndim != 2 or M.shape[0] != M.shape[1]:
        return False
    binary = np.isin(M, (0, 1)).all()
    return bool(binary and (M.sum(axis=0) == 1).all() and (M.sum(axis=1) == 1).all())


def apply_matrix_on_span(psi: np.ndarray, row: int, span: int, M: np.ndarray) -> np.ndarray:
    """Return M applied to qubits row .. row+span-1 of psi (psi is not modified)."""
    N = len(psi)
    if N % (1 << (row + span)) != 0:
        raise ValueError(f"span {span} at row {row} does not fit a state of {N} amplitudes")
    if M.shape != (1 << span, 1 << span):
        raise ValueError(f"matrix shape {M.shape} does not match span {span}")
    t = np.asarray(psi).reshape(N >> (row + span), 1 << span, 1 << row)
    out = np.einsum("ij,ajb->aib", M, t)
    return out.reshape(N)
