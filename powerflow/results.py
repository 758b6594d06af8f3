"""
Solver Results Module
=====================

Result record shared by all iterative power flow solvers.

Date: 2026-10-19
"""

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray


@dataclass
class SolverResult:
    """
    Outcome of one call to an AC power flow solver.

    Attributes
    ----------
    V : NDArray[np.complex128]
        Final complex bus voltages (last iterate if not converged).
    converged : bool
        True if the mismatch norm fell below the tolerance.
    iterations : int
        Number of iterations performed.
    """
    V: NDArray[np.complex128]
    converged: bool
    iterations: int

    def __iter__(self):
        """Allow ``V, converged, iterations = result`` unpacking."""
        return iter((self.V, self.converged, self.iterations))


def mismatch_norm(values: NDArray[np.float64]) -> float:
    """Infinity norm of a mismatch vector (0 for an empty vector)."""
    if values.size == 0:
        return 0.0
    return float(np.max(np.abs(values)))


def power_mismatch(Ybus, V: NDArray[np.complex128], Sbus: NDArray[np.complex128]) -> NDArray[np.complex128]:
    """Complex power mismatch ``V * conj(Ybus @ V) - Sbus`` at every bus."""
    return V * np.conj(Ybus @ V) - Sbus
