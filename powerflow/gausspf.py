"""
Gauss-Seidel Power Flow Module
==============================

Gauss-Seidel power flow.  Slow but simple, mainly useful as a cross-check
of the other solvers on small networks.

Date: 2026-10-19
"""

import numpy as np
from numpy.typing import NDArray

from powerflow.results import SolverResult, mismatch_norm, power_mismatch


def _mismatch(Ybus, V, Sbus, pv, pq) -> NDArray[np.float64]:
    mis = power_mismatch(Ybus, V, Sbus)
    return np.r_[mis[pv].real, mis[pq].real, mis[pq].imag]


def gausspf(
    Ybus,
    Sbus: NDArray[np.complex128],
    V0: NDArray[np.complex128],
    ref: int,
    pv: NDArray[np.int64],
    pq: NDArray[np.int64],
    tol: float = 1e-8,
    max_it: int = 1000,
    verbose: int = 0,
) -> SolverResult:
    """
    Solve the AC power flow with the Gauss-Seidel method.

    PQ bus voltages are updated first, in index order, each update using the
    newest values of all other buses.  PV buses follow: their reactive
    injection is recomputed from the current voltages and the updated
    voltage is scaled back to the specified magnitude.

    ``Sbus`` is not modified, the reactive injections of PV buses are
    tracked on a private copy.

    Parameters and return value as for ``newtonpf``.
    """
    pv = np.asarray(pv, dtype=np.int64)
    pq = np.asarray(pq, dtype=np.int64)
    Ybus = Ybus.tocsr()
    Sbus = Sbus.copy()
    diag = Ybus.diagonal()

    V = V0.copy()
    Vm = np.abs(V)

    F = _mismatch(Ybus, V, Sbus, pv, pq)
    normF = mismatch_norm(F)
    if verbose > 1:
        print(f"  [GS] it {0:4d}  max mismatch {normF:10.3e}")
    converged = normF < tol

    i = 0
    while not converged and i < max_it:
        i += 1

        for k in pq:
            Ik = Ybus[k, :].dot(V)[0]
            V[k] += (np.conj(Sbus[k] / V[k]) - Ik) / diag[k]

        for k in pv:
            Ik = Ybus[k, :].dot(V)[0]
            Sbus[k] = Sbus[k].real + 1j * (V[k] * np.conj(Ik)).imag
            V[k] += (np.conj(Sbus[k] / V[k]) - Ik) / diag[k]
            V[k] = Vm[k] * V[k] / abs(V[k])

        F = _mismatch(Ybus, V, Sbus, pv, pq)
        normF = mismatch_norm(F)
        if verbose > 1:
            print(f"  [GS] it {i:4d}  max mismatch {normF:10.3e}")
        converged = normF < tol

    if verbose:
        if converged:
            print(f"  [GS] Converged in {i} iterations.")
        else:
            print(f"  [GS] Did not converge in {i} iterations.")

    return SolverResult(V=V, converged=bool(converged), iterations=i)
