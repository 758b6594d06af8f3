"""
Fast-Decoupled Power Flow Module
================================

Fast-decoupled power flow (XB or BX scheme, see ``network.matrices.makeB``).

Each iteration consists of a P-half-step updating the angles of PV and PQ
buses with the constant matrix B'[pvpq, pvpq] and a Q-half-step updating the
magnitudes of PQ buses with B''[pq, pq].  Both matrices are factored once.
Convergence is checked after every half-step, so the returned iteration
count may end on a P-half-step.

Date: 2026-10-19
"""

import numpy as np
from numpy.typing import NDArray
from scipy.sparse.linalg import splu

from core.exceptions import SolverError
from powerflow.results import SolverResult, mismatch_norm, power_mismatch


def _factor(B, idx: NDArray[np.int64], label: str):
    """Sparse LU factor of ``B[idx, idx]`` or None if ``idx`` is empty."""
    if len(idx) == 0:
        return None
    try:
        return splu(B[idx, :][:, idx].tocsc())
    except RuntimeError as e:
        raise SolverError(f"Fast-decoupled: {label} matrix is singular.") from e


def _scaled_mismatch(Ybus, V, Sbus, pv, pq):
    mis = power_mismatch(Ybus, V, Sbus) / np.abs(V)
    P = mis[np.r_[pv, pq]].real
    Q = mis[pq].imag
    return P, Q


def fdpf(
    Ybus,
    Sbus: NDArray[np.complex128],
    V0: NDArray[np.complex128],
    Bp,
    Bpp,
    ref: int,
    pv: NDArray[np.int64],
    pq: NDArray[np.int64],
    tol: float = 1e-8,
    max_it: int = 30,
    verbose: int = 0,
) -> SolverResult:
    """
    Solve the AC power flow with the fast-decoupled method.

    Parameters
    ----------
    Ybus : sparse matrix
        Bus admittance matrix.
    Sbus : NDArray[np.complex128]
        Complex bus power injections (p.u.).
    V0 : NDArray[np.complex128]
        Initial voltage vector.
    Bp, Bpp : sparse matrix
        B' and B'' matrices from ``makeB``.
    ref : int
        Reference bus index.
    pv, pq : NDArray[np.int64]
        PV and PQ bus indices.
    tol : float
        Tolerance on the infinity norm of the P and Q mismatches.
    max_it : int
        Maximum number of iterations.
    verbose : int
        Print the mismatches per half-step if > 1.

    Returns
    -------
    SolverResult

    Raises
    ------
    SolverError
        If B' or B'' is singular.
    """
    pv = np.asarray(pv, dtype=np.int64)
    pq = np.asarray(pq, dtype=np.int64)
    pvpq = np.r_[pv, pq]

    V = V0.copy()
    Va = np.angle(V)
    Vm = np.abs(V)

    P, Q = _scaled_mismatch(Ybus, V, Sbus, pv, pq)
    normP = mismatch_norm(P)
    normQ = mismatch_norm(Q)
    if verbose > 1:
        print(f"  [FD] it {0:3d}    max P & Q mismatch {normP:10.3e} {normQ:10.3e}")
    converged = normP < tol and normQ < tol

    Bp_lu = _factor(Bp, pvpq, "B'")
    Bpp_lu = _factor(Bpp, pq, "B''")

    i = 0
    while not converged and i < max_it:
        i += 1

        # P iteration, update Va
        if Bp_lu is not None:
            Va[pvpq] -= Bp_lu.solve(P)
        V = Vm * np.exp(1j * Va)

        P, Q = _scaled_mismatch(Ybus, V, Sbus, pv, pq)
        normP = mismatch_norm(P)
        normQ = mismatch_norm(Q)
        if verbose > 1:
            print(f"  [FD] it {i:3d} P  max P & Q mismatch {normP:10.3e} {normQ:10.3e}")
        if normP < tol and normQ < tol:
            converged = True
            break

        # Q iteration, update Vm
        if Bpp_lu is not None:
            Vm[pq] -= Bpp_lu.solve(Q)
        V = Vm * np.exp(1j * Va)

        P, Q = _scaled_mismatch(Ybus, V, Sbus, pv, pq)
        normP = mismatch_norm(P)
        normQ = mismatch_norm(Q)
        if verbose > 1:
            print(f"  [FD] it {i:3d} Q  max P & Q mismatch {normP:10.3e} {normQ:10.3e}")
        if normP < tol and normQ < tol:
            converged = True
            break

    if verbose:
        if converged:
            print(f"  [FD] Converged in {i} iterations.")
        else:
            print(f"  [FD] Did not converge in {i} iterations.")

    return SolverResult(V=V, converged=bool(converged), iterations=i)
