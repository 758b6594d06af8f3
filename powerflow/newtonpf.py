"""
Newton-Raphson Power Flow Module
================================

Full Newton power flow in polar coordinates.

The unknowns are the voltage angles of all PV and PQ buses and the voltage
magnitudes of the PQ buses.  The mismatch vector is

    F = [ Re(mis[pv]), Re(mis[pq]), Im(mis[pq]) ]

with ``mis = V * conj(Ybus @ V) - Sbus``, and the Jacobian is assembled
from the partial derivatives of the bus power injections returned by
``dSbus_dV``.

References
----------
[1] R. D. Zimmerman, "AC Power Flows, Generalized OPF Costs and their
    Derivatives using Complex Matrix Notation", MATPOWER Technical Note 2.

Date: 2026-10-19
"""

from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray
from scipy import sparse
from scipy.sparse.linalg import splu

from core.exceptions import SolverError
from powerflow.results import SolverResult, mismatch_norm, power_mismatch


def dSbus_dV(Ybus, V: NDArray[np.complex128]) -> Tuple[sparse.csr_matrix, sparse.csr_matrix]:
    """
    Partial derivatives of the bus power injections w.r.t. voltage.

    Parameters
    ----------
    Ybus : sparse matrix
        Bus admittance matrix.
    V : NDArray[np.complex128]
        Complex bus voltages.

    Returns
    -------
    dS_dVm : csr_matrix
        Derivative w.r.t. voltage magnitude.
    dS_dVa : csr_matrix
        Derivative w.r.t. voltage angle.
    """
    n = len(V)
    idx = np.arange(n)
    Ibus = Ybus @ V

    diagV = sparse.csr_matrix((V, (idx, idx)), shape=(n, n))
    diagIbus = sparse.csr_matrix((Ibus, (idx, idx)), shape=(n, n))
    diagVnorm = sparse.csr_matrix((V / np.abs(V), (idx, idx)), shape=(n, n))

    dS_dVm = diagV @ (Ybus @ diagVnorm).conj() + diagIbus.conj() @ diagVnorm
    dS_dVa = 1j * diagV @ (diagIbus - Ybus @ diagV).conj()
    return sparse.csr_matrix(dS_dVm), sparse.csr_matrix(dS_dVa)


def _state_slices(npv: int, npq: int) -> Tuple[slice, slice]:
    """Slices of the angle and magnitude blocks in the Newton state vector."""
    return slice(0, npv + npq), slice(npv + npq, npv + 2 * npq)


def jacobian_indices(
    bus: int,
    pv: NDArray[np.int64],
    pq: NDArray[np.int64],
) -> Tuple[Optional[int], Optional[int]]:
    """
    Position of a bus in the Newton state (and mismatch) vector.

    The state vector is ``[Va[pv], Va[pq], Vm[pq]]``.

    Parameters
    ----------
    bus : int
        Internal bus index.
    pv, pq : NDArray[np.int64]
        PV and PQ bus indices, in the order passed to ``newtonpf``.

    Returns
    -------
    i_va : int or None
        Row of the bus angle, None for the reference bus.
    i_vm : int or None
        Row of the bus magnitude, None unless the bus is a PQ bus.
    """
    pv = np.asarray(pv, dtype=np.int64)
    pq = np.asarray(pq, dtype=np.int64)
    pvpq = np.r_[pv, pq]
    hits = np.flatnonzero(pvpq == bus)
    if len(hits) == 0:
        return None, None
    i_va = int(hits[0])
    i_vm = len(pvpq) + (i_va - len(pv)) if i_va >= len(pv) else None
    return i_va, i_vm


def _mismatch(Ybus, V, Sbus, pv, pq) -> NDArray[np.float64]:
    mis = power_mismatch(Ybus, V, Sbus)
    return np.r_[mis[pv].real, mis[pq].real, mis[pq].imag]


def newtonpf(
    Ybus,
    Sbus: NDArray[np.complex128],
    V0: NDArray[np.complex128],
    ref: int,
    pv: NDArray[np.int64],
    pq: NDArray[np.int64],
    tol: float = 1e-8,
    max_it: int = 10,
    verbose: int = 0,
) -> SolverResult:
    """
    Solve the AC power flow with Newton's method.

    Parameters
    ----------
    Ybus : sparse matrix
        Bus admittance matrix.
    Sbus : NDArray[np.complex128]
        Complex bus power injections (p.u.).
    V0 : NDArray[np.complex128]
        Initial voltage vector, with the specified magnitudes at the
        reference and PV buses.
    ref : int
        Reference bus index.
    pv, pq : NDArray[np.int64]
        PV and PQ bus indices.
    tol : float
        Tolerance on the infinity norm of the mismatch.
    max_it : int
        Maximum number of iterations.
    verbose : int
        Print the mismatch per iteration if > 1.

    Returns
    -------
    SolverResult
        Final voltages, convergence flag and number of iterations.

    Raises
    ------
    SolverError
        If the Jacobian is singular.
    """
    pv = np.asarray(pv, dtype=np.int64)
    pq = np.asarray(pq, dtype=np.int64)
    pvpq = np.r_[pv, pq]
    j_va, j_vm = _state_slices(len(pv), len(pq))

    V = V0.copy()
    Va = np.angle(V)
    Vm = np.abs(V)

    F = _mismatch(Ybus, V, Sbus, pv, pq)
    normF = mismatch_norm(F)
    if verbose > 1:
        print(f"  [NR] it {0:3d}  max mismatch {normF:10.3e}")

    converged = normF < tol
    i = 0
    while not converged and i < max_it:
        i += 1

        dS_dVm, dS_dVa = dSbus_dV(Ybus, V)
        J11 = dS_dVa[pvpq, :][:, pvpq].real
        J12 = dS_dVm[pvpq, :][:, pq].real
        J21 = dS_dVa[pq, :][:, pvpq].imag
        J22 = dS_dVm[pq, :][:, pq].imag
        J = sparse.vstack([
            sparse.hstack([J11, J12]),
            sparse.hstack([J21, J22]),
        ], format="csc")

        try:
            dx = -splu(J).solve(F)
        except RuntimeError as e:
            raise SolverError(f"Newton-Raphson: Jacobian is singular in iteration {i}.") from e

        Va[pvpq] += dx[j_va]
        Vm[pq] += dx[j_vm]
        V = Vm * np.exp(1j * Va)
        # re-derive magnitude and angle to wrap angles
        Vm = np.abs(V)
        Va = np.angle(V)

        F = _mismatch(Ybus, V, Sbus, pv, pq)
        normF = mismatch_norm(F)
        if verbose > 1:
            print(f"  [NR] it {i:3d}  max mismatch {normF:10.3e}")
        converged = normF < tol

    if verbose:
        if converged:
            print(f"  [NR] Converged in {i} iterations.")
        else:
            print(f"  [NR] Did not converge in {i} iterations.")

    return SolverResult(V=V, converged=bool(converged), iterations=i)
