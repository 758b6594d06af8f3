"""
DC Power Flow Module
====================

Linear DC approximation of the power flow: flat voltage magnitudes,
lossless branches and small angle differences, so that the real power
injections satisfy ``Pbus = B @ Va``.

Date: 2026-10-19
"""

import numpy as np
from numpy.typing import NDArray
from scipy.sparse.linalg import spsolve

from core.exceptions import SolverError


def dcpf(
    B,
    Pbus: NDArray[np.float64],
    Va0: NDArray[np.float64],
    ref: int,
    pv: NDArray[np.int64],
    pq: NDArray[np.int64],
) -> NDArray[np.float64]:
    """
    Solve the DC power flow.

    The reference angle is kept at its initial value, all other angles are
    found from ``B[pvpq, pvpq] @ Va[pvpq] = Pbus[pvpq] - B[pvpq, ref] * Va0[ref]``.

    Parameters
    ----------
    B : sparse matrix
        Bus susceptance matrix from ``makeBdc``.
    Pbus : NDArray[np.float64]
        Real power injections (p.u.) with phase shift and shunt corrections
        already applied.
    Va0 : NDArray[np.float64]
        Initial angles (rad), only the reference entry is used.
    ref : int
        Reference bus index.
    pv, pq : NDArray[np.int64]
        PV and PQ bus indices.

    Returns
    -------
    Va : NDArray[np.float64]
        Bus voltage angles (rad).

    Raises
    ------
    SolverError
        If the reduced B matrix is singular (e.g. islanded network).
    """
    pvpq = np.r_[pv, pq].astype(np.int64)
    Va = np.asarray(Va0, dtype=np.float64).copy()
    if len(pvpq) == 0:
        return Va

    B = B.tocsr()
    Bred = B[pvpq, :][:, pvpq].tocsc()
    rhs = Pbus[pvpq] - np.asarray(B[pvpq, :][:, [ref]].todense()).ravel() * Va0[ref]

    x = np.atleast_1d(spsolve(Bred, rhs))
    if not np.all(np.isfinite(x)):
        raise SolverError("DC power flow: susceptance matrix is singular.")
    Va[pvpq] = x
    return Va
