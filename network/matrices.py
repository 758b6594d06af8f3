"""
Network Matrices Module
=======================

Pure functions building the sparse network matrices used by the power flow
solvers from internally numbered case tables.

Functions
---------
makeYbus
    Bus admittance matrix and branch admittance matrices (Ybus, Yf, Yt).
makeSbus
    Complex bus power injection vector (generation - load) in p.u.
makeBdc
    DC power flow susceptance matrices and phase shift injections.
makeB
    Fast-decoupled B' and B'' matrices (XB or BX scheme).

All functions expect consecutive internal bus numbering (bus ``i`` is row
``i`` of the bus table).  Matrices are returned as ``scipy.sparse.csr_matrix``.

References
----------
[1] R. D. Zimmerman, C. E. Murillo-Sanchez, R. J. Thomas, "MATPOWER:
    Steady-State Operations, Planning and Analysis Tools for Power Systems
    Research and Education", IEEE Trans. Power Systems, 2011.
[2] B. Stott, O. Alsac, "Fast Decoupled Load Flow", IEEE Trans. PAS, 1974.

Date: 2026-10-19
"""

from typing import Tuple

import numpy as np
from numpy.typing import NDArray
from scipy.sparse import csr_matrix

from pandapower.pypower.idx_bus import BUS_I, PD, QD, GS, BS
from pandapower.pypower.idx_gen import GEN_BUS, PG, QG, GEN_STATUS
from pandapower.pypower.idx_brch import F_BUS, T_BUS, BR_R, BR_X, BR_B, TAP, SHIFT, BR_STATUS

from core.exceptions import ConfigurationError


def _check_consecutive(bus: NDArray[np.float64], caller: str) -> None:
    """Raise if bus numbers are not equal to their row index."""
    nb = bus.shape[0]
    if np.any(bus[:, BUS_I].astype(np.int64) != np.arange(nb)):
        raise ConfigurationError(
            f"{caller}: buses must be numbered consecutively in bus matrix "
            "(convert the case with ext2int first)."
        )


def _tap_ratios(branch: NDArray[np.float64]) -> NDArray[np.float64]:
    """Off-nominal tap ratios with zero entries replaced by 1."""
    tap = np.ones(branch.shape[0])
    xfmr = np.flatnonzero(branch[:, TAP])
    tap[xfmr] = branch[xfmr, TAP]
    return tap


def makeYbus(
    baseMVA: float,
    bus: NDArray[np.float64],
    branch: NDArray[np.float64],
) -> Tuple[csr_matrix, csr_matrix, csr_matrix]:
    """
    Build the bus admittance matrix and branch admittance matrices.

    Parameters
    ----------
    baseMVA : float
        System MVA base.
    bus : NDArray[np.float64]
        Internally numbered bus table.
    branch : NDArray[np.float64]
        Internally numbered branch table.

    Returns
    -------
    Ybus : csr_matrix
        Bus admittance matrix, shape (nb, nb).
    Yf : csr_matrix
        Branch admittance matrix for the "from" end, shape (nl, nb), such
        that ``Yf @ V`` is the vector of complex from-end currents.
    Yt : csr_matrix
        Branch admittance matrix for the "to" end, shape (nl, nb).

    Raises
    ------
    ConfigurationError
        If buses are not consecutively numbered.
    """
    _check_consecutive(bus, "makeYbus")
    nb = bus.shape[0]
    nl = branch.shape[0]

    # series admittance and line charging, zeroed for out-of-service branches
    stat = branch[:, BR_STATUS]
    Ys = stat / (branch[:, BR_R] + 1j * branch[:, BR_X])
    Bc = stat * branch[:, BR_B]

    # complex tap ratio including phase shift
    tap = _tap_ratios(branch) * np.exp(1j * np.pi / 180.0 * branch[:, SHIFT])

    #  | If |   | Yff  Yft |   | Vf |
    #  |    | = |          | * |    |
    #  | It |   | Ytf  Ytt |   | Vt |
    Ytt = Ys + 1j * Bc / 2
    Yff = Ytt / (tap * np.conj(tap))
    Yft = -Ys / np.conj(tap)
    Ytf = -Ys / tap

    # shunt admittance at buses (MW/MVAr demanded at V = 1.0 p.u.)
    Ysh = (bus[:, GS] + 1j * bus[:, BS]) / baseMVA

    f = branch[:, F_BUS].astype(np.int64)
    t = branch[:, T_BUS].astype(np.int64)
    rows = np.r_[np.arange(nl), np.arange(nl)]
    cols = np.r_[f, t]

    Yf = csr_matrix((np.r_[Yff, Yft], (rows, cols)), shape=(nl, nb))
    Yt = csr_matrix((np.r_[Ytf, Ytt], (rows, cols)), shape=(nl, nb))

    # connection matrices
    Cf = csr_matrix((np.ones(nl), (np.arange(nl), f)), shape=(nl, nb))
    Ct = csr_matrix((np.ones(nl), (np.arange(nl), t)), shape=(nl, nb))

    Ybus = (
        Cf.T @ Yf
        + Ct.T @ Yt
        + csr_matrix((Ysh, (np.arange(nb), np.arange(nb))), shape=(nb, nb))
    )
    return csr_matrix(Ybus), Yf, Yt


def makeSbus(
    baseMVA: float,
    bus: NDArray[np.float64],
    gen: NDArray[np.float64],
) -> NDArray[np.complex128]:
    """
    Build the vector of complex bus power injections (generation - load).

    Only in-service generators contribute.  Values are in p.u.
    """
    nb = bus.shape[0]
    on = np.flatnonzero(gen[:, GEN_STATUS] > 0)
    gbus = gen[on, GEN_BUS].astype(np.int64)

    # connection matrix, element (i, j) is 1 if in-service gen j is at bus i
    Cg = csr_matrix((np.ones(len(on)), (gbus, np.arange(len(on)))), shape=(nb, len(on)))

    Sg = gen[on, PG] + 1j * gen[on, QG]
    Sd = bus[:, PD] + 1j * bus[:, QD]
    return (Cg @ Sg - Sd) / baseMVA


def makeBdc(
    baseMVA: float,
    bus: NDArray[np.float64],
    branch: NDArray[np.float64],
) -> Tuple[csr_matrix, csr_matrix, NDArray[np.float64], NDArray[np.float64]]:
    """
    Build the B matrices and phase shift injections for the DC power flow.

    The bus real power injections are related to the bus voltage angles by
    ``P = Bbus @ Va + Pbusinj`` and the from-end branch flows by
    ``Pf = Bf @ Va + Pfinj`` (all in p.u.).

    Returns
    -------
    Bbus : csr_matrix
        Bus susceptance matrix, shape (nb, nb).
    Bf : csr_matrix
        Branch susceptance matrix, shape (nl, nb).
    Pbusinj : NDArray[np.float64]
        Bus injections caused by phase shifters.
    Pfinj : NDArray[np.float64]
        From-end branch injections caused by phase shifters.
    """
    _check_consecutive(bus, "makeBdc")
    nb = bus.shape[0]
    nl = branch.shape[0]

    # series susceptance of in-service branches, scaled by tap ratio
    stat = branch[:, BR_STATUS]
    b = stat / branch[:, BR_X]
    b = b / _tap_ratios(branch)

    # Cft = Cf - Ct
    f = branch[:, F_BUS].astype(np.int64)
    t = branch[:, T_BUS].astype(np.int64)
    il = np.r_[np.arange(nl), np.arange(nl)]
    Cft = csr_matrix((np.r_[np.ones(nl), -np.ones(nl)], (il, np.r_[f, t])), shape=(nl, nb))

    Bf = csr_matrix((np.r_[b, -b], (il, np.r_[f, t])), shape=(nl, nb))
    Bbus = csr_matrix(Cft.T @ Bf)

    # phase shift "quiescent" injections
    Pfinj = b * (-branch[:, SHIFT] * np.pi / 180.0)
    Pbusinj = Cft.T @ Pfinj

    return Bbus, Bf, np.asarray(Pbusinj).ravel(), Pfinj


def makeB(
    baseMVA: float,
    bus: NDArray[np.float64],
    branch: NDArray[np.float64],
    alg,
) -> Tuple[csr_matrix, csr_matrix]:
    """
    Build the fast-decoupled B' and B'' matrices.

    Parameters
    ----------
    baseMVA : float
        System MVA base.
    bus, branch : NDArray[np.float64]
        Internally numbered bus and branch tables.
    alg : PFAlgorithm
        ``FDPF_XB`` neglects resistance in B', ``FDPF_BX`` neglects it in B''.

    Returns
    -------
    Bp : csr_matrix
        B' matrix (angle / active power), shape (nb, nb).
    Bpp : csr_matrix
        B'' matrix (magnitude / reactive power), shape (nb, nb).

    Raises
    ------
    ConfigurationError
        If ``alg`` is not a fast-decoupled variant.
    """
    from powerflow.options import PFAlgorithm

    alg = PFAlgorithm.coerce(alg)
    if alg not in (PFAlgorithm.FDPF_XB, PFAlgorithm.FDPF_BX):
        raise ConfigurationError(f"makeB: algorithm {alg} is not a fast-decoupled variant.")

    # B': no shunts, no line charging, unit taps
    temp_bus = bus.copy()
    temp_bus[:, BS] = 0.0
    temp_branch = branch.copy()
    temp_branch[:, BR_B] = 0.0
    temp_branch[:, TAP] = 1.0
    if alg is PFAlgorithm.FDPF_XB:
        temp_branch[:, BR_R] = 0.0
    Bp = -1.0 * makeYbus(baseMVA, temp_bus, temp_branch)[0].imag

    # B'': no phase shifters
    temp_branch = branch.copy()
    temp_branch[:, SHIFT] = 0.0
    if alg is PFAlgorithm.FDPF_BX:
        temp_branch[:, BR_R] = 0.0
    Bpp = -1.0 * makeYbus(baseMVA, bus, temp_branch)[0].imag

    return csr_matrix(Bp), csr_matrix(Bpp)
