"""
Power Flow Solution Module
==========================

Writes a solved voltage vector back into the internally numbered case
tables: bus voltages, generator outputs at the reference and PV buses and
the complex power flows at both ends of every branch.

Date: 2026-10-19
"""

from typing import Tuple

import numpy as np
from numpy.typing import NDArray
from scipy.sparse import csr_matrix

from pandapower.pypower.idx_bus import VM, VA, PD, QD
from pandapower.pypower.idx_gen import GEN_BUS, GEN_STATUS, PG, QG, QMAX, QMIN
from pandapower.pypower.idx_brch import F_BUS, T_BUS, BR_STATUS, PF, QF, PT, QT


def pfsoln(
    baseMVA: float,
    bus0: NDArray[np.float64],
    gen0: NDArray[np.float64],
    branch0: NDArray[np.float64],
    Ybus,
    Yf,
    Yt,
    V: NDArray[np.complex128],
    ref: int,
    pv: NDArray[np.int64],
    pq: NDArray[np.int64],
) -> Tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.float64]]:
    """
    Update bus, generator and branch tables from a power flow solution.

    Generator reactive output is computed for every in-service generator
    from the bus injection.  Several generators at one bus share the bus
    reactive power so that each sits at the same fraction of its own range
    ``[Qmin, Qmax]``; infinite limits are replaced by a finite bound first.
    If the combined range of the bus is zero, the generators get an equal
    share.  The real output of the generator(s) at the reference bus is
    set to the remaining real power balance.

    Parameters
    ----------
    baseMVA : float
        System MVA base.
    bus0, gen0, branch0 : NDArray[np.float64]
        Internally numbered tables (not modified).
    Ybus, Yf, Yt : sparse matrix
        Admittance matrices from ``makeYbus``.
    V : NDArray[np.complex128]
        Solved bus voltages.
    ref : int
        Reference bus index.
    pv, pq : NDArray[np.int64]
        PV and PQ bus indices.

    Returns
    -------
    bus, gen, branch : NDArray[np.float64]
        Updated copies of the tables.  ``branch`` has at least ``QT + 1``
        columns.
    """
    bus = bus0.copy()
    gen = gen0.copy()
    branch = branch0.copy()
    if branch.shape[1] < QT + 1:
        branch = np.hstack([branch, np.zeros((branch.shape[0], QT + 1 - branch.shape[1]))])

    # -- bus voltages --------------------------------------------------------
    bus[:, VM] = np.abs(V)
    bus[:, VA] = np.angle(V) * 180.0 / np.pi

    # -- generator reactive power ---------------------------------------------
    nb = bus.shape[0]
    on = np.flatnonzero(gen[:, GEN_STATUS] > 0)
    gbus = gen[on, GEN_BUS].astype(np.int64)
    ngon = len(on)

    # complex injection at generator buses, Qg = Q_inj + QD
    Sg = V[gbus] * np.conj(Ybus[gbus, :] @ V)
    gen[:, QG] = 0.0
    gen[on, QG] = Sg.imag * baseMVA + bus[gbus, QD]

    if ngon > 1:
        # Cg(i, j) is 1 if in-service gen j is at bus i
        Cg = csr_matrix((np.ones(ngon), (np.arange(ngon), gbus)), shape=(ngon, nb))
        ngg = Cg @ np.asarray(Cg.sum(axis=0)).ravel()

        # equal split first, kept for buses whose generators have no Q range
        gen[on, QG] = gen[on, QG] / ngg
        Qg_share = gen[on, QG].copy()

        # infinite limits are replaced by a bound well outside the solution
        Qmin = gen[on, QMIN].copy()
        Qmax = gen[on, QMAX].copy()
        M = np.abs(Qg_share)
        M = np.maximum(M, np.where(np.isinf(Qmax), 0.0, np.abs(Qmax)))
        M = np.maximum(M, np.where(np.isinf(Qmin), 0.0, np.abs(Qmin)))
        M = 2.0 * M
        Qmax[np.isposinf(Qmax)] = M[np.isposinf(Qmax)]
        Qmin[np.isneginf(Qmin)] = -M[np.isneginf(Qmin)]

        # every generator of a bus sits at the same fraction of its Q range
        Qg_tot = (Cg.T @ gen[on, QG])[gbus]
        Qg_min = (Cg.T @ Qmin)[gbus]
        Qg_max = (Cg.T @ Qmax)[gbus]
        span = Qg_max - Qg_min
        shared = span > 0
        fraction = np.zeros(ngon)
        fraction[shared] = (Qg_tot[shared] - Qg_min[shared]) / span[shared]
        gen[on, QG] = Qmin + fraction * (Qmax - Qmin)
        gen[on[~shared], QG] = Qg_share[~shared]

    # -- reference generator real power -----------------------------------------
    refgen = on[gbus == ref]
    if len(refgen) > 0:
        Sref = V[ref] * np.conj(Ybus[ref, :] @ V)
        Pref = float(np.real(np.ravel(Sref)[0])) * baseMVA + bus[ref, PD]
        if len(refgen) > 1:
            # the first generator takes up the balance of the others
            Pref -= gen[refgen[1:], PG].sum()
        gen[refgen[0], PG] = Pref

    # -- branch flows ------------------------------------------------------------
    out = np.flatnonzero(branch[:, BR_STATUS] == 0)
    br = np.flatnonzero(branch[:, BR_STATUS] != 0)
    f = branch[br, F_BUS].astype(np.int64)
    t = branch[br, T_BUS].astype(np.int64)
    Sf = V[f] * np.conj(Yf[br, :] @ V) * baseMVA
    St = V[t] * np.conj(Yt[br, :] @ V) * baseMVA
    branch[br, PF] = Sf.real
    branch[br, QF] = Sf.imag
    branch[br, PT] = St.real
    branch[br, QT] = St.imag
    branch[np.ix_(out, [PF, QF, PT, QT])] = 0.0

    return bus, gen, branch
