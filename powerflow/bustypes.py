"""
Bus Types Module
================

Builds the index lists of reference, PV and PQ buses.

A bus can only control its voltage if at least one in-service generator is
connected to it.  Buses flagged PV or REF without an in-service generator
are therefore solved as PQ buses, and generators that are out of service
contribute neither voltage control nor injection.

Expects bus and generator tables in internal (consecutive) numbering.

Date: 2026-10-19
"""

from typing import Tuple

import numpy as np
from numpy.typing import NDArray
from scipy.sparse import csr_matrix

from pandapower.pypower.idx_bus import BUS_TYPE, REF, PV
from pandapower.pypower.idx_gen import GEN_BUS, GEN_STATUS

from core.exceptions import NoReferenceBusError


def bus_gen_status(bus: NDArray[np.float64], gen: NDArray[np.float64]) -> NDArray[np.int64]:
    """
    Number of in-service generators connected to each bus.

    Parameters
    ----------
    bus : NDArray[np.float64]
        Internally numbered bus table.
    gen : NDArray[np.float64]
        Internally numbered generator table.

    Returns
    -------
    counts : NDArray[np.int64]
        Array of length ``nb``.
    """
    nb = bus.shape[0]
    ng = gen.shape[0]

    # gen connection matrix, element (i, j) is 1 if generator j at bus i is ON
    Cg = csr_matrix(
        ((gen[:, GEN_STATUS] > 0).astype(np.int64), (gen[:, GEN_BUS].astype(np.int64), np.arange(ng))),
        shape=(nb, ng),
    )
    return np.asarray(Cg @ np.ones(ng, dtype=np.int64)).ravel()


def bustypes(
    bus: NDArray[np.float64],
    gen: NDArray[np.float64],
) -> Tuple[int, NDArray[np.int64], NDArray[np.int64]]:
    """
    Classify buses into reference, PV and PQ sets.

    Rules:

    - ``ref``: flagged REF and backed by an in-service generator
    - ``pv``:  flagged PV and backed by an in-service generator
    - ``pq``:  every other bus of the table

    If no backed REF bus exists (e.g. the slack generator is out of
    service), the first PV bus becomes the reference.  If several backed REF
    buses exist, the first one is kept and the others are solved as PV buses.

    Parameters
    ----------
    bus : NDArray[np.float64]
        Internally numbered bus table.
    gen : NDArray[np.float64]
        Internally numbered generator table.

    Returns
    -------
    ref : int
        Index of the reference bus.
    pv : NDArray[np.int64]
        Sorted indices of PV buses.
    pq : NDArray[np.int64]
        Sorted indices of PQ buses.

    Raises
    ------
    NoReferenceBusError
        If there is neither a backed REF bus nor any PV bus.
    """
    backed = bus_gen_status(bus, gen) > 0
    bus_type = bus[:, BUS_TYPE].astype(np.int64)

    is_ref = (bus_type == REF) & backed
    is_pv = (bus_type == PV) & backed

    ref_candidates = np.flatnonzero(is_ref)
    if len(ref_candidates) > 1:
        is_ref[ref_candidates[1:]] = False
        is_pv[ref_candidates[1:]] = True
    elif len(ref_candidates) == 0:
        pv_candidates = np.flatnonzero(is_pv)
        if len(pv_candidates) == 0:
            raise NoReferenceBusError(
                "No reference bus available: the slack bus has no in-service "
                "generator and there are no PV buses to take over."
            )
        # use the first PV bus and take it off the PV list
        is_ref[pv_candidates[0]] = True
        is_pv[pv_candidates[0]] = False

    is_pq = ~(is_ref | is_pv)

    ref = int(np.flatnonzero(is_ref)[0])
    pv = np.flatnonzero(is_pv).astype(np.int64)
    pq = np.flatnonzero(is_pq).astype(np.int64)
    return ref, pv, pq
