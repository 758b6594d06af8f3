"""
Result Tables Module
====================

Tabular views of a solved case, modelled on pandapower's ``res_bus``,
``res_gen`` and ``res_line`` tables.

Every function returns a new ``pandas.DataFrame``; the case is not
modified.  Tables are indexed by external bus number (``res_bus``) or by
row position (``res_gen``, ``res_branch``).

Date: 2026-10-19
"""

import numpy as np
import pandas as pd

from pandapower.pypower.idx_bus import BUS_I, BUS_TYPE, PD, QD, VM, VA
from pandapower.pypower.idx_gen import GEN_BUS, GEN_STATUS, PG, QG, QMAX, QMIN, VG
from pandapower.pypower.idx_brch import F_BUS, T_BUS, BR_STATUS, PF, QF, PT, QT

from core.case import Case
from core.exceptions import NumberingStateError


def _require_external(case: Case, caller: str) -> None:
    if case.is_internal:
        raise NumberingStateError(f"{caller}: case must be in external numbering.")


def res_bus(case: Case) -> pd.DataFrame:
    """
    Bus results.

    Columns: ``type``, ``vm_pu``, ``va_degree``, ``p_load_mw``,
    ``q_load_mvar``, ``p_gen_mw``, ``q_gen_mvar`` (in-service generation
    summed per bus).
    """
    _require_external(case, "res_bus")
    bus, gen = case.bus, case.gen
    bus_ids = bus[:, BUS_I].astype(np.int64)

    on = gen[:, GEN_STATUS] > 0
    gen_bus = pd.Series(gen[on, GEN_BUS].astype(np.int64))
    p_gen = pd.Series(gen[on, PG]).groupby(gen_bus).sum()
    q_gen = pd.Series(gen[on, QG]).groupby(gen_bus).sum()

    df = pd.DataFrame(
        {
            "type": bus[:, BUS_TYPE].astype(np.int64),
            "vm_pu": bus[:, VM],
            "va_degree": bus[:, VA],
            "p_load_mw": bus[:, PD],
            "q_load_mvar": bus[:, QD],
        },
        index=pd.Index(bus_ids, name="bus"),
    )
    df["p_gen_mw"] = p_gen.reindex(df.index, fill_value=0.0).to_numpy()
    df["q_gen_mvar"] = q_gen.reindex(df.index, fill_value=0.0).to_numpy()
    return df


def res_gen(case: Case) -> pd.DataFrame:
    """Generator results, one row per generator in external order."""
    _require_external(case, "res_gen")
    gen = case.gen
    return pd.DataFrame(
        {
            "bus": gen[:, GEN_BUS].astype(np.int64),
            "in_service": gen[:, GEN_STATUS] > 0,
            "p_mw": gen[:, PG],
            "q_mvar": gen[:, QG],
            "vm_set_pu": gen[:, VG],
            "q_max_mvar": gen[:, QMAX],
            "q_min_mvar": gen[:, QMIN],
        },
        index=pd.RangeIndex(gen.shape[0], name="gen"),
    )


def res_branch(case: Case) -> pd.DataFrame:
    """
    Branch results, one row per branch in external order.

    ``pl_mw`` and ``ql_mvar`` are the branch losses (sum of the injections
    at both ends).  Flow columns are zero for a case that has not been
    solved.
    """
    _require_external(case, "res_branch")
    branch = case.branch
    if branch.shape[1] < QT + 1:
        flows = np.zeros((branch.shape[0], 4))
    else:
        flows = branch[:, [PF, QF, PT, QT]]

    df = pd.DataFrame(
        {
            "from_bus": branch[:, F_BUS].astype(np.int64),
            "to_bus": branch[:, T_BUS].astype(np.int64),
            "in_service": branch[:, BR_STATUS] != 0,
            "p_from_mw": flows[:, 0],
            "q_from_mvar": flows[:, 1],
            "p_to_mw": flows[:, 2],
            "q_to_mvar": flows[:, 3],
        },
        index=pd.RangeIndex(branch.shape[0], name="branch"),
    )
    df["pl_mw"] = df["p_from_mw"] + df["p_to_mw"]
    df["ql_mvar"] = df["q_from_mvar"] + df["q_to_mvar"]
    return df
