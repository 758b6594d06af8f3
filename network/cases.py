"""
Cases Module
============

Bundled test cases and the case loader.

Bundled cases
-------------
case4gs
    4-bus example from Grainger & Stevenson, "Power System Analysis"
    (Example 9.5).  Generators are listed out of bus order.
case9
    9-bus, 3-generator WSCC system from Chow, "Time-Scale Modeling of
    Dynamic Networks with Applications to Power Systems".

``load_case`` turns any supported input into a ``Case`` in external
numbering:

- a ``Case`` (returned as is)
- a PYPOWER-style ``ppc`` dictionary
- the name of a bundled case, or the path to a pandapower JSON file
- a ``pandapowerNet``, converted with pandapower's ``to_ppc``

Date: 2026-10-19
"""

import os
from typing import Any, Callable, Dict, Mapping, Union

import numpy as np
import pandapower as pp
from pandapower.auxiliary import pandapowerNet
from pandapower.converter.pypower.to_ppc import to_ppc

from core.case import Case
from core.exceptions import ConfigurationError

# Number of standard PYPOWER columns kept when importing foreign tables
_N_BUS_COLS = 13
_N_GEN_COLS = 21
_N_BRANCH_COLS = 13


def case9() -> Dict[str, Any]:
    """Return the WSCC 9-bus case as a ``ppc`` dictionary."""
    ppc: Dict[str, Any] = {"version": "2", "baseMVA": 100.0}

    # bus_i type Pd Qd Gs Bs area Vm Va baseKV zone Vmax Vmin
    ppc["bus"] = np.array([
        [1, 3,   0,  0, 0, 0, 1, 1, 0, 345, 1, 1.1, 0.9],
        [2, 2,   0,  0, 0, 0, 1, 1, 0, 345, 1, 1.1, 0.9],
        [3, 2,   0,  0, 0, 0, 1, 1, 0, 345, 1, 1.1, 0.9],
        [4, 1,   0,  0, 0, 0, 1, 1, 0, 345, 1, 1.1, 0.9],
        [5, 1,  90, 30, 0, 0, 1, 1, 0, 345, 1, 1.1, 0.9],
        [6, 1,   0,  0, 0, 0, 1, 1, 0, 345, 1, 1.1, 0.9],
        [7, 1, 100, 35, 0, 0, 1, 1, 0, 345, 1, 1.1, 0.9],
        [8, 1,   0,  0, 0, 0, 1, 1, 0, 345, 1, 1.1, 0.9],
        [9, 1, 125, 50, 0, 0, 1, 1, 0, 345, 1, 1.1, 0.9],
    ], dtype=np.float64)

    # bus Pg Qg Qmax Qmin Vg mBase status Pmax Pmin (+ 11 capability columns)
    ppc["gen"] = np.hstack([
        np.array([
            [1,   0, 0, 300, -300, 1, 100, 1, 250, 10],
            [2, 163, 0, 300, -300, 1, 100, 1, 300, 10],
            [3,  85, 0, 300, -300, 1, 100, 1, 270, 10],
        ], dtype=np.float64),
        np.zeros((3, 11)),
    ])

    # fbus tbus r x b rateA rateB rateC ratio angle status angmin angmax
    ppc["branch"] = np.array([
        [1, 4, 0,      0.0576, 0,     250, 250, 250, 0, 0, 1, -360, 360],
        [4, 5, 0.017,  0.092,  0.158, 250, 250, 250, 0, 0, 1, -360, 360],
        [5, 6, 0.039,  0.17,   0.358, 150, 150, 150, 0, 0, 1, -360, 360],
        [3, 6, 0,      0.0586, 0,     300, 300, 300, 0, 0, 1, -360, 360],
        [6, 7, 0.0119, 0.1008, 0.209, 150, 150, 150, 0, 0, 1, -360, 360],
        [7, 8, 0.0085, 0.072,  0.149, 250, 250, 250, 0, 0, 1, -360, 360],
        [8, 2, 0,      0.0625, 0,     250, 250, 250, 0, 0, 1, -360, 360],
        [8, 9, 0.032,  0.161,  0.306, 250, 250, 250, 0, 0, 1, -360, 360],
        [9, 4, 0.01,   0.085,  0.176, 250, 250, 250, 0, 0, 1, -360, 360],
    ], dtype=np.float64)

    # area price_ref_bus
    ppc["areas"] = np.array([[1, 5]], dtype=np.float64)
    return ppc


def case4gs() -> Dict[str, Any]:
    """Return the Grainger & Stevenson 4-bus case as a ``ppc`` dictionary."""
    ppc: Dict[str, Any] = {"version": "2", "baseMVA": 100.0}

    ppc["bus"] = np.array([
        [1, 3,  50,  30.99, 0, 0, 1, 1, 0, 230, 1, 1.1, 0.9],
        [2, 1, 170, 105.35, 0, 0, 1, 1, 0, 230, 1, 1.1, 0.9],
        [3, 1, 200, 123.94, 0, 0, 1, 1, 0, 230, 1, 1.1, 0.9],
        [4, 2,  80,  49.58, 0, 0, 1, 1, 0, 230, 1, 1.1, 0.9],
    ], dtype=np.float64)

    ppc["gen"] = np.hstack([
        np.array([
            [4, 318, 0, 100, -100, 1.02, 100, 1, 318, 0],
            [1,   0, 0, 100, -100, 1.00, 100, 1,   0, 0],
        ], dtype=np.float64),
        np.zeros((2, 11)),
    ])

    ppc["branch"] = np.array([
        [1, 2, 0.01008, 0.0504, 0.1025, 250, 250, 250, 0, 0, 1, -360, 360],
        [1, 3, 0.00744, 0.0372, 0.0775, 250, 250, 250, 0, 0, 1, -360, 360],
        [2, 4, 0.00744, 0.0372, 0.0775, 250, 250, 250, 0, 0, 1, -360, 360],
        [3, 4, 0.01272, 0.0636, 0.1275, 250, 250, 250, 0, 0, 1, -360, 360],
    ], dtype=np.float64)
    return ppc


BUNDLED_CASES: Dict[str, Callable[[], Dict[str, Any]]] = {
    "case4gs": case4gs,
    "case9": case9,
}


def load_case(source: Union[Case, Mapping[str, Any], str, pandapowerNet]) -> Case:
    """
    Load a case from any supported source.

    Parameters
    ----------
    source : Case, dict, str or pandapowerNet
        See module docstring.

    Returns
    -------
    case : Case
        Case in external numbering.  A ``Case`` input is returned unchanged
        (not copied); all other inputs produce a new object.

    Raises
    ------
    ConfigurationError
        If the source type is not supported, a name is unknown or required
        case data is missing.
    """
    if isinstance(source, Case):
        return source

    if isinstance(source, pandapowerNet):
        return case_from_pandapower(source)

    if isinstance(source, str):
        key = source.strip()
        if key.lower() in BUNDLED_CASES:
            return _from_ppc(BUNDLED_CASES[key.lower()](), key.lower())
        if key.lower().endswith(".json") and os.path.isfile(key):
            return case_from_pandapower(pp.from_json(key), name=os.path.basename(key))
        raise ConfigurationError(
            f"Unknown case '{source}'. Bundled cases: {sorted(BUNDLED_CASES)}."
        )

    if isinstance(source, Mapping):
        return _from_ppc(dict(source), str(source.get("name", "")))

    raise ConfigurationError(f"Cannot load a case from an object of type {type(source).__name__}.")


def case_from_pandapower(net: pandapowerNet, name: str = "") -> Case:
    """
    Convert a pandapower network into a ``Case``.

    The conversion uses pandapower's own ``to_ppc`` with a flat start.  Only
    the standard PYPOWER columns of the resulting tables are kept, and the
    bus numbers are the ones of pandapower's internal ``ppc`` (see
    ``net._pd2ppc_lookups["bus"]``).

    Parameters
    ----------
    net : pandapowerNet
        Network to convert.
    name : str
        Identifier stored on the case (defaults to ``net.name``).
    """
    ppc = to_ppc(net, calculate_voltage_angles=True, init="flat")
    return Case(
        base_mva=ppc["baseMVA"],
        bus=np.array(ppc["bus"][:, :_N_BUS_COLS].real, dtype=np.float64),
        gen=np.array(ppc["gen"][:, :_N_GEN_COLS].real, dtype=np.float64),
        branch=np.array(ppc["branch"][:, :_N_BRANCH_COLS].real, dtype=np.float64),
        name=name or str(getattr(net, "name", "") or ""),
    )


def _from_ppc(ppc: Dict[str, Any], name: str) -> Case:
    try:
        return Case.from_ppc(ppc, name=name)
    except ConfigurationError:
        raise
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
