"""
Network Module
==============

Network data: bundled cases, the case loader, network matrix builders and
result tables.

Functions
---------
load_case
    Build a ``Case`` from a ppc dict, a bundled case name or a pandapower net.
makeYbus, makeSbus, makeBdc, makeB
    Sparse network matrices from internally numbered tables.
res_bus, res_gen, res_branch
    Result tables of a solved case as pandas DataFrames.
"""

from network.cases import load_case, case9, case4gs, case_from_pandapower
from network.matrices import makeYbus, makeSbus, makeBdc, makeB
from network.results import res_bus, res_gen, res_branch

__all__ = [
    "load_case",
    "case9",
    "case4gs",
    "case_from_pandapower",
    "makeYbus",
    "makeSbus",
    "makeBdc",
    "makeB",
    "res_bus",
    "res_gen",
    "res_branch",
]
