"""
Core Module
============

This module provides the core data structures of the power flow engine.

Classes
-------
Case
    Network tables plus solution metadata.
Order
    Record enabling restoration of a renumbered case.
ElementOrder
    Renumbering data for one element kind.
CaseTables
    Copies of the four network tables.
NumberingState, CallbackStage
    Enumerations of numbering states and callback stages.
"""

from core.case import (
    Case,
    CaseTables,
    ElementOrder,
    Order,
    NumberingState,
    CallbackStage,
    add_userfcn,
)
from core.exceptions import (
    PowerFlowError,
    ConfigurationError,
    NoReferenceBusError,
    NumberingStateError,
    UnsupportedAlgorithmError,
    SolverError,
)

__all__ = [
    "Case",
    "CaseTables",
    "ElementOrder",
    "Order",
    "NumberingState",
    "CallbackStage",
    "add_userfcn",
    "PowerFlowError",
    "ConfigurationError",
    "NoReferenceBusError",
    "NumberingStateError",
    "UnsupportedAlgorithmError",
    "SolverError",
]
