"""
Case Module
===========

This module defines the data records passed between the stages of a power
flow run.

A ``Case`` holds the network tables (bus, generator, branch and optional
area data) as dense NumPy arrays in the PYPOWER column layout.  Column
indices are the ones used by pandapower's PYPOWER port
(``pandapower.pypower.idx_bus`` / ``idx_gen`` / ``idx_brch``), so a case can
be exchanged with pandapower's internal ``ppc`` structure without
re-mapping columns.

When a case is converted to internal numbering (see
``powerflow.numbering.ext2int``) an ``Order`` record is attached to it.  The
order keeps the permutations between external and internal numbering and
deep copies of the original tables, so that the conversion can be reverted
exactly.  Snapshots stored inside an order are never aliased with the live
case arrays.

Date: 2026-10-19
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

# Area table columns (not provided by pandapower's idx modules)
AREA_I = 0
PRICE_REF_BUS = 1


class NumberingState(Enum):
    """Numbering currently used by the tables of a case."""
    EXTERNAL = "external"
    INTERNAL = "internal"


class CallbackStage(Enum):
    """Stages at which user callbacks registered on a case are executed."""
    EXT2INT = "ext2int"     # right after conversion to internal numbering
    INT2EXT = "int2ext"     # right before restoration of external numbering


@dataclass
class CaseTables:
    """
    Value record with copies of the four network tables.

    Attributes
    ----------
    bus : NDArray[np.float64]
        Bus table.
    gen : NDArray[np.float64]
        Generator table.
    branch : NDArray[np.float64]
        Branch table.
    areas : NDArray[np.float64] or None
        Area table (``AREA_I``, ``PRICE_REF_BUS``), if present.
    """
    bus: NDArray[np.float64]
    gen: NDArray[np.float64]
    branch: NDArray[np.float64]
    areas: Optional[NDArray[np.float64]] = None

    def copy(self) -> "CaseTables":
        """Return an independent copy of all tables."""
        return CaseTables(
            bus=self.bus.copy(),
            gen=self.gen.copy(),
            branch=self.branch.copy(),
            areas=None if self.areas is None else self.areas.copy(),
        )


@dataclass
class ElementOrder:
    """
    Renumbering data for one element kind (bus, gen, branch or area).

    Attributes
    ----------
    on : NDArray[np.int64]
        External row indices kept in the internal case.
    off : NDArray[np.int64]
        External row indices removed from the internal case.
    e2i : NDArray[np.int64] or None
        For buses: lookup array indexed by external bus number giving the
        internal bus index (``-1`` for unknown numbers).
        For generators: permutation applied to the in-service rows to sort
        them by bus.
    i2e : NDArray[np.int64] or None
        For buses: external bus number of every internal bus.
        For generators: inverse of ``e2i``.
    """
    on: NDArray[np.int64]
    off: NDArray[np.int64]
    e2i: Optional[NDArray[np.int64]] = None
    i2e: Optional[NDArray[np.int64]] = None


@dataclass
class Order:
    """
    Record enabling exact restoration of a case renumbered by ``ext2int``.

    Attributes
    ----------
    state : NumberingState
        Numbering the owning case currently uses.
    bus, gen, branch : ElementOrder
        Renumbering data per element kind.
    areas : ElementOrder or None
        Renumbering data for the area table, if the case has one.
    external : CaseTables or None
        Copies of the tables before conversion.  Cleared by ``int2ext``.
    internal : CaseTables or None
        Copies of the internal tables taken by ``int2ext``.
    """
    state: NumberingState
    bus: ElementOrder
    gen: ElementOrder
    branch: ElementOrder
    areas: Optional[ElementOrder] = None
    external: Optional[CaseTables] = None
    internal: Optional[CaseTables] = None


Callback = Tuple[Callable[..., Any], Any]


@dataclass
class Case:
    """
    Power flow case: network tables plus solution metadata.

    Attributes
    ----------
    base_mva : float
        System MVA base.
    bus : NDArray[np.float64]
        Bus table (one row per bus).
    gen : NDArray[np.float64]
        Generator table (one row per generator).
    branch : NDArray[np.float64]
        Branch table (one row per branch).
    areas : NDArray[np.float64] or None
        Optional area table.
    order : Order or None
        Renumbering record, present once ``ext2int`` has been applied.
    success : bool or None
        Outcome of the last solve (``None`` if never solved).
    et : float or None
        Elapsed solve time in seconds.
    iterations : int
        Total number of solver iterations of the last run.
    userfcn : Dict[CallbackStage, List[Callback]]
        Registered user callbacks per stage.
    name : str
        Identifier of the source case.
    """
    base_mva: float
    bus: NDArray[np.float64]
    gen: NDArray[np.float64]
    branch: NDArray[np.float64]
    areas: Optional[NDArray[np.float64]] = None
    order: Optional[Order] = None
    success: Optional[bool] = None
    et: Optional[float] = None
    iterations: int = 0
    userfcn: Dict[CallbackStage, List[Callback]] = field(default_factory=dict)
    name: str = ""

    def __post_init__(self) -> None:
        """Coerce tables to 2-D float arrays."""
        if self.base_mva is None or float(self.base_mva) <= 0:
            raise ValueError(f"base_mva must be positive, got {self.base_mva}")
        self.base_mva = float(self.base_mva)
        self.bus = _as_table(self.bus, "bus", 13)
        self.gen = _as_table(self.gen, "gen", 21)
        self.branch = _as_table(self.branch, "branch", 13)
        if self.areas is not None:
            self.areas = _as_table(self.areas, "areas", 2)

    @property
    def n_bus(self) -> int:
        """Number of rows in the bus table."""
        return self.bus.shape[0]

    @property
    def n_gen(self) -> int:
        """Number of rows in the generator table."""
        return self.gen.shape[0]

    @property
    def n_branch(self) -> int:
        """Number of rows in the branch table."""
        return self.branch.shape[0]

    @property
    def is_internal(self) -> bool:
        """True if the tables currently use internal numbering."""
        return self.order is not None and self.order.state is NumberingState.INTERNAL

    def tables(self) -> CaseTables:
        """Return copies of the current tables."""
        return CaseTables(self.bus, self.gen, self.branch, self.areas).copy()

    def copy(self) -> "Case":
        """Return a deep copy (tables, order and callback registry)."""
        return copy.deepcopy(self)

    @classmethod
    def from_ppc(cls, ppc: Dict[str, Any], name: str = "") -> "Case":
        """
        Build a case from a PYPOWER-style dictionary.

        Parameters
        ----------
        ppc : dict
            Dictionary with keys ``baseMVA``, ``bus``, ``gen``, ``branch`` and
            optionally ``areas``.
        name : str
            Identifier stored on the case.

        Raises
        ------
        ValueError
            If a required key is missing.
        """
        for key in ("baseMVA", "bus", "gen", "branch"):
            if key not in ppc:
                raise ValueError(f"Case data is missing required key '{key}'.")
        areas = ppc.get("areas")
        if areas is not None and np.size(areas) == 0:
            areas = None
        return cls(
            base_mva=ppc["baseMVA"],
            bus=np.array(ppc["bus"], dtype=np.float64),
            gen=np.array(ppc["gen"], dtype=np.float64),
            branch=np.array(ppc["branch"], dtype=np.float64),
            areas=None if areas is None else np.array(areas, dtype=np.float64),
            name=name,
        )

    def to_ppc(self) -> Dict[str, Any]:
        """Return the tables as a PYPOWER-style dictionary (copies)."""
        ppc = {
            "version": "2",
            "baseMVA": self.base_mva,
            "bus": self.bus.copy(),
            "gen": self.gen.copy(),
            "branch": self.branch.copy(),
        }
        if self.areas is not None:
            ppc["areas"] = self.areas.copy()
        return ppc


def add_userfcn(
    case: Case,
    stage: CallbackStage,
    fcn: Callable[..., Any],
    args: Any = None,
) -> Case:
    """
    Register a user callback on a case.

    The callback is called as ``fcn(case)`` or ``fcn(case, args)`` when
    ``args`` is given.  It may modify the case in place or return a
    replacement case.

    Parameters
    ----------
    case : Case
        Case to register the callback on.
    stage : CallbackStage or str
        Stage at which to run the callback.
    fcn : callable
        The callback.
    args : any, optional
        Extra argument passed to the callback.

    Returns
    -------
    case : Case
        The same case, for chaining.
    """
    stage = CallbackStage(stage)
    if not callable(fcn):
        raise ValueError(f"Callback for stage '{stage.value}' must be callable.")
    case.userfcn.setdefault(stage, []).append((fcn, args))
    return case


def run_userfcn(case: Case, stage: CallbackStage) -> Case:
    """Run all callbacks registered for ``stage`` in registration order."""
    for fcn, args in list(case.userfcn.get(stage, [])):
        result = fcn(case) if args is None else fcn(case, args)
        if result is not None:
            case = result
    return case


def _as_table(values: Any, label: str, n_cols: int) -> NDArray[np.float64]:
    arr = np.array(values, dtype=np.float64)
    if arr.size == 0 and arr.ndim < 2:
        arr = np.zeros((0, n_cols))
    if arr.ndim == 1:
        arr = arr.reshape(1, -1)
    if arr.ndim != 2:
        raise ValueError(f"{label} table must be 2-D, got shape {arr.shape}")
    return arr
