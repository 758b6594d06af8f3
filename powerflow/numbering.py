"""
Numbering Module
================

Conversion between external and internal case numbering.

External numbering is the user-facing one: arbitrary positive bus numbers,
generators in any order and out-of-service elements still present.
Internal numbering is what the solvers need:

- buses numbered ``0 .. n-1`` in their original row order, isolated buses
  (type ``NONE``) removed
- generators and branches that are out of service, or attached to an
  isolated bus, removed
- generators sorted by internal bus index (stable, so co-located generators
  keep their relative order)

``ext2int`` stores everything required to undo the conversion in
``case.order``; ``int2ext`` restores the external shape and merges the
solved values of the in-service rows back in.  The two functions form a
two-state machine, calling either one in the wrong state raises
``NumberingStateError``.

Per-element data that lives outside the case tables (e.g. a vector with one
entry per generator) can be moved between numberings with ``e2i_data`` and
``i2e_data``.  These dispatch through ``OrderingKind`` to the typed
``remap_by_*_order`` functions.

Date: 2026-10-19
"""

from enum import Enum
from typing import Callable, Dict, Sequence, Union

import numpy as np
from numpy.typing import NDArray

from pandapower.pypower.idx_bus import BUS_I, BUS_TYPE, BUS_AREA, NONE
from pandapower.pypower.idx_gen import GEN_BUS, GEN_STATUS
from pandapower.pypower.idx_brch import F_BUS, T_BUS, BR_STATUS

from core.case import (
    AREA_I,
    PRICE_REF_BUS,
    CallbackStage,
    Case,
    ElementOrder,
    NumberingState,
    Order,
    run_userfcn,
)
from core.exceptions import ConfigurationError, NumberingStateError


class OrderingKind(Enum):
    """Element kind defining how per-element data is reordered."""
    BUS = "bus"
    GEN = "gen"
    BRANCH = "branch"

    @classmethod
    def coerce(cls, value: Union["OrderingKind", str]) -> "OrderingKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigurationError(
                f"Unknown ordering '{value}', expected one of "
                f"{[k.value for k in cls]}."
            ) from None


# =============================================================================
# Case conversion
# =============================================================================

def ext2int(case: Case) -> Case:
    """
    Convert a case from external to internal numbering (in place).

    Removes isolated buses and all out-of-service generators and branches,
    renumbers buses consecutively, sorts generators by bus and records the
    conversion in ``case.order``.  Callbacks registered for
    ``CallbackStage.EXT2INT`` run on the converted case.

    Parameters
    ----------
    case : Case
        Case in external numbering.

    Returns
    -------
    case : Case
        The converted case (the same object unless a callback replaced it).

    Raises
    ------
    NumberingStateError
        If the case already uses internal numbering.
    ConfigurationError
        If bus numbers are duplicated or a generator, branch or area refers
        to a bus number that does not exist.
    """
    if case.order is not None and case.order.state is NumberingState.INTERNAL:
        raise NumberingStateError("ext2int: case is already using internal numbering.")

    bus, gen, branch, areas = case.bus, case.gen, case.branch, case.areas
    external = case.tables()

    # -- bus lookup ----------------------------------------------------------
    bus_ids = bus[:, BUS_I].astype(np.int64)
    if bus_ids.size and bus_ids.min() < 0:
        raise ConfigurationError("ext2int: bus numbers must be non-negative.")
    if len(np.unique(bus_ids)) != len(bus_ids):
        raise ConfigurationError("ext2int: bus numbers must be unique.")

    n_lookup = int(bus_ids.max()) + 1 if bus_ids.size else 0
    row_of = np.full(n_lookup, -1, dtype=np.int64)
    row_of[bus_ids] = np.arange(len(bus_ids))

    gen_rows = _bus_rows(row_of, gen[:, GEN_BUS], "generator")
    f_rows = _bus_rows(row_of, branch[:, F_BUS], "branch 'from'")
    t_rows = _bus_rows(row_of, branch[:, T_BUS], "branch 'to'")

    isolated = bus[:, BUS_TYPE].astype(np.int64) == NONE

    # -- in-service partitions -----------------------------------------------
    bus_on = np.flatnonzero(~isolated)
    bus_off = np.flatnonzero(isolated)

    gen_off_mask = (gen[:, GEN_STATUS] <= 0) | isolated[gen_rows]
    gen_on = np.flatnonzero(~gen_off_mask)
    gen_off = np.flatnonzero(gen_off_mask)

    br_off_mask = (branch[:, BR_STATUS] == 0) | isolated[f_rows] | isolated[t_rows]
    br_on = np.flatnonzero(~br_off_mask)
    br_off = np.flatnonzero(br_off_mask)

    area_order = None
    if areas is not None:
        ref_rows = _bus_rows(row_of, areas[:, PRICE_REF_BUS], "area price reference")
        live_areas = np.isin(areas[:, AREA_I], bus[bus_on, BUS_AREA])
        ar_off_mask = isolated[ref_rows] | ~live_areas
        area_order = ElementOrder(on=np.flatnonzero(~ar_off_mask), off=np.flatnonzero(ar_off_mask))

    # -- remove out-of-service rows ------------------------------------------
    bus = bus[bus_on, :].copy()
    gen = gen[gen_on, :].copy()
    branch = branch[br_on, :].copy()
    if areas is not None:
        areas = areas[area_order.on, :].copy()

    # -- renumber buses ------------------------------------------------------
    i2e = bus[:, BUS_I].astype(np.int64)
    e2i = np.full(n_lookup, -1, dtype=np.int64)
    e2i[i2e] = np.arange(bus.shape[0])

    bus[:, BUS_I] = np.arange(bus.shape[0])
    gen[:, GEN_BUS] = e2i[gen[:, GEN_BUS].astype(np.int64)]
    branch[:, F_BUS] = e2i[branch[:, F_BUS].astype(np.int64)]
    branch[:, T_BUS] = e2i[branch[:, T_BUS].astype(np.int64)]
    if areas is not None:
        areas[:, PRICE_REF_BUS] = e2i[areas[:, PRICE_REF_BUS].astype(np.int64)]

    # -- sort generators by bus ----------------------------------------------
    gen_e2i = np.argsort(gen[:, GEN_BUS], kind="stable")
    gen_i2e = np.argsort(gen_e2i, kind="stable")
    gen = gen[gen_e2i, :]

    case.order = Order(
        state=NumberingState.INTERNAL,
        bus=ElementOrder(on=bus_on, off=bus_off, e2i=e2i, i2e=i2e),
        gen=ElementOrder(on=gen_on, off=gen_off, e2i=gen_e2i, i2e=gen_i2e),
        branch=ElementOrder(on=br_on, off=br_off),
        areas=area_order,
        external=external,
    )
    case.bus, case.gen, case.branch, case.areas = bus, gen, branch, areas

    return run_userfcn(case, CallbackStage.EXT2INT)


def int2ext(case: Case) -> Case:
    """
    Convert a case from internal back to external numbering (in place).

    Callbacks registered for ``CallbackStage.INT2EXT`` run first, on the
    internally numbered case.  The internal tables are then saved in
    ``case.order.internal``, the original tables are restored and the rows
    of in-service elements are overwritten with their (solved) internal
    values.  Removed buses, generators and branches reappear unchanged.

    Parameters
    ----------
    case : Case
        Case in internal numbering (with ``case.order`` set by ``ext2int``).

    Returns
    -------
    case : Case
        The restored case.

    Raises
    ------
    NumberingStateError
        If the case has no order or already uses external numbering.
    """
    if case.order is None:
        raise NumberingStateError(
            "int2ext: case does not have an order record, as required for "
            "conversion back to external numbering."
        )
    if case.order.state is not NumberingState.INTERNAL:
        raise NumberingStateError("int2ext: case is already using external numbering.")

    case = run_userfcn(case, CallbackStage.INT2EXT)
    o = case.order

    o.internal = case.tables()
    ext = o.external.copy()

    bus = remap_by_bus_order(o, o.internal.bus, _widen(ext.bus, o.internal.bus))
    branch = remap_by_branch_order(o, o.internal.branch, _widen(ext.branch, o.internal.branch))
    gen = remap_by_gen_order(o, o.internal.gen, _widen(ext.gen, o.internal.gen))
    areas = None
    if ext.areas is not None and o.internal.areas is not None:
        areas = _set_along(_widen(ext.areas, o.internal.areas), o.internal.areas, o.areas.on, 0)

    # revert to original bus numbers
    bus[o.bus.on, BUS_I] = o.bus.i2e[bus[o.bus.on, BUS_I].astype(np.int64)]
    branch[o.branch.on, F_BUS] = o.bus.i2e[branch[o.branch.on, F_BUS].astype(np.int64)]
    branch[o.branch.on, T_BUS] = o.bus.i2e[branch[o.branch.on, T_BUS].astype(np.int64)]
    gen[o.gen.on, GEN_BUS] = o.bus.i2e[gen[o.gen.on, GEN_BUS].astype(np.int64)]
    if areas is not None:
        on = o.areas.on
        areas[on, PRICE_REF_BUS] = o.bus.i2e[areas[on, PRICE_REF_BUS].astype(np.int64)]

    case.bus, case.gen, case.branch, case.areas = bus, gen, branch, areas
    o.external = None
    o.state = NumberingState.EXTERNAL
    return case


def _bus_rows(row_of: NDArray[np.int64], bus_numbers: NDArray[np.float64], label: str) -> NDArray[np.int64]:
    """Map external bus numbers to bus table rows, rejecting unknown numbers."""
    numbers = bus_numbers.astype(np.int64)
    valid = (numbers >= 0) & (numbers < len(row_of))
    rows = np.full(len(numbers), -1, dtype=np.int64)
    rows[valid] = row_of[numbers[valid]]
    if np.any(rows < 0):
        bad = sorted(set(numbers[rows < 0].tolist()))
        raise ConfigurationError(f"ext2int: {label} bus number(s) {bad} not found in bus table.")
    return rows


def _widen(old: NDArray[np.float64], new: NDArray[np.float64]) -> NDArray[np.float64]:
    """``old`` padded with zero columns up to the width of ``new``."""
    if new.shape[1] <= old.shape[1]:
        return old
    return np.hstack([old, np.zeros((old.shape[0], new.shape[1] - old.shape[1]))])


# =============================================================================
# Per-element data remapping
# =============================================================================

def remap_by_bus_order(
    order: Order,
    val: NDArray,
    oldval: NDArray,
    axis: int = 0,
) -> NDArray:
    """Place internal per-bus values into a copy of the external-shaped ``oldval``."""
    return _set_along(oldval, val, order.bus.on, axis)


def remap_by_gen_order(
    order: Order,
    val: NDArray,
    oldval: NDArray,
    axis: int = 0,
) -> NDArray:
    """
    Place internal per-generator values into a copy of ``oldval``.

    The values are first put back into external generator order (undoing
    the sort by bus) and then written to the in-service rows.
    """
    unsorted = np.take(val, order.gen.i2e, axis=axis)
    return _set_along(oldval, unsorted, order.gen.on, axis)


def remap_by_branch_order(
    order: Order,
    val: NDArray,
    oldval: NDArray,
    axis: int = 0,
) -> NDArray:
    """Place internal per-branch values into a copy of the external-shaped ``oldval``."""
    return _set_along(oldval, val, order.branch.on, axis)


_REMAP: Dict[OrderingKind, Callable[..., NDArray]] = {
    OrderingKind.BUS: remap_by_bus_order,
    OrderingKind.GEN: remap_by_gen_order,
    OrderingKind.BRANCH: remap_by_branch_order,
}


def e2i_data(
    case: Case,
    val: NDArray,
    ordering: Union[OrderingKind, str, Sequence[Union[OrderingKind, str]]],
    axis: int = 0,
) -> NDArray:
    """
    Convert per-element data from external to internal ordering.

    Parameters
    ----------
    case : Case
        Case in internal numbering.
    val : NDArray
        Data with one entry (row, or column if ``axis=1``) per external element.
    ordering : OrderingKind, str or sequence of these
        Element kind of the data.  For a sequence, ``val`` is a stack of
        blocks, one per kind, and any trailing entries are kept as they are.
    axis : int
        Axis holding the elements.

    Returns
    -------
    int_val : NDArray
        Data in internal ordering.
    """
    o = _require_internal(case, "e2i_data")
    kinds = _ordering_list(ordering)
    if len(kinds) == 1:
        return _select_internal(o, val, kinds[0], axis)

    blocks = []
    start = 0
    for kind in kinds:
        n_ext = _external_count(o, kind)
        block = np.take(val, np.arange(start, start + n_ext), axis=axis)
        blocks.append(_select_internal(o, block, kind, axis))
        start += n_ext
    if val.shape[axis] > start:
        blocks.append(np.take(val, np.arange(start, val.shape[axis]), axis=axis))
    return np.concatenate(blocks, axis=axis)


def i2e_data(
    case: Case,
    val: NDArray,
    oldval: NDArray,
    ordering: Union[OrderingKind, str, Sequence[Union[OrderingKind, str]]],
    axis: int = 0,
) -> NDArray:
    """
    Convert per-element data from internal to external ordering.

    Entries of out-of-service elements are taken from ``oldval``, which must
    have the external shape.

    Parameters
    ----------
    case : Case
        Case carrying the order record (internal or already restored).
    val : NDArray
        Data in internal ordering.
    oldval : NDArray
        Data in external ordering supplying the out-of-service entries.
    ordering : OrderingKind, str or sequence of these
        Element kind of the data, see ``e2i_data``.
    axis : int
        Axis holding the elements.

    Returns
    -------
    ext_val : NDArray
        Data in external ordering.
    """
    if case.order is None:
        raise NumberingStateError("i2e_data: case does not have an order record.")
    o = case.order
    kinds = _ordering_list(ordering)
    if len(kinds) == 1:
        return _REMAP[kinds[0]](o, val, oldval, axis)

    blocks = []
    bi = be = 0
    for kind in kinds:
        n_int = len(_element_order(o, kind).on)
        n_ext = _external_count(o, kind)
        v = np.take(val, np.arange(bi, bi + n_int), axis=axis)
        old = np.take(oldval, np.arange(be, be + n_ext), axis=axis)
        blocks.append(_REMAP[kind](o, v, old, axis))
        bi += n_int
        be += n_ext
    if val.shape[axis] > bi:
        blocks.append(np.take(val, np.arange(bi, val.shape[axis]), axis=axis))
    return np.concatenate(blocks, axis=axis)


def _require_internal(case: Case, caller: str) -> Order:
    if case.order is None or case.order.state is not NumberingState.INTERNAL:
        raise NumberingStateError(f"{caller}: case must be using internal numbering.")
    return case.order


def _ordering_list(ordering) -> list:
    if isinstance(ordering, (OrderingKind, str)):
        return [OrderingKind.coerce(ordering)]
    kinds = [OrderingKind.coerce(k) for k in ordering]
    if not kinds:
        raise ConfigurationError("At least one ordering must be given.")
    return kinds


def _element_order(o: Order, kind: OrderingKind) -> ElementOrder:
    return {OrderingKind.BUS: o.bus, OrderingKind.GEN: o.gen, OrderingKind.BRANCH: o.branch}[kind]


def _external_count(o: Order, kind: OrderingKind) -> int:
    eo = _element_order(o, kind)
    return len(eo.on) + len(eo.off)


def _select_internal(o: Order, val: NDArray, kind: OrderingKind, axis: int) -> NDArray:
    selected = np.take(val, _element_order(o, kind).on, axis=axis)
    if kind is OrderingKind.GEN:
        selected = np.take(selected, o.gen.e2i, axis=axis)
    return selected


def _set_along(oldval: NDArray, val: NDArray, idx: NDArray[np.int64], axis: int) -> NDArray:
    out = np.array(oldval, copy=True)
    index = [slice(None)] * out.ndim
    index[axis] = idx
    out[tuple(index)] = val
    return out
