"""
Run Power Flow Module
=====================

Top-level power flow driver.

``runpf`` loads a case, converts it to internal numbering, classifies the
buses and solves either the DC approximation or the AC power flow with the
selected algorithm.  With reactive limit enforcement enabled, generators
violating their limits are fixed at the limit and their buses converted to
PQ buses, and the AC power flow is repeated until no violation remains.
Results are written back in external numbering.

The input case is never modified, every run works on its own copy.

Date: 2026-10-19
"""

import time
import warnings
from typing import Any, List, Mapping, Union

import numpy as np

from pandapower.pypower.idx_bus import BUS_TYPE, PQ, PD, QD, VM, VA, GS
from pandapower.pypower.idx_gen import GEN_BUS, GEN_STATUS, PG, QG, QMAX, QMIN, VG
from pandapower.pypower.idx_brch import PF, QF, PT, QT

from core.case import Case
from core.exceptions import SolverError
from network.cases import load_case
from network.matrices import makeB, makeBdc, makeSbus, makeYbus
from powerflow.bustypes import bustypes
from powerflow.dcpf import dcpf
from powerflow.fdpf import fdpf
from powerflow.gausspf import gausspf
from powerflow.newtonpf import newtonpf
from powerflow.numbering import ext2int, int2ext
from powerflow.options import PFAlgorithm, PFOptions, QLimitMode
from powerflow.pfsoln import pfsoln


def _resolve_options(options: Union[PFOptions, Mapping[str, Any], None], **overrides: Any) -> PFOptions:
    if options is None:
        opts = PFOptions()
    elif isinstance(options, PFOptions):
        opts = options
    else:
        opts = PFOptions.from_mapping(options)
    if overrides:
        opts = opts.replace(**overrides)
    return opts


def runpf(
    casedata: Union[Case, Mapping[str, Any], str, Any, None] = None,
    options: Union[PFOptions, Mapping[str, Any], None] = None,
    **overrides: Any,
) -> Case:
    """
    Run a power flow.

    Parameters
    ----------
    casedata : Case, dict, str or pandapowerNet, optional
        Case to solve, anything accepted by ``network.cases.load_case``.
        Defaults to the bundled ``case9``.
    options : PFOptions or mapping, optional
        Power flow options.  A mapping is converted with
        ``PFOptions.from_mapping``.
    **overrides
        Individual ``PFOptions`` fields overriding ``options``.

    Returns
    -------
    case : Case
        Solved copy of the case in external numbering, with ``success``,
        ``et`` and ``iterations`` set.

    Raises
    ------
    NoReferenceBusError
        If no bus can serve as the reference bus.
    ConfigurationError
        For invalid case data or options.
    """
    opts = _resolve_options(options, **overrides)
    t0 = time.perf_counter()

    case = load_case("case9" if casedata is None else casedata).copy()
    if case.branch.shape[1] < QT + 1:
        case.branch = np.hstack([
            case.branch, np.zeros((case.branch.shape[0], QT + 1 - case.branch.shape[1]))
        ])

    case = ext2int(case)
    baseMVA = case.base_mva
    bus, gen, branch = case.bus, case.gen, case.branch

    ref, pv, pq = bustypes(bus, gen)

    on = np.flatnonzero(gen[:, GEN_STATUS] > 0)
    gbus = gen[on, GEN_BUS].astype(np.int64)

    if opts.dc:
        if opts.verbose:
            print("[PF] Running DC power flow ...")
        bus, gen, branch, success, iterations = _solve_dc(
            baseMVA, bus, gen, branch, ref, pv, pq, on, gbus
        )
    else:
        if opts.verbose:
            print(f"[PF] Running AC power flow ({opts.algorithm.name}) ...")
        bus, gen, branch, success, iterations = _solve_ac(
            baseMVA, bus, gen, branch, ref, pv, pq, on, gbus, opts
        )

    case.bus, case.gen, case.branch = bus, gen, branch
    case.et = time.perf_counter() - t0
    case.success = bool(success)
    case.iterations = int(iterations)

    if opts.verbose:
        outcome = "converged" if success else "did not converge"
        print(f"[PF] Power flow {outcome} in {case.et:.3f} s ({case.iterations} iterations).")

    case = int2ext(case)

    # zero out result fields of out-of-service gens and branches
    o = case.order
    if len(o.gen.off) > 0:
        case.gen[np.ix_(o.gen.off, [PG, QG])] = 0.0
    if len(o.branch.off) > 0:
        case.branch[np.ix_(o.branch.off, [PF, QF, PT, QT])] = 0.0

    return case


def rundcpf(
    casedata: Union[Case, Mapping[str, Any], str, Any, None] = None,
    options: Union[PFOptions, Mapping[str, Any], None] = None,
    **overrides: Any,
) -> Case:
    """Run a DC power flow, see ``runpf``."""
    overrides["dc"] = True
    return runpf(casedata, options, **overrides)


# =============================================================================
# DC power flow
# =============================================================================

def _solve_dc(baseMVA, bus, gen, branch, ref, pv, pq, on, gbus):
    bus = bus.copy()
    gen = gen.copy()
    branch = branch.copy()

    Va0 = bus[:, VA] * np.pi / 180.0
    B, Bf, Pbusinj, Pfinj = makeBdc(baseMVA, bus, branch)

    # real power injections with phase shift and shunt corrections
    Pbus = makeSbus(baseMVA, bus, gen).real - Pbusinj - bus[:, GS] / baseMVA

    try:
        Va = dcpf(B, Pbus, Va0, ref, pv, pq)
    except SolverError as e:
        warnings.warn(f"DC power flow failed: {e}")
        return bus, gen, branch, False, 0

    branch[:, [QF, PT, QT]] = 0.0
    branch[:, PF] = (Bf @ Va + Pfinj) * baseMVA
    branch[:, PT] = -branch[:, PF]
    bus[:, VM] = 1.0
    bus[:, VA] = Va * 180.0 / np.pi

    # slack generator takes up the mismatch at the reference bus
    refgen = on[gbus == ref]
    if len(refgen) > 0:
        mismatch = float(np.ravel(B[ref, :] @ Va)[0]) - Pbus[ref]
        gen[refgen[0], PG] += mismatch * baseMVA

    return bus, gen, branch, True, 1


# =============================================================================
# AC power flow
# =============================================================================

def _solve_ac(baseMVA, bus, gen, branch, ref, pv, pq, on, gbus, opts: PFOptions):
    bus = bus.copy()
    gen = gen.copy()
    verbose = opts.verbose

    # initial state, generator set-points at voltage-controlled buses
    V0 = bus[:, VM] * np.exp(1j * np.pi / 180.0 * bus[:, VA])
    vcb = np.ones(bus.shape[0], dtype=bool)
    vcb[pq] = False
    k = np.flatnonzero(vcb[gbus])
    V0[gbus[k]] = gen[on[k], VG] / np.abs(V0[gbus[k]]) * V0[gbus[k]]

    qlim = opts.enforce_q_limits
    ref0 = ref
    Varef0 = bus[ref0, VA]
    limited: List[int] = []
    fixedQg = np.zeros(gen.shape[0])

    success = False
    iterations = 0
    while True:
        Ybus, Yf, Yt = makeYbus(baseMVA, bus, branch)
        Sbus = makeSbus(baseMVA, bus, gen)

        try:
            result = _run_solver(opts, baseMVA, bus, branch, Ybus, Sbus, V0, ref, pv, pq)
        except SolverError as e:
            warnings.warn(f"AC power flow failed: {e}")
            success = False
            break

        iterations += result.iterations
        success = result.converged
        if not success:
            break

        bus, gen, branch = pfsoln(baseMVA, bus, gen, branch, Ybus, Yf, Yt, result.V, ref, pv, pq)

        if qlim is QLimitMode.OFF:
            break

        # find gens with violated Q limits
        gen_on = gen[:, GEN_STATUS] > 0
        mx = np.flatnonzero(gen_on & (gen[:, QG] > gen[:, QMAX]))
        mn = np.flatnonzero(gen_on & (gen[:, QG] < gen[:, QMIN]))
        if len(mx) == 0 and len(mn) == 0:
            break

        if len(pv) == 0:
            if verbose:
                if len(mx) > 0:
                    print(f"[PF] Gen {mx[0]} (only one left) exceeds upper Q limit: INFEASIBLE PROBLEM")
                else:
                    print(f"[PF] Gen {mn[0]} (only one left) exceeds lower Q limit: INFEASIBLE PROBLEM")
            success = False
            break

        if qlim is QLimitMode.ONE_AT_A_TIME:
            # keep only the largest violation
            violation = np.r_[gen[mx, QG] - gen[mx, QMAX], gen[mn, QMIN] - gen[mn, QG]]
            worst = int(np.argmax(violation))
            if worst < len(mx):
                mx, mn = mx[[worst]], mn[:0]
            else:
                mx, mn = mx[:0], mn[[worst - len(mx)]]

        if verbose:
            for g in mx:
                print(f"[PF] Gen {g} at upper Q limit, converting to PQ bus")
            for g in mn:
                print(f"[PF] Gen {g} at lower Q limit, converting to PQ bus")

        # fix the violating gens at their limits and turn them into loads
        fixedQg[mx] = gen[mx, QMAX]
        fixedQg[mn] = gen[mn, QMIN]
        violators = np.r_[mx, mn].astype(np.int64)
        gen[violators, QG] = fixedQg[violators]
        gen[violators, GEN_STATUS] = 0
        for g in violators:
            bi = int(gen[g, GEN_BUS])
            bus[bi, PD] -= gen[g, PG]
            bus[bi, QD] -= gen[g, QG]
        bus[gen[violators, GEN_BUS].astype(np.int64), BUS_TYPE] = PQ

        ref_temp = ref
        ref, pv, pq = bustypes(bus, gen)
        if verbose and ref != ref_temp:
            print(f"[PF] Bus {ref} is new slack bus")
        limited.extend(int(g) for g in violators)

        # warm start from the last solution
        V0 = result.V

    if qlim is not QLimitMode.OFF and limited:
        # restore the limited gens with their Q fixed at the limit
        gen[limited, QG] = fixedQg[limited]
        for g in limited:
            bi = int(gen[g, GEN_BUS])
            bus[bi, PD] += gen[g, PG]
            bus[bi, QD] += gen[g, QG]
        gen[limited, GEN_STATUS] = 1
        if ref != ref0:
            # keep the original reference angle
            bus[:, VA] = bus[:, VA] - bus[ref0, VA] + Varef0

    return bus, gen, branch, success, iterations


def _run_solver(opts: PFOptions, baseMVA, bus, branch, Ybus, Sbus, V0, ref, pv, pq):
    alg = opts.algorithm
    kwargs = dict(tol=opts.tolerance, max_it=opts.max_it, verbose=opts.verbose)
    if alg is PFAlgorithm.NEWTON:
        return newtonpf(Ybus, Sbus, V0, ref, pv, pq, **kwargs)
    if alg.is_fast_decoupled:
        Bp, Bpp = makeB(baseMVA, bus, branch, alg)
        return fdpf(Ybus, Sbus, V0, Bp, Bpp, ref, pv, pq, **kwargs)
    return gausspf(Ybus, Sbus, V0, ref, pv, pq, **kwargs)
