#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Power Flow Demo
===============

Solves a bundled case with every AC algorithm and the DC approximation and
prints the resulting bus voltages, generator outputs and branch flows.

A second run enforces generator reactive power limits on a modified case
in which generator 2 can only supply a few Mvar, and shows which bus is
converted from PV to PQ.

Date: 2026-10-19
"""

from __future__ import annotations

from typing import Dict

import numpy as np
import pandas as pd

from pandapower.pypower.idx_bus import BUS_TYPE
from pandapower.pypower.idx_gen import QMAX

from core.case import Case
from network.cases import load_case
from network.results import res_bus, res_gen, res_branch
from powerflow.options import PFAlgorithm, PFOptions, QLimitMode
from powerflow.runpf import runpf, rundcpf


# ==============================================================================
#  HELPERS
# ==============================================================================

def print_summary(case: Case, title: str) -> None:
    """Print the result tables of a solved case."""
    print()
    print("=" * 72)
    print(f"  {title}")
    print("=" * 72)
    status = "converged" if case.success else "FAILED"
    print(f"  {case.name}: {status} in {case.iterations} iterations, {case.et * 1e3:.1f} ms")
    print()
    with pd.option_context("display.float_format", "{:10.4f}".format, "display.width", 120):
        print(res_bus(case))
        print()
        print(res_gen(case))
        print()
        print(res_branch(case))
    print()


def compare_algorithms(case_name: str) -> Dict[PFAlgorithm, Case]:
    """Solve one case with all AC algorithms and report the largest deviations."""
    results = {
        alg: runpf(case_name, PFOptions(algorithm=alg, tolerance=1e-8))
        for alg in PFAlgorithm
    }
    reference = results[PFAlgorithm.NEWTON]
    print(f"  Algorithm comparison on {case_name} (deviation from Newton):")
    for alg, case in results.items():
        dvm = np.max(np.abs(res_bus(case)["vm_pu"] - res_bus(reference)["vm_pu"]))
        dva = np.max(np.abs(res_bus(case)["va_degree"] - res_bus(reference)["va_degree"]))
        print(
            f"    {alg.name:<13s} it={case.iterations:4d}  "
            f"max|dVm|={dvm:.2e} p.u.  max|dVa|={dva:.2e} deg"
        )
    return results


# ==============================================================================
#  ENTRY POINT
# ==============================================================================

def main() -> None:
    """
    Run the demo on the WSCC 9-bus case.
    """
    case_name = "case9"

    ac = runpf(case_name, PFOptions(verbose=1))
    print_summary(ac, "AC POWER FLOW (NEWTON)")

    dc = rundcpf(case_name)
    print_summary(dc, "DC POWER FLOW")

    print("=" * 72)
    compare_algorithms(case_name)
    print("=" * 72)

    # -- reactive limit enforcement ---------------------------------------------
    limited = load_case(case_name).copy()
    limited.gen[1, QMAX] = 3.0
    solved = runpf(limited, PFOptions(enforce_q_limits=QLimitMode.ALL_AT_ONCE, verbose=1))
    print_summary(solved, "AC POWER FLOW WITH Q LIMITS (gen 2: Qmax = 3 Mvar)")
    converted = np.flatnonzero(solved.bus[:, BUS_TYPE] != limited.bus[:, BUS_TYPE])
    print(f"  Buses converted to PQ: {solved.bus[converted, 0].astype(int).tolist()}")
    print()


if __name__ == "__main__":
    main()
