"""
Tests for the DC power flow.

Date: 2026-10-19
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose
from scipy.sparse import csr_matrix

from pandapower.pypower.idx_bus import PD, VA, VM
from pandapower.pypower.idx_gen import PG
from pandapower.pypower.idx_brch import PF, PT, QF, QT

from core.case import Case
from core.exceptions import SolverError
from powerflow.dcpf import dcpf
from powerflow.runpf import rundcpf, runpf


# =============================================================================
# Fixtures
# =============================================================================

def _bus(i, typ, pd=0.0):
    return [i, typ, pd, 0, 0, 0, 1, 1, 0, 230, 1, 1.1, 0.9]


def _branch(f, t, x, shift=0.0):
    return [f, t, 0.0, x, 0.0, 250, 250, 250, 0, shift, 1, -360, 360]


def _gen(bus, pg=0.0):
    return [bus, pg, 0, 300, -300, 1.0, 100, 1, 300, 0] + [0] * 11


def two_bus_case(load=50.0, x=0.1, shift=0.0) -> Case:
    return Case(
        base_mva=100.0,
        bus=[_bus(1, 3), _bus(2, 1, load)],
        gen=[_gen(1)],
        branch=[_branch(1, 2, x, shift)],
    )


def three_bus_case(scale=1.0) -> Case:
    """Slack at bus 1, loads at buses 2 and 3, meshed."""
    return Case(
        base_mva=100.0,
        bus=[_bus(1, 3), _bus(2, 1, 60.0 * scale), _bus(3, 1, 40.0 * scale)],
        gen=[_gen(1)],
        branch=[_branch(1, 2, 0.1), _branch(2, 3, 0.2), _branch(1, 3, 0.25)],
    )


# =============================================================================
# Tests
# =============================================================================

class TestDcpf:

    def test_reduced_system(self):
        B = csr_matrix(np.array([[10.0, -10.0], [-10.0, 10.0]]))
        Va = dcpf(B, np.array([0.5, -0.5]), np.array([0.1, 0.0]), 0, np.array([], dtype=int), np.array([1]))
        assert_allclose(Va, [0.1, 0.05])

    @pytest.mark.filterwarnings("ignore")
    def test_singular_raises(self):
        B = csr_matrix(np.array([[10.0, -10.0, 0.0], [-10.0, 10.0, 0.0], [0.0, 0.0, 0.0]]))
        with pytest.raises(SolverError):
            dcpf(B, np.array([0.5, -0.5, 0.0]), np.zeros(3), 0, np.array([], dtype=int), np.array([1, 2]))


class TestRunDcpf:

    def test_two_bus(self):
        case = rundcpf(two_bus_case())
        assert case.success
        assert_allclose(case.bus[:, VA], [0.0, np.rad2deg(-0.05)])
        assert_allclose(case.bus[:, VM], 1.0)
        assert_allclose(case.branch[0, PF], 50.0)
        assert_allclose(case.branch[0, PT], -50.0)
        assert case.branch[0, QF] == 0.0
        assert case.branch[0, QT] == 0.0
        assert_allclose(case.gen[0, PG], 50.0)

    def test_runpf_dc_flag(self):
        a = rundcpf(two_bus_case())
        b = runpf(two_bus_case(), dc=True)
        assert_allclose(a.bus, b.bus)

    def test_phase_shifter(self):
        case = rundcpf(two_bus_case(load=0.0, shift=5.0))
        assert_allclose(case.bus[1, VA], -5.0)
        assert_allclose(case.branch[0, PF], 0.0, atol=1e-10)
        assert_allclose(case.gen[0, PG], 0.0, atol=1e-10)

    def test_superposition(self):
        base = rundcpf(three_bus_case(1.0))
        scaled = rundcpf(three_bus_case(2.5))
        assert base.success and scaled.success
        assert_allclose(scaled.bus[:, VA], 2.5 * base.bus[:, VA])
        assert_allclose(scaled.branch[:, PF], 2.5 * base.branch[:, PF])
        assert_allclose(scaled.gen[0, PG], 2.5 * base.gen[0, PG])

    def test_power_balance(self):
        case = rundcpf(three_bus_case())
        assert_allclose(case.gen[0, PG], case.bus[:, PD].sum())
        # flows leaving the slack bus equal the slack generation
        assert_allclose(case.branch[0, PF] + case.branch[2, PF], case.gen[0, PG])

    def test_islanded_bus_reports_failure(self):
        case = three_bus_case()
        case.branch = case.branch[[0]]
        with pytest.warns(UserWarning):
            result = rundcpf(case)
        assert not result.success
