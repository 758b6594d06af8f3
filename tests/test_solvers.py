"""
Tests for the fast-decoupled and Gauss-Seidel solvers.

Both are checked against the two-bus closed form and against Newton's
method on the bundled cases.

Date: 2026-10-19
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose
from scipy.sparse import csr_matrix

from pandapower.pypower.idx_bus import VA, VM

from core.exceptions import SolverError
from powerflow.fdpf import fdpf
from powerflow.gausspf import gausspf
from powerflow.options import PFAlgorithm, PFOptions
from powerflow.runpf import runpf


def two_bus_system():
    Ybus = csr_matrix(np.array([[-10j, 10j], [10j, -10j]]))
    Sbus = np.array([0.0, -0.5 - 0.2j])
    a = (1.0 + np.sqrt(0.91)) / 2.0
    return Ybus, Sbus, np.ones(2, dtype=np.complex128), np.array([1.0, a - 0.05j])


NO_PV = np.array([], dtype=int)
PQ = np.array([1])


class TestFastDecoupled:

    @pytest.mark.parametrize("B", [10.0, 12.0])
    def test_two_bus(self, B):
        Ybus, Sbus, V0, V_exact = two_bus_system()
        Bmat = csr_matrix(np.array([[B, -B], [-B, B]]))
        result = fdpf(Ybus, Sbus, V0, Bmat, Bmat, 0, NO_PV, PQ, tol=1e-10, max_it=100)
        assert result.converged
        assert_allclose(result.V, V_exact, atol=1e-8)

    def test_not_converged_is_reported(self):
        Ybus, Sbus, V0, _ = two_bus_system()
        Bmat = csr_matrix(np.array([[10.0, -10.0], [-10.0, 10.0]]))
        result = fdpf(Ybus, Sbus, V0, Bmat, Bmat, 0, NO_PV, PQ, tol=1e-14, max_it=2)
        assert not result.converged
        assert result.iterations == 2

    def test_stops_after_p_half_step(self, capsys):
        # small transfer into a PQ bus: the angle step alone meets the tolerance
        Ybus = csr_matrix(np.array([[-10j, 10j], [10j, -10j]]))
        Sbus = np.array([0.0, 1e-3 + 0.0j])
        Bmat = csr_matrix(np.array([[10.0, -10.0], [-10.0, 10.0]]))
        V0 = np.ones(2, dtype=np.complex128)
        result = fdpf(Ybus, Sbus, V0, Bmat, Bmat, 0, NO_PV, PQ, tol=1e-6, verbose=2)
        assert result.converged
        assert result.iterations == 1
        assert_allclose(np.abs(result.V), 1.0, rtol=0, atol=1e-12)
        assert_allclose(np.angle(result.V[1]), 1e-4, rtol=1e-6)
        out = capsys.readouterr().out
        assert "it   1 P" in out
        assert "it   1 Q" not in out

    def test_singular_matrix_raises(self):
        Ybus, Sbus, V0, _ = two_bus_system()
        zero = csr_matrix((2, 2))
        with pytest.raises(SolverError):
            fdpf(Ybus, Sbus, V0, zero, zero, 0, NO_PV, PQ)

    def test_no_pq_buses(self):
        # slack and one PV bus: only the angle is solved
        Ybus = csr_matrix(np.array([[-10j, 10j], [10j, -10j]]))
        Sbus = np.array([0.0, 0.3])
        Bp = csr_matrix(np.array([[10.0, -10.0], [-10.0, 10.0]]))
        result = fdpf(Ybus, Sbus, np.ones(2, dtype=complex), Bp, Bp, 0, np.array([1]), np.array([], dtype=int),
                      tol=1e-10)
        assert result.converged
        assert_allclose(np.abs(result.V), 1.0)
        assert_allclose(np.sin(np.angle(result.V[1])), 0.03, atol=1e-9)


class TestGaussSeidel:

    def test_two_bus(self):
        Ybus, Sbus, V0, V_exact = two_bus_system()
        result = gausspf(Ybus, Sbus, V0, 0, NO_PV, PQ, tol=1e-10)
        assert result.converged
        assert_allclose(result.V, V_exact, atol=1e-8)

    def test_sbus_not_modified(self):
        Ybus = csr_matrix(np.array([[-10j, 10j], [10j, -10j]]))
        Sbus = np.array([0.0, 0.3 + 0.0j])
        before = Sbus.copy()
        result = gausspf(Ybus, Sbus, np.ones(2, dtype=complex), 0, np.array([1]), np.array([], dtype=int),
                         tol=1e-10)
        assert result.converged
        assert_allclose(Sbus, before)
        assert_allclose(np.abs(result.V[1]), 1.0)

    def test_not_converged_is_reported(self):
        Ybus, Sbus, V0, _ = two_bus_system()
        result = gausspf(Ybus, Sbus, V0, 0, NO_PV, PQ, tol=1e-14, max_it=3)
        assert not result.converged
        assert result.iterations == 3


class TestAgreementWithNewton:

    @pytest.mark.parametrize("case_name", ["case9", "case4gs"])
    @pytest.mark.parametrize("alg", [PFAlgorithm.FDPF_XB, PFAlgorithm.FDPF_BX])
    def test_fast_decoupled(self, case_name, alg):
        nr = runpf(case_name, PFOptions(tolerance=1e-10))
        fd = runpf(case_name, PFOptions(algorithm=alg, tolerance=1e-10))
        assert nr.success and fd.success
        assert_allclose(fd.bus[:, VM], nr.bus[:, VM], atol=1e-7)
        assert_allclose(fd.bus[:, VA], nr.bus[:, VA], atol=1e-6)
        assert fd.iterations > nr.iterations

    @pytest.mark.parametrize("case_name", ["case9", "case4gs"])
    def test_gauss_seidel(self, case_name):
        nr = runpf(case_name, PFOptions(tolerance=1e-10))
        gs = runpf(case_name, PFOptions(algorithm="GS", tolerance=1e-7, max_iterations=5000))
        assert gs.success
        assert_allclose(gs.bus[:, VM], nr.bus[:, VM], atol=1e-5)
        assert_allclose(gs.bus[:, VA], nr.bus[:, VA], atol=1e-3)
