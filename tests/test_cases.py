"""
Tests for the case loader and the comparison with pandapower's own power
flow.

Date: 2026-10-19
"""

import numpy as np
import pandapower as pp
import pandapower.networks as pn
import pytest
from numpy.testing import assert_allclose

from pandapower.pypower.idx_bus import VA, VM

from core.case import Case
from core.exceptions import ConfigurationError
from network.cases import case4gs, case9, case_from_pandapower, load_case
from powerflow.runpf import runpf


class TestLoadCase:

    @pytest.mark.parametrize("name, n_bus, n_gen, n_branch", [
        ("case9", 9, 3, 9),
        ("case4gs", 4, 2, 4),
        ("CASE9", 9, 3, 9),
    ])
    def test_bundled(self, name, n_bus, n_gen, n_branch):
        case = load_case(name)
        assert isinstance(case, Case)
        assert (case.n_bus, case.n_gen, case.n_branch) == (n_bus, n_gen, n_branch)
        assert case.base_mva == 100.0
        assert case.order is None

    def test_bundled_cases_are_fresh(self):
        a = load_case("case9")
        a.bus[:, VM] = 0.0
        assert np.all(load_case("case9").bus[:, VM] == 1.0)

    def test_case_passed_through(self):
        case = load_case("case9")
        assert load_case(case) is case

    def test_ppc_dict(self):
        case = load_case(case4gs())
        assert case.n_bus == 4
        assert case.areas is None

    def test_missing_key(self):
        ppc = case9()
        del ppc["gen"]
        with pytest.raises(ConfigurationError, match="gen"):
            load_case(ppc)

    def test_unknown_name(self):
        with pytest.raises(ConfigurationError, match="case9"):
            load_case("case3000")

    def test_unsupported_type(self):
        with pytest.raises(ConfigurationError):
            load_case(42)

    def test_invalid_base(self):
        ppc = case9()
        ppc["baseMVA"] = 0
        with pytest.raises(ValueError):
            load_case(ppc)


class TestCase4gs:

    def test_solution(self):
        result = runpf("case4gs")
        assert result.success
        assert_allclose(result.bus[3, VM], 1.02)
        assert result.bus[0, VA] == 0.0
        # unsorted generators keep their external rows
        assert result.gen[0, 0] == 4
        assert result.gen[0, 1] == 318.0
        assert result.gen[1, 1] > 0.0


class TestPandapower:

    @pytest.fixture
    def net(self):
        return pn.case9()

    def test_conversion(self, net):
        case = case_from_pandapower(net)
        assert case.n_bus == len(net.bus)
        assert case.bus.shape[1] == 13
        assert case.branch.shape[1] == 13
        assert case.base_mva == net.sn_mva

    def test_same_solution_as_pandapower(self, net):
        pp.runpp(net, calculate_voltage_angles=True, init="flat", tolerance_mva=1e-9)
        result = runpf(net, {"PF_TOL": 1e-10})
        assert result.success
        lookup = net._pd2ppc_lookups["bus"]
        rows = lookup[net.bus.index.values]
        assert_allclose(result.bus[rows, VM], net.res_bus.vm_pu.values, atol=1e-6)
        assert_allclose(result.bus[rows, VA], net.res_bus.va_degree.values, atol=1e-4)
