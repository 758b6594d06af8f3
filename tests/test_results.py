"""
Tests for the result tables.

Date: 2026-10-19
"""

import numpy as np
import pandas as pd
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from core.exceptions import NumberingStateError
from network.cases import load_case
from network.results import res_branch, res_bus, res_gen
from powerflow.numbering import ext2int
from powerflow.runpf import runpf


@pytest.fixture(scope="module")
def solved():
    return runpf("case9")


class TestResBus:

    def test_index_and_columns(self, solved):
        df = res_bus(solved)
        assert isinstance(df, pd.DataFrame)
        assert_array_equal(df.index, np.arange(1, 10))
        assert list(df.columns) == [
            "type", "vm_pu", "va_degree", "p_load_mw", "q_load_mvar", "p_gen_mw", "q_gen_mvar",
        ]

    def test_values(self, solved):
        df = res_bus(solved)
        assert_allclose(df.loc[9, "vm_pu"], 0.958, atol=6e-4)
        assert_allclose(df.loc[1, "p_gen_mw"], 71.64, atol=6e-3)
        assert df.loc[4, "p_gen_mw"] == 0.0
        assert df.loc[5, "p_load_mw"] == 90.0

    def test_generation_summed_per_bus(self):
        case = load_case("case9")
        case.gen = np.vstack([case.gen, case.gen[1]])
        case.gen[3, 1] = 10.0
        df = res_bus(runpf(case))
        assert_allclose(df.loc[2, "p_gen_mw"], 173.0)


class TestResGen:

    def test_values(self, solved):
        df = res_gen(solved)
        assert len(df) == 3
        assert_array_equal(df["bus"], [1, 2, 3])
        assert df["in_service"].all()
        assert_allclose(df["q_mvar"], [27.05, 6.65, -10.86], atol=6e-3)


class TestResBranch:

    def test_losses(self, solved):
        df = res_branch(solved)
        assert len(df) == 9
        assert (df["pl_mw"] >= -1e-9).all()
        assert_allclose(df["pl_mw"].sum(), solved.gen[:, 1].sum() - 315.0, atol=1e-6)

    def test_unsolved_case_has_zero_flows(self):
        df = res_branch(load_case("case9"))
        assert (df["p_from_mw"] == 0.0).all()


class TestNumberingGuard:

    def test_internal_case_rejected(self):
        case = ext2int(load_case("case9").copy())
        with pytest.raises(NumberingStateError):
            res_bus(case)
        with pytest.raises(NumberingStateError):
            res_branch(case)
