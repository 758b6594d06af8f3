"""
Tests for the bus classifier.

Tables are built directly in internal numbering (bus ``i`` in row ``i``).

Date: 2026-10-19
"""

import numpy as np
import pytest
from numpy.testing import assert_array_equal

from pandapower.pypower.idx_bus import BUS_TYPE, PQ, PV, REF
from pandapower.pypower.idx_gen import GEN_BUS, GEN_STATUS

from core.exceptions import NoReferenceBusError
from network.cases import case9
from powerflow.bustypes import bus_gen_status, bustypes


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def tables():
    """case9 bus and gen tables renumbered to 0-based bus indices."""
    ppc = case9()
    bus = ppc["bus"].copy()
    gen = ppc["gen"].copy()
    bus[:, 0] -= 1
    gen[:, GEN_BUS] -= 1
    return bus, gen


def _assert_partition(ref, pv, pq, nb):
    everything = np.sort(np.r_[[ref], pv, pq])
    assert_array_equal(everything, np.arange(nb))
    assert ref not in pv
    assert ref not in pq
    assert len(np.intersect1d(pv, pq)) == 0


# =============================================================================
# Tests
# =============================================================================

class TestBusGenStatus:

    def test_counts_in_service_generators(self, tables):
        bus, gen = tables
        gen = np.vstack([gen, gen[1]])
        gen[0, GEN_STATUS] = 0
        counts = bus_gen_status(bus, gen)
        assert_array_equal(counts, [0, 2, 1, 0, 0, 0, 0, 0, 0])

    def test_no_generators(self, tables):
        bus, gen = tables
        assert_array_equal(bus_gen_status(bus, gen[:0]), np.zeros(9))


class TestBustypes:

    def test_case9_classification(self, tables):
        bus, gen = tables
        ref, pv, pq = bustypes(bus, gen)
        assert ref == 0
        assert_array_equal(pv, [1, 2])
        assert_array_equal(pq, [3, 4, 5, 6, 7, 8])
        _assert_partition(ref, pv, pq, 9)

    def test_unbacked_pv_bus_is_pq(self, tables):
        bus, gen = tables
        gen[2, GEN_STATUS] = 0
        ref, pv, pq = bustypes(bus, gen)
        assert ref == 0
        assert_array_equal(pv, [1])
        assert 2 in pq
        _assert_partition(ref, pv, pq, 9)

    def test_slack_out_of_service_promotes_first_pv(self, tables):
        bus, gen = tables
        gen[0, GEN_STATUS] = 0
        ref, pv, pq = bustypes(bus, gen)
        assert ref == 1
        assert_array_equal(pv, [2])
        assert 0 in pq
        _assert_partition(ref, pv, pq, 9)

    def test_multiple_reference_buses(self, tables):
        bus, gen = tables
        bus[2, BUS_TYPE] = REF
        ref, pv, pq = bustypes(bus, gen)
        assert ref == 0
        assert_array_equal(pv, [1, 2])
        _assert_partition(ref, pv, pq, 9)

    def test_pq_bus_with_generator_stays_pq(self, tables):
        bus, gen = tables
        bus[1, BUS_TYPE] = PQ
        ref, pv, pq = bustypes(bus, gen)
        assert_array_equal(pv, [2])
        assert 1 in pq

    def test_unbacked_reference_bus_is_not_reference(self, tables):
        bus, gen = tables
        gen[0, GEN_STATUS] = 0
        ref, pv, pq = bustypes(bus, gen)
        assert bus[0, BUS_TYPE] == REF
        assert ref != 0

    def test_no_reference_candidate_raises(self, tables):
        bus, gen = tables
        gen[:, GEN_STATUS] = 0
        with pytest.raises(NoReferenceBusError):
            bustypes(bus, gen)

    def test_no_reference_candidate_is_value_error(self, tables):
        bus, gen = tables
        bus[:, BUS_TYPE] = PQ
        with pytest.raises(ValueError):
            bustypes(bus, gen)

    def test_pv_only_network(self, tables):
        bus, gen = tables
        bus[0, BUS_TYPE] = PV
        ref, pv, pq = bustypes(bus, gen)
        assert ref == 0
        assert_array_equal(pv, [1, 2])
        _assert_partition(ref, pv, pq, 9)
