"""
Tests for PBFT quorum arithmetic.
"""

import pytest

from pbftsim.simulation import (
    MAX_NODES,
    MIN_NODES,
    QuorumSummary,
    committed_threshold,
    final_quorum,
    is_over_tolerance,
    max_tolerable_faults,
    prepared_threshold,
)

NODE_COUNTS = range(MIN_NODES, MAX_NODES + 1)


# =============================================================================
# Threshold Tests
# =============================================================================


class TestThresholds:
    @pytest.mark.parametrize("n", NODE_COUNTS)
    def test_max_tolerable_faults(self, n):
        assert max_tolerable_faults(n) == (n - 1) // 3

    @pytest.mark.parametrize("n", NODE_COUNTS)
    def test_committed_is_2f_plus_1(self, n):
        assert committed_threshold(n) == 2 * max_tolerable_faults(n) + 1

    @pytest.mark.parametrize("n", NODE_COUNTS)
    def test_prepared_is_2f(self, n):
        assert prepared_threshold(n) == 2 * max_tolerable_faults(n)

    @pytest.mark.parametrize("n", NODE_COUNTS)
    def test_final_quorum_is_f_plus_1(self, n):
        assert final_quorum(n) == max_tolerable_faults(n) + 1

    @pytest.mark.parametrize("n", NODE_COUNTS)
    def test_n_at_least_3f_plus_1(self, n):
        assert n >= 3 * max_tolerable_faults(n) + 1

    def test_known_values(self):
        assert [max_tolerable_faults(n) for n in NODE_COUNTS] == [1, 1, 1, 2, 2, 2, 3]
        assert committed_threshold(4) == 3
        assert committed_threshold(7) == 5
        assert final_quorum(4) == 2
        assert final_quorum(10) == 4

    def test_recomputed_when_n_changes(self):
        # Same call site, different n: nothing is cached between calls
        assert max_tolerable_faults(6) == 1
        assert max_tolerable_faults(7) == 2
        assert max_tolerable_faults(6) == 1

    def test_invalid_node_count(self):
        with pytest.raises(ValueError):
            max_tolerable_faults(0)


class TestOverTolerance:
    def test_boundary(self):
        assert not is_over_tolerance(0, 4)
        assert not is_over_tolerance(1, 4)
        assert is_over_tolerance(2, 4)

    @pytest.mark.parametrize("n", NODE_COUNTS)
    def test_f_is_tolerated_f_plus_1_is_not(self, n):
        f = max_tolerable_faults(n)
        assert not is_over_tolerance(f, n)
        assert is_over_tolerance(f + 1, n)


class TestQuorumSummary:
    def test_for_nodes(self):
        summary = QuorumSummary.for_nodes(7)

        assert summary.node_count == 7
        assert summary.max_faults == 2
        assert summary.prepared == 4
        assert summary.committed == 5
        assert summary.final == 3
