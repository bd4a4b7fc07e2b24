"""
Tests for simulation configuration and the error taxonomy.
"""

import pytest

from pbftsim.simulation import (
    ConfigurationError,
    FaultError,
    InvalidNodeCount,
    NodeAlreadyFaulty,
    NodeOutOfRange,
    PhaseOutOfOrder,
    SequencingError,
    SimulationConfig,
    SimulationError,
)


class TestSimulationConfig:
    def test_defaults(self):
        config = SimulationConfig()

        assert config.node_count == 4
        assert config.seed is None
        assert config.radius > 0

    @pytest.mark.parametrize("n", [4, 7, 10])
    def test_valid_node_counts(self, n):
        assert SimulationConfig(node_count=n).node_count == n

    @pytest.mark.parametrize("n", [-1, 3, 11, 100])
    def test_invalid_node_count(self, n):
        with pytest.raises(InvalidNodeCount) as exc_info:
            SimulationConfig(node_count=n)
        assert exc_info.value.node_count == n

    def test_invalid_radius(self):
        with pytest.raises(ConfigurationError):
            SimulationConfig(radius=0)


class TestErrorTaxonomy:
    def test_configuration_errors_are_value_errors(self):
        assert issubclass(InvalidNodeCount, ValueError)
        assert issubclass(NodeOutOfRange, FaultError)
        assert issubclass(NodeAlreadyFaulty, ConfigurationError)

    def test_sequencing_is_not_configuration(self):
        assert issubclass(PhaseOutOfOrder, SequencingError)
        assert issubclass(PhaseOutOfOrder, SimulationError)
        assert not issubclass(PhaseOutOfOrder, ConfigurationError)

    def test_messages_carry_values(self):
        assert "7" in str(NodeOutOfRange(7, 4))
        assert "crash" in str(NodeAlreadyFaulty(1, "crash"))
        error = PhaseOutOfOrder(3, 1)
        assert (error.requested, error.expected) == (3, 1)
