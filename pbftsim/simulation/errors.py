"""
Error taxonomy for the PBFT round simulator.

Rejected operations raise one of these and leave engine state unchanged.
Safety violations are not errors: they are recorded as an UNSAFE verdict
on the round state and in the message log.
"""


class SimulationError(Exception):
    """Base class for all simulator errors."""


class ConfigurationError(SimulationError, ValueError):
    """Invalid configuration input, rejected before any mutation."""


class InvalidNodeCount(ConfigurationError):
    """Node count outside the supported range."""

    def __init__(self, node_count: int, min_nodes: int, max_nodes: int):
        self.node_count = node_count
        super().__init__(
            f"Node count must be in [{min_nodes}, {max_nodes}], got {node_count}"
        )


class InvalidFaultCount(ConfigurationError):
    """Fault injection would leave no healthy node in the network."""

    def __init__(self, fault_count: int, node_count: int):
        self.fault_count = fault_count
        super().__init__(
            f"At most {node_count - 1} of {node_count} nodes may be faulty, "
            f"injection would make {fault_count}"
        )


class FaultError(ConfigurationError):
    """Base class for fault injection and removal errors."""


class NodeOutOfRange(FaultError):
    def __init__(self, node_id: int, node_count: int):
        self.node_id = node_id
        super().__init__(f"Node {node_id} out of range for {node_count} nodes")


class NodeAlreadyFaulty(FaultError):
    def __init__(self, node_id: int, current: str):
        self.node_id = node_id
        super().__init__(
            f"Node {node_id} already has a {current} fault, clear it first"
        )


class NodeNotFaulty(FaultError):
    def __init__(self, node_id: int):
        self.node_id = node_id
        super().__init__(f"Node {node_id} has no fault to remove")


class SequencingError(SimulationError):
    """Operation called out of protocol order."""


class PhaseOutOfOrder(SequencingError):
    """Step requested for a phase other than the expected one."""

    def __init__(self, requested: int, expected: int):
        self.requested = requested
        self.expected = expected
        super().__init__(
            f"Phase {requested} requested, expected phase {expected}"
        )
