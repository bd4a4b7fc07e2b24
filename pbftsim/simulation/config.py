"""
Configuration for the PBFT round simulator.
"""

from dataclasses import dataclass

from .errors import ConfigurationError, InvalidNodeCount

MIN_NODES = 4
MAX_NODES = 10


def validate_node_count(node_count: int) -> None:
    """Raise InvalidNodeCount unless MIN_NODES <= node_count <= MAX_NODES."""
    if not MIN_NODES <= node_count <= MAX_NODES:
        raise InvalidNodeCount(node_count, MIN_NODES, MAX_NODES)


@dataclass
class SimulationConfig:
    """Configuration for a simulation session.

    Attributes:
        node_count: Number of nodes in the network, in [MIN_NODES, MAX_NODES].
        seed: Seed for the generator that fabricates Byzantine digests.
            None keeps fabrication fully deterministic without a generator.
        center_x: Horizontal centre of the node circle (display only).
        center_y: Vertical centre of the node circle (display only).
        radius: Radius of the node circle (display only).
    """

    node_count: int = MIN_NODES
    seed: int | None = None
    center_x: float = 300.0
    center_y: float = 200.0
    radius: float = 150.0

    def __post_init__(self) -> None:
        validate_node_count(self.node_count)
        if self.radius <= 0:
            raise ConfigurationError(f"radius must be > 0, got {self.radius}")
