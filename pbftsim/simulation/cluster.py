"""
Node set management for the PBFT round simulator.

Holds the nodes of the network, their roles and fault statuses, and
provides the aggregate queries the round engine needs (fault counts,
leader lookup).
"""

import logging
import time
from typing import Callable

import numpy as np

from .errors import NodeAlreadyFaulty, NodeNotFaulty, NodeOutOfRange
from .node import FaultStatus, NodeState, PhaseStatus, Role

logger = logging.getLogger(__name__)


def circle_positions(
    count: int, center_x: float, center_y: float, radius: float
) -> list[tuple[float, float]]:
    """Evenly spaced display coordinates on a circle, node 0 at angle 0."""
    angles = np.arange(count) / count * 2 * np.pi
    xs = center_x + np.cos(angles) * radius
    ys = center_y + np.sin(angles) * radius
    return [(float(x), float(y)) for x, y in zip(xs, ys)]


class NodeSet:
    """The nodes of the simulated network.

    Fault statuses change only through set_fault_status, remove_fault and
    clear_all_faults. Phase statuses are written by the round engine.

    Args:
        center_x: Horizontal centre of the display circle.
        center_y: Vertical centre of the display circle.
        radius: Radius of the display circle.
        clock: Callable returning the current time, used to stamp injections.
    """

    def __init__(
        self,
        center_x: float = 300.0,
        center_y: float = 200.0,
        radius: float = 150.0,
        clock: Callable[[], float] = time.time,
    ):
        self.center_x = center_x
        self.center_y = center_y
        self.radius = radius
        self.clock = clock
        self.nodes: list[NodeState] = []

    def initialize(self, n: int, view: int = 0) -> None:
        """Create n healthy, idle nodes with the leader for view."""
        positions = circle_positions(n, self.center_x, self.center_y, self.radius)
        self.nodes = [
            NodeState(node_id=i, x=x, y=y) for i, (x, y) in enumerate(positions)
        ]
        self.set_leader(view)

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self):
        return iter(self.nodes)

    def get(self, node_id: int) -> NodeState:
        """Return the node with node_id.

        Raises:
            NodeOutOfRange: If node_id is not a valid index.
        """
        if not 0 <= node_id < len(self.nodes):
            raise NodeOutOfRange(node_id, len(self.nodes))
        return self.nodes[node_id]

    # -- roles -----------------------------------------------------------

    def leader_id(self, view: int) -> int:
        return view % len(self.nodes)

    def set_leader(self, view: int) -> NodeState:
        """Assign LEADER to the node at view mod n and REPLICA to the rest."""
        leader_id = self.leader_id(view)
        for node in self.nodes:
            node.role = Role.LEADER if node.node_id == leader_id else Role.REPLICA
        return self.nodes[leader_id]

    def leader(self) -> NodeState:
        return next(n for n in self.nodes if n.role is Role.LEADER)

    # -- faults ----------------------------------------------------------

    def set_fault_status(self, node_id: int, status: FaultStatus) -> None:
        """Mark a node faulty.

        Args:
            node_id: Node to mark.
            status: Fault to inject.

        Raises:
            NodeOutOfRange: If node_id is not a valid index.
            NodeAlreadyFaulty: If the node already carries a fault.
        """
        node = self.get(node_id)
        if node.is_faulty:
            raise NodeAlreadyFaulty(node_id, node.fault_status.value)
        node.fault_status = status
        node.fault_injected_at = self.clock() if status is not FaultStatus.NONE else None
        logger.debug("Node %d marked %s", node_id, status.value)

    def remove_fault(self, node_id: int) -> FaultStatus:
        """Clear the fault of a single node and return the removed fault.

        Raises:
            NodeOutOfRange: If node_id is not a valid index.
            NodeNotFaulty: If the node carries no fault.
        """
        node = self.get(node_id)
        if not node.is_faulty:
            raise NodeNotFaulty(node_id)
        removed = node.fault_status
        node.fault_status = FaultStatus.NONE
        node.fault_injected_at = None
        return removed

    def clear_all_faults(self) -> None:
        """Reset every node to FaultStatus.NONE. Idempotent."""
        for node in self.nodes:
            node.fault_status = FaultStatus.NONE
            node.fault_injected_at = None

    @property
    def active_fault_count(self) -> int:
        return self.count_by_predicate(lambda n: n.is_faulty)

    def non_faulty_count(self) -> int:
        return self.count_by_predicate(lambda n: not n.is_faulty)

    def faulty_ids(self, status: FaultStatus | None = None) -> list[int]:
        """Ids of faulty nodes, optionally restricted to one fault kind."""
        return [
            n.node_id
            for n in self.nodes
            if n.is_faulty and (status is None or n.fault_status is status)
        ]

    # -- aggregates ------------------------------------------------------

    def count_by_predicate(self, predicate: Callable[[NodeState], bool]) -> int:
        return sum(1 for n in self.nodes if predicate(n))

    def set_all_phases(self, status: PhaseStatus) -> None:
        for node in self.nodes:
            node.phase_status = status

    def __repr__(self) -> str:
        return f"NodeSet({len(self.nodes)} nodes, {self.active_fault_count} faulty)"
