"""
Node model for the PBFT round simulator.

Defines node roles, fault statuses and phase statuses, and the mutable
per-node state the round engine operates on.
"""

from dataclasses import dataclass
from enum import Enum


class Role(Enum):
    """Role of a node within the current view."""

    LEADER = "leader"  # Primary, id = view mod n
    REPLICA = "replica"


class FaultStatus(Enum):
    """Operator-injected fault carried by a node."""

    NONE = "none"
    CRASH = "crash"  # Sends and receives nothing
    BYZANTINE = "byzantine"  # Sends conflicting content
    OMISSION = "omission"  # Receives but never transmits


class PhaseStatus(Enum):
    """Protocol progress of a node within the current round."""

    IDLE = "idle"
    PRE_PREPARED = "pre_prepared"
    PREPARED = "prepared"
    COMMITTING = "committing"  # commit votes exchanged
    COMMITTED = "committed"  # block finalized on this node


@dataclass
class NodeState:
    """Dynamic state of a node during a round.

    Attributes:
        node_id: Index of the node, 0-based.
        role: LEADER or REPLICA for the current view.
        fault_status: Injected fault (NONE when healthy).
        phase_status: Protocol progress within the current round.
        x: Horizontal display coordinate.
        y: Vertical display coordinate.
        fault_injected_at: Timestamp of the current fault injection (None if healthy).
        messages_missed: Deliveries this node could not receive while crashed.
        messages_withheld: Sends this node suppressed while omission-faulty.
    """

    node_id: int
    role: Role = Role.REPLICA
    fault_status: FaultStatus = FaultStatus.NONE
    phase_status: PhaseStatus = PhaseStatus.IDLE
    x: float = 0.0
    y: float = 0.0
    fault_injected_at: float | None = None
    messages_missed: int = 0
    messages_withheld: int = 0

    @property
    def is_leader(self) -> bool:
        return self.role is Role.LEADER

    @property
    def is_faulty(self) -> bool:
        return self.fault_status is not FaultStatus.NONE

    @property
    def label(self) -> str:
        """Display label used as a message endpoint."""
        if self.is_leader:
            return f"Node {self.node_id} (Leader)"
        return f"Node {self.node_id}"

    def __repr__(self) -> str:
        status = [self.role.value, self.phase_status.value]
        if self.is_faulty:
            status.append(self.fault_status.value)
        return f"NodeState({self.node_id}, {', '.join(status)})"
