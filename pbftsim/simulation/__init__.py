"""
PBFT round simulation package.

This package provides a deterministic, step-driven simulation of one PBFT
round under injected crash, Byzantine and omission faults, producing a
structured message log for visualization.
"""

from .config import MAX_NODES, MIN_NODES, SimulationConfig
from .errors import (
    SimulationError,
    ConfigurationError,
    InvalidNodeCount,
    InvalidFaultCount,
    FaultError,
    NodeOutOfRange,
    NodeAlreadyFaulty,
    NodeNotFaulty,
    SequencingError,
    PhaseOutOfOrder,
)
from .node import Role, FaultStatus, PhaseStatus, NodeState
from .cluster import NodeSet, circle_positions
from .events import (
    MessageKind,
    DeliveryStatus,
    MessageEvent,
    MessageLog,
)
from .faults import FaultModel, Message, block_digest
from .quorum import (
    max_tolerable_faults,
    prepared_threshold,
    committed_threshold,
    final_quorum,
    is_over_tolerance,
    QuorumSummary,
)
from .engine import (
    RoundPhase,
    PHASE_ORDER,
    Verdict,
    RoundState,
    PhaseTally,
    Block,
    RoundSnapshot,
    RoundEngine,
)

__all__ = [
    # Config
    "MIN_NODES",
    "MAX_NODES",
    "SimulationConfig",
    # Errors
    "SimulationError",
    "ConfigurationError",
    "InvalidNodeCount",
    "InvalidFaultCount",
    "FaultError",
    "NodeOutOfRange",
    "NodeAlreadyFaulty",
    "NodeNotFaulty",
    "SequencingError",
    "PhaseOutOfOrder",
    # Node
    "Role",
    "FaultStatus",
    "PhaseStatus",
    "NodeState",
    # Node set
    "NodeSet",
    "circle_positions",
    # Events
    "MessageKind",
    "DeliveryStatus",
    "MessageEvent",
    "MessageLog",
    # Faults
    "FaultModel",
    "Message",
    "block_digest",
    # Quorum
    "max_tolerable_faults",
    "prepared_threshold",
    "committed_threshold",
    "final_quorum",
    "is_over_tolerance",
    "QuorumSummary",
    # Engine
    "RoundPhase",
    "PHASE_ORDER",
    "Verdict",
    "RoundState",
    "PhaseTally",
    "Block",
    "RoundSnapshot",
    "RoundEngine",
]
