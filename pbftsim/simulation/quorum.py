"""
Quorum arithmetic for PBFT.

All thresholds are derived from the node count on every call. With
n nodes the network tolerates f = floor((n - 1) / 3) faulty nodes:

- prepared:  2f matching PREPARE messages from peers (excluding self)
- committed: 2f + 1 matching COMMIT messages
- finalize:  f + 1 non-faulty nodes

For n=4: f=1, prepared=2, committed=3, final quorum=2.
For n=7: f=2, prepared=4, committed=5, final quorum=3.
"""

from dataclasses import dataclass


def max_tolerable_faults(n: int) -> int:
    """Maximum number of faulty nodes n nodes can tolerate."""
    if n < 1:
        raise ValueError(f"Node count must be positive, got {n}")
    return (n - 1) // 3


def prepared_threshold(n: int) -> int:
    """Peer PREPARE messages (excluding self) needed to consider a block prepared."""
    return 2 * max_tolerable_faults(n)


def committed_threshold(n: int) -> int:
    """COMMIT messages needed to consider a block committed."""
    return 2 * max_tolerable_faults(n) + 1


def final_quorum(n: int) -> int:
    """Minimum non-faulty nodes required to finalize a block."""
    return max_tolerable_faults(n) + 1


def is_over_tolerance(active_faults: int, n: int) -> bool:
    """Check if the active fault count exceeds what n nodes can tolerate."""
    return active_faults > max_tolerable_faults(n)


@dataclass(frozen=True)
class QuorumSummary:
    """All thresholds for one node count, for display in snapshots.

    Attributes:
        node_count: Number of nodes the thresholds were computed for.
        max_faults: f, the tolerance bound.
        prepared: Prepared threshold (2f).
        committed: Committed threshold (2f + 1).
        final: Final quorum (f + 1).
    """

    node_count: int
    max_faults: int
    prepared: int
    committed: int
    final: int

    @classmethod
    def for_nodes(cls, n: int) -> "QuorumSummary":
        return cls(
            node_count=n,
            max_faults=max_tolerable_faults(n),
            prepared=prepared_threshold(n),
            committed=committed_threshold(n),
            final=final_quorum(n),
        )
