"""
Fault model for the PBFT round simulator.

Decides, from a node's fault status alone, whether the node may send or
receive a message and how a message it sends is altered:

    fault      can_send  can_receive  outgoing
    NONE       yes       yes          unchanged
    CRASH      no        no           -
    OMISSION   no        yes          -
    BYZANTINE  yes       yes          conflicting digest

Crash is silence in both directions, omission is silence on the send
side only, and a Byzantine node never stops transmitting but corrupts what
it sends. Quorum counting must never treat a corrupted or withheld message
as confirming evidence.
"""

from dataclasses import dataclass, replace

import numpy as np

from .events import MessageKind
from .node import FaultStatus, NodeState


def block_digest(view: int, sequence: int) -> str:
    """Label identifying the honest block proposed for (view, sequence).

    Not a cryptographic hash; it only needs to differ between proposals.
    """
    return f"0x{view:04x}{sequence:08x}"


@dataclass(frozen=True)
class Message:
    """A protocol message in flight between two nodes.

    Attributes:
        kind: PRE_PREPARE, PREPARE or COMMIT.
        sender: Sending node id.
        receiver: Receiving node id.
        view: View the message belongs to.
        sequence: Sequence number being agreed on.
        digest: Digest of the block the sender vouches for.
        conflicting: Whether the payload was fabricated by a Byzantine sender.
    """

    kind: MessageKind
    sender: int
    receiver: int
    view: int
    sequence: int
    digest: str
    conflicting: bool = False


class FaultModel:
    """Pure send/receive/transform decisions based on node fault status.

    The model holds no per-node state. A Byzantine sender's fabricated
    digest is derived deterministically from the message by default; pass
    an explicitly seeded generator to vary it reproducibly.

    Args:
        rng: Optional NumPy generator used to fabricate conflicting digests.
    """

    def __init__(self, rng: np.random.Generator | None = None):
        self.rng = rng

    def can_send(self, node: NodeState) -> bool:
        return node.fault_status in (FaultStatus.NONE, FaultStatus.BYZANTINE)

    def can_receive(self, node: NodeState) -> bool:
        return node.fault_status is not FaultStatus.CRASH

    def transform_outgoing(self, node: NodeState, message: Message) -> Message:
        """Apply the sender's fault to an outgoing message.

        Args:
            node: The sending node.
            message: Message as an honest node would send it.

        Returns:
            A conflicting copy of the message if the sender is Byzantine,
            otherwise the message itself.
        """
        if node.fault_status is not FaultStatus.BYZANTINE:
            return message
        return replace(
            message,
            digest=self._conflicting_digest(message),
            conflicting=True,
        )

    def _conflicting_digest(self, message: Message) -> str:
        """Fabricate a digest that never equals the honest block digest."""
        if self.rng is not None:
            salt = int(self.rng.integers(1, 0xFFFF))
        else:
            salt = 0xBAD0 + message.sender
        # block_digest output is pure hex, so the ":" separators keep these apart
        return f"0xbad:{message.view:x}:{salt:04x}:{message.sequence:x}"
