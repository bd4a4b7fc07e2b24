"""
Message events and the append-only message log.

Every simulated protocol message and operator action becomes one
MessageEvent. The log keeps insertion order, which is the order external
viewers replay it in.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator

SYSTEM = "System"
NETWORK = "Network"
BLOCKCHAIN = "Blockchain"


class MessageKind(Enum):
    """Kinds of entries in the message log."""

    # Protocol messages
    INITIALIZE = "initialize"
    PRE_PREPARE = "pre_prepare"
    PREPARE = "prepare"
    COMMIT = "commit"

    # Round outcomes
    BLOCK_COMMITTED = "block_committed"
    BLOCK_COMMIT_FAILED = "block_commit_failed"
    ROUND_HALTED = "round_halted"  # Safety guard tripped at phase entry

    # Operator actions
    FAULT_INJECTED = "fault_injected"
    FAULT_CLEARED = "fault_cleared"
    NETWORK_RESET = "network_reset"
    VIEW_CHANGE = "view_change"


PROTOCOL_KINDS = frozenset(
    {MessageKind.PRE_PREPARE, MessageKind.PREPARE, MessageKind.COMMIT}
)


class DeliveryStatus(Enum):
    """Outcome of a single delivery attempt."""

    OK = "ok"
    BLOCKED_CRASHED_SENDER = "blocked_crashed_sender"
    BLOCKED_CRASHED_RECEIVER = "blocked_crashed_receiver"
    OMITTED = "omitted"  # Received, but the receiver cannot respond
    CONFLICTING_BYZANTINE = "conflicting_byzantine"
    CRITICAL = "critical"  # Active faults exceed tolerance


@dataclass(frozen=True)
class MessageEvent:
    """One entry of the message log.

    Attributes:
        timestamp: When the event was recorded.
        from_label: Display label of the source ("Node 0 (Leader)", "System", ...).
        to_label: Display label of the destination.
        kind: What happened.
        delivery_status: Delivery outcome or severity marker.
        sender: Source node id, or None for non-node endpoints.
        receiver: Destination node id, or None for non-node endpoints.
        view: View the event belongs to.
        sequence: Sequence number the event belongs to.
        digest: Block digest carried by the message, if any.
        detail: Free-form human-readable note.
        reached: Quorum count reached (finalize events only).
        required: Quorum count required (finalize events only).
    """

    timestamp: float
    from_label: str
    to_label: str
    kind: MessageKind
    delivery_status: DeliveryStatus = DeliveryStatus.OK
    sender: int | None = None
    receiver: int | None = None
    view: int = 0
    sequence: int = 1
    digest: str | None = None
    detail: str = ""
    reached: int | None = None
    required: int | None = None

    @property
    def is_protocol_message(self) -> bool:
        return self.kind in PROTOCOL_KINDS

    def __repr__(self) -> str:
        return (
            f"MessageEvent({self.kind.value}, {self.from_label} -> {self.to_label}, "
            f"{self.delivery_status.value})"
        )


class MessageLog:
    """Append-only ordered record of message events.

    Entries are never mutated or removed. Iteration and indexing follow
    insertion order.
    """

    def __init__(self) -> None:
        self._events: list[MessageEvent] = []

    def append(self, event: MessageEvent) -> None:
        """Append an event at the end of the log."""
        self._events.append(event)

    def events(self) -> tuple[MessageEvent, ...]:
        """Return an immutable view of all events in order."""
        return tuple(self._events)

    def filter(
        self, predicate: Callable[[MessageEvent], bool]
    ) -> list[MessageEvent]:
        """Return events matching predicate, in log order."""
        return [e for e in self._events if predicate(e)]

    def of_kind(self, kind: MessageKind) -> list[MessageEvent]:
        return self.filter(lambda e: e.kind is kind)

    def since(self, index: int) -> list[MessageEvent]:
        """Return events appended at or after position index."""
        return self._events[index:]

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[MessageEvent]:
        return iter(tuple(self._events))

    def __getitem__(self, index: int) -> MessageEvent:
        return self._events[index]

    def __repr__(self) -> str:
        return f"MessageLog({len(self._events)} events)"
