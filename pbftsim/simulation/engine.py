"""
Round engine for the PBFT simulator.

The engine executes one PBFT round as five explicit steps:

    0 INIT -> 1 PRE_PREPARE -> 2 PREPARE -> 3 COMMIT -> 4 FINALIZE

Each call to step() runs one phase to completion. Before every phase the
engine checks the active fault count against the tolerance bound; if the
bound is exceeded the round halts with an UNSAFE verdict and no further
protocol messages are produced until the round is reset.

Per phase, the engine:
1. Builds the messages an honest node would send
2. Asks the fault model whether each one may be sent and received, and
   how a faulty sender alters it
3. Updates node phase statuses
4. Appends one log entry per delivery attempt (including blocked,
   omitted and conflicting ones)

FINALIZE is the single commit decision point: either a block is added to
the chain and the verdict becomes SAFE, or the round fails UNSAFE.
"""

import copy
import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable

import numpy as np

from .cluster import NodeSet
from .config import SimulationConfig, validate_node_count
from .errors import (
    ConfigurationError,
    InvalidFaultCount,
    NodeAlreadyFaulty,
    PhaseOutOfOrder,
)
from .events import (
    BLOCKCHAIN,
    NETWORK,
    SYSTEM,
    DeliveryStatus,
    MessageEvent,
    MessageKind,
    MessageLog,
)
from .faults import FaultModel, Message, block_digest
from .node import FaultStatus, NodeState, PhaseStatus
from .quorum import (
    QuorumSummary,
    committed_threshold,
    final_quorum,
    is_over_tolerance,
    max_tolerable_faults,
    prepared_threshold,
)

logger = logging.getLogger(__name__)


class RoundPhase(Enum):
    """Phases of a PBFT round, in execution order."""

    INIT = "init"
    PRE_PREPARE = "pre_prepare"
    PREPARE = "prepare"
    COMMIT = "commit"
    FINALIZE = "finalize"


PHASE_ORDER: tuple[RoundPhase, ...] = tuple(RoundPhase)


class Verdict(Enum):
    """Safety outcome of the current round."""

    UNSET = "unset"
    SAFE = "safe"
    UNSAFE = "unsafe"


@dataclass
class RoundState:
    """Protocol counters for the current round.

    Attributes:
        view: Leader-selection epoch; leader id = view mod n.
        sequence: Sequence number of the block being agreed on.
        phase: Last phase the engine executed.
        committed_block_count: Blocks committed since initialization.
        verdict: Safety outcome of the current round.
    """

    view: int = 0
    sequence: int = 1
    phase: RoundPhase = RoundPhase.INIT
    committed_block_count: int = 0
    verdict: Verdict = Verdict.UNSET


@dataclass
class PhaseTally:
    """Votes each node received from distinct peers during one phase.

    Attributes:
        kind: PREPARE or COMMIT.
        threshold: Votes required for the phase to be reached locally.
        include_self: Whether a node's own honest vote counts toward threshold.
        received: receiver id -> peers whose message was delivered (OK or conflicting).
        conflicting: receiver id -> peers whose delivered message was conflicting.
        own_vote: node id -> whether the node cast an honest vote itself.
    """

    kind: MessageKind
    threshold: int
    include_self: bool = False
    received: dict[int, set[int]] = field(default_factory=dict)
    conflicting: dict[int, set[int]] = field(default_factory=dict)
    own_vote: dict[int, bool] = field(default_factory=dict)

    def record(self, receiver: int, sender: int, conflicting: bool) -> None:
        self.received.setdefault(receiver, set()).add(sender)
        if conflicting:
            self.conflicting.setdefault(receiver, set()).add(sender)

    def votes(self, node_id: int) -> int:
        """Messages delivered to node_id from distinct peers, conflicting included."""
        return len(self.received.get(node_id, ()))

    def matching_votes(self, node_id: int) -> int:
        """Delivered messages that vouch for the honest block."""
        honest = self.received.get(node_id, set()) - self.conflicting.get(node_id, set())
        return len(honest)

    def reached(self, node_id: int) -> bool:
        """Check if node_id collected enough matching votes.

        Conflicting messages never count as confirming evidence.
        """
        count = self.matching_votes(node_id)
        if self.include_self and self.own_vote.get(node_id, False):
            count += 1
        return count >= self.threshold


@dataclass(frozen=True)
class Block:
    """A block committed at FINALIZE."""

    block_id: str
    view: int
    sequence: int
    digest: str
    data: str
    committed_at: float


@dataclass(frozen=True)
class RoundSnapshot:
    """Read-only copy of the engine state for rendering.

    Attributes:
        nodes: Copies of all node states, ordered by node id.
        round_state: Copy of the round counters.
        message_log: All log events in insertion order.
        tallies: Vote tallies of the PREPARE and COMMIT phases run this round.
        chain: Committed blocks, oldest first.
        quorum: Thresholds for the current node count.
        active_faults: Number of nodes currently carrying a fault.
        expected_phase: Index of the phase the next step() must request.
        halted: Whether the round is stopped pending a reset.
    """

    nodes: tuple[NodeState, ...]
    round_state: RoundState
    message_log: tuple[MessageEvent, ...]
    tallies: dict[RoundPhase, PhaseTally]
    chain: tuple[Block, ...]
    quorum: QuorumSummary
    active_faults: int
    expected_phase: int
    halted: bool

    @property
    def leader(self) -> NodeState:
        return next(n for n in self.nodes if n.is_leader)

    @property
    def verdict(self) -> Verdict:
        return self.round_state.verdict


class RoundEngine:
    """Step-driven PBFT round simulator.

    The engine exclusively owns the node set, the round state and the
    message log. It is single-threaded: every public method runs to
    completion and either raises before mutating anything or appends at
    least one log entry.

    Args:
        config: Session configuration; defaults to SimulationConfig().
        clock: Callable returning the current time, used to stamp events.
    """

    def __init__(
        self,
        config: SimulationConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or SimulationConfig()
        self.clock = clock

        rng = (
            np.random.default_rng(self.config.seed)
            if self.config.seed is not None
            else None
        )
        self.fault_model = FaultModel(rng)
        self.node_set = NodeSet(
            center_x=self.config.center_x,
            center_y=self.config.center_y,
            radius=self.config.radius,
            clock=clock,
        )
        self.log = MessageLog()
        self.round_state = RoundState()
        self.tallies: dict[RoundPhase, PhaseTally] = {}
        self.chain: list[Block] = []
        self._expected_phase = 0
        self._halted = False

        self.initialize(self.config.node_count)

    @property
    def n(self) -> int:
        return len(self.node_set)

    @property
    def nodes(self) -> list[NodeState]:
        return self.node_set.nodes

    @property
    def expected_phase(self) -> int:
        return self._expected_phase

    @property
    def halted(self) -> bool:
        return self._halted

    # -- session control -------------------------------------------------

    def initialize(self, n: int) -> RoundSnapshot:
        """Create a fresh network of n nodes and reset all round counters.

        The message log is kept; a NETWORK_RESET entry marks the boundary.

        Raises:
            InvalidNodeCount: If n is outside [MIN_NODES, MAX_NODES].
        """
        validate_node_count(n)

        self.node_set.initialize(n)
        self.round_state = RoundState()
        self.tallies = {}
        self.chain = []
        self._expected_phase = 0
        self._halted = False

        f = max_tolerable_faults(n)
        self._record(
            MessageKind.NETWORK_RESET,
            SYSTEM,
            NETWORK,
            detail=f"{n} nodes, tolerates f={f}",
        )
        logger.info("Initialized network: n=%d, f=%d", n, f)
        return self.snapshot()

    def reset_round(self) -> RoundSnapshot:
        """Restart the current round at INIT, keeping view, sequence and faults."""
        self._restart_round()
        self._record(
            MessageKind.NETWORK_RESET,
            SYSTEM,
            NETWORK,
            detail=f"Round reset at view {self.round_state.view}, "
            f"sequence {self.round_state.sequence}",
        )
        logger.info("Round reset")
        return self.snapshot()

    def trigger_view_change(self) -> RoundSnapshot:
        """Move to the next view and hand leadership to node (view mod n).

        Only the trigger is modelled: no view-change messages are exchanged.
        The round restarts at INIT under the new leader.
        """
        self.round_state.view += 1
        leader = self.node_set.set_leader(self.round_state.view)
        self._restart_round()
        self._record(
            MessageKind.VIEW_CHANGE,
            SYSTEM,
            leader.label,
            receiver=leader.node_id,
            detail=f"View {self.round_state.view}: leader is node {leader.node_id}",
        )
        logger.info(
            "View change to %d, new leader node %d",
            self.round_state.view,
            leader.node_id,
        )
        return self.snapshot()

    def _restart_round(self) -> None:
        self.node_set.set_all_phases(PhaseStatus.IDLE)
        self.round_state.phase = RoundPhase.INIT
        self.round_state.verdict = Verdict.UNSET
        self.tallies = {}
        self._expected_phase = 0
        self._halted = False

    # -- faults ----------------------------------------------------------

    def inject_fault(self, node_id: int, fault: FaultStatus | str) -> RoundSnapshot:
        """Inject a fault into one node.

        Args:
            node_id: Node to make faulty.
            fault: Fault to inject, as a FaultStatus or its value ("crash", ...).

        Returns:
            Snapshot after injection. The FAULT_INJECTED entry is marked
            CRITICAL when active faults now exceed the tolerance bound.

        Raises:
            NodeOutOfRange: If node_id is not a valid index.
            NodeAlreadyFaulty: If the node already carries a fault.
            InvalidFaultCount: If no healthy node would remain.
            ConfigurationError: If fault is NONE or not a known fault.
        """
        try:
            fault = FaultStatus(fault)
        except ValueError:
            raise ConfigurationError(f"Unknown fault type: {fault!r}") from None
        if fault is FaultStatus.NONE:
            raise ConfigurationError("Use remove_fault() to clear a node's fault")

        node = self.node_set.get(node_id)
        if node.is_faulty:
            raise NodeAlreadyFaulty(node_id, node.fault_status.value)
        resulting = self.node_set.active_fault_count + 1
        if resulting > self.n - 1:
            raise InvalidFaultCount(resulting, self.n)

        self.node_set.set_fault_status(node_id, fault)

        critical = is_over_tolerance(resulting, self.n)
        self._record(
            MessageKind.FAULT_INJECTED,
            SYSTEM,
            node.label,
            DeliveryStatus.CRITICAL if critical else DeliveryStatus.OK,
            receiver=node_id,
            detail=f"{fault.value.upper()} fault injected",
        )
        if critical:
            logger.warning(
                "Active faults %d exceed tolerance f=%d for n=%d",
                resulting,
                max_tolerable_faults(self.n),
                self.n,
            )
        else:
            logger.info("Injected %s fault into node %d", fault.value, node_id)
        return self.snapshot()

    def remove_fault(self, node_id: int) -> RoundSnapshot:
        """Clear the fault of a single node.

        Raises:
            NodeOutOfRange: If node_id is not a valid index.
            NodeNotFaulty: If the node carries no fault.
        """
        removed = self.node_set.remove_fault(node_id)
        node = self.node_set.get(node_id)
        self._record(
            MessageKind.FAULT_CLEARED,
            SYSTEM,
            node.label,
            receiver=node_id,
            detail=f"{removed.value.upper()} fault removed",
        )
        logger.info("Removed %s fault from node %d", removed.value, node_id)
        return self.snapshot()

    def clear_all_faults(self) -> RoundSnapshot:
        """Clear every node's fault. Idempotent apart from the log entry."""
        self.node_set.clear_all_faults()
        self._record(
            MessageKind.FAULT_CLEARED, SYSTEM, NETWORK, detail="All faults cleared"
        )
        logger.info("Cleared all faults")
        return self.snapshot()

    # -- stepping --------------------------------------------------------

    def step(self, phase_index: int) -> RoundSnapshot:
        """Execute one phase of the round.

        Args:
            phase_index: Index of the phase to run (0=INIT ... 4=FINALIZE).
                Must equal expected_phase.

        Returns:
            Snapshot after the phase. If active faults exceed the tolerance
            bound, the round halts UNSAFE instead and no phase runs. A
            halted round records each further step as an ignored
            ROUND_HALTED entry until reset_round() or initialize().

        Raises:
            PhaseOutOfOrder: If phase_index is out of range or not the
                expected phase. State is left unchanged.
        """
        if not 0 <= phase_index < len(PHASE_ORDER):
            raise PhaseOutOfOrder(phase_index, self._expected_phase)

        if self._halted:
            self._record(
                MessageKind.ROUND_HALTED,
                SYSTEM,
                NETWORK,
                detail=f"Step {phase_index} ignored: round is halted",
            )
            logger.debug("Round halted, ignoring step %d", phase_index)
            return self.snapshot()

        active = self.node_set.active_fault_count
        if is_over_tolerance(active, self.n):
            self._halt(active)
            return self.snapshot()

        if phase_index != self._expected_phase:
            raise PhaseOutOfOrder(phase_index, self._expected_phase)

        phase = PHASE_ORDER[phase_index]
        handlers = {
            RoundPhase.INIT: self._run_init,
            RoundPhase.PRE_PREPARE: self._run_pre_prepare,
            RoundPhase.PREPARE: self._run_prepare,
            RoundPhase.COMMIT: self._run_commit,
            RoundPhase.FINALIZE: self._run_finalize,
        }
        self.round_state.phase = phase
        handlers[phase]()

        if not self._halted and phase is not RoundPhase.FINALIZE:
            self._expected_phase = phase_index + 1
        return self.snapshot()

    def run_round(self) -> RoundSnapshot:
        """Step from the expected phase through FINALIZE, stopping if the round halts."""
        snapshot = self.snapshot()
        for index in range(self._expected_phase, len(PHASE_ORDER)):
            snapshot = self.step(index)
            if snapshot.halted:
                break
        return snapshot

    def _halt(self, active: int) -> None:
        """Stop the round with an UNSAFE verdict."""
        self.round_state.verdict = Verdict.UNSAFE
        self._halted = True
        f = max_tolerable_faults(self.n)
        self._record(
            MessageKind.ROUND_HALTED,
            SYSTEM,
            NETWORK,
            DeliveryStatus.CRITICAL,
            detail=f"Active faults {active} exceed tolerance f={f}",
            reached=active,
            required=f,
        )
        logger.warning(
            "Round halted unsafe: %d active faults, tolerance f=%d", active, f
        )

    # -- phases ----------------------------------------------------------

    def _run_init(self) -> None:
        self.round_state.verdict = Verdict.UNSET
        self.node_set.set_all_phases(PhaseStatus.IDLE)
        self.tallies = {}
        self._record(
            MessageKind.INITIALIZE,
            SYSTEM,
            NETWORK,
            digest=self._honest_digest(),
            detail=f"Round view={self.round_state.view} "
            f"sequence={self.round_state.sequence}",
        )

    def _run_pre_prepare(self) -> None:
        leader = self.node_set.leader()
        can_send = self.fault_model.can_send(leader)

        for receiver in self.nodes:
            if receiver is leader:
                continue
            if not can_send:
                if leader.fault_status is FaultStatus.OMISSION:
                    leader.messages_withheld += 1
                self._record(
                    MessageKind.PRE_PREPARE,
                    leader.label,
                    receiver.label,
                    DeliveryStatus.BLOCKED_CRASHED_SENDER,
                    sender=leader.node_id,
                    receiver=receiver.node_id,
                )
                continue
            self._deliver(
                leader, receiver, MessageKind.PRE_PREPARE, mark_omission=True
            )

        if can_send:
            leader.phase_status = PhaseStatus.PRE_PREPARED
        else:
            logger.info(
                "Leader node %d cannot send pre-prepare (%s)",
                leader.node_id,
                leader.fault_status.value,
            )

    def _run_prepare(self) -> None:
        self.node_set.set_all_phases(PhaseStatus.PREPARED)
        tally = PhaseTally(
            kind=MessageKind.PREPARE, threshold=prepared_threshold(self.n)
        )
        self._exchange(tally)
        self.tallies[RoundPhase.PREPARE] = tally

    def _run_commit(self) -> None:
        self.node_set.set_all_phases(PhaseStatus.COMMITTING)
        tally = PhaseTally(
            kind=MessageKind.COMMIT,
            threshold=committed_threshold(self.n),
            include_self=True,
        )
        self._exchange(tally)
        self.tallies[RoundPhase.COMMIT] = tally

    def _run_finalize(self) -> None:
        rs = self.round_state
        non_faulty = self.node_set.non_faulty_count()
        required = final_quorum(self.n)

        if non_faulty >= required:
            block = Block(
                block_id=f"block-{rs.view}-{rs.sequence}",
                view=rs.view,
                sequence=rs.sequence,
                digest=self._honest_digest(),
                data=f"Block #{rs.sequence}",
                committed_at=self.clock(),
            )
            self.chain.append(block)
            rs.committed_block_count += 1
            for node in self.nodes:
                if node.fault_status is not FaultStatus.CRASH:
                    node.phase_status = PhaseStatus.COMMITTED
            self._record(
                MessageKind.BLOCK_COMMITTED,
                NETWORK,
                BLOCKCHAIN,
                digest=block.digest,
                detail=f"Quorum reached: {non_faulty}/{required} nodes",
                reached=non_faulty,
                required=required,
            )
            rs.verdict = Verdict.SAFE
            logger.info(
                "Committed %s (%d/%d non-faulty nodes)",
                block.block_id,
                non_faulty,
                required,
            )
            rs.sequence += 1
            self._expected_phase = 0
        else:
            self._record(
                MessageKind.BLOCK_COMMIT_FAILED,
                NETWORK,
                BLOCKCHAIN,
                DeliveryStatus.CRITICAL,
                detail=f"Insufficient quorum: {non_faulty} < {required}",
                reached=non_faulty,
                required=required,
            )
            rs.verdict = Verdict.UNSAFE
            self._halted = True
            logger.warning(
                "Block commit failed: %d non-faulty < %d required",
                non_faulty,
                required,
            )

    # -- delivery --------------------------------------------------------

    def _exchange(self, tally: PhaseTally) -> None:
        """All-to-all exchange of tally.kind messages.

        A sender that cannot send produces no entries at all: it never
        attempts the send.
        """
        for sender in self.nodes:
            can_send = self.fault_model.can_send(sender)
            tally.own_vote[sender.node_id] = sender.fault_status is FaultStatus.NONE
            for receiver in self.nodes:
                if receiver is sender:
                    continue
                if not can_send:
                    if sender.fault_status is FaultStatus.OMISSION:
                        sender.messages_withheld += 1
                    continue
                status = self._deliver(sender, receiver, tally.kind)
                if status in (DeliveryStatus.OK, DeliveryStatus.CONFLICTING_BYZANTINE):
                    tally.record(
                        receiver.node_id,
                        sender.node_id,
                        conflicting=status is DeliveryStatus.CONFLICTING_BYZANTINE,
                    )

        logger.debug(
            "%s exchange: %d/%d nodes reached threshold %d",
            tally.kind.value,
            sum(1 for n in self.nodes if tally.reached(n.node_id)),
            self.n,
            tally.threshold,
        )

    def _deliver(
        self,
        sender: NodeState,
        receiver: NodeState,
        kind: MessageKind,
        mark_omission: bool = False,
    ) -> DeliveryStatus:
        """Attempt one delivery from a sender that is able to send.

        Args:
            sender: Sending node (can_send already checked).
            receiver: Receiving node.
            kind: Protocol message kind.
            mark_omission: Whether to report OMITTED for an omission-faulty
                receiver (the receipt still counts).

        Returns:
            The delivery status that was logged.
        """
        message = Message(
            kind=kind,
            sender=sender.node_id,
            receiver=receiver.node_id,
            view=self.round_state.view,
            sequence=self.round_state.sequence,
            digest=self._honest_digest(),
        )

        if not self.fault_model.can_receive(receiver):
            receiver.messages_missed += 1
            status = DeliveryStatus.BLOCKED_CRASHED_RECEIVER
        else:
            message = self.fault_model.transform_outgoing(sender, message)
            if message.conflicting:
                status = DeliveryStatus.CONFLICTING_BYZANTINE
            elif mark_omission and receiver.fault_status is FaultStatus.OMISSION:
                status = DeliveryStatus.OMITTED
            else:
                status = DeliveryStatus.OK

        self._record(
            kind,
            sender.label,
            receiver.label,
            status,
            sender=sender.node_id,
            receiver=receiver.node_id,
            digest=message.digest,
        )
        return status

    def _honest_digest(self) -> str:
        return block_digest(self.round_state.view, self.round_state.sequence)

    def _record(
        self,
        kind: MessageKind,
        from_label: str,
        to_label: str,
        status: DeliveryStatus = DeliveryStatus.OK,
        **fields,
    ) -> MessageEvent:
        event = MessageEvent(
            timestamp=self.clock(),
            from_label=from_label,
            to_label=to_label,
            kind=kind,
            delivery_status=status,
            view=self.round_state.view,
            sequence=self.round_state.sequence,
            **fields,
        )
        self.log.append(event)
        return event

    # -- snapshots -------------------------------------------------------

    def snapshot(self) -> RoundSnapshot:
        """Return a read-only copy of the current state."""
        return RoundSnapshot(
            nodes=tuple(copy.copy(n) for n in self.nodes),
            round_state=replace(self.round_state),
            message_log=self.log.events(),
            tallies=copy.deepcopy(self.tallies),
            chain=tuple(self.chain),
            quorum=QuorumSummary.for_nodes(self.n),
            active_faults=self.node_set.active_fault_count,
            expected_phase=self._expected_phase,
            halted=self._halted,
        )
