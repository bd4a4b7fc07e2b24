"""
Tests for the fault model: send/receive decisions and Byzantine transforms.
"""

import numpy as np
import pytest

from pbftsim.simulation import (
    FaultModel,
    FaultStatus,
    Message,
    MessageKind,
    NodeState,
    block_digest,
)


def make_node(fault: FaultStatus, node_id: int = 1) -> NodeState:
    return NodeState(node_id=node_id, fault_status=fault)


def make_message(sender: int = 1, receiver: int = 2) -> Message:
    return Message(
        kind=MessageKind.PREPARE,
        sender=sender,
        receiver=receiver,
        view=0,
        sequence=1,
        digest=block_digest(0, 1),
    )


# =============================================================================
# Send / Receive Tests
# =============================================================================


class TestSendReceive:
    @pytest.mark.parametrize(
        "fault, can_send, can_receive",
        [
            (FaultStatus.NONE, True, True),
            (FaultStatus.CRASH, False, False),
            (FaultStatus.OMISSION, False, True),
            (FaultStatus.BYZANTINE, True, True),
        ],
    )
    def test_decision_table(self, fault, can_send, can_receive):
        model = FaultModel()
        node = make_node(fault)

        assert model.can_send(node) is can_send
        assert model.can_receive(node) is can_receive


# =============================================================================
# Transform Tests
# =============================================================================


class TestTransformOutgoing:
    @pytest.mark.parametrize(
        "fault", [FaultStatus.NONE, FaultStatus.OMISSION, FaultStatus.CRASH]
    )
    def test_non_byzantine_unchanged(self, fault):
        model = FaultModel()
        message = make_message()

        assert model.transform_outgoing(make_node(fault), message) is message

    def test_byzantine_conflicting_digest(self):
        model = FaultModel()
        message = make_message()

        out = model.transform_outgoing(make_node(FaultStatus.BYZANTINE), message)

        assert out.conflicting
        assert out.digest != message.digest
        assert out.kind is message.kind
        assert (out.sender, out.receiver) == (message.sender, message.receiver)
        # Original message untouched
        assert not message.conflicting

    def test_deterministic_without_rng(self):
        node = make_node(FaultStatus.BYZANTINE)
        a = FaultModel().transform_outgoing(node, make_message())
        b = FaultModel().transform_outgoing(node, make_message())

        assert a == b

    def test_seeded_rng_reproducible(self):
        node = make_node(FaultStatus.BYZANTINE)
        model_a = FaultModel(np.random.default_rng(42))
        model_b = FaultModel(np.random.default_rng(42))

        digests_a = [model_a.transform_outgoing(node, make_message()).digest for _ in range(5)]
        digests_b = [model_b.transform_outgoing(node, make_message()).digest for _ in range(5)]

        assert digests_a == digests_b
        assert all(d != block_digest(0, 1) for d in digests_a)

    def test_conflicting_digest_never_honest(self):
        model = FaultModel()
        for view in range(3):
            for sequence in range(1, 4):
                message = Message(
                    kind=MessageKind.COMMIT,
                    sender=0,
                    receiver=1,
                    view=view,
                    sequence=sequence,
                    digest=block_digest(view, sequence),
                )
                out = model.transform_outgoing(
                    make_node(FaultStatus.BYZANTINE, node_id=0), message
                )
                assert out.digest != block_digest(view, sequence)


class TestBlockDigest:
    def test_distinct_per_view_and_sequence(self):
        digests = {block_digest(v, s) for v in range(4) for s in range(1, 5)}
        assert len(digests) == 16

    def test_conflicting_digest_disjoint_for_large_view_and_sequence(self):
        model = FaultModel()
        node = make_node(FaultStatus.BYZANTINE, node_id=0)
        for view, sequence in [(0x8000, 1), (0x8001, 0x10000), (0, 0x12345678)]:
            message = Message(
                kind=MessageKind.PREPARE,
                sender=0,
                receiver=1,
                view=view,
                sequence=sequence,
                digest=block_digest(view, sequence),
            )
            out = model.transform_outgoing(node, message)
            assert out.digest.startswith("0xbad:")
            assert out.digest != block_digest(view, sequence)
            assert out.digest != block_digest(view | 0x8000, sequence)
