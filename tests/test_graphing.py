"""
Tests for the plotly figure builders.
"""

import plotly.graph_objects as go

from pbftsim.graphing_utils import (
    current_round_events,
    delivery_counts,
    make_delivery_summary_fig,
    make_topology_fig,
)
from pbftsim.simulation import (
    DeliveryStatus,
    FaultStatus,
    MessageKind,
    RoundEngine,
    SimulationConfig,
)


def make_snapshot(n: int = 4, faults: dict[int, FaultStatus] | None = None):
    engine = RoundEngine(SimulationConfig(node_count=n), clock=lambda: 0.0)
    for node_id, fault in (faults or {}).items():
        engine.inject_fault(node_id, fault)
    return engine.run_round()


class TestTopologyFig:
    def test_nodes_trace(self):
        snapshot = make_snapshot(5)
        fig = make_topology_fig(snapshot)

        assert isinstance(fig, go.Figure)
        nodes = [t for t in fig.data if t.name == "nodes"]
        assert len(nodes) == 1
        assert len(nodes[0].x) == 5

    def test_one_edge_trace_per_status(self):
        snapshot = make_snapshot(4, {3: FaultStatus.CRASH})
        fig = make_topology_fig(snapshot)
        names = [t.name for t in fig.data if t.name != "nodes"]

        assert any(name.startswith("ok") for name in names)
        assert any(name.startswith("blocked_crashed_receiver") for name in names)

    def test_kind_filter(self):
        snapshot = make_snapshot(4)
        fig = make_topology_fig(snapshot, kind=MessageKind.PRE_PREPARE)
        edges = [t for t in fig.data if t.name != "nodes"]

        assert len(edges) == 1
        assert edges[0].name == "ok (3)"

    def test_current_round_starts_at_initialize(self):
        snapshot = make_snapshot(4)
        events = current_round_events(snapshot)

        assert events[0].kind is MessageKind.INITIALIZE
        assert events[-1].kind is MessageKind.BLOCK_COMMITTED


class TestDeliverySummary:
    def test_counts(self):
        snapshot = make_snapshot(7, {5: FaultStatus.BYZANTINE})
        kinds, statuses, counts = delivery_counts(snapshot)

        prepare = kinds.index(MessageKind.PREPARE)
        conflicting = statuses.index(DeliveryStatus.CONFLICTING_BYZANTINE)
        assert counts[prepare, conflicting] == 6
        assert counts.sum() == len(snapshot.message_log)

    def test_stacked_bars(self):
        snapshot = make_snapshot(4, {2: FaultStatus.OMISSION})
        fig = make_delivery_summary_fig(snapshot)

        assert fig.layout.barmode == "stack"
        assert {t.name for t in fig.data} >= {"ok", "omitted"}
