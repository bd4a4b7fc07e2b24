#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Graphing utilities for visualizing PBFT rounds.

Provides functions for drawing the node topology with message flow, and
for summarizing delivery outcomes per message kind. All figures are built
from a RoundSnapshot and never touch engine state.
"""

import numpy as np
import plotly.graph_objects as go

from pbftsim.simulation import (
    DeliveryStatus,
    FaultStatus,
    MessageKind,
    RoundSnapshot,
)

FAULT_COLORS = {
    FaultStatus.NONE: "steelblue",
    FaultStatus.CRASH: "gray",
    FaultStatus.BYZANTINE: "crimson",
    FaultStatus.OMISSION: "orange",
}

DELIVERY_COLORS = {
    DeliveryStatus.OK: "seagreen",
    DeliveryStatus.BLOCKED_CRASHED_SENDER: "dimgray",
    DeliveryStatus.BLOCKED_CRASHED_RECEIVER: "darkgray",
    DeliveryStatus.OMITTED: "orange",
    DeliveryStatus.CONFLICTING_BYZANTINE: "crimson",
    DeliveryStatus.CRITICAL: "black",
}


ROUND_BOUNDARIES = (
    MessageKind.INITIALIZE,
    MessageKind.NETWORK_RESET,
    MessageKind.VIEW_CHANGE,
)


def current_round_events(snapshot: RoundSnapshot) -> list:
    """Log entries since the most recent round boundary (inclusive)."""
    log = snapshot.message_log
    start = 0
    for i in range(len(log) - 1, -1, -1):
        if log[i].kind in ROUND_BOUNDARIES:
            start = i
            break
    return list(log[start:])


def make_topology_fig(
    snapshot: RoundSnapshot,
    kind: MessageKind | None = None,
    title: str | None = None,
) -> go.Figure:
    """Draw nodes at their display coordinates and the messages between them.

    One edge trace is added per delivery status present, so the legend
    doubles as a delivery key.

    Args:
        snapshot: Engine snapshot to draw.
        kind: Only draw messages of this kind. None draws every protocol message.
        title: Plot title; defaults to the round's view, sequence and verdict.

    Returns:
        Plotly Figure object.
    """
    positions = {n.node_id: (n.x, n.y) for n in snapshot.nodes}
    fig = go.Figure()

    events = [
        e
        for e in current_round_events(snapshot)
        if e.sender is not None
        and e.receiver is not None
        and (e.kind is kind if kind is not None else e.is_protocol_message)
    ]

    for status, color in DELIVERY_COLORS.items():
        edges = [e for e in events if e.delivery_status is status]
        if not edges:
            continue
        xs: list[float | None] = []
        ys: list[float | None] = []
        for e in edges:
            (x0, y0), (x1, y1) = positions[e.sender], positions[e.receiver]
            xs.extend([x0, x1, None])
            ys.extend([y0, y1, None])
        fig.add_trace(
            go.Scatter(
                x=xs,
                y=ys,
                mode="lines",
                name=f"{status.value} ({len(edges)})",
                line=dict(color=color, width=1),
                opacity=0.6,
            )
        )

    fig.add_trace(
        go.Scatter(
            x=[n.x for n in snapshot.nodes],
            y=[n.y for n in snapshot.nodes],
            mode="markers+text",
            name="nodes",
            text=[n.label for n in snapshot.nodes],
            textposition="top center",
            marker=dict(
                size=[28 if n.is_leader else 20 for n in snapshot.nodes],
                color=[FAULT_COLORS[n.fault_status] for n in snapshot.nodes],
                line=dict(color="black", width=1),
            ),
            hovertext=[
                f"{n.label}: {n.phase_status.value}, fault={n.fault_status.value}"
                for n in snapshot.nodes
            ],
            hoverinfo="text",
        )
    )

    rs = snapshot.round_state
    fig.update_layout(
        title=title
        or f"View {rs.view}, sequence {rs.sequence}: {rs.verdict.value}",
        showlegend=True,
        xaxis=dict(visible=False),
        yaxis=dict(visible=False, scaleanchor="x"),
    )

    return fig


def delivery_counts(
    snapshot: RoundSnapshot,
) -> tuple[list[MessageKind], list[DeliveryStatus], np.ndarray]:
    """Count log entries per (message kind, delivery status).

    Returns:
        Tuple of (kinds, statuses, counts) where counts[i, j] is the number
        of entries of kinds[i] with statuses[j].
    """
    kinds = list(MessageKind)
    statuses = list(DeliveryStatus)
    counts = np.zeros((len(kinds), len(statuses)), dtype=int)
    for e in snapshot.message_log:
        counts[kinds.index(e.kind), statuses.index(e.delivery_status)] += 1
    return kinds, statuses, counts


def make_delivery_summary_fig(
    snapshot: RoundSnapshot,
    title: str = "Delivery Outcomes by Message Kind",
) -> go.Figure:
    """Create a stacked bar chart of delivery statuses per message kind.

    Kinds that never occur in the log are left out.

    Args:
        snapshot: Engine snapshot to summarize.
        title: Plot title.

    Returns:
        Plotly Figure object.
    """
    kinds, statuses, counts = delivery_counts(snapshot)
    present = counts.sum(axis=1) > 0
    if not present.any():
        fig = go.Figure()
        fig.update_layout(title=f"{title} (no data)")
        return fig

    labels = [k.value for k, keep in zip(kinds, present) if keep]
    counts = counts[present]

    fig = go.Figure()
    for j, status in enumerate(statuses):
        column = counts[:, j]
        if not column.any():
            continue
        fig.add_trace(
            go.Bar(
                x=labels,
                y=column,
                name=status.value,
                marker_color=DELIVERY_COLORS[status],
            )
        )

    fig.update_layout(
        title=title,
        barmode="stack",
        xaxis_title="Message kind",
        yaxis_title="Entries",
        showlegend=True,
    )

    return fig
