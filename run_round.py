"""Run one PBFT round with injected faults and print the message log."""

import argparse
import logging
import sys

from pbftsim.simulation import (
    FaultStatus,
    RoundEngine,
    SimulationConfig,
    SimulationError,
)


def parse_fault(value: str) -> tuple[int, FaultStatus]:
    """Parse a NODE:TYPE fault argument, e.g. "3:crash"."""
    try:
        node, fault = value.split(":", 1)
        return int(node), FaultStatus(fault.lower())
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"expected NODE:TYPE with TYPE in crash/byzantine/omission, got {value!r}"
        ) from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Simulate one PBFT round.")
    parser.add_argument("--nodes", type=int, default=4, help="Number of nodes (4-10)")
    parser.add_argument(
        "--fault",
        type=parse_fault,
        action="append",
        default=[],
        metavar="NODE:TYPE",
        help="Inject a fault before the round (repeatable)",
    )
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for fabricated Byzantine digests")
    parser.add_argument("--rounds", type=int, default=1, help="Rounds to run")
    parser.add_argument("--plot", default=None,
                        help="Write the final topology figure to this HTML file")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def print_log(snapshot) -> None:
    print(f"\n{'time':>8}  {'from':<18} {'to':<18} {'kind':<20} status")
    start = snapshot.message_log[0].timestamp if snapshot.message_log else 0.0
    for e in snapshot.message_log:
        status = e.delivery_status.value
        if e.detail:
            status = f"{status} - {e.detail}"
        print(
            f"{e.timestamp - start:8.3f}  {e.from_label:<18} {e.to_label:<18} "
            f"{e.kind.value:<20} {status}"
        )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        engine = RoundEngine(SimulationConfig(node_count=args.nodes, seed=args.seed))
        for node_id, fault in args.fault:
            engine.inject_fault(node_id, fault)
    except SimulationError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    snapshot = engine.snapshot()
    for _ in range(args.rounds):
        snapshot = engine.run_round()
        if snapshot.halted:
            break

    print_log(snapshot)
    rs = snapshot.round_state
    q = snapshot.quorum
    print(f"\n--- n={q.node_count}, f={q.max_faults}, active faults={snapshot.active_faults} ---")
    print(f"Verdict: {rs.verdict.value}, committed blocks: {rs.committed_block_count}")

    if args.plot:
        from pbftsim.graphing_utils import make_topology_fig

        make_topology_fig(snapshot).write_html(args.plot)
        print(f"Topology written to {args.plot}")

    return 0 if not snapshot.halted else 1


if __name__ == "__main__":
    sys.exit(main())
