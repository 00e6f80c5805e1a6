"""Command-line interface for fraudwatch."""
from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from pathlib import Path

from .alerts import generate_alerts
from .data_loader import SnapshotLoader, TransactionLoader, snapshots_to_frame, transactions_to_frame
from .documents import load_document_store
from .metrics import aggregate_metrics
from .monitor import MonitorConfig, restore_or_create


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="fraudwatch transaction risk monitor")
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = parser.add_subparsers(dest="command", required=True)

    sim_parser = sub.add_parser("simulate", help="Score a synthetic transaction stream")
    sim_parser.add_argument("--ticks", type=int, default=40, help="Number of transactions to generate")
    sim_parser.add_argument(
        "--inject-every", type=int, default=0, help="Inject a synthetic fraud event every N ticks (0 disables)"
    )
    sim_parser.add_argument("--seed", type=int, default=None, help="Seed for the random source")
    sim_parser.add_argument("--state", help="Checkpoint to resume from and write back to")
    sim_parser.add_argument("--output-csv", dest="output_csv", help="Optional path for the scored stream")
    sim_parser.add_argument("--snapshots-csv", dest="snapshots_csv", help="Optional path for latency snapshots")
    sim_parser.add_argument("--html-report", dest="html_report", help="Optional HTML report path")

    metrics_parser = sub.add_parser("metrics", help="Aggregate dashboard metrics from a scored CSV")
    metrics_parser.add_argument("csv", help="Path to a scored transactions CSV")
    metrics_parser.add_argument("--snapshots", help="Optional latency snapshots CSV")

    compliance_parser = sub.add_parser("compliance", help="Check a transaction against customer policy")
    compliance_parser.add_argument("user_id", help="Customer user id, e.g. USER_STANDARD_001")
    compliance_parser.add_argument("amount", type=float, help="Transaction amount")
    compliance_parser.add_argument("country", help="Destination country code")
    compliance_parser.add_argument("--counterparty", help="Optional counterparty name to screen against sanctions")

    return parser


def _simulate(args: argparse.Namespace) -> None:
    monitor, resumed = restore_or_create(args.state, config=MonitorConfig(seed=args.seed))
    if resumed:
        print(f"Resumed from {Path(args.state).resolve()} ({len(monitor.transactions)} transactions)")
    monitor.run(args.ticks, inject_every=args.inject_every)
    metrics = monitor.dashboard()

    if args.output_csv:
        Path(args.output_csv).parent.mkdir(parents=True, exist_ok=True)
        transactions_to_frame(monitor.transactions).to_csv(args.output_csv, index=False)
        print(f"Transactions written to {Path(args.output_csv).resolve()}")
    if args.snapshots_csv:
        Path(args.snapshots_csv).parent.mkdir(parents=True, exist_ok=True)
        snapshots_to_frame(monitor.snapshots).to_csv(args.snapshots_csv, index=False)
        print(f"Snapshots written to {Path(args.snapshots_csv).resolve()}")
    if args.html_report:
        from .report import ReportBuilder

        ReportBuilder().build_html(
            metrics,
            monitor.transactions,
            args.html_report,
            hourly_trend=monitor.hourly_trend(),
            knowledge_base=monitor.knowledge_base,
        )
        print(f"HTML report written to {Path(args.html_report).resolve()}")
    if args.state:
        monitor.save(args.state)
        print(f"Checkpoint written to {Path(args.state).resolve()}")

    print(json.dumps(metrics.to_dict(), indent=2))


def _metrics(args: argparse.Namespace) -> None:
    transactions = TransactionLoader().load(args.csv)
    snapshots = SnapshotLoader().load(args.snapshots) if args.snapshots else []
    baseline = aggregate_metrics(transactions, snapshots, [])
    metrics = aggregate_metrics(transactions, snapshots, generate_alerts(transactions, baseline))
    print(json.dumps(metrics.to_dict(), indent=2))


def _compliance(args: argparse.Namespace) -> int:
    store = load_document_store()
    result = store.check_policy_compliance(args.user_id, args.amount, args.country)
    payload: dict = asdict(result)
    if args.counterparty:
        hit = store.check_sanction_status(args.counterparty)
        payload["sanction_hit"] = asdict(hit) if hit else None
    print(json.dumps(payload, indent=2))
    return 0 if result.compliant and not payload.get("sanction_hit") else 1


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.command == "simulate":
        _simulate(args)
    elif args.command == "metrics":
        _metrics(args)
    elif args.command == "compliance":
        return _compliance(args)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
