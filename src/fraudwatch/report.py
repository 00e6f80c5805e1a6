"""Render a static HTML summary of a monitoring session."""
from __future__ import annotations

from pathlib import Path
from typing import Sequence

import pandas as pd

from .data_loader import transactions_to_frame
from .schemas import DashboardMetrics, FraudCase, SystemHealth, Transaction

BASE_CSS = """
<style>
    :root { --bg: #020617; --card: #0f172a; --text: #e2e8f0; --muted: #94a3b8; --border: #1e293b;
            --ok: #22c55e; --warn: #f59e0b; --crit: #ef4444; }
    * { box-sizing: border-box; }
    body { margin: 0; padding: 24px; font-family: "Inter", "Segoe UI", system-ui, sans-serif;
           background: var(--bg); color: var(--text); line-height: 1.5; }
    .grid { display: grid; gap: 16px; grid-template-columns: repeat(auto-fit, minmax(180px, 1fr)); }
    .card { background: var(--card); border: 1px solid var(--border); border-radius: 12px; padding: 16px; }
    .muted { color: var(--muted); font-size: 14px; }
    .value { font-size: 24px; font-weight: 700; margin-top: 4px; }
    .pill { display: inline-block; padding: 2px 10px; border-radius: 999px; font-weight: 600; font-size: 12px; }
    .NORMAL, .LOW, .INFO { color: var(--ok); border: 1px solid var(--ok); }
    .WARNING, .MEDIUM { color: var(--warn); border: 1px solid var(--warn); }
    .CRITICAL { color: var(--crit); border: 1px solid var(--crit); }
    .section { margin-top: 28px; }
    table { width: 100%; border-collapse: collapse; margin-top: 8px; font-size: 13px; }
    th, td { padding: 8px 10px; border: 1px solid var(--border); text-align: left; }
    tr:nth-child(even) { background: rgba(255,255,255,0.03); }
    .note { background: var(--card); border: 1px solid var(--border); border-radius: 10px; padding: 12px 14px; }
    footer { margin-top: 32px; color: var(--muted); font-size: 13px; }
</style>
"""

STREAM_COLUMNS = [
    "id",
    "timestamp",
    "amount",
    "merchant",
    "z_score",
    "signature_match_score",
    "matched_case_id",
    "risk_level",
    "status",
]


def _card(label: str, value: str) -> str:
    return f"<div class='card'><div class='muted'>{label}</div><div class='value'>{value}</div></div>"


def _table(df: pd.DataFrame, empty_note: str) -> str:
    if df.empty:
        return f"<div class='note'>{empty_note}</div>"
    return df.to_html(index=False, float_format=lambda v: f"{v:,.2f}", na_rep="", border=0)


class ReportBuilder:
    def build_html(
        self,
        metrics: DashboardMetrics,
        transactions: Sequence[Transaction],
        output_path: str | Path,
        hourly_trend: pd.DataFrame | None = None,
        knowledge_base: Sequence[FraudCase] = (),
    ) -> str:
        """Write the report to ``output_path`` and return the HTML."""

        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        health = SystemHealth(metrics.system_health).value

        alerts = pd.DataFrame(
            [alert.to_dict() for alert in metrics.active_alerts],
            columns=["severity", "title", "description", "timestamp", "related_transaction_id"],
        )
        stream = transactions_to_frame(transactions)[STREAM_COLUMNS]
        cases = pd.DataFrame(
            [(c.id, c.type, c.merchant, c.narrative) for c in knowledge_base],
            columns=["id", "type", "merchant", "narrative"],
        )
        trend = hourly_trend[hourly_trend["total_count"] > 0] if hourly_trend is not None else pd.DataFrame()

        html_lines = [
            "<html><head><meta charset='utf-8'><title>fraudwatch session report</title>",
            BASE_CSS,
            "</head><body>",
            f"<h1>Fraud Monitoring Summary <span class='pill {health}'>{health}</span></h1>",
            "<div class='grid'>",
            _card("Transactions", f"{metrics.transactions_today:,}"),
            _card("Fraud detected", f"{metrics.fraud_detected:,}"),
            _card("Detection rate", f"{metrics.detection_rate * 100:.1f}%"),
            _card("Pending review", f"{metrics.pending_review:,}"),
            _card("Approved", f"{metrics.legitimate_approved:,}"),
            _card("Avg / P95 / P99 latency", f"{metrics.avg_response_time_ms} / {metrics.p95_latency_ms} / {metrics.p99_latency_ms} ms"),
            _card("Throughput", f"{metrics.throughput_txn_per_sec:.2f} tx/s"),
            _card("Precision / Recall", f"{metrics.model_precision:.2f} / {metrics.model_recall:.2f}"),
            _card("False positive rate", f"{metrics.false_positive_rate * 100:.1f}%"),
            "</div>",
            "<div class='section'><h2>Active Alerts</h2>",
            _table(alerts, "No active alerts."),
            "</div>",
            "<div class='section'><h2>Transaction Stream</h2><div class='muted'>Newest first</div>",
            _table(stream, "No transactions scored yet."),
            "</div>",
            "<div class='section'><h2>Hourly Trend</h2>",
            _table(trend, "No hourly data."),
            "</div>",
            "<div class='section'><h2>Knowledge Base</h2>",
            _table(cases, "Knowledge base is empty."),
            "</div>",
            f"<footer>Generated by fraudwatch. {len(knowledge_base)} known cases.</footer>",
            "</body></html>",
        ]
        document = "\n".join(html_lines)
        Path(output_path).write_text(document, encoding="utf-8")
        return document
