"""Compute dashboard metrics and system health from scored transactions."""
from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from .schemas import (
    Alert,
    DashboardMetrics,
    MetricsSnapshot,
    RiskLevel,
    Severity,
    SystemHealth,
    Transaction,
    TransactionStatus,
)

SNAPSHOT_CAPACITY = 1000

TRANSACTION_COLUMNS = ["id", "timestamp", "amount", "risk_level", "status"]


@dataclass
class HealthThresholds:
    critical_alert_count: int = 5
    critical_false_positive_rate: float = 0.30
    critical_response_time_ms: float = 5000
    critical_detection_rate: float = 0.50
    warning_alert_count: int = 10
    warning_false_positive_rate: float = 0.15
    warning_response_time_ms: float = 2000
    warning_detection_rate: float = 0.30


def record_snapshot(
    history: Sequence[MetricsSnapshot],
    response_time: float,
    is_fraud: bool,
    max_history_size: int = SNAPSHOT_CAPACITY,
    timestamp_ms: Optional[int] = None,
) -> List[MetricsSnapshot]:
    """Return ``history`` plus one new sample, keeping only the newest entries."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    snapshot = MetricsSnapshot(timestamp=timestamp_ms, response_time=response_time, is_fraud=is_fraud)
    updated = [*history, snapshot]
    if len(updated) > max_history_size:
        return updated[-max_history_size:]
    return updated


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_percentile(values: Sequence[float], percentile: float) -> int:
    """Nearest-rank percentile: index ``ceil(n * p) - 1`` into the sorted values."""
    if len(values) == 0:
        return 0
    ordered = np.sort(np.asarray(values, dtype=float))
    index = max(0, math.ceil(len(ordered) * percentile) - 1)
    return _round_half_up(float(ordered[index]))


def calculate_throughput(history: Sequence[MetricsSnapshot]) -> float:
    if len(history) < 2:
        return 0.0
    timestamps = sorted(snapshot.timestamp for snapshot in history)
    timespan_seconds = (timestamps[-1] - timestamps[0]) / 1000
    if timespan_seconds == 0:
        return 0.0
    return round(len(history) / timespan_seconds, 2)


def determine_system_health(
    detection_rate: float,
    false_positive_rate: float,
    avg_response_time: float,
    alerts: Sequence[Alert],
    thresholds: HealthThresholds | None = None,
) -> SystemHealth:
    thresholds = thresholds or HealthThresholds()
    critical_alerts = sum(1 for alert in alerts if alert.severity == Severity.CRITICAL)

    if (
        critical_alerts > thresholds.critical_alert_count
        or false_positive_rate > thresholds.critical_false_positive_rate
        or avg_response_time > thresholds.critical_response_time_ms
        or detection_rate > thresholds.critical_detection_rate
    ):
        return SystemHealth.CRITICAL

    if (
        len(alerts) > thresholds.warning_alert_count
        or false_positive_rate > thresholds.warning_false_positive_rate
        or avg_response_time > thresholds.warning_response_time_ms
        or detection_rate > thresholds.warning_detection_rate
    ):
        return SystemHealth.WARNING

    return SystemHealth.NORMAL


def transactions_frame(transactions: Sequence[Transaction]) -> pd.DataFrame:
    if not transactions:
        return pd.DataFrame(columns=TRANSACTION_COLUMNS)
    return pd.DataFrame(
        {
            "id": [t.id for t in transactions],
            "timestamp": [t.timestamp for t in transactions],
            "amount": [t.amount for t in transactions],
            "risk_level": [RiskLevel(t.risk_level).value for t in transactions],
            "status": [TransactionStatus(t.status).value for t in transactions],
        }
    )


def _fraud_mask(frame: pd.DataFrame) -> pd.Series:
    return (frame["risk_level"] == RiskLevel.CRITICAL.value) | (frame["status"] == TransactionStatus.BLOCKED.value)


def _ratio(numerator: int, denominator: int) -> float:
    return numerator / denominator if denominator > 0 else 0.0


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def aggregate_metrics(
    transactions: Sequence[Transaction],
    metrics_history: Sequence[MetricsSnapshot] = (),
    alerts: Sequence[Alert] = (),
    thresholds: HealthThresholds | None = None,
) -> DashboardMetrics:
    """Recompute every dashboard figure from the full transaction and latency history."""
    frame = transactions_frame(transactions)
    total = len(frame)

    fraud = _fraud_mask(frame)
    approved = frame["status"] == TransactionStatus.ALLOWED.value
    pending = frame["status"].isin([TransactionStatus.PENDING.value, TransactionStatus.ANALYZING.value])
    critical = frame["risk_level"] == RiskLevel.CRITICAL.value
    low = frame["risk_level"] == RiskLevel.LOW.value
    blocked = frame["status"] == TransactionStatus.BLOCKED.value

    fraud_count = int(fraud.sum())
    detection_rate = _ratio(fraud_count, total)

    response_times = [snapshot.response_time for snapshot in metrics_history]
    avg_response_time = _round_half_up(float(np.mean(response_times))) if response_times else 0
    max_response_time = max(response_times) if response_times else 0

    true_positives = int((fraud & blocked).sum())
    false_positives = int((fraud & approved).sum())
    false_negatives = int((approved & critical).sum())
    true_negatives = int((approved & low).sum())

    precision = _ratio(true_positives, true_positives + false_positives)
    recall = _ratio(true_positives, true_positives + false_negatives)
    accuracy = _ratio(true_positives + true_negatives, total)
    false_positive_rate = _ratio(false_positives, false_positives + true_negatives)
    false_negative_rate = _ratio(false_negatives, false_negatives + true_positives)

    alerts = list(alerts)
    return DashboardMetrics(
        transactions_today=total,
        fraud_detected=fraud_count,
        detection_rate=detection_rate,
        legitimate_approved=int(approved.sum()),
        pending_review=int(pending.sum()),
        avg_response_time_ms=avg_response_time,
        max_response_time_ms=max_response_time,
        p95_latency_ms=calculate_percentile(response_times, 0.95),
        p99_latency_ms=calculate_percentile(response_times, 0.99),
        throughput_txn_per_sec=calculate_throughput(metrics_history),
        model_accuracy=_clamp(accuracy),
        model_precision=_clamp(precision),
        model_recall=_clamp(recall),
        false_positive_rate=_clamp(false_positive_rate),
        false_negative_rate=_clamp(false_negative_rate),
        active_alerts=alerts,
        system_health=determine_system_health(
            detection_rate, _clamp(false_positive_rate), avg_response_time, alerts, thresholds
        ),
    )


def calculate_hourly_trend(transactions: Sequence[Transaction]) -> pd.DataFrame:
    """Fraud and total counts per UTC hour of day, one row for each of the 24 hours."""
    frame = transactions_frame(transactions)
    hours = pd.RangeIndex(24, name="hour")
    if frame.empty:
        return pd.DataFrame({"hour": hours, "fraud_count": 0, "total_count": 0})

    frame["hour"] = pd.to_datetime(frame["timestamp"], utc=True, format="ISO8601").dt.hour
    frame["is_fraud"] = _fraud_mask(frame).astype(int)
    trend = frame.groupby("hour").agg(fraud_count=("is_fraud", "sum"), total_count=("id", "count"))
    trend = trend.reindex(hours, fill_value=0).reset_index()
    return trend.astype({"fraud_count": int, "total_count": int})
