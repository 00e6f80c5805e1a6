"""Configurable alert rules over dashboard metrics and the transaction stream."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Mapping, Optional, Sequence, Tuple, Union

from .schemas import Alert, DashboardMetrics, RiskLevel, Severity, Transaction
from .scorer import utc_now

SEVERITY_ORDER = {Severity.CRITICAL: 0, Severity.WARNING: 1, Severity.INFO: 2}

MetricsInput = Union[DashboardMetrics, Mapping[str, float], None]


@dataclass
class AlertConfig:
    detection_rate_warning: float = 0.10
    detection_rate_critical: float = 0.20
    false_positive_rate_warning: float = 0.20
    response_time_warning_ms: float = 3000
    response_time_critical_ms: float = 5000
    high_value_amount: float = 10000
    risky_merchant_keywords: Tuple[str, ...] = ("crypto", "wire", "transfer")
    velocity_window: int = 10
    velocity_count: int = 5


def _metric(metrics: MetricsInput, name: str) -> float:
    if metrics is None:
        return 0.0
    if isinstance(metrics, DashboardMetrics):
        return float(getattr(metrics, name) or 0)
    return float(metrics.get(name) or 0)


class AlertGenerator:
    def __init__(self, config: AlertConfig | None = None, clock: Callable[[], datetime] | None = None) -> None:
        self.config = config or AlertConfig()
        self.clock = clock or utc_now

    def generate(self, transactions: Sequence[Transaction], metrics: MetricsInput = None) -> List[Alert]:
        """Evaluate every rule independently and return the alerts most severe first.

        ``transactions`` is expected newest first. No state is kept between calls,
        so the same condition raises the same alert again on the next call.
        """
        now = self.clock()
        stamp = int(now.timestamp() * 1000)
        alerts: List[Alert] = []

        def _add(
            kind: str,
            severity: Severity,
            title: str,
            description: str,
            minutes_ago: int = 0,
            related: Optional[Transaction] = None,
        ) -> None:
            alerts.append(
                Alert(
                    id=f"ALERT_{kind}_{stamp}",
                    severity=severity,
                    title=title,
                    description=description,
                    timestamp=(now - timedelta(minutes=minutes_ago)).isoformat(),
                    related_transaction_id=related.id if related is not None else None,
                )
            )

        detection_rate = _metric(metrics, "detection_rate")
        if detection_rate > self.config.detection_rate_warning:
            _add(
                "HIGH_FRAUD",
                Severity.CRITICAL if detection_rate > self.config.detection_rate_critical else Severity.WARNING,
                "Elevated Fraud Detection Rate",
                f"{detection_rate * 100:.1f}% of transactions flagged as suspicious in the last hour",
            )

        false_positive_rate = _metric(metrics, "false_positive_rate")
        if false_positive_rate > self.config.false_positive_rate_warning:
            _add(
                "FALSE_POS",
                Severity.WARNING,
                "High False Positive Rate",
                f"Model incorrectly flagging {false_positive_rate * 100:.1f}% of legitimate transactions",
                minutes_ago=5,
            )

        avg_response_time = _metric(metrics, "avg_response_time_ms")
        if avg_response_time > self.config.response_time_warning_ms:
            _add(
                "PERFORMANCE",
                Severity.CRITICAL if avg_response_time > self.config.response_time_critical_ms else Severity.WARNING,
                "System Performance Degradation",
                f"Average response time is {avg_response_time:g}ms. Consider scaling infrastructure.",
                minutes_ago=10,
            )

        high_value = next(
            (
                t
                for t in transactions
                if RiskLevel(t.risk_level) == RiskLevel.CRITICAL and t.amount > self.config.high_value_amount
            ),
            None,
        )
        if high_value is not None:
            _add(
                "HIGH_VALUE",
                Severity.CRITICAL,
                "High-Value Fraud Detected",
                f"Critical risk transaction of ${high_value.amount:,.2f} detected at {high_value.merchant}",
                related=high_value,
            )

        risky_merchant = next(
            (
                t
                for t in transactions
                if any(keyword in t.merchant.lower() for keyword in self.config.risky_merchant_keywords)
            ),
            None,
        )
        if risky_merchant is not None:
            _add(
                "MERCHANT_RISK",
                Severity.WARNING,
                "High-Risk Merchant Activity",
                f"Transaction with high-risk merchant category detected: {risky_merchant.merchant}",
                minutes_ago=20,
                related=risky_merchant,
            )

        recent = transactions[: self.config.velocity_window]
        if len(recent) >= self.config.velocity_count:
            _add(
                "VELOCITY",
                Severity.WARNING,
                "Abnormal Transaction Velocity",
                f"{len(recent)} transactions in the last few minutes. Possible account compromise.",
                minutes_ago=3,
            )

        return sort_alerts(alerts)


def sort_alerts(alerts: Sequence[Alert]) -> List[Alert]:
    # Two stable passes: newest first, then by severity rank.
    by_time = sorted(alerts, key=lambda a: datetime.fromisoformat(a.timestamp), reverse=True)
    return sorted(by_time, key=lambda a: SEVERITY_ORDER[Severity(a.severity)])


def generate_alerts(transactions: Sequence[Transaction], metrics: MetricsInput = None) -> List[Alert]:
    return AlertGenerator().generate(transactions, metrics)
