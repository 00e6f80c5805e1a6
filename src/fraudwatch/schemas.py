"""Domain records shared by the scoring, metrics and alerting modules."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import List, Optional


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    CRITICAL = "CRITICAL"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    ANALYZING = "ANALYZING"
    BLOCKED = "BLOCKED"
    ALLOWED = "ALLOWED"
    FLAGGED = "FLAGGED"


class ForcedType(str, Enum):
    """Anomaly families the scorer can synthesize on demand."""

    BEHAVIORAL = "BEHAVIORAL"
    SIGNATURE = "SIGNATURE"


class Severity(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class SystemHealth(str, Enum):
    NORMAL = "NORMAL"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


@dataclass
class UserProfile:
    history: List[float]
    mean: float
    std_dev: float

    @classmethod
    def from_history(cls, history: List[float]) -> "UserProfile":
        from .profile import calculate_stats

        mean, std_dev = calculate_stats(history)
        return cls(history=list(history), mean=mean, std_dev=std_dev)


@dataclass(frozen=True)
class FraudCase:
    id: str
    narrative: str
    merchant: str
    type: str
    vector_id: Optional[str] = None


@dataclass
class Transaction:
    id: str
    timestamp: str
    amount: float
    merchant: str
    merchant_id: str
    narrative: str
    location: str
    ip: str
    z_score: float
    velocity_score: float
    signature_match_score: float
    risk_level: RiskLevel
    status: TransactionStatus = TransactionStatus.PENDING
    matched_case_id: Optional[str] = None

    def to_dict(self) -> dict:
        record = asdict(self)
        record["risk_level"] = self.risk_level.value
        record["status"] = self.status.value
        return record


@dataclass(frozen=True)
class MetricsSnapshot:
    timestamp: int
    response_time: float
    is_fraud: bool


@dataclass
class Alert:
    id: str
    severity: Severity
    title: str
    description: str
    timestamp: str
    related_transaction_id: Optional[str] = None

    def to_dict(self) -> dict:
        record = asdict(self)
        record["severity"] = self.severity.value
        return record


@dataclass
class DashboardMetrics:
    transactions_today: int = 0
    fraud_detected: int = 0
    detection_rate: float = 0.0
    legitimate_approved: int = 0
    pending_review: int = 0

    avg_response_time_ms: int = 0
    max_response_time_ms: float = 0
    p95_latency_ms: int = 0
    p99_latency_ms: int = 0
    throughput_txn_per_sec: float = 0.0

    model_accuracy: float = 0.0
    model_precision: float = 0.0
    model_recall: float = 0.0
    false_positive_rate: float = 0.0
    false_negative_rate: float = 0.0

    active_alerts: List[Alert] = field(default_factory=list)
    system_health: SystemHealth = SystemHealth.NORMAL

    def to_dict(self) -> dict:
        record = asdict(self)
        record["active_alerts"] = [alert.to_dict() for alert in self.active_alerts]
        record["system_health"] = self.system_health.value
        return record
