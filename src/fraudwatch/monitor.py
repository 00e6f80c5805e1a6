"""Serialized driver that wires scoring, profile updates, metrics and alerts together."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

import joblib
import numpy as np
import pandas as pd

from .advisory import AdvisoryClient, AnalysisResult
from .alerts import AlertConfig, AlertGenerator
from .documents import ApprovalStatus, AuditEventType, DocumentStore, load_document_store
from .knowledge_base import add_case_to_knowledge_base, seed_knowledge_base
from .metrics import SNAPSHOT_CAPACITY, HealthThresholds, aggregate_metrics, calculate_hourly_trend, record_snapshot
from .profile import HISTORY_CAPACITY, default_profile, update_profile
from .schemas import (
    Alert,
    DashboardMetrics,
    FraudCase,
    ForcedType,
    MetricsSnapshot,
    RiskLevel,
    Transaction,
    TransactionStatus,
    UserProfile,
)
from .scorer import Clock, RiskScorer, ScorerConfig, utc_now

logger = logging.getLogger(__name__)

STATUS_AUDIT_EVENTS = {
    TransactionStatus.BLOCKED: AuditEventType.TRANSACTION_BLOCKED,
    TransactionStatus.ALLOWED: AuditEventType.TRANSACTION_APPROVED,
}


@dataclass
class MonitorConfig:
    stream_capacity: int = 50
    snapshot_capacity: int = SNAPSHOT_CAPACITY
    profile_capacity: int = HISTORY_CAPACITY
    seed: Optional[int] = None


@dataclass
class PendingAnalysis:
    transaction: Transaction
    previous_status: TransactionStatus
    knowledge_base: List[FraudCase]
    advisory: AdvisoryClient

    def run(self) -> AnalysisResult:
        return self.advisory.analyze(self.transaction, self.knowledge_base)


class FraudMonitor:
    """Own the stream state and run one scoring step at a time.

    Every mutating call must be serialized by the caller; the monitor itself
    holds no locks.
    """

    def __init__(
        self,
        config: MonitorConfig | None = None,
        scorer_config: ScorerConfig | None = None,
        alert_config: AlertConfig | None = None,
        health_thresholds: HealthThresholds | None = None,
        advisory: AdvisoryClient | None = None,
        documents: DocumentStore | None = None,
        profile: UserProfile | None = None,
        knowledge_base: List[FraudCase] | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.config = config or MonitorConfig()
        self.clock = clock or utc_now
        self.scorer = RiskScorer(
            config=scorer_config, rng=np.random.default_rng(self.config.seed), clock=self.clock
        )
        self.alert_generator = AlertGenerator(config=alert_config, clock=self.clock)
        self.health_thresholds = health_thresholds or HealthThresholds()
        self.advisory = advisory
        self.documents = documents or load_document_store(self.clock())

        self.profile = profile or default_profile()
        self.knowledge_base: List[FraudCase] = list(knowledge_base) if knowledge_base is not None else seed_knowledge_base()
        self.transactions: List[Transaction] = []
        self.snapshots: List[MetricsSnapshot] = []

    def _ingest(self, forced_type: ForcedType | str | None) -> Transaction:
        start = time.perf_counter()
        transaction = self.scorer.score(self.profile, self.knowledge_base, forced_type)
        self.transactions = [transaction, *self.transactions][: self.config.stream_capacity]

        if transaction.risk_level == RiskLevel.LOW:
            self.profile = update_profile(self.profile, transaction.amount, self.config.profile_capacity)

        elapsed_ms = (time.perf_counter() - start) * 1000
        self.snapshots = record_snapshot(
            self.snapshots,
            elapsed_ms,
            transaction.risk_level == RiskLevel.CRITICAL,
            max_history_size=self.config.snapshot_capacity,
            timestamp_ms=int(self.clock().timestamp() * 1000),
        )
        logger.debug("Ingested %s (%s), stream size %d", transaction.id, transaction.risk_level.value, len(self.transactions))
        return transaction

    def tick(self) -> Transaction:
        return self._ingest(None)

    def inject_fraud(self, forced_type: ForcedType | str | None = None) -> Transaction:
        """Push a synthetic anomaly through the normal pipeline for demonstration."""
        if forced_type is None:
            forced_type = ForcedType.BEHAVIORAL if self.scorer.rng.random() > 0.5 else ForcedType.SIGNATURE
        transaction = self._ingest(forced_type)
        logger.info("Injected %s anomaly as %s", ForcedType(forced_type).value, transaction.id)
        return transaction

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return next((t for t in self.transactions if t.id == transaction_id), None)

    def update_status(
        self, transaction_id: str, status: TransactionStatus | str, changed_by: str = "analyst"
    ) -> Optional[Transaction]:
        transaction = self.get_transaction(transaction_id)
        if transaction is None:
            return None
        status = TransactionStatus(status)
        transaction.status = status
        logger.info("Transaction %s marked %s by %s", transaction_id, status.value, changed_by)

        event_type = STATUS_AUDIT_EVENTS.get(status)
        if event_type is not None:
            self.documents.log_audit_event(
                event_type,
                changed_by,
                {
                    "transaction_id": transaction.id,
                    "merchant_id": transaction.merchant_id,
                    "amount": transaction.amount,
                    "risk_level": transaction.risk_level.value,
                },
                ApprovalStatus.APPROVED,
                now=self.clock(),
            )
        return transaction

    def add_feedback(self, transaction_id: str, notes: str = "") -> Optional[FraudCase]:
        transaction = self.get_transaction(transaction_id)
        if transaction is None:
            return None
        self.knowledge_base = add_case_to_knowledge_base(self.knowledge_base, transaction, notes)
        return self.knowledge_base[-1]

    def begin_analysis(self, transaction_id: str) -> Optional[PendingAnalysis]:
        """Mark the transaction ANALYZING and capture what the advisory call needs.

        The returned ticket can be run without holding the caller's lock; pass it
        to ``finish_analysis`` afterwards.
        """
        transaction = self.get_transaction(transaction_id)
        if transaction is None:
            return None
        pending = PendingAnalysis(
            transaction=transaction,
            previous_status=transaction.status,
            knowledge_base=list(self.knowledge_base),
            advisory=self.advisory or AdvisoryClient(),
        )
        transaction.status = TransactionStatus.ANALYZING
        return pending

    def finish_analysis(self, pending: PendingAnalysis) -> None:
        # An analyst decision made while the call was in flight wins.
        if pending.transaction.status == TransactionStatus.ANALYZING:
            pending.transaction.status = pending.previous_status

    def analyze(self, transaction_id: str) -> Optional[AnalysisResult]:
        pending = self.begin_analysis(transaction_id)
        if pending is None:
            return None
        try:
            return pending.run()
        finally:
            self.finish_analysis(pending)

    def alerts(self) -> List[Alert]:
        baseline = aggregate_metrics(self.transactions, self.snapshots, [], self.health_thresholds)
        return self.alert_generator.generate(self.transactions, baseline)

    def dashboard(self) -> DashboardMetrics:
        return aggregate_metrics(self.transactions, self.snapshots, self.alerts(), self.health_thresholds)

    def hourly_trend(self) -> pd.DataFrame:
        return calculate_hourly_trend(self.transactions)

    def run(self, ticks: int, inject_every: int = 0) -> List[Transaction]:
        produced = []
        for step in range(1, ticks + 1):
            if inject_every and step % inject_every == 0:
                produced.append(self.inject_fraud())
            else:
                produced.append(self.tick())
        return produced

    def state(self) -> dict:
        return {
            "config": self.config,
            "profile": self.profile,
            "knowledge_base": self.knowledge_base,
            "transactions": self.transactions,
            "snapshots": self.snapshots,
            "audit_logs": self.documents.audit_logs,
            "rng_state": self.scorer.rng.bit_generator.state,
        }

    def save(self, path: str | Path) -> None:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(self.state(), path)
        logger.info("Monitor checkpoint written to %s", Path(path).resolve())

    @classmethod
    def load(cls, path: str | Path, **kwargs) -> "FraudMonitor":
        state = joblib.load(path)
        monitor = cls(
            config=state["config"],
            profile=state["profile"],
            knowledge_base=state["knowledge_base"],
            documents=DocumentStore(audit_logs=state["audit_logs"]),
            **kwargs,
        )
        monitor.transactions = state["transactions"]
        monitor.snapshots = state["snapshots"]
        monitor.scorer.rng.bit_generator.state = state["rng_state"]
        return monitor


def restore_or_create(
    path: str | Path | None, config: MonitorConfig | None = None, **kwargs
) -> Tuple[FraudMonitor, bool]:
    """Resume from a checkpoint when one exists at ``path``; ``config`` applies only to a fresh monitor."""
    if path and Path(path).exists():
        return FraudMonitor.load(path, **kwargs), True
    return FraudMonitor(config=config, **kwargs), False
