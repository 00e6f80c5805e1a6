import pytest

from fraudwatch.advisory import AdvisoryClient, AdvisoryConfig, RecommendedAction
from fraudwatch.documents import AuditEventType
from fraudwatch.errors import DuplicateCaseError
from fraudwatch.monitor import FraudMonitor, MonitorConfig, restore_or_create
from fraudwatch.profile import DEFAULT_SEED_HISTORY
from fraudwatch.schemas import ForcedType, RiskLevel, TransactionStatus


@pytest.fixture
def monitor(clock):
    return FraudMonitor(
        MonitorConfig(seed=21),
        advisory=AdvisoryClient(AdvisoryConfig()),
        clock=clock,
    )


def test_stream_and_snapshots_are_capped(monitor):
    produced = monitor.run(60)

    assert len(monitor.transactions) == 50
    assert len(monitor.snapshots) == 60
    assert monitor.transactions[0] is produced[-1]
    assert monitor.transactions[-1] is produced[10]


def test_only_low_risk_transactions_feed_the_profile(monitor):
    produced = monitor.run(30)
    low_amounts = [t.amount for t in produced if t.risk_level == RiskLevel.LOW]

    assert monitor.profile.history == [*DEFAULT_SEED_HISTORY, *low_amounts][-50:]


def test_injected_anomalies_are_critical(monitor):
    behavioral = monitor.inject_fraud(ForcedType.BEHAVIORAL)
    signature = monitor.inject_fraud("SIGNATURE")
    random_type = monitor.inject_fraud()

    for tx in (behavioral, signature, random_type):
        assert tx.risk_level == RiskLevel.CRITICAL
    assert signature.matched_case_id is not None
    assert monitor.snapshots[-1].is_fraud
    assert len(monitor.profile.history) == len(DEFAULT_SEED_HISTORY)


def test_run_injects_on_schedule(monitor):
    produced = monitor.run(9, inject_every=3)
    assert all(produced[i].risk_level == RiskLevel.CRITICAL for i in (2, 5, 8))


def test_status_updates_are_audited(monitor):
    tx = monitor.tick()
    before = len(monitor.documents.audit_logs)

    monitor.update_status(tx.id, TransactionStatus.BLOCKED, changed_by="analyst-7")
    monitor.update_status(tx.id, "FLAGGED")

    assert tx.status == TransactionStatus.FLAGGED
    assert len(monitor.documents.audit_logs) == before + 1
    entry = monitor.documents.get_audit_logs(limit=1)[0]
    assert entry.event_type == AuditEventType.TRANSACTION_BLOCKED
    assert entry.changed_by == "analyst-7"
    assert entry.details["transaction_id"] == tx.id


def test_unknown_transaction_is_reported_as_missing(monitor):
    assert monitor.update_status("TX_MISSING", TransactionStatus.ALLOWED) is None
    assert monitor.add_feedback("TX_MISSING") is None
    assert monitor.analyze("TX_MISSING") is None


def test_feedback_grows_knowledge_base_once(monitor):
    tx = monitor.tick()
    case = monitor.add_feedback(tx.id, "confirmed by customer call")

    assert case.id == f"CASE_{tx.id}"
    assert len(monitor.knowledge_base) == 4
    with pytest.raises(DuplicateCaseError):
        monitor.add_feedback(tx.id)


def test_analyze_restores_previous_status(monitor):
    tx = monitor.inject_fraud(ForcedType.BEHAVIORAL)
    monitor.update_status(tx.id, TransactionStatus.FLAGGED)

    result = monitor.analyze(tx.id)

    assert result.recommended_action == RecommendedAction.HOLD
    assert tx.status == TransactionStatus.FLAGGED


def test_dashboard_reflects_stream(monitor):
    monitor.run(20)
    monitor.inject_fraud(ForcedType.BEHAVIORAL)
    dashboard = monitor.dashboard()

    assert dashboard.transactions_today == 21
    assert dashboard.fraud_detected >= 1
    assert dashboard.active_alerts == monitor.alerts()
    assert dashboard.throughput_txn_per_sec == 0.0
    assert monitor.hourly_trend()["total_count"].sum() == 21


def test_checkpoint_round_trip_continues_identically(tmp_path, monitor, clock):
    monitor.run(15)
    monitor.update_status(monitor.transactions[0].id, TransactionStatus.ALLOWED)
    path = tmp_path / "state" / "monitor.joblib"
    monitor.save(path)

    restored, resumed = restore_or_create(path, clock=clock)

    assert resumed
    assert restored.transactions == monitor.transactions
    assert restored.profile == monitor.profile
    assert len(restored.documents.audit_logs) == len(monitor.documents.audit_logs)
    assert restored.tick() == monitor.tick()


def test_restore_without_checkpoint_creates_fresh_monitor(tmp_path, clock):
    monitor, resumed = restore_or_create(tmp_path / "absent.joblib", MonitorConfig(seed=3), clock=clock)
    assert not resumed
    assert monitor.transactions == []
    assert monitor.config.seed == 3


def test_decision_made_during_analysis_is_kept(monitor):
    tx = monitor.tick()
    pending = monitor.begin_analysis(tx.id)
    assert tx.status == TransactionStatus.ANALYZING

    monitor.update_status(tx.id, TransactionStatus.BLOCKED)
    pending.run()
    monitor.finish_analysis(pending)

    assert tx.status == TransactionStatus.BLOCKED
