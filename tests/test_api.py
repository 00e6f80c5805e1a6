import threading

import pytest
from fastapi.testclient import TestClient

from fraudwatch import api as api_module
from fraudwatch.advisory import fallback_result
from fraudwatch.api import app


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("FRAUDWATCH_SEED", "17")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("FRAUDWATCH_STATE_PATH", raising=False)
    with TestClient(app) as test_client:
        yield test_client


def _generate(client, **payload):
    response = client.post("/transactions/generate", json=payload)
    assert response.status_code == 200
    return response.json()


def test_health_reports_seed_state(client):
    body = client.get("/health").json()
    assert body == {"status": "ok", "transactions": 0, "knowledge_base_size": 3, "profile_window": 7}


def test_generate_and_fetch(client):
    produced = _generate(client, count=3)
    assert len(produced) == 3

    listed = client.get("/transactions").json()
    assert [t["id"] for t in listed] == [t["id"] for t in reversed(produced)]
    assert client.get(f"/transactions/{produced[0]['id']}").json() == produced[0]


def test_forced_anomaly(client):
    (tx,) = _generate(client, forced_type="SIGNATURE")
    assert tx["risk_level"] == "CRITICAL"
    assert tx["matched_case_id"].startswith("CASE_")


def test_generate_validates_payload(client):
    assert client.post("/transactions/generate", json={"count": 0}).status_code == 422
    assert client.post("/transactions/generate", json={"forced_type": "RANDOM"}).status_code == 422


def test_status_update_writes_audit_log(client):
    (tx,) = _generate(client)
    response = client.post(f"/transactions/{tx['id']}/status", json={"status": "ALLOWED", "changed_by": "reviewer"})
    assert response.json()["status"] == "ALLOWED"

    (latest,) = client.get("/audit_logs", params={"limit": 1}).json()
    assert latest["event_type"] == "TRANSACTION_APPROVED"
    assert latest["changed_by"] == "reviewer"


def test_missing_transaction_is_404(client):
    assert client.get("/transactions/TX_NOPE").status_code == 404
    assert client.post("/transactions/TX_NOPE/status", json={"status": "BLOCKED"}).status_code == 404
    assert client.post("/transactions/TX_NOPE/analyze").status_code == 404
    assert client.post("/transactions/TX_NOPE/feedback", json={}).status_code == 404


def test_analyze_without_key_holds(client):
    (tx,) = _generate(client, forced_type="BEHAVIORAL")
    body = client.post(f"/transactions/{tx['id']}/analyze").json()
    assert body["recommended_action"] == "HOLD"
    assert body["confidence"] == 0
    assert client.get(f"/transactions/{tx['id']}").json()["status"] == "PENDING"


def test_feedback_conflict(client):
    (tx,) = _generate(client)
    first = client.post(f"/transactions/{tx['id']}/feedback", json={"notes": "chargeback filed"})
    assert first.json()["vector_id"] == "pending_vectorization"
    assert client.post(f"/transactions/{tx['id']}/feedback", json={}).status_code == 409
    assert len(client.get("/knowledge_base").json()) == 4


def test_metrics_alerts_and_trend(client):
    _generate(client, count=6)
    _generate(client, forced_type="BEHAVIORAL")

    metrics = client.get("/metrics").json()
    assert metrics["transactions_today"] == 7
    assert metrics["system_health"] in {"NORMAL", "WARNING", "CRITICAL"}

    titles = {alert["title"] for alert in client.get("/alerts").json()}
    assert "Abnormal Transaction Velocity" in titles

    trend = client.get("/metrics/hourly").json()
    assert len(trend) == 24
    assert sum(row["total_count"] for row in trend) == 7


def test_reference_lookups(client):
    assert client.get("/reference/policies/AML_POL_002").json()["name"] == "Transaction Velocity Policy"
    assert client.get("/reference/policies/NOPE").status_code == 404
    assert client.get("/reference/sanctions", params={"name": "petrov"}).json()["sanctioned"] is True
    assert client.get("/reference/sanctions", params={"name": "Jane Doe"}).json()["entity"] is None
    assert client.get("/reference/merchants", params={"name": "quickmart retail"}).json()["risk_tier"] == "LOW"
    assert client.get("/reference/merchants", params={"name": "Unknown"}).status_code == 404
    assert client.get("/reference/customers/USER_VIP_001").json()["daily_limit"] == 100000
    assert client.get("/reference/customers/USER_GHOST").status_code == 404


def test_compliance_check(client):
    body = client.post("/compliance/check", json={"user_id": "USER_NEW_001", "amount": 5000, "country": "IR"}).json()
    assert body["compliant"] is False
    assert len(body["violations"]) == 3
    assert client.post("/compliance/check", json={"user_id": "X", "amount": -1, "country": "US"}).status_code == 422


class BlockingAdvisory:
    def __init__(self) -> None:
        self.started = threading.Event()
        self.release = threading.Event()

    def analyze(self, transaction, knowledge_base):
        self.started.set()
        self.release.wait(timeout=5)
        return fallback_result("slow model")


def test_stream_stays_readable_while_analysis_is_in_flight(client):
    (tx,) = _generate(client)
    advisory = BlockingAdvisory()
    app.state.service.monitor.advisory = advisory
    results = []
    worker = threading.Thread(target=lambda: results.append(api_module.analyze(tx["id"])))

    worker.start()
    try:
        assert advisory.started.wait(timeout=5)
        listed = client.get("/transactions").json()
        assert listed[0]["status"] == "ANALYZING"
        assert client.get("/metrics").json()["pending_review"] == 1
    finally:
        advisory.release.set()
        worker.join(timeout=5)

    assert results[0].reasoning == "slow model"
    assert client.get(f"/transactions/{tx['id']}").json()["status"] == "PENDING"
