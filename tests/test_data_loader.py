import json

import pandas as pd
import pytest

from fraudwatch.data_loader import (
    SnapshotLoader,
    TransactionLoader,
    snapshots_to_frame,
    transactions_to_frame,
)
from fraudwatch.schemas import MetricsSnapshot, RiskLevel, TransactionStatus

CSV_HEADER = "id,timestamp,amount,merchant,risk_level,status\n"


def test_transactions_written_by_the_monitor_load_back(tmp_path, make_transaction):
    transactions = [
        make_transaction(RiskLevel.CRITICAL, TransactionStatus.BLOCKED, timestamp="2026-03-01T12:05:00+00:00", matched_case_id="CASE_002"),
        make_transaction(timestamp="2026-03-01T12:00:00+00:00"),
    ]
    path = tmp_path / "stream.csv"
    transactions_to_frame(transactions).to_csv(path, index=False)

    loaded = TransactionLoader().load(path)

    assert [t.id for t in loaded] == [t.id for t in transactions]
    assert loaded[0].status == TransactionStatus.BLOCKED
    assert loaded[0].matched_case_id == "CASE_002"
    assert loaded[1].matched_case_id is None
    assert loaded[1].amount == pytest.approx(50.0)


def test_loader_sorts_newest_first_and_fills_optional_fields(tmp_path):
    path = tmp_path / "minimal.csv"
    path.write_text(
        CSV_HEADER
        + "TX_1,2026-03-01T08:00:00+00:00,10.5,Shop,LOW,ALLOWED\n"
        + "TX_2,2026-03-01T09:00:00+00:00,99,Shop,MEDIUM,PENDING\n"
    )

    loaded = TransactionLoader().load(path)

    assert [t.id for t in loaded] == ["TX_2", "TX_1"]
    assert loaded[1].risk_level == RiskLevel.LOW
    assert loaded[1].narrative == ""


def test_missing_columns_are_rejected():
    with pytest.raises(ValueError, match="Missing required columns"):
        TransactionLoader().validate_frame(pd.DataFrame({"id": ["TX_1"]}))


@pytest.mark.parametrize(
    "row, message",
    [
        ("TX_1,2026-03-01T08:00:00Z,1,Shop,SEVERE,PENDING\n", "Unknown risk levels"),
        ("TX_1,2026-03-01T08:00:00Z,1,Shop,LOW,DONE\n", "Unknown statuses"),
    ],
)
def test_unknown_labels_are_rejected(tmp_path, row, message):
    path = tmp_path / "bad.csv"
    path.write_text(CSV_HEADER + row)
    with pytest.raises(ValueError, match=message):
        TransactionLoader().load(path)


def test_snapshot_csv_without_fraud_flag(tmp_path):
    path = tmp_path / "snapshots.csv"
    path.write_text("timestamp,response_time\n2000,4.5\n1000,3.0\n")

    snapshots = SnapshotLoader().load(path)

    assert snapshots == [
        MetricsSnapshot(timestamp=1000, response_time=3.0, is_fraud=False),
        MetricsSnapshot(timestamp=2000, response_time=4.5, is_fraud=False),
    ]


def test_snapshot_frame_columns():
    frame = snapshots_to_frame([MetricsSnapshot(1, 2.0, True)])
    assert list(frame.columns) == ["timestamp", "response_time", "is_fraud"]
    assert bool(frame.loc[0, "is_fraud"]) is True


def test_blank_score_cells_load_as_zero(tmp_path):
    path = tmp_path / "blank_scores.csv"
    path.write_text(
        "id,timestamp,amount,merchant,z_score,velocity_score,signature_match_score,risk_level,status\n"
        "TX_1,2026-03-01T08:00:00+00:00,10.5,Shop,,0.4,,LOW,PENDING\n"
    )

    (tx,) = TransactionLoader().load(path)

    assert (tx.z_score, tx.velocity_score, tx.signature_match_score) == (0.0, 0.4, 0.0)
    assert json.loads(json.dumps(tx.to_dict()))["z_score"] == 0.0
