"""Utilities for loading, validating and exporting transaction and latency data."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence

import pandas as pd

from .schemas import MetricsSnapshot, RiskLevel, Transaction, TransactionStatus


@dataclass
class FrameSchema:
    """Schema description for CSV files."""

    dtypes: Dict[str, str]
    required_columns: List[str]


TRANSACTION_SCHEMA = FrameSchema(
    dtypes={
        "id": "string",
        "timestamp": "string",
        "amount": "float",
        "merchant": "string",
        "merchant_id": "string",
        "narrative": "string",
        "location": "string",
        "ip": "string",
        "z_score": "float",
        "velocity_score": "float",
        "signature_match_score": "float",
        "matched_case_id": "string",
        "risk_level": "string",
        "status": "string",
    },
    required_columns=["id", "timestamp", "amount", "merchant", "risk_level", "status"],
)

SNAPSHOT_SCHEMA = FrameSchema(
    dtypes={"timestamp": "int64", "response_time": "float", "is_fraud": "bool"},
    required_columns=["timestamp", "response_time"],
)


class TransactionLoader:
    """Load and validate scored-transaction CSV files."""

    def __init__(self, schema: FrameSchema = TRANSACTION_SCHEMA) -> None:
        self.schema = schema

    def load(self, path: str | Path) -> List[Transaction]:
        frame = pd.read_csv(path, dtype={c: t for c, t in self.schema.dtypes.items() if t == "string"})
        return frame_to_transactions(self.validate_frame(frame))

    def validate_frame(self, df: pd.DataFrame) -> pd.DataFrame:
        """Validate and coerce an in-memory transaction frame."""

        missing = [c for c in self.schema.required_columns if c not in df.columns]
        if missing:
            raise ValueError(f"Missing required columns: {missing}")

        df = df.dropna(subset=self.schema.required_columns).copy()

        for col, dtype in self.schema.dtypes.items():
            if col in df.columns:
                df[col] = df[col].astype(dtype)

        invalid_risk = ~df["risk_level"].isin([level.value for level in RiskLevel])
        if invalid_risk.any():
            raise ValueError(f"Unknown risk levels: {sorted(df.loc[invalid_risk, 'risk_level'].unique())}")
        invalid_status = ~df["status"].isin([status.value for status in TransactionStatus])
        if invalid_status.any():
            raise ValueError(f"Unknown statuses: {sorted(df.loc[invalid_status, 'status'].unique())}")

        # Newest first, the order the monitor keeps its stream in.
        return df.sort_values("timestamp", ascending=False, kind="stable").reset_index(drop=True)


class SnapshotLoader:
    def __init__(self, schema: FrameSchema = SNAPSHOT_SCHEMA) -> None:
        self.schema = schema

    def load(self, path: str | Path) -> List[MetricsSnapshot]:
        df = pd.read_csv(path)
        missing = [c for c in self.schema.required_columns if c not in df.columns]
        if missing:
            raise ValueError(f"Missing required columns: {missing}")
        df = df.dropna(subset=self.schema.required_columns)
        if "is_fraud" not in df.columns:
            df = df.assign(is_fraud=False)
        df = df.astype(self.schema.dtypes).sort_values("timestamp", kind="stable")
        return [
            MetricsSnapshot(timestamp=int(row.timestamp), response_time=float(row.response_time), is_fraud=bool(row.is_fraud))
            for row in df.itertuples(index=False)
        ]


def _optional(value: object) -> str | None:
    return None if pd.isna(value) else str(value)


def _score(value: object) -> float:
    return 0.0 if value is None or pd.isna(value) else float(value)


def frame_to_transactions(df: pd.DataFrame) -> List[Transaction]:
    transactions: List[Transaction] = []
    for row in df.to_dict(orient="records"):
        transactions.append(
            Transaction(
                id=str(row["id"]),
                timestamp=str(row["timestamp"]),
                amount=float(row["amount"]),
                merchant=str(row["merchant"]),
                merchant_id=_optional(row.get("merchant_id")) or "",
                narrative=_optional(row.get("narrative")) or "",
                location=_optional(row.get("location")) or "",
                ip=_optional(row.get("ip")) or "",
                z_score=_score(row.get("z_score")),
                velocity_score=_score(row.get("velocity_score")),
                signature_match_score=_score(row.get("signature_match_score")),
                matched_case_id=_optional(row.get("matched_case_id")),
                risk_level=RiskLevel(row["risk_level"]),
                status=TransactionStatus(row["status"]),
            )
        )
    return transactions


def transactions_to_frame(transactions: Sequence[Transaction]) -> pd.DataFrame:
    return pd.DataFrame(
        [t.to_dict() for t in transactions], columns=list(TRANSACTION_SCHEMA.dtypes.keys())
    )


def snapshots_to_frame(snapshots: Sequence[MetricsSnapshot]) -> pd.DataFrame:
    return pd.DataFrame(
        [(s.timestamp, s.response_time, s.is_fraud) for s in snapshots],
        columns=list(SNAPSHOT_SCHEMA.dtypes.keys()),
    )
