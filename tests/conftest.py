from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from fraudwatch.schemas import RiskLevel, Transaction, TransactionStatus

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def make_transaction():
    counter = iter(range(1, 10_000))

    def _make(
        risk_level: RiskLevel = RiskLevel.LOW,
        status: TransactionStatus = TransactionStatus.PENDING,
        amount: float = 50.0,
        merchant: str = "QuickMart Retail",
        timestamp: str | None = None,
        **overrides,
    ) -> Transaction:
        number = next(counter)
        fields = dict(
            id=f"TX_{number:08X}",
            timestamp=timestamp or FIXED_NOW.isoformat(),
            amount=amount,
            merchant=merchant,
            merchant_id="MERCH_001",
            narrative="Weekly household shopping",
            location="Austin, US",
            ip="10.0.0.1",
            z_score=0.0,
            velocity_score=0.2,
            signature_match_score=0.1,
            risk_level=risk_level,
            status=status,
        )
        fields.update(overrides)
        return Transaction(**fields)

    return _make


class FakeCompletions:
    def __init__(self, content: str | None = None, error: Exception | None = None) -> None:
        self.content = content
        self.error = error
        self.calls: list[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def fake_openai():
    def _build(content: str | None = None, error: Exception | None = None):
        completions = FakeCompletions(content=content, error=error)
        return SimpleNamespace(chat=SimpleNamespace(completions=completions))

    return _build
