"""Score synthetic transactions with combined behavioral and signature signals."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidProfileError
from .schemas import FraudCase, ForcedType, RiskLevel, Transaction, TransactionStatus, UserProfile

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ScorerConfig:
    spread_floor: float = 5.0
    z_epsilon: float = 1.0
    min_amount: float = 0.01

    anomaly_probability: float = 0.03
    anomaly_spread_range: Tuple[float, float] = (4.0, 10.0)
    behavioral_spread_range: Tuple[float, float] = (4.0, 6.0)

    signature_score_range: Tuple[float, float] = (0.85, 0.99)
    background_score_max: float = 0.3
    coincidental_match_probability: float = 0.05
    coincidental_score_range: Tuple[float, float] = (0.5, 0.8)

    critical_z: float = 3.0
    medium_z: float = 1.5
    critical_signature: float = 0.85
    medium_signature: float = 0.5

    merchants: Tuple[Tuple[str, str, str], ...] = (
        ("QuickMart Retail", "MERCH_001", "Weekly household shopping"),
        ("Global Tech Solutions", "MERCH_004", "Monthly software subscription"),
        ("Corner Coffee House", "MERCH_101", "Coffee and pastry"),
        ("Metro Transit", "MERCH_102", "Commuter pass top-up"),
        ("Northside Pharmacy", "MERCH_103", "Prescription pickup"),
        ("Bright Energy", "MERCH_104", "Utility bill payment"),
        ("CryptoExchange Pro", "MERCH_002", "Account funding"),
    )
    locations: Tuple[str, ...] = (
        "New York, US",
        "Chicago, US",
        "Austin, US",
        "Seattle, US",
        "Toronto, CA",
        "London, UK",
    )


def classify_risk(
    z_score: float, signature_match_score: float, config: ScorerConfig | None = None
) -> RiskLevel:
    """Map the two signals to a risk level; the first matching tier wins."""
    config = config or ScorerConfig()
    if abs(z_score) > config.critical_z or signature_match_score >= config.critical_signature:
        return RiskLevel.CRITICAL
    if abs(z_score) > config.medium_z or signature_match_score >= config.medium_signature:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


class RiskScorer:
    def __init__(
        self,
        config: ScorerConfig | None = None,
        rng: np.random.Generator | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.config = config or ScorerConfig()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.clock = clock or utc_now

    def _uniform(self, bounds: Tuple[float, float]) -> float:
        low, high = bounds
        return float(self.rng.uniform(low, high))

    def _spread(self, profile: UserProfile) -> float:
        return max(profile.std_dev, self.config.spread_floor)

    def _draw_amount(self, profile: UserProfile, forced_type: Optional[ForcedType]) -> float:
        spread = self._spread(profile)
        if forced_type == ForcedType.BEHAVIORAL:
            amount = profile.mean + spread * self._uniform(self.config.behavioral_spread_range)
        elif forced_type == ForcedType.SIGNATURE:
            amount = profile.mean + spread * float(np.clip(self.rng.normal(), -1.0, 1.0))
        elif self.rng.random() < self.config.anomaly_probability:
            amount = profile.mean + spread * self._uniform(self.config.anomaly_spread_range)
        else:
            amount = float(self.rng.normal(profile.mean, spread))
        return round(max(amount, self.config.min_amount), 2)

    def _signature_match(
        self, knowledge_base: Sequence[FraudCase], forced_case: Optional[FraudCase]
    ) -> Tuple[float, Optional[str]]:
        if forced_case is not None:
            return self._uniform(self.config.signature_score_range), forced_case.id
        if knowledge_base and self.rng.random() < self.config.coincidental_match_probability:
            case = knowledge_base[int(self.rng.integers(len(knowledge_base)))]
            return self._uniform(self.config.coincidental_score_range), case.id
        return float(self.rng.uniform(0.0, self.config.background_score_max)), None

    def _random_ip(self) -> str:
        octets = [
            int(self.rng.integers(11, 224)),
            int(self.rng.integers(0, 256)),
            int(self.rng.integers(0, 256)),
            int(self.rng.integers(1, 255)),
        ]
        return ".".join(str(octet) for octet in octets)

    def score(
        self,
        profile: UserProfile,
        knowledge_base: Sequence[FraudCase],
        forced_type: ForcedType | str | None = None,
    ) -> Transaction:
        if not profile.history:
            raise InvalidProfileError("Cannot score a transaction against an empty profile history.")
        if forced_type is not None:
            forced_type = ForcedType(forced_type)

        forced_case: Optional[FraudCase] = None
        if forced_type == ForcedType.SIGNATURE:
            if not knowledge_base:
                raise ValueError("A signature anomaly needs at least one knowledge-base case.")
            forced_case = knowledge_base[int(self.rng.integers(len(knowledge_base)))]

        transaction_id = f"TX_{int(self.rng.integers(0, 16**8)):08X}"
        amount = self._draw_amount(profile, forced_type)

        if forced_case is not None:
            merchant = forced_case.merchant
            merchant_id = f"MID_{int(self.rng.integers(1000, 10000))}"
            narrative = forced_case.narrative
        else:
            merchant, merchant_id, narrative = self.config.merchants[
                int(self.rng.integers(len(self.config.merchants)))
            ]

        z_score = (amount - profile.mean) / max(profile.std_dev, self.config.z_epsilon)
        signature_score, matched_case_id = self._signature_match(knowledge_base, forced_case)
        velocity_score = float(self.rng.uniform(0.0, 1.0))
        location = self.config.locations[int(self.rng.integers(len(self.config.locations)))]
        ip = self._random_ip()

        risk_level = classify_risk(z_score, signature_score, self.config)
        transaction = Transaction(
            id=transaction_id,
            timestamp=self.clock().isoformat(),
            amount=amount,
            merchant=merchant,
            merchant_id=merchant_id,
            narrative=narrative,
            location=location,
            ip=ip,
            z_score=z_score,
            velocity_score=velocity_score,
            signature_match_score=signature_score,
            matched_case_id=matched_case_id,
            risk_level=risk_level,
            status=TransactionStatus.PENDING,
        )
        logger.debug(
            "Scored %s amount=%.2f z=%.2f signature=%.2f -> %s",
            transaction.id,
            amount,
            z_score,
            signature_score,
            risk_level.value,
        )
        return transaction


def generate_transaction(
    profile: UserProfile,
    knowledge_base: Sequence[FraudCase],
    forced_type: ForcedType | str | None = None,
    rng: np.random.Generator | None = None,
) -> Transaction:
    return RiskScorer(rng=rng).score(profile, knowledge_base, forced_type)
