"""Known fraud-case narratives and the analyst feedback loop."""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from .errors import DuplicateCaseError
from .schemas import FraudCase, Transaction

logger = logging.getLogger(__name__)

CONFIRMED_FRAUD_TYPE = "Confirmed Fraud (Analyst Feedback)"
PENDING_VECTOR_ID = "pending_vectorization"

SEED_CASES: tuple[FraudCase, ...] = (
    FraudCase(
        id="CASE_001",
        narrative="Urgent transfer for medical supplies to overseas vendor",
        merchant="Medi-Global",
        type="APP Fraud (Authorized Push Payment)",
    ),
    FraudCase(
        id="CASE_002",
        narrative="Refund verification small deposit",
        merchant="TechRefund Support",
        type="Refund Scam",
    ),
    FraudCase(
        id="CASE_003",
        narrative="Payment for winning lottery tax clearance",
        merchant="Lottery Commission",
        type="Advance Fee Fraud",
    ),
)


def seed_knowledge_base() -> List[FraudCase]:
    return list(SEED_CASES)


def find_case(knowledge_base: Sequence[FraudCase], case_id: Optional[str]) -> Optional[FraudCase]:
    if case_id is None:
        return None
    return next((case for case in knowledge_base if case.id == case_id), None)


def case_id_for(transaction: Transaction) -> str:
    return f"CASE_{transaction.id}"


def add_case_to_knowledge_base(
    knowledge_base: Sequence[FraudCase], transaction: Transaction, notes: str = ""
) -> List[FraudCase]:
    """Return a new knowledge base with ``transaction`` recorded as confirmed fraud.

    Existing cases are carried over untouched. Embedding the new narrative is an
    external job, so the case is stored with a pending vector id.
    """
    new_id = case_id_for(transaction)
    if find_case(knowledge_base, new_id) is not None:
        raise DuplicateCaseError(f"Case {new_id} already exists in the knowledge base")

    new_case = FraudCase(
        id=new_id,
        narrative=transaction.narrative,
        merchant=transaction.merchant,
        type=CONFIRMED_FRAUD_TYPE,
        vector_id=PENDING_VECTOR_ID,
    )
    logger.info("Added %s to knowledge base (%d cases); analyst notes: %s", new_id, len(knowledge_base) + 1, notes or "-")
    return [*knowledge_base, new_case]
