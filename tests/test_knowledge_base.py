import logging

import pytest

from fraudwatch.errors import DuplicateCaseError
from fraudwatch.knowledge_base import (
    CONFIRMED_FRAUD_TYPE,
    PENDING_VECTOR_ID,
    SEED_CASES,
    add_case_to_knowledge_base,
    find_case,
    seed_knowledge_base,
)


def test_seed_cases():
    kb = seed_knowledge_base()
    assert [case.id for case in kb] == ["CASE_001", "CASE_002", "CASE_003"]
    kb.clear()
    assert len(seed_knowledge_base()) == len(SEED_CASES)


def test_add_case_returns_extended_copy(make_transaction, caplog):
    kb = seed_knowledge_base()
    tx = make_transaction(narrative="Gift card purchase for CEO", merchant="Gift Hub")

    with caplog.at_level(logging.INFO, logger="fraudwatch.knowledge_base"):
        updated = add_case_to_knowledge_base(kb, tx, notes="caller spoofed the CEO")

    assert len(kb) == 3
    assert updated[:3] == kb
    new_case = updated[-1]
    assert new_case.id == f"CASE_{tx.id}"
    assert new_case.narrative == "Gift card purchase for CEO"
    assert new_case.merchant == "Gift Hub"
    assert new_case.type == CONFIRMED_FRAUD_TYPE
    assert new_case.vector_id == PENDING_VECTOR_ID
    assert "caller spoofed the CEO" in caplog.text


def test_duplicate_case_is_rejected(make_transaction):
    tx = make_transaction()
    kb = add_case_to_knowledge_base(seed_knowledge_base(), tx)
    with pytest.raises(DuplicateCaseError):
        add_case_to_knowledge_base(kb, tx)


def test_find_case():
    kb = seed_knowledge_base()
    assert find_case(kb, "CASE_002").merchant == "TechRefund Support"
    assert find_case(kb, "CASE_999") is None
    assert find_case(kb, None) is None
