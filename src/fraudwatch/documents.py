"""Compliance reference tables: AML policies, sanctions, merchant ratings, customer policies, audit log."""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class AuditEventType(str, Enum):
    POLICY_CHANGE = "POLICY_CHANGE"
    TRANSACTION_BLOCKED = "TRANSACTION_BLOCKED"
    TRANSACTION_APPROVED = "TRANSACTION_APPROVED"


class ApprovalStatus(str, Enum):
    APPROVED = "APPROVED"
    PENDING = "PENDING"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class PolicyRule:
    rule_id: str
    description: str
    action: str
    threshold: Optional[float] = None


@dataclass(frozen=True)
class AMLPolicy:
    id: str
    name: str
    jurisdiction: str
    version: str
    effective_date: str
    rules: tuple[PolicyRule, ...]
    created_by: str
    last_updated: str


@dataclass(frozen=True)
class SanctionEntity:
    entity_id: str
    name: str
    type: str
    country: str
    reason: str
    action: str


@dataclass(frozen=True)
class ComplianceIssue:
    issue: str
    severity: str
    date_reported: str


@dataclass(frozen=True)
class MerchantRisk:
    id: str
    merchant_name: str
    merchant_type: str
    risk_tier: str
    risk_score: float
    fraud_rate: float
    chargeback_rate: float
    compliance_issues: tuple[ComplianceIssue, ...]
    action_on_transaction: str
    created_date: str
    updated_date: str


@dataclass(frozen=True)
class CustomerPolicy:
    id: str
    user_id: str
    daily_limit: float
    monthly_limit: float
    requires_approval_above: float
    allowed_countries: tuple[str, ...]
    blocked_countries: tuple[str, ...]
    max_transactions_per_day: int
    risk_tier: str
    compliance_status: str


@dataclass
class AuditLog:
    id: str
    timestamp: str
    event_type: AuditEventType
    changed_by: str
    details: Dict[str, Any]
    approval_status: ApprovalStatus

    def to_dict(self) -> dict:
        record = asdict(self)
        record["event_type"] = self.event_type.value
        record["approval_status"] = self.approval_status.value
        return record


@dataclass
class ComplianceResult:
    compliant: bool
    violations: List[str] = field(default_factory=list)


AML_POLICIES: tuple[AMLPolicy, ...] = (
    AMLPolicy(
        id="AML_POL_001",
        name="Enhanced Due Diligence (EDD) Policy",
        jurisdiction="US",
        version="2.1",
        effective_date="2024-01-01",
        rules=(
            PolicyRule("EDD_001", "Transactions exceeding $10,000 require enhanced verification", "REQUIRE_APPROVAL", 10000),
            PolicyRule("EDD_002", "PEP (Politically Exposed Person) detected - flag and review", "FLAG"),
            PolicyRule("EDD_003", "High-risk jurisdiction detected - require additional documentation", "REQUIRE_APPROVAL"),
        ),
        created_by="compliance-admin",
        last_updated="2024-11-15",
    ),
    AMLPolicy(
        id="AML_POL_002",
        name="Transaction Velocity Policy",
        jurisdiction="US",
        version="1.5",
        effective_date="2024-02-01",
        rules=(
            PolicyRule("TV_001", "More than 5 transactions in 1 hour", "FLAG", 5),
            PolicyRule("TV_002", "Daily transaction total exceeds $50,000", "REQUIRE_APPROVAL", 50000),
            PolicyRule("TV_003", "Unusual geographic pattern detected (multiple countries in 24h)", "FLAG"),
        ),
        created_by="compliance-admin",
        last_updated="2024-11-10",
    ),
    AMLPolicy(
        id="AML_POL_003",
        name="Merchant Category Risk Policy",
        jurisdiction="US",
        version="1.0",
        effective_date="2024-03-01",
        rules=(
            PolicyRule("MCR_001", "High-risk merchant categories require approval for transactions >$5,000", "REQUIRE_APPROVAL", 5000),
            PolicyRule("MCR_002", "Adult services, gambling, and cryptocurrency merchants flagged", "FLAG"),
        ),
        created_by="compliance-admin",
        last_updated="2024-11-12",
    ),
)

SANCTION_LIST: tuple[SanctionEntity, ...] = (
    SanctionEntity("SANC_001", "Crimson Trading LLC", "ORGANIZATION", "IRAN", "OFAC SDN - State Sponsor of Terrorism", "BLOCK_ALL"),
    SanctionEntity("SANC_002", "Viktor Petrov", "INDIVIDUAL", "RUSSIA", "Oligarch - Economic Sanctions", "BLOCK_ALL"),
    SanctionEntity("SANC_003", "North Korean Trade Finance Bank", "BANK", "NORTH_KOREA", "OFAC SDN - Illicit Financial Activities", "BLOCK_ALL"),
    SanctionEntity("SANC_004", "Hezbollah Financial Network", "ORGANIZATION", "LEBANON", "UN Terrorist Organization", "BLOCK_ALL"),
    SanctionEntity("SANC_005", "Ahmed Hassan Al-Mansouri", "INDIVIDUAL", "YEMEN", "Sanctions Evader - Under Investigation", "REVIEW"),
)

MERCHANT_RATINGS: tuple[MerchantRisk, ...] = (
    MerchantRisk("MERCH_001", "QuickMart Retail", "E-Commerce", "LOW", 1.2, 0.02, 0.001, (), "AUTO_APPROVE", "2023-06-01", "2024-11-20"),
    MerchantRisk(
        "MERCH_002",
        "CryptoExchange Pro",
        "Cryptocurrency",
        "HIGH",
        7.8,
        0.15,
        0.08,
        (
            ComplianceIssue("KYC compliance gaps", "HIGH", "2024-10-15"),
            ComplianceIssue("Suspected money laundering activity", "HIGH", "2024-11-05"),
        ),
        "FLAG",
        "2023-09-01",
        "2024-11-18",
    ),
    MerchantRisk(
        "MERCH_003",
        "Adult Entertainment Inc",
        "Adult Services",
        "HIGH",
        6.5,
        0.12,
        0.10,
        (ComplianceIssue("High chargeback rate", "HIGH", "2024-11-01"),),
        "REQUIRE_VERIFICATION",
        "2023-08-15",
        "2024-11-19",
    ),
    MerchantRisk("MERCH_004", "Global Tech Solutions", "B2B Services", "LOW", 2.1, 0.03, 0.002, (), "AUTO_APPROVE", "2023-07-20", "2024-11-17"),
    MerchantRisk(
        "MERCH_005",
        "Suspicious Wire Transfer Co",
        "Money Transfer",
        "HIGH",
        8.2,
        0.22,
        0.15,
        (
            ComplianceIssue("Operating without proper licensing", "HIGH", "2024-08-20"),
            ComplianceIssue("Multiple sanctions violations detected", "CRITICAL", "2024-11-10"),
        ),
        "BLOCK",
        "2023-05-01",
        "2024-11-14",
    ),
)

CUSTOMER_POLICIES: tuple[CustomerPolicy, ...] = (
    CustomerPolicy("CUST_POL_001", "USER_VIP_001", 100000, 1000000, 50000, ("US", "UK", "CA", "AU", "SG"), ("KP", "IR", "SY"), 100, "LOW", "VERIFIED_KYC"),
    CustomerPolicy("CUST_POL_002", "USER_STANDARD_001", 10000, 50000, 5000, ("US", "CA", "UK"), ("KP", "IR", "SY", "CU"), 20, "MEDIUM", "VERIFIED_KYC"),
    CustomerPolicy("CUST_POL_003", "USER_NEW_001", 2000, 10000, 1000, ("US",), ("KP", "IR", "SY", "CU", "VE"), 5, "HIGH", "PENDING_KYC"),
    CustomerPolicy("CUST_POL_004", "USER_SUSPENDED_001", 0, 0, 0, (), ("*",), 0, "HIGH", "FAILED_KYC"),
)


def check_compliance(policy: CustomerPolicy, amount: float, country: str) -> ComplianceResult:
    """Evaluate every customer-policy restriction; all violations are reported."""
    violations: List[str] = []

    if amount > policy.daily_limit:
        violations.append(f"Exceeds daily limit of ${policy.daily_limit:,.0f}")

    if country in policy.blocked_countries:
        violations.append(f"Transaction to blocked country: {country}")

    if policy.allowed_countries and country not in policy.allowed_countries:
        violations.append(f"Country {country} not in allowed list")

    if policy.compliance_status == "FAILED_KYC":
        violations.append("Customer failed KYC verification")

    return ComplianceResult(compliant=not violations, violations=violations)


def _seed_audit_logs(now: datetime) -> List[AuditLog]:
    return [
        AuditLog(
            id="AUDIT_001",
            timestamp=(now - timedelta(hours=1)).isoformat(),
            event_type=AuditEventType.POLICY_CHANGE,
            changed_by="compliance-admin",
            details={
                "policy_id": "AML_POL_002",
                "change": "Updated transaction velocity threshold from 6 to 5 transactions/hour",
                "reason": "Increased fraud detection sensitivity",
            },
            approval_status=ApprovalStatus.APPROVED,
        ),
        AuditLog(
            id="AUDIT_002",
            timestamp=(now - timedelta(hours=2)).isoformat(),
            event_type=AuditEventType.TRANSACTION_BLOCKED,
            changed_by="system",
            details={
                "transaction_id": "TXN_12345",
                "merchant_id": "MERCH_005",
                "reason": "Merchant on sanction list - Suspicious Wire Transfer Co",
                "amount": 25000,
            },
            approval_status=ApprovalStatus.APPROVED,
        ),
        AuditLog(
            id="AUDIT_003",
            timestamp=(now - timedelta(hours=4)).isoformat(),
            event_type=AuditEventType.TRANSACTION_APPROVED,
            changed_by="analyst-user-1",
            details={
                "transaction_id": "TXN_67890",
                "merchant_id": "MERCH_001",
                "reason": "Manual override - verified legitimate customer",
                "amount": 8500,
            },
            approval_status=ApprovalStatus.APPROVED,
        ),
    ]


class DocumentStore:
    """Read-only reference tables plus an append-only audit log."""

    def __init__(
        self,
        policies: tuple[AMLPolicy, ...] = AML_POLICIES,
        sanction_list: tuple[SanctionEntity, ...] = SANCTION_LIST,
        merchant_ratings: tuple[MerchantRisk, ...] = MERCHANT_RATINGS,
        customer_policies: tuple[CustomerPolicy, ...] = CUSTOMER_POLICIES,
        audit_logs: Optional[List[AuditLog]] = None,
    ) -> None:
        self.policies = policies
        self.sanction_list = sanction_list
        self.merchant_ratings = merchant_ratings
        self.customer_policies = customer_policies
        self.audit_logs: List[AuditLog] = list(audit_logs or [])

    def get_aml_policy(self, policy_id: str) -> Optional[AMLPolicy]:
        return next((p for p in self.policies if p.id == policy_id), None)

    def check_sanction_status(self, entity_name: str) -> Optional[SanctionEntity]:
        needle = entity_name.lower()
        return next(
            (s for s in self.sanction_list if needle in s.name.lower() or s.name.lower() in needle),
            None,
        )

    def get_merchant_risk(self, merchant_name: str) -> Optional[MerchantRisk]:
        needle = merchant_name.lower()
        return next((m for m in self.merchant_ratings if m.merchant_name.lower() == needle), None)

    def get_customer_policy(self, user_id: str) -> Optional[CustomerPolicy]:
        return next((p for p in self.customer_policies if p.user_id == user_id), None)

    def check_policy_compliance(self, user_id: str, amount: float, country: str) -> ComplianceResult:
        policy = self.get_customer_policy(user_id)
        if policy is None:
            return ComplianceResult(compliant=False, violations=["Customer policy not found"])
        return check_compliance(policy, amount, country)

    def log_audit_event(
        self,
        event_type: AuditEventType | str,
        changed_by: str,
        details: Dict[str, Any],
        approval_status: ApprovalStatus | str = ApprovalStatus.PENDING,
        now: Optional[datetime] = None,
    ) -> AuditLog:
        now = now or datetime.now(timezone.utc)
        entry = AuditLog(
            id=f"AUDIT_{len(self.audit_logs) + 1:03d}",
            timestamp=now.isoformat(),
            event_type=AuditEventType(event_type),
            changed_by=changed_by,
            details=dict(details),
            approval_status=ApprovalStatus(approval_status),
        )
        self.audit_logs.append(entry)
        logger.info("Audit %s: %s by %s", entry.id, entry.event_type.value, changed_by)
        return entry

    def get_audit_logs(self, limit: int = 10) -> List[AuditLog]:
        return list(reversed(self.audit_logs))[:limit]

    def snapshot(self) -> Dict[str, list]:
        return {
            "policies": [asdict(p) for p in self.policies],
            "sanction_lists": [asdict(s) for s in self.sanction_list],
            "merchant_ratings": [asdict(m) for m in self.merchant_ratings],
            "customer_policies": [asdict(p) for p in self.customer_policies],
            "audit_logs": [log.to_dict() for log in self.audit_logs],
        }


def load_document_store(now: Optional[datetime] = None) -> DocumentStore:
    return DocumentStore(audit_logs=_seed_audit_logs(now or datetime.now(timezone.utc)))
