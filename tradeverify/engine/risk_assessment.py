"""
Risk Assessment — point-deduction heuristic over a disclosure snapshot.

Start at 100 and deduct, in order:
    1. Bank verification    -40 if not VERIFIED,
                            else floor((100 - score) / 2.5) if score < 95
    2. Required documents   -20
    3. GSTIN format         -15
    4. PAN format           -15
    5. Registered address   -10 (absent or shorter than 20 chars)

Classification: >= 85 Low, >= 65 Medium, else High.

This is a review-triage heuristic, not a KYC/AML decision.
"""

import math
from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any, Mapping

from tradeverify.engine.validators import (
    address_complete,
    documents_complete,
    is_valid_gstin,
    is_valid_pan,
)

# ── Configuration ─────────────────────────────────────────────────────────

START_SCORE: int = 100
BANK_FAILED_DEDUCTION: int = 40
BANK_SCORE_THRESHOLD: float = 95.0
BANK_SCORE_DIVISOR: float = 2.5
MISSING_DOCS_DEDUCTION: int = 20
INVALID_GSTIN_DEDUCTION: int = 15
INVALID_PAN_DEDUCTION: int = 15
INCOMPLETE_ADDRESS_DEDUCTION: int = 10

LOW_RISK_FLOOR: int = 85
MEDIUM_RISK_FLOOR: int = 65

ALL_CHECKS_PASSED = "All checks passed"

BANK_VERIFIED = "VERIFIED"


class RiskLevel(StrEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


@dataclass(frozen=True)
class RiskAssessment:
    level: RiskLevel
    score: int
    remarks: str
    issues: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "level": self.level.value,
            "score": self.score,
            "remarks": self.remarks,
            "issues": list(self.issues),
        }


@dataclass(frozen=True)
class AutoChecks:
    gstin_valid: bool
    pan_valid: bool
    bank_account_valid: bool
    documents_complete: bool
    address_verified: bool

    def to_dict(self) -> dict:
        return asdict(self)


def classify(score: int) -> RiskLevel:
    if score >= LOW_RISK_FLOOR:
        return RiskLevel.LOW
    if score >= MEDIUM_RISK_FLOOR:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def bank_deduction(bank: Mapping[str, Any]) -> tuple[int, str | None]:
    """Deduction and remark for the primary bank account."""
    if bank.get("penny_drop_status") != BANK_VERIFIED:
        return BANK_FAILED_DEDUCTION, "Bank verification failed"
    confidence = float(bank.get("penny_drop_score") or 0)
    if confidence < BANK_SCORE_THRESHOLD:
        return math.floor((100 - confidence) / BANK_SCORE_DIVISOR), "Bank name mismatch detected"
    return 0, None


def assess_risk(snapshot: Mapping[str, Any]) -> RiskAssessment:
    """Score an organization disclosure snapshot. Deterministic, side-effect-free."""
    org_kyc = snapshot.get("org_kyc") or {}
    bank = snapshot.get("primary_bank_account") or {}

    score = START_SCORE
    issues: list[str] = []

    deduction, remark = bank_deduction(bank)
    if remark:
        score -= deduction
        issues.append(remark)

    if not documents_complete(snapshot):
        score -= MISSING_DOCS_DEDUCTION
        issues.append("Missing required documents")

    if not is_valid_gstin(org_kyc.get("gstin")):
        score -= INVALID_GSTIN_DEDUCTION
        issues.append("Invalid GSTIN format")

    if not is_valid_pan(org_kyc.get("pan")):
        score -= INVALID_PAN_DEDUCTION
        issues.append("Invalid PAN format")

    if not address_complete(org_kyc.get("registered_address")):
        score -= INCOMPLETE_ADDRESS_DEDUCTION
        issues.append("Incomplete address")

    return RiskAssessment(
        level=classify(score),
        score=score,
        remarks="; ".join(issues) if issues else ALL_CHECKS_PASSED,
        issues=issues,
    )


def run_auto_checks(snapshot: Mapping[str, Any]) -> AutoChecks:
    """Individual pass/fail checks shown to reviewers next to the score."""
    org_kyc = snapshot.get("org_kyc") or {}
    bank = snapshot.get("primary_bank_account") or {}
    return AutoChecks(
        gstin_valid=is_valid_gstin(org_kyc.get("gstin")),
        pan_valid=is_valid_pan(org_kyc.get("pan")),
        bank_account_valid=bank.get("penny_drop_status") == BANK_VERIFIED,
        documents_complete=documents_complete(snapshot),
        address_verified=bool(org_kyc.get("registered_address")),
    )
