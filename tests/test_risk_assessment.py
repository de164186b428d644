"""
Risk Assessment Engine Tests.

Deductions, classification boundaries and the remarks string.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from tradeverify.engine.risk_assessment import (
    ALL_CHECKS_PASSED,
    RiskLevel,
    assess_risk,
    bank_deduction,
    classify,
    run_auto_checks,
)

VALID_GSTIN = "27ABCDE1234F1Z5"
VALID_PAN = "ABCDE1234F"
VALID_ADDRESS = "Plot 12, MIDC Industrial Area, Pune 411019"


def _snapshot(
    gstin: str = VALID_GSTIN,
    pan: str = VALID_PAN,
    address: str | None = VALID_ADDRESS,
    bank_status: str | None = "VERIFIED",
    bank_score: float = 100,
    doc_types: tuple = ("GST_CERTIFICATE", "PAN_CERTIFICATE"),
) -> dict:
    bank = {"penny_drop_score": bank_score}
    if bank_status is not None:
        bank["penny_drop_status"] = bank_status
    return {
        "org_kyc": {"gstin": gstin, "pan": pan, "registered_address": address},
        "primary_bank_account": bank,
        "compliance": {"documents": [{"doc_type": t} for t in doc_types]},
    }


class TestDeductions:
    def test_clean_snapshot_scores_100(self):
        result = assess_risk(_snapshot())
        assert result.score == 100
        assert result.level == RiskLevel.LOW
        assert result.remarks == ALL_CHECKS_PASSED
        assert result.issues == []

    def test_unverified_bank_deducts_40(self):
        for status in ("PENDING", "FAILED", None):
            result = assess_risk(_snapshot(bank_status=status))
            assert result.score == 60
            assert result.issues == ["Bank verification failed"]

    def test_verified_bank_below_threshold_deducts_proportionally(self):
        # floor((100 - 80) / 2.5) = 8
        result = assess_risk(_snapshot(bank_score=80))
        assert result.score == 92
        assert result.issues == ["Bank name mismatch detected"]

    def test_verified_bank_at_threshold_no_deduction(self):
        assert bank_deduction({"penny_drop_status": "VERIFIED", "penny_drop_score": 95}) == (0, None)

    def test_fractional_confidence_is_floored(self):
        # (100 - 94.9) / 2.5 = 2.04
        deduction, remark = bank_deduction({"penny_drop_status": "VERIFIED", "penny_drop_score": 94.9})
        assert deduction == 2
        assert remark == "Bank name mismatch detected"

    def test_one_missing_document_deducts_20(self):
        result = assess_risk(_snapshot(doc_types=("GST_CERTIFICATE",)))
        assert result.score == 80
        assert result.issues == ["Missing required documents"]

    def test_invalid_gstin_and_pan(self):
        result = assess_risk(_snapshot(gstin="27ABCDE1234F1X5", pan="ABCD1234F"))
        assert result.score == 70
        assert result.issues == ["Invalid GSTIN format", "Invalid PAN format"]

    def test_short_or_missing_address(self):
        assert assess_risk(_snapshot(address="Pune")).issues == ["Incomplete address"]
        assert assess_risk(_snapshot(address=None)).score == 90

    def test_address_of_exactly_20_chars_passes(self):
        assert assess_risk(_snapshot(address="x" * 20)).score == 100

    def test_empty_snapshot_scores_zero(self):
        result = assess_risk({})
        assert result.score == 0
        assert result.level == RiskLevel.HIGH
        assert result.remarks == (
            "Bank verification failed; Missing required documents; "
            "Invalid GSTIN format; Invalid PAN format; Incomplete address"
        )

    def test_unverified_bank_and_missing_document_is_high(self):
        result = assess_risk(_snapshot(bank_status="FAILED", doc_types=("PAN_CERTIFICATE",)))
        assert result.score == 40
        assert result.level == RiskLevel.HIGH
        assert "Bank verification failed; Missing required documents" in result.remarks


class TestClassification:
    def test_85_is_low(self):
        result = assess_risk(_snapshot(pan="bad"))
        assert result.score == 85
        assert result.level == RiskLevel.LOW

    def test_84_is_medium(self):
        # floor((100 - 60) / 2.5) = 16
        result = assess_risk(_snapshot(bank_score=60))
        assert result.score == 84
        assert result.level == RiskLevel.MEDIUM

    def test_65_is_medium(self):
        result = assess_risk(_snapshot(gstin="bad", doc_types=()))
        assert result.score == 65
        assert result.level == RiskLevel.MEDIUM

    def test_64_is_high(self):
        # floor((100 - 10) / 2.5) = 36
        result = assess_risk(_snapshot(bank_score=10))
        assert result.score == 64
        assert result.level == RiskLevel.HIGH

    def test_classify_bands(self):
        assert classify(100) == RiskLevel.LOW
        assert classify(85) == RiskLevel.LOW
        assert classify(84) == RiskLevel.MEDIUM
        assert classify(65) == RiskLevel.MEDIUM
        assert classify(64) == RiskLevel.HIGH
        assert classify(0) == RiskLevel.HIGH


class TestAutoChecks:
    def test_all_pass(self):
        checks = run_auto_checks(_snapshot())
        assert checks.to_dict() == {
            "gstin_valid": True,
            "pan_valid": True,
            "bank_account_valid": True,
            "documents_complete": True,
            "address_verified": True,
        }

    def test_failures(self):
        checks = run_auto_checks(_snapshot(gstin="x", bank_status="PENDING", doc_types=(), address=None))
        assert not checks.gstin_valid
        assert checks.pan_valid
        assert not checks.bank_account_valid
        assert not checks.documents_complete
        assert not checks.address_verified


class TestRiskProperties:
    @given(
        bank_status=st.sampled_from(["VERIFIED", "PENDING", "FAILED", None]),
        bank_score=st.floats(min_value=0, max_value=100, allow_nan=False),
        gstin=st.sampled_from([VALID_GSTIN, "bad", ""]),
        pan=st.sampled_from([VALID_PAN, "bad", ""]),
        address=st.one_of(st.none(), st.text(max_size=40)),
        doc_types=st.lists(st.sampled_from(["GST_CERTIFICATE", "PAN_CERTIFICATE", "OTHER"]), max_size=3),
    )
    @settings(max_examples=100)
    def test_score_bounded_and_consistent(self, bank_status, bank_score, gstin, pan, address, doc_types):
        snapshot = _snapshot(gstin, pan, address, bank_status, bank_score, tuple(doc_types))
        result = assess_risk(snapshot)
        assert 0 <= result.score <= 100
        assert result.level == classify(result.score)
        assert (result.remarks == ALL_CHECKS_PASSED) == (not result.issues)
        assert result == assess_risk(snapshot)
