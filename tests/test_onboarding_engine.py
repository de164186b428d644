"""
Onboarding Step Engine Tests.

Covers lazy organization creation, step gating, the onboarding lock,
tax identifier uniqueness and progress reporting.
"""

import uuid

import pytest

from factories import bank_details, catalog, compliance_docs, fleet_compliance, org_kyc
from tradeverify.exceptions import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    OnboardingLockedError,
    RoleMismatchError,
)
from tradeverify.onboarding.engine import onboarding_engine, validate_payload
from tradeverify.onboarding.steps import OnboardingStep


class TestWriteStep:
    async def test_first_step_creates_organization(self, db, seller_id):
        org = await onboarding_engine.write_step(
            db, "org-kyc", org_kyc(legal_name="Acme Steel Traders"), role="SELLER", user_id=seller_id
        )
        assert org.id is not None
        assert org.owner_user_id == seller_id
        assert org.role == "SELLER"
        assert org.org_code.startswith("ACME-")
        assert org.legal_name == "Acme Steel Traders"
        assert org.kyc_status == "DRAFT"
        assert org.is_onboarding_locked is False
        assert org.completed_steps == ["org-kyc"]

    async def test_non_kyc_first_step_creates_org_with_default_code(self, db, seller_id):
        org = await onboarding_engine.write_step(db, "bank-details", bank_details(), role="seller", user_id=seller_id)
        assert org.org_code.startswith("ORG-")
        assert org.legal_name == ""
        assert org.primary_bank_account["ifsc"] == "HDFC0001234"

    async def test_tax_ids_are_upper_cased(self, db, seller_id):
        payload = org_kyc()
        payload["gstin"] = payload["gstin"].lower()
        payload["pan"] = payload["pan"].lower()
        org = await onboarding_engine.write_step(db, "org-kyc", payload, role="SELLER", user_id=seller_id)
        assert org.gstin == org.gstin.upper()
        assert org.org_kyc["pan"] == org.pan == org.pan.upper()

    async def test_rewriting_a_step_keeps_single_membership(self, db, seller_id):
        await onboarding_engine.write_step(db, "bank-details", bank_details(), role="SELLER", user_id=seller_id)
        await onboarding_engine.write_step(db, "bank-details", bank_details(), role="SELLER", user_id=seller_id)
        progress = await onboarding_engine.get_progress(db, role="SELLER", user_id=seller_id)
        assert progress.completed_steps.count("bank-details") == 1

    async def test_section_replaced_wholesale(self, db, seller_id):
        await onboarding_engine.write_step(
            db, "bank-details", bank_details(branch_name="Shivajinagar"), role="SELLER", user_id=seller_id
        )
        org = await onboarding_engine.write_step(
            db, "bank-details", bank_details(bank_name="ICICI Bank"), role="SELLER", user_id=seller_id
        )
        assert org.primary_bank_account["bank_name"] == "ICICI Bank"
        assert org.primary_bank_account["branch_name"] is None

    async def test_bank_defaults_to_pending_verification(self, db, seller_id):
        payload = bank_details()
        del payload["penny_drop_status"]
        del payload["penny_drop_score"]
        org = await onboarding_engine.write_step(db, "bank-details", payload, role="SELLER", user_id=seller_id)
        assert org.primary_bank_account["penny_drop_status"] == "PENDING"
        assert org.primary_bank_account["penny_drop_score"] == 0

    async def test_role_specific_step_rejected_for_other_role(self, db, buyer_id):
        with pytest.raises(RoleMismatchError) as exc:
            await onboarding_engine.write_step(db, "catalog", catalog(), role="BUYER", user_id=buyer_id)
        assert exc.value.details["required_role"] == "SELLER"

    async def test_fleet_compliance_is_logistics_only(self, db, seller_id):
        with pytest.raises(RoleMismatchError):
            await onboarding_engine.write_step(db, "fleet-compliance", fleet_compliance(), role="SELLER", user_id=seller_id)
        org = await onboarding_engine.write_step(
            db, "fleet-compliance", fleet_compliance(), role="LOGISTICS", user_id=uuid.uuid4()
        )
        assert org.fleet_and_compliance["pod_method"] == "driver_app"

    async def test_role_mismatch_writes_nothing(self, db, buyer_id):
        with pytest.raises(RoleMismatchError):
            await onboarding_engine.write_step(db, "catalog", catalog(), role="BUYER", user_id=buyer_id)
        progress = await onboarding_engine.get_progress(db, role="BUYER", user_id=buyer_id)
        assert progress.organization_id is None

    async def test_locked_organization_rejects_edits(self, db, seller_id):
        org = await onboarding_engine.write_step(db, "org-kyc", org_kyc(), role="SELLER", user_id=seller_id)
        org.kyc_status = "SUBMITTED"
        org.is_onboarding_locked = True
        await db.flush()

        with pytest.raises(OnboardingLockedError) as exc:
            await onboarding_engine.write_step(db, "bank-details", bank_details(), role="SELLER", user_id=seller_id)
        assert "SUBMITTED" in exc.value.message
        assert org.primary_bank_account is None
        assert org.completed_steps == ["org-kyc"]

    async def test_duplicate_gstin_conflicts(self, db, seller_id):
        first = org_kyc()
        await onboarding_engine.write_step(db, "org-kyc", first, role="SELLER", user_id=seller_id)

        second = org_kyc(gstin=first["gstin"])
        other_user = uuid.uuid4()
        with pytest.raises(ConflictError) as exc:
            await onboarding_engine.write_step(db, "org-kyc", second, role="BUYER", user_id=other_user)
        assert exc.value.details["field"] == "gstin"
        assert await onboarding_engine.resolve_organization(db, other_user) is None

    async def test_duplicate_pan_conflicts(self, db, seller_id):
        first = org_kyc()
        await onboarding_engine.write_step(db, "org-kyc", first, role="SELLER", user_id=seller_id)
        with pytest.raises(ConflictError) as exc:
            await onboarding_engine.write_step(
                db, "org-kyc", org_kyc(pan=first["pan"]), role="SELLER", user_id=uuid.uuid4()
            )
        assert exc.value.details["field"] == "pan"

    async def test_own_tax_ids_can_be_rewritten(self, db, seller_id):
        payload = org_kyc()
        await onboarding_engine.write_step(db, "org-kyc", payload, role="SELLER", user_id=seller_id)
        org = await onboarding_engine.write_step(
            db, "org-kyc", {**payload, "trade_name": "Acme"}, role="SELLER", user_id=seller_id
        )
        assert org.org_kyc["trade_name"] == "Acme"

    async def test_invalid_payload(self, db, seller_id):
        with pytest.raises(InvalidArgumentError) as exc:
            await onboarding_engine.write_step(
                db, "bank-details", bank_details(ifsc="NOT-AN-IFSC"), role="SELLER", user_id=seller_id
            )
        assert any(e["field"] == "ifsc" for e in exc.value.details["errors"])

    @pytest.mark.parametrize(
        "ifsc",
        ["zzHDFC0001234-garbage", "HDFC0001234X", "XHDFC0001234", "HDFC1001234", "HDF0001234"],
    )
    async def test_ifsc_must_match_whole_value(self, ifsc):
        with pytest.raises(InvalidArgumentError) as exc:
            validate_payload(OnboardingStep.BANK_DETAILS, bank_details(ifsc=ifsc))
        assert any(e["field"] == "ifsc" for e in exc.value.details["errors"])

    async def test_ifsc_is_upper_cased(self):
        section = validate_payload(OnboardingStep.BANK_DETAILS, bank_details(ifsc=" hdfc0001234 "))
        assert section["ifsc"] == "HDFC0001234"

    async def test_declarations_must_all_be_accepted(self, db, seller_id):
        payload = compliance_docs()
        payload["declarations"]["aml_compliance"] = False
        with pytest.raises(InvalidArgumentError):
            await onboarding_engine.write_step(db, "compliance-docs", payload, role="SELLER", user_id=seller_id)

    async def test_compliance_needs_a_document(self, db, seller_id):
        with pytest.raises(InvalidArgumentError):
            await onboarding_engine.write_step(
                db, "compliance-docs", compliance_docs(doc_types=()), role="SELLER", user_id=seller_id
            )

    async def test_unknown_step(self, db, seller_id):
        with pytest.raises(InvalidArgumentError):
            await onboarding_engine.write_step(db, "payments", {}, role="SELLER", user_id=seller_id)

    async def test_admin_cannot_onboard(self, db):
        with pytest.raises(InvalidArgumentError):
            await onboarding_engine.write_step(db, "bank-details", bank_details(), role="ADMIN", user_id=uuid.uuid4())


class TestProgress:
    async def test_defaults_without_organization(self, db, buyer_id):
        progress = await onboarding_engine.get_progress(db, role="buyer", user_id=buyer_id)
        assert progress.organization_id is None
        assert progress.kyc_status == "DRAFT"
        assert progress.next_step == "org-kyc"
        assert progress.required_steps == ["org-kyc", "bank-details", "compliance-docs", "buyer-preferences"]
        assert progress.current_progress == 0

    async def test_logistics_order(self, db):
        progress = await onboarding_engine.get_progress(db, role="LOGISTICS", user_id=uuid.uuid4())
        assert progress.required_steps == ["org-kyc", "bank-details", "fleet-compliance", "compliance-docs"]

    async def test_progress_after_steps(self, db, seller_id):
        await onboarding_engine.write_step(db, "org-kyc", org_kyc(), role="SELLER", user_id=seller_id)
        await onboarding_engine.write_step(db, "compliance-docs", compliance_docs(), role="SELLER", user_id=seller_id)
        progress = await onboarding_engine.get_progress(db, role="SELLER", user_id=seller_id)
        assert sorted(progress.completed_steps) == ["compliance-docs", "org-kyc"]
        assert progress.next_step == "bank-details"
        assert progress.current_progress == 50
        assert progress.is_onboarding_locked is False

    async def test_onboarding_data(self, db, seller_id):
        await onboarding_engine.write_step(db, "catalog", catalog(), role="SELLER", user_id=seller_id)
        data = await onboarding_engine.get_onboarding_data(db, user_id=seller_id)
        assert data.catalog["catalog_products"][0]["category"] == "HR_COIL"
        assert data.org_kyc is None

    async def test_onboarding_data_without_organization(self, db):
        with pytest.raises(NotFoundError):
            await onboarding_engine.get_onboarding_data(db, user_id=uuid.uuid4())
