"""
Onboarding Step Engine.

Accepts one disclosure step at a time and persists it onto the caller's
Organization. The first step write for a user without an organization
creates one.

Order of checks for a step write:
1. Payload validation            → InvalidArgument
2. Role gate                     → RoleMismatch
3. Onboarding lock               → Locked
4. Tax identifier uniqueness     → Conflict
5. Replace section wholesale, add step to completed_steps

Steps 3-5 run under the organization's lock (``owner:{user_id}`` before
the organization exists) and commit before the lock is released, so the
next writer re-reads committed state. One organization per owner is also
enforced by a unique index.
"""

import copy
import uuid
from typing import Any, Optional

import structlog
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tradeverify.db.models import Organization
from tradeverify.db.repositories.organization import organization_repo
from tradeverify.exceptions import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    OnboardingLockedError,
    RoleMismatchError,
)
from tradeverify.onboarding.schemas import (
    BankDetailsPayload,
    BuyerPreferencesPayload,
    CatalogPayload,
    ComplianceDocsPayload,
    FleetCompliancePayload,
    OnboardingProgress,
    OrgKycPayload,
    ProfileSummary,
)
from tradeverify.onboarding.steps import (
    SNAPSHOT_SECTIONS,
    STEP_REQUIRED_ROLE,
    STEP_SECTION,
    OnboardingStep,
    OrganizationRole,
    next_step,
    required_steps,
)
from tradeverify.services.id_generator import generate_org_code
from tradeverify.services.org_locks import org_locks

logger = structlog.get_logger(__name__)

STEP_PAYLOADS: dict[OnboardingStep, type[BaseModel]] = {
    OnboardingStep.ORG_KYC: OrgKycPayload,
    OnboardingStep.BANK_DETAILS: BankDetailsPayload,
    OnboardingStep.COMPLIANCE_DOCS: ComplianceDocsPayload,
    OnboardingStep.BUYER_PREFERENCES: BuyerPreferencesPayload,
    OnboardingStep.CATALOG: CatalogPayload,
    OnboardingStep.FLEET_COMPLIANCE: FleetCompliancePayload,
}

TAX_ID_FIELDS = ("gstin", "pan")


def parse_step(step: str) -> OnboardingStep:
    try:
        return OnboardingStep(step)
    except ValueError:
        raise InvalidArgumentError(
            f"Unknown onboarding step: {step}",
            details={"step": step, "allowed": [s.value for s in OnboardingStep]},
        ) from None


def parse_role(role: str) -> OrganizationRole:
    try:
        return OrganizationRole(str(role).upper())
    except ValueError:
        raise InvalidArgumentError(
            f"Role '{role}' cannot complete onboarding",
            details={"role": role},
        ) from None


def validate_payload(step: OnboardingStep, payload: dict[str, Any]) -> dict[str, Any]:
    """Validate a raw step payload and return its JSON-ready section."""
    model = STEP_PAYLOADS[step]
    try:
        parsed = model.model_validate(payload or {})
    except ValidationError as e:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        raise InvalidArgumentError(
            f"Invalid payload for step '{step.value}'",
            details={"step": step.value, "errors": errors},
        ) from e
    return parsed.model_dump(mode="json")


def disclosure_snapshot(org: Organization) -> dict[str, Any]:
    """Deep copy of the organization's disclosure fields."""
    snapshot: dict[str, Any] = {
        "org_code": org.org_code,
        "legal_name": org.legal_name,
        "role": org.role,
    }
    for section in SNAPSHOT_SECTIONS:
        snapshot[section] = copy.deepcopy(getattr(org, section))
    return snapshot


def profile_summary(org: Organization) -> ProfileSummary:
    return ProfileSummary(
        organization_id=org.id,
        org_code=org.org_code,
        legal_name=org.legal_name,
        role=org.role,
        kyc_status=org.kyc_status,
        is_onboarding_locked=org.is_onboarding_locked,
        is_verified=org.is_verified,
        completed_steps=list(org.completed_steps or []),
        org_kyc=org.org_kyc,
        primary_bank_account=org.primary_bank_account,
        compliance=org.compliance,
        buyer_preferences=org.buyer_preferences,
        catalog=org.catalog,
        fleet_and_compliance=org.fleet_and_compliance,
        rejection_reason=org.rejection_reason,
        kyc_approved_at=org.kyc_approved_at,
        updated_at=org.updated_at,
    )


class OnboardingStepEngine:
    """Validates and persists disclosure steps against an Organization."""

    async def resolve_organization(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        organization_id: Optional[uuid.UUID] = None,
    ) -> Optional[Organization]:
        if organization_id is not None:
            org = await organization_repo.get_by_id(session, organization_id)
            if org is None:
                raise NotFoundError("Organization", organization_id)
            return org
        return await organization_repo.get_by_owner(session, user_id)

    async def write_step(
        self,
        session: AsyncSession,
        step: str,
        payload: dict[str, Any],
        *,
        role: str,
        user_id: uuid.UUID,
        organization_id: Optional[uuid.UUID] = None,
    ) -> Organization:
        """
        Persist one step's payload onto the caller's organization.

        Creates the organization when the caller has none yet. Re-writing
        a completed step overwrites its data; membership stays single.
        """
        onboarding_step = parse_step(step)
        section_data = validate_payload(onboarding_step, payload)
        caller_role = parse_role(role)

        required_role = STEP_REQUIRED_ROLE.get(onboarding_step)
        if required_role is not None and required_role != caller_role:
            logger.warning(
                "onboarding_step_role_mismatch",
                step=onboarding_step.value,
                required_role=required_role.value,
                role=caller_role.value,
            )
            raise RoleMismatchError(onboarding_step.value, required_role.value, caller_role.value)

        org = await self.resolve_organization(session, user_id, organization_id)
        if org is None:
            async with org_locks.hold(f"owner:{user_id}"):
                # Another request may have created it while we waited
                org = await organization_repo.get_by_owner(session, user_id)
                if org is None:
                    return await self._write_locked(session, None, onboarding_step, section_data, caller_role, user_id)

        async with org_locks.hold(org.id):
            return await self._write_locked(session, org.id, onboarding_step, section_data, caller_role, user_id)

    async def _write_locked(
        self,
        session: AsyncSession,
        organization_id: Optional[uuid.UUID],
        onboarding_step: OnboardingStep,
        section_data: dict[str, Any],
        caller_role: OrganizationRole,
        user_id: uuid.UUID,
    ) -> Organization:
        """Read-modify-write under the caller's lock. Commits before the lock is released."""
        org = None
        if organization_id is not None:
            org = await organization_repo.get_by_id_for_update(session, organization_id)
            if org is None:
                raise NotFoundError("Organization", organization_id)

        if org is not None and org.is_onboarding_locked:
            logger.warning(
                "onboarding_step_locked",
                organization_id=str(org.id),
                step=onboarding_step.value,
                kyc_status=org.kyc_status,
            )
            raise OnboardingLockedError(org.kyc_status)

        if onboarding_step == OnboardingStep.ORG_KYC:
            await self._check_tax_ids(session, section_data, organization_id)

        try:
            if org is None:
                org = await self._create_organization(session, caller_role, user_id, section_data)
            self._apply(org, onboarding_step, section_data)
            await organization_repo.save(session, org)
            await session.commit()
        except IntegrityError as e:
            logger.warning("onboarding_step_integrity_conflict", step=onboarding_step.value, user_id=str(user_id))
            raise ConflictError(
                "Organization already exists for this user or these tax identifiers",
                details={"step": onboarding_step.value},
            ) from e

        logger.info(
            "onboarding_step_saved",
            organization_id=str(org.id),
            step=onboarding_step.value,
            completed_steps=org.completed_steps,
        )
        return org

    async def get_progress(
        self,
        session: AsyncSession,
        *,
        role: str,
        user_id: uuid.UUID,
        organization_id: Optional[uuid.UUID] = None,
    ) -> OnboardingProgress:
        org = await self.resolve_organization(session, user_id, organization_id)
        if org is None:
            # No organization yet: DRAFT defaults for the caller's role
            caller_role = parse_role(role)
            steps = required_steps(caller_role)
            return OnboardingProgress(
                role=caller_role.value,
                required_steps=steps,
                next_step=steps[0] if steps else None,
            )

        completed = list(org.completed_steps or [])
        steps = required_steps(org.role)
        done = [s for s in steps if s in completed]
        return OnboardingProgress(
            organization_id=org.id,
            role=org.role,
            completed_steps=completed,
            required_steps=steps,
            next_step=next_step(org.role, completed),
            current_progress=round(len(done) / len(steps) * 100) if steps else 0,
            kyc_status=org.kyc_status,
            is_onboarding_locked=org.is_onboarding_locked,
            rejection_reason=org.rejection_reason,
        )

    async def get_onboarding_data(
        self,
        session: AsyncSession,
        *,
        user_id: uuid.UUID,
        organization_id: Optional[uuid.UUID] = None,
    ) -> ProfileSummary:
        org = await self.resolve_organization(session, user_id, organization_id)
        if org is None:
            raise NotFoundError("Organization", f"owner {user_id}")
        return profile_summary(org)

    # ── internals ─────────────────────────────────────────────────────

    async def _check_tax_ids(
        self,
        session: AsyncSession,
        section_data: dict[str, Any],
        organization_id: Optional[uuid.UUID],
    ) -> None:
        for field in TAX_ID_FIELDS:
            value = section_data.get(field)
            if not value:
                continue
            other = await organization_repo.find_by_tax_id(session, field, value, exclude_id=organization_id)
            if other is not None:
                logger.warning(
                    "tax_id_conflict",
                    field=field,
                    organization_id=str(organization_id) if organization_id else None,
                    conflicting_organization_id=str(other.id),
                )
                raise ConflictError(
                    f"Organization with this {field.upper()} already exists",
                    details={"field": field, "value": value},
                )

    async def _create_organization(
        self,
        session: AsyncSession,
        role: OrganizationRole,
        user_id: uuid.UUID,
        section_data: dict[str, Any],
    ) -> Organization:
        legal_name = section_data.get("legal_name", "") if section_data else ""
        org_code = await generate_org_code(
            legal_name,
            lambda code: organization_repo.code_exists(session, code),
        )
        org = Organization(
            org_code=org_code,
            legal_name=legal_name,
            role=role.value,
            owner_user_id=user_id,
            completed_steps=[],
            kyc_status="DRAFT",
            is_onboarding_locked=False,
            is_verified=False,
        )
        org = await organization_repo.add(session, org)
        logger.info(
            "organization_created",
            organization_id=str(org.id),
            org_code=org.org_code,
            role=org.role,
        )
        return org

    def _apply(self, org: Organization, step: OnboardingStep, section_data: dict[str, Any]) -> None:
        setattr(org, STEP_SECTION[step], section_data)

        if step == OnboardingStep.ORG_KYC:
            org.legal_name = section_data["legal_name"]
            org.gstin = section_data.get("gstin") or None
            org.pan = section_data.get("pan") or None

        # Reassign so JSON change tracking sees the new list
        completed = list(org.completed_steps or [])
        if step.value not in completed:
            completed.append(step.value)
        org.completed_steps = completed


onboarding_engine = OnboardingStepEngine()
