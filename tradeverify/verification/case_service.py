"""
Verification Case Service — submission and case versioning.

Submitting onboarding either creates a new case (first submission, or
after REJECTED / REVISION_REQUESTED) or returns an INFO_REQUESTED case to
SUBMITTED in place. The case write is flushed before the organization
write; both are committed together before the organization lock is
released.
"""

import uuid
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tradeverify.db.models import Organization, VerificationCase
from tradeverify.db.repositories.organization import organization_repo
from tradeverify.db.repositories.verification_case import case_repo
from tradeverify.exceptions import (
    ConflictError,
    InvalidTransitionError,
    MissingStepsError,
    NotFoundError,
    OnboardingLockedError,
)
from tradeverify.onboarding.engine import disclosure_snapshot
from tradeverify.onboarding.steps import missing_steps
from tradeverify.services.id_generator import generate_case_code
from tradeverify.services.org_locks import org_locks
from tradeverify.verification.schemas import (
    NAME_RESERVING_STATUSES,
    NEW_CASE_FROM,
    ActivityAction,
    CaseStatus,
    CaseSummary,
    KycStatus,
    SubmissionResult,
)

logger = structlog.get_logger(__name__)


def activity_entry(
    action: ActivityAction,
    performed_by: str,
    remarks: Optional[str] = None,
    at: Optional[datetime] = None,
) -> dict:
    return {
        "action": action.value,
        "timestamp": (at or datetime.utcnow()).isoformat(),
        "performed_by": str(performed_by),
        "remarks": remarks,
    }


def append_activity(case: VerificationCase, entry: dict) -> None:
    """Append to the activity log. Existing entries are never touched."""
    case.activity_log = [*(case.activity_log or []), entry]


def case_summary(case: VerificationCase) -> CaseSummary:
    return CaseSummary(
        case_id=case.id,
        case_code=case.case_code,
        organization_id=case.organization_id,
        submission_attempt=case.submission_attempt,
        status=case.status,
        rejection_reason=case.rejection_reason,
        reviewed_by=case.reviewed_by,
        reviewed_at=case.reviewed_at,
        created_at=case.created_at,
        updated_at=case.updated_at,
    )


class VerificationCaseService:
    """Creates and versions VerificationCase records."""

    async def submit(
        self,
        session: AsyncSession,
        *,
        user_id: uuid.UUID,
        organization_id: Optional[uuid.UUID] = None,
    ) -> SubmissionResult:
        """
        Submit the caller's onboarding for review.

        Raises:
            NotFoundError: caller has no organization
            OnboardingLockedError: already under review or approved
            ConflictError: same legal name and role already submitted elsewhere
            MissingStepsError: required steps not completed
            InvalidTransitionError: latest case is not resubmittable
        """
        org = await self._resolve(session, user_id, organization_id)

        async with org_locks.hold(org.id):
            org = await organization_repo.get_by_id_for_update(session, org.id)

            if org.is_onboarding_locked:
                logger.warning(
                    "submission_locked",
                    organization_id=str(org.id),
                    kyc_status=org.kyc_status,
                )
                raise OnboardingLockedError(org.kyc_status)

            await self._check_duplicate_name(session, org)

            missing = missing_steps(org.role, org.completed_steps)
            if missing:
                logger.warning(
                    "submission_missing_steps",
                    organization_id=str(org.id),
                    missing_steps=missing,
                )
                raise MissingStepsError(missing)

            latest = await case_repo.get_latest(session, org.id)
            now = datetime.utcnow()

            if latest is not None and latest.status == CaseStatus.INFO_REQUESTED:
                case = await self._resubmit(session, latest, user_id, now)
            elif latest is None or latest.status in NEW_CASE_FROM:
                case = await self._create_case(session, org, user_id, now)
            else:
                logger.warning(
                    "submission_invalid_state",
                    organization_id=str(org.id),
                    case_id=str(latest.id),
                    case_status=latest.status,
                )
                raise InvalidTransitionError("submit", latest.status, message="Invalid KYC submission state")

            org.kyc_status = KycStatus.SUBMITTED.value
            org.is_onboarding_locked = True
            await organization_repo.save(session, org)
            await session.commit()

        logger.info(
            "onboarding_submitted",
            organization_id=str(org.id),
            case_id=str(case.id),
            case_code=case.case_code,
            submission_attempt=case.submission_attempt,
        )
        return SubmissionResult(
            case_id=case.id,
            case_code=case.case_code,
            submission_number=case.submission_attempt,
            status=case.status,
        )

    # ── internals ─────────────────────────────────────────────────────

    async def _resolve(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        organization_id: Optional[uuid.UUID],
    ) -> Organization:
        if organization_id is not None:
            org = await organization_repo.get_by_id(session, organization_id)
        else:
            org = await organization_repo.get_by_owner(session, user_id)
        if org is None:
            raise NotFoundError("Organization", organization_id or f"owner {user_id}")
        return org

    async def _check_duplicate_name(self, session: AsyncSession, org: Organization) -> None:
        if not org.legal_name:
            return
        duplicate = await organization_repo.find_same_name(
            session,
            org.legal_name,
            org.role,
            [s.value for s in NAME_RESERVING_STATUSES],
            exclude_id=org.id,
        )
        if duplicate is not None:
            logger.warning(
                "submission_duplicate_name",
                organization_id=str(org.id),
                duplicate_organization_id=str(duplicate.id),
            )
            raise ConflictError(
                f'Organization "{org.legal_name}" already exists and has been submitted',
                details={"legal_name": org.legal_name, "role": org.role},
            )

    async def _create_case(
        self,
        session: AsyncSession,
        org: Organization,
        user_id: uuid.UUID,
        now: datetime,
    ) -> VerificationCase:
        attempt = await case_repo.count_for_organization(session, org.id) + 1
        case = VerificationCase(
            case_code=generate_case_code(org.org_code, attempt),
            organization_id=org.id,
            submission_attempt=attempt,
            submitted_data=disclosure_snapshot(org),
            status=CaseStatus.SUBMITTED.value,
            activity_log=[
                activity_entry(
                    ActivityAction.SUBMITTED,
                    str(user_id),
                    f"Submission #{attempt}",
                    at=now,
                )
            ],
            created_at=now,
            updated_at=now,
        )
        try:
            return await case_repo.add(session, case)
        except IntegrityError as e:
            raise ConflictError(
                "Concurrent submission detected for this organization",
                details={"organization_id": str(org.id), "submission_attempt": attempt},
            ) from e

    async def _resubmit(
        self,
        session: AsyncSession,
        case: VerificationCase,
        user_id: uuid.UUID,
        now: datetime,
    ) -> VerificationCase:
        case.status = CaseStatus.SUBMITTED.value
        case.updated_at = now
        append_activity(
            case,
            activity_entry(ActivityAction.RESUBMITTED, str(user_id), "Resubmitted after information request", at=now),
        )
        return await case_repo.save(session, case)


case_service = VerificationCaseService()
