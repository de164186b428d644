"""
Admin Review Service — reviewer decisions on verification cases.

Every action:
1. Reads the case, then holds the organization's lock and re-reads both
   rows for update (NotFound if either is missing)
2. Checks its argument and source-state guards (nothing is written on failure)
3. Writes the case, flushes
4. Writes the organization, flushes
5. Commits, then releases the lock

Steps 3 and 4 are two sequential writes. They share one commit; a store
without transactions would expose the window between them.
"""

import uuid
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from tradeverify.db.models import Organization, VerificationCase
from tradeverify.db.repositories.organization import organization_repo
from tradeverify.db.repositories.verification_case import case_repo
from tradeverify.exceptions import InvalidArgumentError, InvalidTransitionError, NotFoundError
from tradeverify.services.org_locks import org_locks
from tradeverify.verification.case_service import activity_entry, append_activity, case_summary
from tradeverify.verification.schemas import (
    ActivityAction,
    CaseStatus,
    KycStatus,
    ReviewActionResult,
)

logger = structlog.get_logger(__name__)


def review_result(case: VerificationCase, org: Organization) -> ReviewActionResult:
    return ReviewActionResult(
        case=case_summary(case),
        kyc_status=org.kyc_status,
        is_onboarding_locked=org.is_onboarding_locked,
        is_verified=org.is_verified,
    )


class AdminReviewService:
    """Case transitions, each mirrored onto the owning organization."""

    async def approve(
        self,
        session: AsyncSession,
        case_id: uuid.UUID,
        admin_id: str,
        remarks: Optional[str] = None,
    ) -> ReviewActionResult:
        case = await self._peek(session, case_id)
        async with org_locks.hold(case.organization_id):
            case, org = await self._load(session, case_id)
            await self._require_latest_submitted(session, case, "approve")

            now = datetime.utcnow()
            case.status = CaseStatus.APPROVED.value
            case.reviewed_by = admin_id
            case.reviewed_at = now
            case.rejection_reason = None
            append_activity(case, activity_entry(ActivityAction.APPROVED, admin_id, remarks or "KYC approved", at=now))
            await case_repo.save(session, case)

            org.kyc_status = KycStatus.APPROVED.value
            org.is_onboarding_locked = True
            org.is_verified = True
            org.rejection_reason = None
            org.kyc_approved_at = now
            org.kyc_approved_by = admin_id
            await organization_repo.save(session, org)
            await session.commit()

        logger.info("case_approved", case_id=str(case.id), organization_id=str(org.id), admin_id=admin_id)
        return review_result(case, org)

    async def reject(
        self,
        session: AsyncSession,
        case_id: uuid.UUID,
        admin_id: str,
        reason: str,
    ) -> ReviewActionResult:
        case = await self._peek(session, case_id)
        async with org_locks.hold(case.organization_id):
            case, org = await self._load(session, case_id)

            reason = (reason or "").strip()
            if not reason:
                logger.warning("case_reject_without_reason", case_id=str(case.id))
                raise InvalidArgumentError("Rejection reason is required", details={"field": "reason"})

            await self._require_latest_submitted(session, case, "reject")

            now = datetime.utcnow()
            case.status = CaseStatus.REJECTED.value
            case.rejection_reason = reason
            case.reviewed_by = admin_id
            case.reviewed_at = now
            append_activity(case, activity_entry(ActivityAction.REJECTED, admin_id, reason, at=now))
            await case_repo.save(session, case)

            org.kyc_status = KycStatus.REJECTED.value
            org.is_onboarding_locked = False
            org.is_verified = False
            org.rejection_reason = reason
            await organization_repo.save(session, org)
            await session.commit()

        logger.info("case_rejected", case_id=str(case.id), organization_id=str(org.id), admin_id=admin_id)
        return review_result(case, org)

    async def request_info(
        self,
        session: AsyncSession,
        case_id: uuid.UUID,
        admin_id: str,
        message: Optional[str] = None,
        fields: Optional[list[str]] = None,
    ) -> ReviewActionResult:
        """Send the case back to the submitter; the same case is resubmitted later."""
        case = await self._peek(session, case_id)
        async with org_locks.hold(case.organization_id):
            case, org = await self._load(session, case_id)

            message = (message or "").strip()
            fields = [f.strip() for f in fields or [] if f and f.strip()]
            if not message and not fields:
                logger.warning("case_request_info_empty", case_id=str(case.id))
                raise InvalidArgumentError(
                    "A message or at least one requested field is required",
                    details={"fields": ["message", "fields"]},
                )

            await self._require_latest_submitted(session, case, "request info on")

            now = datetime.utcnow()
            case.status = CaseStatus.INFO_REQUESTED.value
            case.reviewed_by = admin_id
            case.reviewed_at = now
            append_activity(
                case,
                activity_entry(ActivityAction.INFO_REQUESTED, admin_id, _info_remarks(fields, message), at=now),
            )
            await case_repo.save(session, case)

            org.kyc_status = KycStatus.INFO_REQUESTED.value
            org.is_onboarding_locked = False
            await organization_repo.save(session, org)
            await session.commit()

        logger.info(
            "case_info_requested",
            case_id=str(case.id),
            organization_id=str(org.id),
            admin_id=admin_id,
            fields=fields,
        )
        return review_result(case, org)

    async def unlock_for_revision(
        self,
        session: AsyncSession,
        case_id: uuid.UUID,
        admin_id: str,
        remarks: Optional[str] = None,
    ) -> ReviewActionResult:
        """Reopen an approved organization for edits. Resubmission creates a new case."""
        case = await self._peek(session, case_id)
        async with org_locks.hold(case.organization_id):
            case, org = await self._load(session, case_id)

            if org.kyc_status != KycStatus.APPROVED:
                logger.warning(
                    "case_unlock_not_approved",
                    case_id=str(case.id),
                    organization_id=str(org.id),
                    kyc_status=org.kyc_status,
                )
                raise InvalidTransitionError(
                    "unlock",
                    org.kyc_status,
                    message=f"Only approved organizations can be unlocked. Current status: {org.kyc_status}",
                )
            await self._require_latest(session, case, "unlock")

            now = datetime.utcnow()
            case.status = CaseStatus.REVISION_REQUESTED.value
            append_activity(
                case,
                activity_entry(
                    ActivityAction.REVISION_REQUESTED,
                    admin_id,
                    remarks or "Unlocked for updates by admin",
                    at=now,
                ),
            )
            await case_repo.save(session, case)

            org.kyc_status = KycStatus.REVISION_REQUESTED.value
            org.is_onboarding_locked = False
            await organization_repo.save(session, org)
            await session.commit()

        logger.info("case_unlocked_for_revision", case_id=str(case.id), organization_id=str(org.id), admin_id=admin_id)
        return review_result(case, org)

    async def add_to_watchlist(
        self,
        session: AsyncSession,
        case_id: uuid.UUID,
        admin_id: str,
        reason: str,
        tags: Optional[list[str]] = None,
    ) -> ReviewActionResult:
        """Annotate the case. No status changes."""
        case = await self._peek(session, case_id)
        async with org_locks.hold(case.organization_id):
            case, org = await self._load(session, case_id)

            reason = (reason or "").strip()
            if not reason:
                raise InvalidArgumentError("Watchlist reason is required", details={"field": "reason"})
            await self._require_latest(session, case, "add to watchlist")

            tags = [t.strip() for t in tags or [] if t and t.strip()]
            append_activity(
                case,
                activity_entry(
                    ActivityAction.ADDED_TO_WATCHLIST,
                    admin_id,
                    f"Reason: {reason}. Tags: {', '.join(tags)}",
                ),
            )
            await case_repo.save(session, case)
            await session.commit()

        logger.info("case_added_to_watchlist", case_id=str(case.id), admin_id=admin_id, tags=tags)
        return review_result(case, org)

    # ── guards ────────────────────────────────────────────────────────

    async def _peek(self, session: AsyncSession, case_id: uuid.UUID) -> VerificationCase:
        case = await case_repo.get_by_id(session, case_id)
        if case is None:
            raise NotFoundError("Case", case_id)
        return case

    async def _load(
        self, session: AsyncSession, case_id: uuid.UUID
    ) -> tuple[VerificationCase, Organization]:
        case = await case_repo.get_by_id_for_update(session, case_id)
        if case is None:
            raise NotFoundError("Case", case_id)
        org = await organization_repo.get_by_id_for_update(session, case.organization_id)
        if org is None:
            raise NotFoundError("Organization", case.organization_id)
        return case, org

    async def _require_latest(self, session: AsyncSession, case: VerificationCase, action: str) -> None:
        latest = await case_repo.get_latest(session, case.organization_id)
        if latest is None or latest.id != case.id:
            logger.warning(
                "case_not_latest",
                case_id=str(case.id),
                latest_case_id=str(latest.id) if latest else None,
                action=action,
            )
            raise InvalidTransitionError(
                action,
                case.status,
                message=f"Cannot {action} case {case.case_code}: a newer submission exists",
            )

    async def _require_latest_submitted(self, session: AsyncSession, case: VerificationCase, action: str) -> None:
        if case.status != CaseStatus.SUBMITTED:
            logger.warning("case_invalid_transition", case_id=str(case.id), status=case.status, action=action)
            raise InvalidTransitionError(action, case.status)
        await self._require_latest(session, case, action)


def _info_remarks(fields: list[str], message: str) -> str:
    parts = []
    if fields:
        parts.append(f"Fields: {', '.join(fields)}.")
    if message:
        parts.append(f"Message: {message}")
    return " ".join(parts)


review_service = AdminReviewService()
