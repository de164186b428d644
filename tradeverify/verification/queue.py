"""
Admin Queue & History — read-only views for reviewers.

Queue pipeline:
1. Filter cases by status (optional)
2. Keep the most recently created case per organization
3. Page over those groups
4. Hydrate case + organization
5. Apply role / free-text filters in memory
6. Report total = organizations matching the role filter

Step 6 does not account for the status or search filters, so the total
is approximate when filters combine.
"""

import uuid
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from tradeverify.config import settings
from tradeverify.db.models import Organization, VerificationCase
from tradeverify.db.repositories.organization import organization_repo
from tradeverify.db.repositories.verification_case import case_repo
from tradeverify.engine.risk_assessment import assess_risk, run_auto_checks
from tradeverify.exceptions import InvalidArgumentError, NotFoundError
from tradeverify.verification.case_service import case_summary
from tradeverify.verification.schemas import (
    ActivityEntry,
    CaseDetail,
    CaseHistory,
    CaseStatus,
    HistoryEntry,
    QueueItem,
    QueuePage,
    RiskSummary,
)

logger = structlog.get_logger(__name__)


def format_age(created_at: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Elapsed time since creation as zero-padded HH:MM."""
    if created_at is None:
        return "00:00"
    now = now or datetime.utcnow()
    total_minutes = max(int((now - created_at).total_seconds() // 60), 0)
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours:02d}:{minutes:02d}"


def _matches_search(case: VerificationCase, org: Organization, search: str) -> bool:
    needle = search.casefold()
    haystack = (org.legal_name or "", org.org_code or "", case.case_code or "")
    return any(needle in value.casefold() for value in haystack)


def _organization_view(org: Organization) -> dict:
    return {
        "organization_id": str(org.id),
        "org_code": org.org_code,
        "legal_name": org.legal_name,
        "role": org.role,
        "kyc_status": org.kyc_status,
        "is_onboarding_locked": org.is_onboarding_locked,
        "is_verified": org.is_verified,
        "rejection_reason": org.rejection_reason,
        "created_at": org.created_at.isoformat() if org.created_at else None,
    }


class AdminQueueService:
    """Queue, case detail and per-organization history."""

    async def queue(
        self,
        session: AsyncSession,
        status: Optional[str] = None,
        role: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> QueuePage:
        if status:
            try:
                status = CaseStatus(status.upper()).value
            except ValueError:
                raise InvalidArgumentError(
                    f"Unknown case status: {status}",
                    details={"status": status, "allowed": [s.value for s in CaseStatus]},
                ) from None
        role = role.upper() if role else None
        page = max(page, 1)
        limit = min(max(limit or settings.queue_default_limit, 1), settings.queue_max_limit)
        now = now or datetime.utcnow()

        ids = await case_repo.latest_case_ids_page(session, status, (page - 1) * limit, limit)
        cases = await case_repo.get_many_with_organization(session, ids)

        items: list[QueueItem] = []
        for case in cases:
            org = case.organization
            if role and org.role != role:
                continue
            if search and not _matches_search(case, org, search):
                continue
            risk = assess_risk(case.submitted_data or {})
            items.append(
                QueueItem(
                    case_id=case.id,
                    case_code=case.case_code,
                    submission_number=case.submission_attempt,
                    organization_id=org.id,
                    organization_name=org.legal_name,
                    org_code=org.org_code,
                    role=org.role,
                    status=case.status,
                    risk_level=risk.level.value,
                    risk_score=risk.score,
                    age=format_age(case.created_at, now),
                    sla_hours=settings.review_sla_hours,
                    submitted_at=case.created_at,
                )
            )

        total = await organization_repo.count(session, role=role)
        logger.debug("queue_built", status=status, role=role, page=page, returned=len(items), total=total)
        return QueuePage(items=items, total=total, page=page, limit=limit)

    async def case_detail(
        self,
        session: AsyncSession,
        case_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> CaseDetail:
        case = await case_repo.get_with_organization(session, case_id)
        if case is None:
            raise NotFoundError("Case", case_id)
        snapshot = case.submitted_data or {}
        risk = assess_risk(snapshot)
        return CaseDetail(
            case=case_summary(case),
            organization=_organization_view(case.organization),
            submitted_data=snapshot,
            activity_log=[ActivityEntry(**entry) for entry in case.activity_log or []],
            auto_checks=run_auto_checks(snapshot).to_dict(),
            risk=RiskSummary(**risk.to_dict()),
            age=format_age(case.created_at, now),
            sla_hours=settings.review_sla_hours,
        )

    async def history(self, session: AsyncSession, organization_id: uuid.UUID) -> CaseHistory:
        """Every case for the organization, highest submission attempt first."""
        org = await organization_repo.get_by_id(session, organization_id)
        if org is None:
            raise NotFoundError("Organization", organization_id)
        cases = await case_repo.list_for_organization(session, organization_id)
        return CaseHistory(
            organization_id=org.id,
            org_code=org.org_code,
            legal_name=org.legal_name,
            kyc_status=org.kyc_status,
            cases=[
                HistoryEntry(
                    case_id=c.id,
                    case_code=c.case_code,
                    submission_attempt=c.submission_attempt,
                    status=c.status,
                    submitted_data=c.submitted_data or {},
                    activity_log=[ActivityEntry(**entry) for entry in c.activity_log or []],
                    rejection_reason=c.rejection_reason,
                    reviewed_by=c.reviewed_by,
                    reviewed_at=c.reviewed_at,
                    created_at=c.created_at,
                )
                for c in cases
            ],
        )


queue_service = AdminQueueService()
