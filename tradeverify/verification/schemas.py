"""
Verification Schemas — case states, activity entries, review payloads.

Case state machine:

    SUBMITTED ──► APPROVED ──► REVISION_REQUESTED ──► (new case) SUBMITTED
        │
        ├──► REJECTED ──► (new case) SUBMITTED
        │
        └──► INFO_REQUESTED ──► (same case) SUBMITTED
"""

import uuid
from datetime import datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, Field


class CaseStatus(StrEnum):
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    INFO_REQUESTED = "INFO_REQUESTED"
    REVISION_REQUESTED = "REVISION_REQUESTED"


class KycStatus(StrEnum):
    """Organization-level status: DRAFT until first submission, then mirrors the latest case."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    INFO_REQUESTED = "INFO_REQUESTED"
    REVISION_REQUESTED = "REVISION_REQUESTED"


class ActivityAction(StrEnum):
    SUBMITTED = "SUBMITTED"
    RESUBMITTED = "RESUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    INFO_REQUESTED = "INFO_REQUESTED"
    REVISION_REQUESTED = "REVISION_REQUESTED"
    ADDED_TO_WATCHLIST = "ADDED_TO_WATCHLIST"


# A fresh case is created only from these latest-case states
NEW_CASE_FROM = frozenset({CaseStatus.REJECTED, CaseStatus.REVISION_REQUESTED})

# Statuses that block another organization from reusing the same legal name
NAME_RESERVING_STATUSES = (KycStatus.SUBMITTED, KycStatus.APPROVED, KycStatus.REJECTED)


# ── Requests ──────────────────────────────────────────────────────────


class ApproveRequest(BaseModel):
    remarks: Optional[str] = Field(default=None, max_length=2000)


class RejectRequest(BaseModel):
    reason: str = ""


class RequestInfoRequest(BaseModel):
    fields: list[str] = Field(default_factory=list)
    message: Optional[str] = Field(default=None, max_length=2000)


class UnlockRequest(BaseModel):
    remarks: Optional[str] = Field(default=None, max_length=2000)


class WatchlistRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=2000)
    tags: list[str] = Field(default_factory=list)


# ── Responses ─────────────────────────────────────────────────────────


class ActivityEntry(BaseModel):
    action: str
    timestamp: str
    performed_by: str
    remarks: Optional[str] = None


class SubmissionResult(BaseModel):
    case_id: uuid.UUID
    case_code: str
    submission_number: int
    status: str


class CaseSummary(BaseModel):
    case_id: uuid.UUID
    case_code: str
    organization_id: uuid.UUID
    submission_attempt: int
    status: str
    rejection_reason: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ReviewActionResult(BaseModel):
    case: CaseSummary
    kyc_status: str
    is_onboarding_locked: bool
    is_verified: bool


class QueueItem(BaseModel):
    case_id: uuid.UUID
    case_code: str
    submission_number: int
    organization_id: uuid.UUID
    organization_name: str
    org_code: str
    role: str
    status: str
    risk_level: str
    risk_score: int
    age: str                     # HH:MM since case creation
    sla_hours: int
    submitted_at: Optional[datetime] = None


class QueuePage(BaseModel):
    items: list[QueueItem]
    total: int                   # organizations matching the role filter only
    page: int
    limit: int


class RiskSummary(BaseModel):
    level: str
    score: int
    remarks: str
    issues: list[str] = Field(default_factory=list)


class CaseDetail(BaseModel):
    case: CaseSummary
    organization: dict[str, Any]
    submitted_data: dict[str, Any]
    activity_log: list[ActivityEntry]
    auto_checks: dict[str, bool]
    risk: RiskSummary
    age: str
    sla_hours: int


class HistoryEntry(BaseModel):
    case_id: uuid.UUID
    case_code: str
    submission_attempt: int
    status: str
    submitted_data: dict[str, Any]
    activity_log: list[ActivityEntry]
    rejection_reason: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class CaseHistory(BaseModel):
    organization_id: uuid.UUID
    org_code: str
    legal_name: str
    kyc_status: str
    cases: list[HistoryEntry]
