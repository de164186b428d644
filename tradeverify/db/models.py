"""
TradeVerify SQLAlchemy Models.

Two aggregates, stored independently:
- Organization      mutable profile + workflow state, one per trading party
- VerificationCase  one per submission attempt, many per organization

Nested disclosure sections are JSON documents. They are always replaced
wholesale (never mutated in place) so change tracking sees every write.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tradeverify.db.compat import GUID, JSONType
from tradeverify.db.engine import Base


def _genuuid():
    return uuid.uuid4()


# ──────────────────────────────────────────────────────────────────────────────
# Organization (aggregate root)
# ──────────────────────────────────────────────────────────────────────────────


class Organization(Base):
    """
    A registered trading party (buyer, seller, logistics provider).

    Invariant: is_onboarding_locked is true only while kyc_status is
    SUBMITTED or APPROVED.
    """

    __tablename__ = "organizations"
    __table_args__ = (
        Index("ix_organizations_role", "role"),
        Index("ix_organizations_owner_user_id", "owner_user_id", unique=True),
        Index("ix_organizations_kyc_status", "kyc_status"),
        CheckConstraint(
            "NOT is_onboarding_locked OR kyc_status IN ('SUBMITTED', 'APPROVED')",
            name="ck_organizations_lock",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=_genuuid)
    org_code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    legal_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    owner_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(GUID())

    # Tax identifiers, denormalized from org_kyc for uniqueness lookups
    gstin: Mapped[Optional[str]] = mapped_column(String(15), unique=True)
    pan: Mapped[Optional[str]] = mapped_column(String(10), unique=True)

    # Disclosure snapshot
    org_kyc: Mapped[Optional[dict]] = mapped_column(JSONType())
    primary_bank_account: Mapped[Optional[dict]] = mapped_column(JSONType())
    compliance: Mapped[Optional[dict]] = mapped_column(JSONType())
    buyer_preferences: Mapped[Optional[dict]] = mapped_column(JSONType())
    catalog: Mapped[Optional[dict]] = mapped_column(JSONType())
    fleet_and_compliance: Mapped[Optional[dict]] = mapped_column(JSONType())

    # Workflow state
    completed_steps: Mapped[list] = mapped_column(JSONType(), nullable=False, default=list)
    kyc_status: Mapped[str] = mapped_column(String(30), nullable=False, default="DRAFT")
    is_onboarding_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)
    kyc_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    kyc_approved_by: Mapped[Optional[str]] = mapped_column(String(64))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="ACTIVE")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    cases: Mapped[list["VerificationCase"]] = relationship(back_populates="organization")


# ──────────────────────────────────────────────────────────────────────────────
# VerificationCase (append-mostly)
# ──────────────────────────────────────────────────────────────────────────────


class VerificationCase(Base):
    """
    One submission attempt for an organization.

    submitted_data is frozen at creation. Only status, activity_log and
    the review fields change afterwards. activity_log is append-only.
    """

    __tablename__ = "verification_cases"
    __table_args__ = (
        UniqueConstraint("organization_id", "submission_attempt", name="uq_case_org_attempt"),
        Index("ix_verification_cases_status", "status"),
        Index("ix_verification_cases_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=_genuuid)
    case_code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("organizations.id"), nullable=False, index=True
    )
    submission_attempt: Mapped[int] = mapped_column(Integer, nullable=False)
    submitted_data: Mapped[dict] = mapped_column(JSONType(), nullable=False, default=dict)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="SUBMITTED")
    activity_log: Mapped[list] = mapped_column(JSONType(), nullable=False, default=list)

    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(64))
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    organization: Mapped["Organization"] = relationship(back_populates="cases")
