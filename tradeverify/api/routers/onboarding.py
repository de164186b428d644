"""
Onboarding API — step-by-step disclosure for trading parties.

PUT  /api/v1/onboarding/{step}   — save one step (org-kyc, bank-details, ...)
GET  /api/v1/onboarding/progress — completed / required / next step
GET  /api/v1/onboarding/data     — full profile
POST /api/v1/onboarding/submit   — submit for verification
"""

import uuid
from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tradeverify.api.deps import get_db, get_trading_role, get_user_id
from tradeverify.auth.rbac import MarketRole
from tradeverify.onboarding.engine import onboarding_engine, profile_summary
from tradeverify.onboarding.schemas import OnboardingProgress, ProfileSummary
from tradeverify.verification.case_service import case_service
from tradeverify.verification.schemas import SubmissionResult

router = APIRouter(prefix="/api/v1/onboarding", tags=["onboarding"])


@router.get("/progress", response_model=OnboardingProgress)
async def get_progress(
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_user_id),
    role: MarketRole = Depends(get_trading_role),
):
    return await onboarding_engine.get_progress(db, role=role.value, user_id=user_id)


@router.get("/data", response_model=ProfileSummary)
async def get_onboarding_data(
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_user_id),
    role: MarketRole = Depends(get_trading_role),
):
    """Full organization profile for the caller."""
    return await onboarding_engine.get_onboarding_data(db, user_id=user_id)


@router.post("/submit", response_model=SubmissionResult)
async def submit_onboarding(
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_user_id),
    role: MarketRole = Depends(get_trading_role),
):
    """Submit completed onboarding; creates or resubmits a verification case."""
    return await case_service.submit(db, user_id=user_id)


@router.put("/{step}", response_model=ProfileSummary)
async def write_step(
    step: str,
    payload: dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db),
    user_id: uuid.UUID = Depends(get_user_id),
    role: MarketRole = Depends(get_trading_role),
):
    """Save one disclosure step. The payload shape depends on the step."""
    org = await onboarding_engine.write_step(db, step, payload, role=role.value, user_id=user_id)
    return profile_summary(org)
