"""
Admin Review API Endpoints.

GET  /api/v1/admin/review/queue                        — latest case per organization
GET  /api/v1/admin/review/case/{case_id}               — detail with auto-checks and risk
POST /api/v1/admin/review/case/{case_id}/approve
POST /api/v1/admin/review/case/{case_id}/reject
POST /api/v1/admin/review/case/{case_id}/request-info
POST /api/v1/admin/review/case/{case_id}/unlock
POST /api/v1/admin/review/case/{case_id}/watchlist
GET  /api/v1/admin/review/history/{organization_id}    — all cases, newest first

All routes require the admin role.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tradeverify.api.deps import get_db, require_admin
from tradeverify.verification.queue import queue_service
from tradeverify.verification.review import review_service
from tradeverify.verification.schemas import (
    ApproveRequest,
    CaseDetail,
    CaseHistory,
    QueuePage,
    RejectRequest,
    RequestInfoRequest,
    ReviewActionResult,
    UnlockRequest,
    WatchlistRequest,
)

router = APIRouter(
    prefix="/api/v1/admin/review",
    tags=["admin-review"],
    dependencies=[Depends(require_admin)],
)


@router.get("/queue", response_model=QueuePage)
async def get_queue(
    status: Optional[str] = Query(default=None),
    role: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    db: AsyncSession = Depends(get_db),
):
    return await queue_service.queue(db, status=status, role=role, search=search, page=page, limit=limit)


@router.get("/case/{case_id}", response_model=CaseDetail)
async def get_case(case_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await queue_service.case_detail(db, case_id)


@router.post("/case/{case_id}/approve", response_model=ReviewActionResult)
async def approve_case(
    case_id: uuid.UUID,
    body: Optional[ApproveRequest] = None,
    db: AsyncSession = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    return await review_service.approve(db, case_id, admin_id, remarks=body.remarks if body else None)


@router.post("/case/{case_id}/reject", response_model=ReviewActionResult)
async def reject_case(
    case_id: uuid.UUID,
    body: RejectRequest,
    db: AsyncSession = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    return await review_service.reject(db, case_id, admin_id, reason=body.reason)


@router.post("/case/{case_id}/request-info", response_model=ReviewActionResult)
async def request_info(
    case_id: uuid.UUID,
    body: RequestInfoRequest,
    db: AsyncSession = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    return await review_service.request_info(db, case_id, admin_id, message=body.message, fields=body.fields)


@router.post("/case/{case_id}/unlock", response_model=ReviewActionResult)
async def unlock_case(
    case_id: uuid.UUID,
    body: Optional[UnlockRequest] = None,
    db: AsyncSession = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    return await review_service.unlock_for_revision(db, case_id, admin_id, remarks=body.remarks if body else None)


@router.post("/case/{case_id}/watchlist", response_model=ReviewActionResult)
async def add_to_watchlist(
    case_id: uuid.UUID,
    body: WatchlistRequest,
    db: AsyncSession = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    return await review_service.add_to_watchlist(db, case_id, admin_id, reason=body.reason, tags=body.tags)


@router.get("/history/{organization_id}", response_model=CaseHistory)
async def get_history(organization_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await queue_service.history(db, organization_id)
