"""VerificationCase repository — latest-case derivation lives here."""

import uuid
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tradeverify.db.models import VerificationCase


class VerificationCaseRepository:
    """Reads and writes for VerificationCase records."""

    async def get_by_id(self, db: AsyncSession, id: uuid.UUID) -> Optional[VerificationCase]:
        result = await db.execute(select(VerificationCase).where(VerificationCase.id == id))
        return result.scalar_one_or_none()

    async def get_by_id_for_update(self, db: AsyncSession, id: uuid.UUID) -> Optional[VerificationCase]:
        result = await db.execute(
            select(VerificationCase).where(VerificationCase.id == id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_with_organization(self, db: AsyncSession, id: uuid.UUID) -> Optional[VerificationCase]:
        result = await db.execute(
            select(VerificationCase)
            .options(selectinload(VerificationCase.organization))
            .where(VerificationCase.id == id)
        )
        return result.scalar_one_or_none()

    async def get_latest(self, db: AsyncSession, organization_id: uuid.UUID) -> Optional[VerificationCase]:
        """Latest case = highest submission_attempt. Always derived, never cached."""
        result = await db.execute(
            select(VerificationCase)
            .where(VerificationCase.organization_id == organization_id)
            .order_by(VerificationCase.submission_attempt.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def count_for_organization(self, db: AsyncSession, organization_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(VerificationCase)
            .where(VerificationCase.organization_id == organization_id)
        )
        return result.scalar_one()

    async def list_for_organization(
        self, db: AsyncSession, organization_id: uuid.UUID
    ) -> Sequence[VerificationCase]:
        result = await db.execute(
            select(VerificationCase)
            .where(VerificationCase.organization_id == organization_id)
            .order_by(VerificationCase.submission_attempt.desc())
        )
        return result.scalars().all()

    async def latest_case_ids_page(
        self,
        db: AsyncSession,
        status: Optional[str],
        offset: int,
        limit: int,
    ) -> list[uuid.UUID]:
        """
        Most recently created case per organization, one page of groups.

        The status filter applies before grouping: with a filter, each
        organization contributes its newest case *in that status*.
        """
        stmt = select(
            VerificationCase.id.label("case_id"),
            VerificationCase.created_at.label("created_at"),
            func.row_number()
            .over(
                partition_by=VerificationCase.organization_id,
                order_by=(
                    VerificationCase.created_at.desc(),
                    VerificationCase.submission_attempt.desc(),
                ),
            )
            .label("rn"),
        )
        if status:
            stmt = stmt.where(VerificationCase.status == status)
        ranked = stmt.subquery()

        page = (
            select(ranked.c.case_id)
            .where(ranked.c.rn == 1)
            .order_by(ranked.c.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await db.execute(page)
        return list(result.scalars().all())

    async def get_many_with_organization(
        self, db: AsyncSession, ids: Sequence[uuid.UUID]
    ) -> list[VerificationCase]:
        """Hydrate cases + organizations, preserving the order of ids."""
        if not ids:
            return []
        result = await db.execute(
            select(VerificationCase)
            .options(selectinload(VerificationCase.organization))
            .where(VerificationCase.id.in_(list(ids)))
        )
        by_id = {c.id: c for c in result.scalars().all()}
        return [by_id[i] for i in ids if i in by_id]

    async def add(self, db: AsyncSession, case: VerificationCase) -> VerificationCase:
        db.add(case)
        await db.flush()
        await db.refresh(case)
        return case

    async def save(self, db: AsyncSession, case: VerificationCase) -> VerificationCase:
        await db.flush()
        return case


case_repo = VerificationCaseRepository()
