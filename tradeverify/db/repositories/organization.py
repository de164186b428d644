"""Organization repository."""

import uuid
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tradeverify.db.models import Organization


class OrganizationRepository:
    """Reads and writes for the Organization aggregate."""

    async def get_by_id(self, db: AsyncSession, id: uuid.UUID) -> Optional[Organization]:
        result = await db.execute(select(Organization).where(Organization.id == id))
        return result.scalar_one_or_none()

    async def get_by_id_for_update(self, db: AsyncSession, id: uuid.UUID) -> Optional[Organization]:
        """Get with a row lock (ignored by SQLite) for read-modify-write."""
        result = await db.execute(
            select(Organization).where(Organization.id == id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_owner(self, db: AsyncSession, user_id: uuid.UUID) -> Optional[Organization]:
        """One organization per owner (unique index on owner_user_id)."""
        result = await db.execute(select(Organization).where(Organization.owner_user_id == user_id))
        return result.scalar_one_or_none()

    async def code_exists(self, db: AsyncSession, org_code: str) -> bool:
        result = await db.execute(
            select(Organization.id).where(Organization.org_code == org_code).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def find_by_tax_id(
        self,
        db: AsyncSession,
        field: str,
        value: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> Optional[Organization]:
        """Find another organization holding the given gstin/pan."""
        column = getattr(Organization, field)
        stmt = select(Organization).where(column == value)
        if exclude_id is not None:
            stmt = stmt.where(Organization.id != exclude_id)
        result = await db.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def find_same_name(
        self,
        db: AsyncSession,
        legal_name: str,
        role: str,
        statuses: Iterable[str],
        exclude_id: uuid.UUID,
    ) -> Optional[Organization]:
        """Case-insensitive legal name match within a role and status set."""
        result = await db.execute(
            select(Organization)
            .where(
                func.lower(Organization.legal_name) == legal_name.lower(),
                Organization.role == role,
                Organization.kyc_status.in_(list(statuses)),
                Organization.id != exclude_id,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def count(self, db: AsyncSession, role: Optional[str] = None) -> int:
        stmt = select(func.count()).select_from(Organization)
        if role:
            stmt = stmt.where(Organization.role == role)
        result = await db.execute(stmt)
        return result.scalar_one()

    async def add(self, db: AsyncSession, org: Organization) -> Organization:
        db.add(org)
        await db.flush()
        await db.refresh(org)
        return org

    async def save(self, db: AsyncSession, org: Organization) -> Organization:
        await db.flush()
        return org


organization_repo = OrganizationRepository()
