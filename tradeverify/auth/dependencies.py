"""
FastAPI dependencies for database sessions and caller identity.

Identity comes from request.state, populated by AuthenticationMiddleware.
"""

import uuid
from typing import AsyncGenerator

from fastapi import HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tradeverify.auth.rbac import MarketRole, check_admin, check_trading_role
from tradeverify.db.engine import get_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide an async DB session for one request.

    Commits when the handler returns, rolls back on any exception.
    """
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_user_id(request: Request) -> uuid.UUID:
    """Extract user_id from request state."""
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise HTTPException(status_code=401, detail="Missing user context")
    try:
        return uuid.UUID(str(user_id))
    except ValueError:
        raise HTTPException(status_code=401, detail="Malformed user id") from None


def get_trading_role(request: Request) -> MarketRole:
    """Caller role for onboarding endpoints (buyer, seller, logistics)."""
    return check_trading_role(request)


def require_admin(request: Request) -> str:
    """Gate admin endpoints; returns the admin's user id for the audit trail."""
    check_admin(request)
    return str(getattr(request.state, "user_id", "") or "admin")
