"""
Marketplace roles and the admin gate.

Trading roles (buyer, seller, logistics) complete onboarding; the admin
role reviews verification cases.
"""

from enum import StrEnum

import structlog
from fastapi import HTTPException, Request

logger = structlog.get_logger(__name__)


class MarketRole(StrEnum):
    BUYER = "buyer"
    SELLER = "seller"
    LOGISTICS = "logistics"
    ADMIN = "admin"

    @classmethod
    def from_str(cls, value: str | None) -> "MarketRole | None":
        """Case-insensitive lookup; None for unknown roles."""
        try:
            return cls((value or "").lower())
        except ValueError:
            return None

    @property
    def is_trading(self) -> bool:
        return self is not MarketRole.ADMIN


def _extract_role_from_request(request: Request) -> MarketRole | None:
    """Extract role from request.state (set by AuthenticationMiddleware)."""
    return MarketRole.from_str(getattr(request.state, "user_role", None))


def check_admin(request: Request) -> None:
    """
    Check that the current request is made by an admin.

    Raises HTTPException 403 if denied.
    """
    role = _extract_role_from_request(request)
    if role is not MarketRole.ADMIN:
        logger.warning(
            "admin_required",
            user_id=getattr(request.state, "user_id", "unknown"),
            role=role.value if role else None,
            path=request.url.path,
        )
        raise HTTPException(
            status_code=403,
            detail={
                "error": "insufficient_role",
                "required_role": MarketRole.ADMIN.value,
                "your_role": role.value if role else None,
            },
        )


def check_trading_role(request: Request) -> MarketRole:
    """Onboarding endpoints are for trading parties only."""
    role = _extract_role_from_request(request)
    if role is None or not role.is_trading:
        logger.warning(
            "trading_role_required",
            user_id=getattr(request.state, "user_id", "unknown"),
            role=getattr(request.state, "user_role", None),
            path=request.url.path,
        )
        raise HTTPException(
            status_code=403,
            detail={
                "error": "insufficient_role",
                "required_role": "buyer|seller|logistics",
                "your_role": role.value if role else None,
            },
        )
    return role
