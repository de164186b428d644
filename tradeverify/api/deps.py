"""
FastAPI dependencies for API routes.

Re-exports auth dependencies for convenience.
"""

from tradeverify.auth.dependencies import get_db, get_trading_role, get_user_id, require_admin

__all__ = ["get_db", "get_trading_role", "get_user_id", "require_admin"]
