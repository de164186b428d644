"""
Bearer Authentication Middleware.

Decodes the JWT on every non-public request and attaches the caller's
identity to request.state (user_id, user_role, user_email). Role checks
happen in the route dependencies.
"""

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from tradeverify.auth.jwt import TokenError, decode_token

logger = structlog.get_logger(__name__)

# Paths that bypass authentication
PUBLIC_PATHS = frozenset({
    "/health",
    "/ready",
    "/docs",
    "/openapi.json",
    "/redoc",
})


def _unauthorized(message: str) -> Response:
    return JSONResponse(
        status_code=401,
        content={"error": {"kind": "Unauthorized", "code": "E4010", "message": message, "details": {}}},
    )


class AuthenticationMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path

        # CORS preflight is answered by CORSMiddleware
        if request.method == "OPTIONS":
            return await call_next(request)

        if path in PUBLIC_PATHS or path.rstrip("/") in PUBLIC_PATHS:
            return await call_next(request)

        token = self._extract_token(request)
        if not token:
            return _unauthorized("Missing authentication token")

        try:
            payload = decode_token(token)
        except TokenError as e:
            logger.warning("auth_failed", error=str(e), path=path)
            return _unauthorized("Invalid or expired token")

        request.state.user_id = payload["user_id"]
        request.state.user_role = payload["role"]
        request.state.user_email = payload.get("email", "")
        structlog.contextvars.bind_contextvars(user_id=payload["user_id"])

        return await call_next(request)

    def _extract_token(self, request: Request) -> str | None:
        auth = request.headers.get("Authorization", "")
        if auth.startswith("Bearer "):
            return auth[7:]
        return None
