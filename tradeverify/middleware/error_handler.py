"""
Global Error Handler Middleware.

Catches every exception that escaped the route-level handlers and returns
a generic JSON body with an error_id for correlation with server logs.
Never includes stack traces, database errors or internal paths.
"""

import traceback
import uuid

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from tradeverify.config import settings

logger = structlog.get_logger(__name__)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Outermost middleware."""

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            error_id = str(uuid.uuid4())

            logger.error(
                "unhandled_exception",
                error_id=error_id,
                path=request.url.path,
                method=request.method,
                error=str(exc),
                traceback=traceback.format_exc(),
            )

            body: dict = {
                "error": {
                    "kind": "Internal",
                    "code": "E1000",
                    "message": "An internal error occurred. Please try again later.",
                    "details": {},
                },
                "error_id": error_id,
                "request_id": getattr(request.state, "request_id", None),
            }
            if settings.debug:
                body["debug_hint"] = type(exc).__name__

            return JSONResponse(status_code=500, content=body)
