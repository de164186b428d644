"""
TradeVerify — FastAPI Application.

Entry point for the verification API server.
Run: uvicorn tradeverify.main:app --host 0.0.0.0 --port 8002 --reload

  - PUT  /api/v1/onboarding/{step}         ← trading parties fill in disclosure steps
  - POST /api/v1/onboarding/submit         ← submit for review
  - GET  /api/v1/admin/review/queue        ← reviewer queue
  - POST /api/v1/admin/review/case/{id}/*  ← reviewer decisions
  - GET  /health, /ready                   ← probes
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text as sa_text

from tradeverify.api.routers.onboarding import router as onboarding_router
from tradeverify.api.routers.review import router as review_router
from tradeverify.config import settings
from tradeverify.db.engine import close_db, get_engine, init_db
from tradeverify.exceptions import register_exception_handlers
from tradeverify.middleware.authentication import AuthenticationMiddleware
from tradeverify.middleware.error_handler import ErrorHandlerMiddleware
from tradeverify.middleware.request_context import RequestContextMiddleware


def configure_logging() -> None:
    """structlog over stdlib logging; JSON in production, console otherwise."""
    logging.basicConfig(format="%(message)s", level=settings.log_level.upper())
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if settings.log_format == "json"
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — startup and shutdown."""
    logger.info("tradeverify_starting", version=settings.app_version, environment=settings.environment)
    await init_db()
    yield
    await close_db()
    logger.info("tradeverify_shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="TradeVerify",
        description=(
            "# TradeVerify — Organization Verification\n\n"
            "Step-gated onboarding, versioned verification cases and the "
            "admin review queue for a B2B trading marketplace.\n\n"
            "## Authentication\n"
            "All endpoints (except /health, /ready) require "
            "`Authorization: Bearer <JWT>`. Admin review routes require the admin role.\n"
        ),
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_tags=[
            {"name": "health", "description": "Liveness and readiness probes"},
            {"name": "onboarding", "description": "Disclosure steps, progress and submission"},
            {"name": "admin-review", "description": "Verification queue, case detail and decisions"},
        ],
    )

    register_exception_handlers(app)

    # ── Middleware (last added = outermost) ───────────────────────────
    app.add_middleware(AuthenticationMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)

    # CORS outermost so OPTIONS preflight is handled before auth
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Routes ────────────────────────────────────────────────────────
    app.include_router(onboarding_router)
    app.include_router(review_router)

    @app.get("/health", tags=["health"])
    async def health():
        """Liveness probe. Does not check dependencies."""
        return {
            "status": "ok",
            "version": settings.app_version,
            "service": "tradeverify",
        }

    @app.get("/ready", tags=["health"])
    async def readiness():
        """Readiness probe: 200 if the database answers, 503 otherwise."""
        checks: dict = {"api": "ok"}
        try:
            async with get_engine().connect() as conn:
                await asyncio.wait_for(
                    conn.execute(sa_text("SELECT 1")),
                    timeout=settings.health_check_timeout_seconds,
                )
            checks["database"] = "ok"
        except Exception as e:
            logger.warning("readiness_database_unavailable", error=str(e))
            checks["database"] = "unavailable"

        db_ok = checks["database"] == "ok"
        return JSONResponse(
            status_code=200 if db_ok else 503,
            content={
                "status": "ok" if db_ok else "unavailable",
                "version": settings.app_version,
                "service": "tradeverify",
                "environment": settings.environment,
                "checks": checks,
                "timestamp": datetime.utcnow().isoformat(),
            },
        )

    return app


app = create_app()
