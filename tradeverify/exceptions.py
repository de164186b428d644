"""
Verification Exceptions Module.

One exception class per error kind the core can raise:
- NotFound          organization / case id unknown
- Locked            edit attempted while onboarding is locked
- RoleMismatch      step not available for the caller's role
- Conflict          duplicate unique identifier
- InvalidArgument   missing or malformed input
- InvalidTransition case not in the required source state

All of them are terminal and user-facing. Nothing here is retried;
the HTTP layer renders them as 4xx with the kind and message.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

import structlog
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError

logger = structlog.get_logger(__name__)


# ============================================================================
# ERROR CODES
# ============================================================================


class ErrorKind(str, Enum):
    """Error taxonomy exposed to API clients."""

    NOT_FOUND = "NotFound"
    LOCKED = "Locked"
    ROLE_MISMATCH = "RoleMismatch"
    CONFLICT = "Conflict"
    INVALID_ARGUMENT = "InvalidArgument"
    INVALID_TRANSITION = "InvalidTransition"
    INTERNAL = "Internal"


class ErrorCode(str, Enum):
    """Stable error codes for client handling."""

    INTERNAL_ERROR = "E1000"
    INVALID_ARGUMENT = "E1001"
    NOT_FOUND = "E1002"
    CONFLICT = "E1003"

    ONBOARDING_LOCKED = "E2000"
    ROLE_MISMATCH = "E2001"
    MISSING_STEPS = "E2002"

    INVALID_TRANSITION = "E3000"


# ============================================================================
# ERROR RESPONSE MODEL
# ============================================================================


class ErrorDetail(BaseModel):
    kind: str
    code: str
    message: str
    details: Dict[str, Any] = {}


class ErrorResponse(BaseModel):
    """Unified error body for every VerificationError."""

    error: ErrorDetail
    request_id: Optional[str] = None
    timestamp: Optional[str] = None


# ============================================================================
# BASE EXCEPTION
# ============================================================================


class VerificationError(Exception):
    """Base exception for the verification core."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        return ErrorResponse(
            error=ErrorDetail(
                kind=self.kind.value,
                code=self.code.value,
                message=self.message,
                details=self.details,
            ),
            request_id=request_id,
            timestamp=datetime.utcnow().isoformat(),
        )


# ============================================================================
# SPECIFIC EXCEPTIONS
# ============================================================================


class NotFoundError(VerificationError):
    """Organization or case not found."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            code=ErrorCode.NOT_FOUND,
            status_code=404,
            details={"resource": resource, "identifier": str(identifier)},
        )


class OnboardingLockedError(VerificationError):
    """Disclosure edit or submission attempted while onboarding is locked."""

    kind = ErrorKind.LOCKED

    def __init__(self, kyc_status: str):
        super().__init__(
            message=(
                f"Cannot edit onboarding. Current status: {kyc_status}. "
                "Onboarding can only be edited while it is not under review or approved."
            ),
            code=ErrorCode.ONBOARDING_LOCKED,
            status_code=403,
            details={"kyc_status": kyc_status},
        )


class RoleMismatchError(VerificationError):
    """Step is only available for a different marketplace role."""

    kind = ErrorKind.ROLE_MISMATCH

    def __init__(self, step: str, required_role: str, actual_role: str):
        super().__init__(
            message=f"Step '{step}' is only available for {required_role} users",
            code=ErrorCode.ROLE_MISMATCH,
            status_code=403,
            details={"step": step, "required_role": required_role, "role": actual_role},
        )


class ConflictError(VerificationError):
    """Duplicate unique identifier."""

    kind = ErrorKind.CONFLICT

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            code=ErrorCode.CONFLICT,
            status_code=409,
            details=details,
        )


class InvalidArgumentError(VerificationError):
    """Missing or malformed input."""

    kind = ErrorKind.INVALID_ARGUMENT

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.INVALID_ARGUMENT,
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=400,
            details=details,
        )


class MissingStepsError(InvalidArgumentError):
    """Submission attempted before every required step was completed."""

    def __init__(self, missing_steps: list[str]):
        self.missing_steps = list(missing_steps)
        super().__init__(
            message=f"Missing steps: {', '.join(missing_steps)}",
            details={"missing_steps": self.missing_steps},
            code=ErrorCode.MISSING_STEPS,
        )


class InvalidTransitionError(VerificationError):
    """Case or organization is not in the required source state."""

    kind = ErrorKind.INVALID_TRANSITION

    def __init__(self, action: str, current_status: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Cannot {action} a case in status {current_status}",
            code=ErrorCode.INVALID_TRANSITION,
            status_code=409,
            details={"action": action, "current_status": current_status},
        )


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================


async def verification_exception_handler(
    request: Request,
    exc: VerificationError,
) -> JSONResponse:
    """Render a VerificationError as its 4xx response."""
    request_id = getattr(request.state, "request_id", None)

    logger.warning(
        "verification_error",
        kind=exc.kind.value,
        error_code=exc.code.value,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
    )

    response = exc.to_response(request_id=request_id)
    return JSONResponse(
        status_code=exc.status_code,
        content=response.model_dump(),
    )


async def request_validation_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Malformed request bodies and query parameters are InvalidArgument."""
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return await verification_exception_handler(
        request,
        InvalidArgumentError("Invalid request", details={"errors": errors}),
    )


async def integrity_error_handler(
    request: Request,
    exc: IntegrityError,
) -> JSONResponse:
    """A unique constraint that fired at commit is a Conflict."""
    return await verification_exception_handler(
        request,
        ConflictError("Resource conflicts with an existing record"),
    )


def register_exception_handlers(app) -> None:
    """Register exception handlers with FastAPI app."""
    app.add_exception_handler(VerificationError, verification_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
