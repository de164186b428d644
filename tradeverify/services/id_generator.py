"""
Identifier Generator — human-readable codes for organizations and cases.

Organization code: {NAME_PREFIX}-{4 digits}      e.g. ABCS-1234
Case code:         KYC-{ORG_CODE}-{ATTEMPT:03d}  e.g. KYC-ABCS-1234-001
"""

import re
import secrets
import time
from typing import Awaitable, Callable, Optional

import structlog

from tradeverify.config import settings

logger = structlog.get_logger(__name__)

_CASE_CODE_RE = re.compile(r"^KYC-(.+)-(\d{3})$")

CodeExists = Callable[[str], Awaitable[bool]]


def org_code_prefix(legal_name: str) -> str:
    """First four letters of the legal name, upper-cased, padded with ORG."""
    prefix = re.sub(r"[^a-zA-Z]", "", legal_name or "").upper()[:4]
    if len(prefix) < 3:
        prefix = (prefix + "ORG")[:4]
    return prefix


def _random_suffix() -> int:
    return 1000 + secrets.randbelow(9000)  # 1000-9999


async def generate_org_code(
    legal_name: str,
    exists: CodeExists,
    max_retries: Optional[int] = None,
) -> str:
    """
    Generate an organization code not yet taken according to ``exists``.

    After ``max_retries`` collisions, falls back to the last six digits of
    the current time in milliseconds.
    """
    prefix = org_code_prefix(legal_name)
    retries = settings.org_code_max_retries if max_retries is None else max_retries

    for _ in range(retries):
        org_code = f"{prefix}-{_random_suffix()}"
        if not await exists(org_code):
            return org_code

    fallback = f"{prefix}-{str(int(time.time() * 1000))[-6:]}"
    logger.warning("org_code_fallback", prefix=prefix, retries=retries, org_code=fallback)
    return fallback


def generate_case_code(org_code: str, submission_attempt: int) -> str:
    return f"KYC-{org_code}-{submission_attempt:03d}"


def parse_case_code(case_code: str) -> tuple[Optional[str], int]:
    """Split a case code into (org_code, attempt); (None, 0) if malformed."""
    match = _CASE_CODE_RE.match(case_code or "")
    if not match:
        return None, 0
    return match.group(1), int(match.group(2))
