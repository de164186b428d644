"""
JWT Token Management.

HS256 bearer tokens carrying the marketplace identity:
user_id, role (buyer | seller | logistics | admin), email.
Token issuance belongs to the identity service; create_access_token
exists for local tooling and tests.
"""

from datetime import datetime, timedelta

from jose import JWTError, jwt

from tradeverify.config import settings

REQUIRED_CLAIMS = ("user_id", "role")


class TokenError(Exception):
    """Raised when token creation or validation fails."""

    pass


def create_access_token(
    user_id: str,
    role: str,
    email: str = "",
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_access_token_expire_minutes)

    now = datetime.utcnow()
    payload = {
        "user_id": str(user_id),
        "role": role,
        "email": email,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    """
    Decode and validate a JWT access token.

    Returns the payload dict with user_id, role, email.
    Raises TokenError on any failure.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as e:
        raise TokenError(f"Invalid token: {e}") from e
    missing = [claim for claim in REQUIRED_CLAIMS if not payload.get(claim)]
    if missing:
        raise TokenError(f"Token missing required claims: {', '.join(missing)}")
    return payload
