"""Security utilities for JWT access tokens and OAuth state."""

from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt

from wealth_crm.core.config import settings


OAUTH_STATE_AUDIENCE = "outlook-oauth"
OAUTH_STATE_TTL_MINUTES = 10


# =============================================================================
# Access Token (JWT in Authorization header)
# =============================================================================

def create_access_token(
    user_id: UUID,
    role: str,
    token_version: int,
    expires_hours: int | None = None,
) -> str:
    """
    Create signed access JWT.

    Always signs with current secret (JWT_SECRET).
    Token contains user identity, role and revocation version.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "role": role,
        "token_version": token_version,
        "iat": now,
        "exp": now + timedelta(hours=expires_hours or settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_access_token(token: str) -> dict:
    """
    Decode and verify access JWT.

    Tries current secret first, then previous (for rotation support).

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore


# =============================================================================
# OAuth State (signed, short-lived)
# =============================================================================

def create_oauth_state(user_id: UUID) -> str:
    """Sign an OAuth state value bound to the initiating user."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "aud": OAUTH_STATE_AUDIENCE,
        "iat": now,
        "exp": now + timedelta(minutes=OAUTH_STATE_TTL_MINUTES),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def verify_oauth_state(state: str, user_id: UUID) -> bool:
    """Return True when the state was issued for this user and has not expired."""
    try:
        payload = jwt.decode(
            state,
            settings.JWT_SECRET,
            algorithms=["HS256"],
            audience=OAUTH_STATE_AUDIENCE,
        )
    except jwt.InvalidTokenError:
        return False
    return payload.get("sub") == str(user_id)
