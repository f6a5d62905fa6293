"""
Operator tokens for the admin endpoints.

A token is an HS256 JWT with ``sub`` (operator username), ``iat`` and ``exp``
claims. There is no server-side revocation: expiry is the only way a token
stops being valid.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import jwt

from wa_admin.config import Settings

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
BEARER_PREFIX = "Bearer "


@dataclass
class TokenCheck:
    valid: bool
    username: Optional[str] = None
    error: Optional[str] = None


def credentials_match(username: Optional[str], password: Optional[str], settings: Settings) -> bool:
    """Exact, case-sensitive compare against the configured operator account."""
    if not settings.ADMIN_USERNAME or not settings.ADMIN_PASSWORD:
        logger.warning("Operator account is not configured")
        return False
    return username == settings.ADMIN_USERNAME and password == settings.ADMIN_PASSWORD


def issue_token(username: str, settings: Settings, now: Optional[float] = None) -> str:
    issued_at = int(now if now is not None else time.time())
    payload = {
        "sub": username,
        "iat": issued_at,
        "exp": issued_at + settings.AUTH_TOKEN_TTL_HOURS * 3600,
    }
    return jwt.encode(payload, settings.token_signing_key, algorithm=JWT_ALGORITHM)


def validate_bearer(authorization: Optional[str], settings: Settings, now: Optional[float] = None) -> TokenCheck:
    """
    Validate a raw ``Authorization`` header value.

    Valid only when the header carries a bearer token with a good signature,
    the check happens strictly before ``exp`` and ``sub`` is the configured
    operator.
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return TokenCheck(valid=False, error="No token provided")

    token = authorization[len(BEARER_PREFIX):].strip()
    try:
        # exp is compared below so callers can pass an explicit clock
        payload = jwt.decode(
            token,
            settings.token_signing_key,
            algorithms=[JWT_ALGORITHM],
            options={"verify_exp": False, "verify_iat": False, "require": ["exp", "sub"]},
        )
    except jwt.PyJWTError as e:
        logger.info(f"Rejected token: {e}")
        return TokenCheck(valid=False, error="Invalid or expired token")

    current = now if now is not None else time.time()
    if current >= payload["exp"]:
        return TokenCheck(valid=False, error="Invalid or expired token")

    if not settings.ADMIN_USERNAME or payload["sub"] != settings.ADMIN_USERNAME:
        return TokenCheck(valid=False, error="Invalid or expired token")

    return TokenCheck(valid=True, username=payload["sub"])
