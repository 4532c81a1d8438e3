"""
Signed auth tokens for the ``auth_token`` cookie.

Tokens are HS256 JWTs signed with the session secret and carry the user's
id (``sub``) and email.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from jwt import PyJWTError

from geoscore.config import Settings, get_settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class TokenError(Exception):
    """Raised when a token is missing, malformed, expired or forged."""

    pass


def create_access_token(user_id: str, email: str, settings: Settings | None = None) -> str:
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "iat": now,
        "exp": now + timedelta(days=settings.jwt_expiry_days),
    }
    return jwt.encode(payload, settings.session_secret.get_secret_value(), algorithm=ALGORITHM)


def decode_access_token(token: str, settings: Settings | None = None) -> dict[str, Any]:
    """
    Verify a token and return its payload.

    Raises:
        TokenError: If the token is invalid, expired or lacks a subject
    """
    settings = settings or get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.session_secret.get_secret_value(),
            algorithms=[ALGORITHM],
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidSignatureError:
        raise TokenError("Invalid token signature")
    except jwt.DecodeError as e:
        raise TokenError(f"Token decode error: {e}")
    except PyJWTError as e:
        raise TokenError(f"Token validation error: {e}")

    if not payload.get("sub"):
        raise TokenError("Token missing 'sub' claim (user ID)")

    return payload
