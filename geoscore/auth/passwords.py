"""Password hashing and one-time codes."""

import secrets
from datetime import datetime, timedelta

import bcrypt

BCRYPT_ROUNDS = 12
OTP_VALIDITY = timedelta(minutes=10)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check a password; accounts without a password never match."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored hash is not a bcrypt hash
        return False


def generate_otp() -> str:
    """Random 6-digit code."""
    return str(100000 + secrets.randbelow(900000))


def otp_expiry(now: datetime | None = None) -> datetime:
    return (now or datetime.utcnow()) + OTP_VALIDITY


def generate_session_token() -> str:
    """64 hex characters from 32 random bytes."""
    return secrets.token_hex(32)
