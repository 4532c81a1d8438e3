"""Accounts, sessions and sign-in."""

from geoscore.auth.email import EmailResult, EmailSender
from geoscore.auth.google import GoogleOAuthClient, GoogleProfile
from geoscore.auth.passwords import generate_otp, generate_session_token, hash_password, verify_password
from geoscore.auth.service import AuthError, AuthService, AuthSession, ClientInfo
from geoscore.auth.tokens import TokenError, create_access_token, decode_access_token

__all__ = [
    "AuthError",
    "AuthService",
    "AuthSession",
    "ClientInfo",
    "EmailResult",
    "EmailSender",
    "GoogleOAuthClient",
    "GoogleProfile",
    "TokenError",
    "create_access_token",
    "decode_access_token",
    "generate_otp",
    "generate_session_token",
    "hash_password",
    "verify_password",
]
