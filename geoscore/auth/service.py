"""
Account flows: sign-up with email verification, password login with lockout,
password reset, Google sign-in and logout.

Every method raises ``AuthError`` with the HTTP status the API should answer
with; the routes only translate it and set cookies.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from geoscore.auth.email import EmailSender
from geoscore.auth.google import GoogleProfile
from geoscore.auth.passwords import (
    generate_otp,
    generate_session_token,
    hash_password,
    otp_expiry,
    verify_password,
)
from geoscore.auth.tokens import create_access_token
from geoscore.config import Settings, get_settings
from geoscore.db.models import User
from geoscore.db.repository import Repository
from geoscore.utils.logging import log_security_event

logger = logging.getLogger(__name__)

MAX_FAILED_LOGINS = 3
FAILED_LOGIN_WINDOW = timedelta(minutes=15)
LOCKOUT_DURATION = timedelta(minutes=30)
FORGOT_PASSWORD_MESSAGE = "If an account exists with this email, a password reset code has been sent"


class AuthError(Exception):
    """An auth failure with the status code and any extra body fields."""

    def __init__(self, status_code: int, message: str, **extra: Any):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, **self.extra}


@dataclass
class ClientInfo:
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass
class AuthSession:
    """What a successful login hands back to the route."""

    user: User
    auth_token: str
    session_token: str
    is_new_user: bool = False


class AuthService:
    def __init__(
        self,
        repository: Repository,
        settings: Settings | None = None,
        email_sender: EmailSender | None = None,
    ):
        self.repository = repository
        self.settings = settings or get_settings()
        self.email_sender = email_sender or EmailSender(self.settings)

    # ------------------------------------------------------------------
    # Sign-up and verification
    # ------------------------------------------------------------------

    def signup(
        self,
        first_name: str,
        last_name: str,
        email: str,
        phone: str,
        password: str,
    ) -> User:
        """
        Create an unverified account and email a verification code.

        An existing unverified account is overwritten with the new details
        and gets a fresh code.
        """
        existing = self.repository.get_user_by_email(email)
        if existing and existing.email_verified:
            raise AuthError(409, "An account with this email already exists")

        code = generate_otp()
        fields = {
            "first_name": first_name,
            "last_name": last_name,
            "phone": phone,
            "password_hash": hash_password(password),
            "verification_code": code,
            "verification_expiry": otp_expiry(),
        }

        if existing:
            user = self.repository.update_user(existing.id, **fields)
        else:
            user = self.repository.create_user(
                email=email,
                email_verified=False,
                auth_provider="email",
                **fields,
            )

        self.email_sender.send_verification_code(user.email, code)
        logger.info(f"Signup started for {user.email}")
        return user

    def verify_email(self, email: str, code: str, client: ClientInfo | None = None) -> AuthSession:
        user = self.repository.get_user_by_email(email)
        if user is None:
            raise AuthError(404, "User not found")
        if user.email_verified:
            raise AuthError(400, "Email already verified")
        if user.verification_code != code:
            raise AuthError(400, "Invalid verification code")
        if not user.verification_expiry or user.verification_expiry < datetime.utcnow():
            raise AuthError(400, "Verification code has expired")

        user = self.repository.update_user(
            user.id,
            email_verified=True,
            verification_code=None,
            verification_expiry=None,
        )
        logger.info(f"Email verified for {user.email}")
        return self._start_session(user, client or ClientInfo())

    def resend_otp(self, email: str) -> None:
        user = self.repository.get_user_by_email(email)
        if user is None:
            raise AuthError(404, "User not found")
        if user.email_verified:
            raise AuthError(400, "Email already verified")

        code = generate_otp()
        self.repository.update_user(user.id, verification_code=code, verification_expiry=otp_expiry())
        self.email_sender.send_verification_code(user.email, code)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str, password: str, client: ClientInfo | None = None) -> AuthSession:
        """
        Check credentials and open a session.

        Raises:
            AuthError: 401 for bad credentials, 403 for a locked or
                unverified account
        """
        client = client or ClientInfo()
        now = datetime.utcnow()
        user = self.repository.get_user_by_email(email)

        if user and user.locked_until and user.locked_until > now:
            minutes = max(1, int((user.locked_until - now).total_seconds() // 60) + 1)
            self._record_attempt(email, False, client, "account_locked")
            self._security_event(
                "login_attempt_locked_account",
                "warning",
                user.id,
                client,
                {"locked_until": user.locked_until.isoformat()},
            )
            raise AuthError(
                403,
                "Account locked",
                message=f"Account is temporarily locked. Try again in {minutes} minutes.",
                locked_until=user.locked_until.isoformat(),
            )

        if user is None:
            self._record_attempt(email, False, client, "user_not_found")
            raise AuthError(401, "Invalid email or password")

        if not verify_password(password, user.password_hash):
            self._record_attempt(email, False, client, "invalid_password")
            failed = self.repository.count_failed_logins(email, now - FAILED_LOGIN_WINDOW)

            if failed >= MAX_FAILED_LOGINS:
                locked_until = now + LOCKOUT_DURATION
                self.repository.update_user(
                    user.id,
                    account_locked=True,
                    locked_until=locked_until,
                    failed_login_attempts=failed,
                )
                self._security_event(
                    "account_locked",
                    "warning",
                    user.id,
                    client,
                    {"failed_attempts": failed, "lock_duration": "30 minutes"},
                )
                raise AuthError(
                    403,
                    "Account locked",
                    message="Too many failed login attempts. Account locked for 30 minutes.",
                )

            self._security_event("failed_login", "info", user.id, client, {"failed_attempts": failed})
            raise AuthError(
                401,
                "Invalid email or password",
                attempts_remaining=max(0, MAX_FAILED_LOGINS - (failed + 1)),
            )

        if not user.email_verified:
            code = generate_otp()
            self.repository.update_user(user.id, verification_code=code, verification_expiry=otp_expiry())
            self.email_sender.send_verification_code(user.email, code)
            raise AuthError(
                403,
                "Email not verified",
                needs_verification=True,
                email=user.email,
            )

        self._record_attempt(email, True, client)
        user = self.repository.update_user(
            user.id,
            account_locked=False,
            locked_until=None,
            failed_login_attempts=0,
            last_login_at=now,
            last_login_ip=client.ip_address,
        )
        self._security_event("login_success", "info", user.id, client)
        return self._start_session(user, client)

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def forgot_password(self, email: str) -> str:
        """Send a reset code when the account exists. The reply never says which."""
        user = self.repository.get_user_by_email(email)
        if user is not None:
            code = generate_otp()
            self.repository.update_user(user.id, reset_code=code, reset_expiry=otp_expiry())
            self.email_sender.send_password_reset_code(user.email, code)
        else:
            logger.info(f"Password reset requested for unknown email {email}")
        return FORGOT_PASSWORD_MESSAGE

    def reset_password(self, email: str, code: str, new_password: str) -> None:
        user = self.repository.get_user_by_email(email)
        if user is None or user.reset_code != code:
            raise AuthError(400, "Invalid reset code")
        if not user.reset_expiry or user.reset_expiry < datetime.utcnow():
            raise AuthError(400, "Reset code has expired")

        self.repository.update_user(
            user.id,
            password_hash=hash_password(new_password),
            reset_code=None,
            reset_expiry=None,
            account_locked=False,
            locked_until=None,
            failed_login_attempts=0,
        )
        self._security_event("password_reset", "info", user.id, ClientInfo())

    # ------------------------------------------------------------------
    # Google sign-in
    # ------------------------------------------------------------------

    def google_login(self, profile: GoogleProfile, client: ClientInfo | None = None) -> AuthSession:
        """Link the Google account to an existing user or create one."""
        client = client or ClientInfo()
        is_new = False

        user = self.repository.get_user_by_google_id(profile.id)
        if user is None:
            user = self.repository.get_user_by_email(profile.email)
            if user is not None:
                user = self.repository.update_user(
                    user.id,
                    google_id=profile.id,
                    email_verified=True,
                    profile_image_url=user.profile_image_url or profile.picture,
                )
            else:
                user = self.repository.create_user(
                    email=profile.email,
                    first_name=profile.first_name,
                    last_name=profile.last_name,
                    google_id=profile.id,
                    auth_provider="google",
                    email_verified=True,
                    profile_image_url=profile.picture,
                )
                is_new = True

        user = self.repository.update_user(user.id, last_login_at=datetime.utcnow(), last_login_ip=client.ip_address)
        self._security_event("login_success", "info", user.id, client, {"provider": "google"})

        session = self._start_session(user, client)
        session.is_new_user = is_new
        return session

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def logout(self, session_token: str | None, user_id: str | None, client: ClientInfo | None = None) -> None:
        if session_token:
            self.repository.revoke_user_session(session_token, "logout")
        if user_id:
            self._security_event("logout", "info", user_id, client or ClientInfo())

    def _start_session(self, user: User, client: ClientInfo) -> AuthSession:
        session_token = generate_session_token()
        self.repository.create_user_session(
            user_id=user.id,
            session_token=session_token,
            expires_at=datetime.utcnow() + timedelta(days=self.settings.session_expiry_days),
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )
        return AuthSession(
            user=user,
            auth_token=create_access_token(user.id, user.email, self.settings),
            session_token=session_token,
        )

    def _record_attempt(
        self,
        email: str,
        success: bool,
        client: ClientInfo,
        failure_reason: str | None = None,
    ) -> None:
        self.repository.record_login_attempt(
            email,
            success,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
            failure_reason=failure_reason,
        )

    def _security_event(
        self,
        event_type: str,
        severity: str,
        user_id: str | None,
        client: ClientInfo,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.repository.record_security_event(
            event_type,
            severity=severity,
            user_id=user_id,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
            metadata=metadata,
        )
        log_security_event(event_type, user_id=user_id, ip_address=client.ip_address, **(metadata or {}))
