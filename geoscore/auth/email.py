"""
Transactional email via Resend.

Without an API key nothing is sent and the code is written to the log, so
local sign-ups still work.
"""

import logging
from dataclasses import dataclass

import resend

from geoscore.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class EmailResult:
    """Result of email delivery."""

    success: bool
    message_id: str | None = None
    error: str | None = None


class EmailSender:
    FROM_NAME = "GeoScore"

    def __init__(self, settings: Settings | None = None):
        settings = settings or get_settings()
        self.api_key = settings.resend_api_key.get_secret_value()
        self.from_email = settings.email_from

        if self.api_key:
            resend.api_key = self.api_key
        else:
            logger.warning("RESEND_API_KEY not set - email delivery disabled")

    def send_verification_code(self, to_email: str, code: str) -> EmailResult:
        return self._send_code(
            to_email,
            code,
            subject="Verify your GeoScore account",
            intro="Your verification code is:",
        )

    def send_password_reset_code(self, to_email: str, code: str) -> EmailResult:
        return self._send_code(
            to_email,
            code,
            subject="Reset your GeoScore password",
            intro="Your password reset code is:",
        )

    def _send_code(self, to_email: str, code: str, subject: str, intro: str) -> EmailResult:
        if not self.api_key:
            logger.warning(f"Email not configured. Not sent to {to_email}. Code: {code}")
            return EmailResult(success=False, error="Email delivery not configured (missing API key)")

        html = (
            f"<p>{intro} <strong>{code}</strong></p>"
            "<p>This code expires in 10 minutes.</p>"
        )

        try:
            response = resend.Emails.send(
                {
                    "from": f"{self.FROM_NAME} <{self.from_email}>",
                    "to": [to_email],
                    "subject": subject,
                    "html": html,
                }
            )
            logger.info(f"Email sent to {to_email}: {response.get('id', 'unknown')}")
            return EmailResult(success=True, message_id=response.get("id"))

        except Exception as e:
            logger.error(f"Email delivery failed: {e}")
            return EmailResult(success=False, error=str(e))
