"""Google OAuth 2.0 authorization-code client."""

from typing import Any
from urllib.parse import urlencode

from pydantic import BaseModel

from geoscore.clients.base import APIError, BaseAPIClient
from geoscore.config import Settings, get_settings

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
SCOPES = "openid email profile"


class GoogleProfile(BaseModel):
    id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    picture: str | None = None


class GoogleOAuthClient(BaseAPIClient):
    """Builds the consent URL, exchanges codes and reads the user profile."""

    service = "Google OAuth"

    def __init__(self, settings: Settings | None = None):
        settings = settings or get_settings()
        super().__init__(base_url="https://oauth2.googleapis.com", settings=settings)
        self.client_id = settings.google_client_id
        self.client_secret = settings.google_client_secret.get_secret_value()
        self.redirect_uri = settings.google_callback_url

    def _get_default_headers(self) -> dict[str, str]:
        return {"Accept": "application/json"}

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": SCOPES,
            "state": state,
            "access_type": "online",
            "prompt": "select_account",
        }
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> dict[str, Any]:
        """Trade an authorization code for tokens."""
        response = await self.client.post(
            TOKEN_URL,
            data={
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
            },
        )
        return self._handle_response(response)

    async def get_profile(self, access_token: str) -> GoogleProfile:
        return await self.fetch(
            "GET",
            USERINFO_URL,
            self._parse_profile,
            context="profile lookup",
            headers={"Authorization": f"Bearer {access_token}"},
        )

    @staticmethod
    def _parse_profile(data: dict[str, Any]) -> GoogleProfile:
        if not data.get("email"):
            raise APIError("Google profile has no email", response_data=data)

        return GoogleProfile(
            id=data["sub"],
            email=data["email"],
            first_name=data.get("given_name", ""),
            last_name=data.get("family_name", ""),
            picture=data.get("picture"),
        )

    async def authenticate(self, code: str) -> GoogleProfile:
        tokens = await self.exchange_code(code)
        access_token = tokens.get("access_token")
        if not access_token:
            raise APIError("Google token response has no access_token", response_data=tokens)
        return await self.get_profile(access_token)
