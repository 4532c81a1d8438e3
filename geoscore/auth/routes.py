"""Routes under ``/api/auth``."""

import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from geoscore.auth.dependencies import (
    AUTH_COOKIE,
    SESSION_COOKIE,
    get_auth_service,
    get_client_info,
    require_auth,
)
from geoscore.auth.google import GoogleOAuthClient
from geoscore.auth.service import AuthError, AuthService, AuthSession, ClientInfo
from geoscore.clients.base import APIError
from geoscore.config import Settings, get_settings
from geoscore.db.models import User
from geoscore.middleware.rate_limit import auth_rate_limit
from geoscore.models.schemas import (
    EmailOnlyRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    UserOut,
    VerifyEmailRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

OAUTH_STATE_COOKIE = "oauth_state"
COOKIE_MAX_AGE = 7 * 24 * 60 * 60


def user_payload(user: User) -> dict:
    return {"user": UserOut.model_validate(user).model_dump(by_alias=True)}


def _cookie_options(settings: Settings) -> dict:
    return {
        "httponly": True,
        "secure": settings.is_production,
        "samesite": "lax",
        "max_age": COOKIE_MAX_AGE,
        "path": "/",
    }


def set_auth_cookies(response: Response, session: AuthSession, settings: Settings) -> None:
    options = _cookie_options(settings)
    response.set_cookie(AUTH_COOKIE, session.auth_token, **options)
    response.set_cookie(SESSION_COOKIE, session.session_token, **options)


def clear_auth_cookies(response: Response) -> None:
    response.delete_cookie(AUTH_COOKIE, path="/")
    response.delete_cookie(SESSION_COOKIE, path="/")


def _raise(error: AuthError) -> None:
    raise HTTPException(status_code=error.status_code, detail=error.to_dict())


def _frontend(settings: Settings, path: str) -> str:
    return f"{settings.frontend_url.rstrip('/')}{path}"


@router.post("/signup", status_code=201, dependencies=[Depends(auth_rate_limit)])
async def signup(body: SignupRequest, service: AuthService = Depends(get_auth_service)):
    try:
        user = service.signup(body.first_name, body.last_name, body.email, body.phone, body.password)
    except AuthError as e:
        _raise(e)

    return {
        "message": "Account created. Please check your email for the verification code.",
        "email": user.email,
        "needsVerification": True,
    }


@router.post("/verify-email", dependencies=[Depends(auth_rate_limit)])
async def verify_email(
    body: VerifyEmailRequest,
    service: AuthService = Depends(get_auth_service),
    client: ClientInfo = Depends(get_client_info),
    settings: Settings = Depends(get_settings),
):
    try:
        session = service.verify_email(body.email, body.code, client)
    except AuthError as e:
        _raise(e)

    response = JSONResponse({"message": "Email verified successfully", **user_payload(session.user)})
    set_auth_cookies(response, session, settings)
    return response


@router.post("/resend-otp", dependencies=[Depends(auth_rate_limit)])
async def resend_otp(body: EmailOnlyRequest, service: AuthService = Depends(get_auth_service)):
    try:
        service.resend_otp(body.email)
    except AuthError as e:
        _raise(e)
    return {"message": "Verification code sent"}


@router.post("/login", dependencies=[Depends(auth_rate_limit)])
async def login(
    body: LoginRequest,
    service: AuthService = Depends(get_auth_service),
    client: ClientInfo = Depends(get_client_info),
    settings: Settings = Depends(get_settings),
):
    try:
        session = service.login(body.email, body.password, client)
    except AuthError as e:
        _raise(e)

    response = JSONResponse(user_payload(session.user))
    set_auth_cookies(response, session, settings)
    return response


@router.post("/forgot-password", dependencies=[Depends(auth_rate_limit)])
async def forgot_password(body: EmailOnlyRequest, service: AuthService = Depends(get_auth_service)):
    return {"message": service.forgot_password(body.email)}


@router.post("/reset-password", dependencies=[Depends(auth_rate_limit)])
async def reset_password(body: ResetPasswordRequest, service: AuthService = Depends(get_auth_service)):
    try:
        service.reset_password(body.email, body.code, body.new_password)
    except AuthError as e:
        _raise(e)
    return {"message": "Password reset successfully"}


@router.get("/me")
async def me(user: User = Depends(require_auth)):
    return user_payload(user)


@router.post("/logout")
async def logout(
    request: Request,
    service: AuthService = Depends(get_auth_service),
    client: ClientInfo = Depends(get_client_info),
    settings: Settings = Depends(get_settings),
):
    """Always succeeds, even without a valid session."""
    user_id = None
    try:
        user_id = require_auth(request, service.repository, settings).id
    except HTTPException:
        pass

    service.logout(request.cookies.get(SESSION_COOKIE), user_id, client)

    response = JSONResponse({"message": "Logged out successfully"})
    clear_auth_cookies(response)
    return response


def google_redirect(settings: Settings) -> RedirectResponse:
    """Send the browser to Google's consent screen, or to sign-in when OAuth is off."""
    if not settings.google_oauth_configured:
        return RedirectResponse(_frontend(settings, "/auth/signin"), status_code=302)

    state = secrets.token_urlsafe(24)
    response = RedirectResponse(GoogleOAuthClient(settings).authorization_url(state), status_code=302)
    response.set_cookie(
        OAUTH_STATE_COOKIE,
        state,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=600,
        path="/",
    )
    return response


@router.get("/google")
async def google_login(settings: Settings = Depends(get_settings)):
    return google_redirect(settings)


@router.get("/google/callback")
async def google_callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    service: AuthService = Depends(get_auth_service),
    client: ClientInfo = Depends(get_client_info),
    settings: Settings = Depends(get_settings),
):
    def fail(reason: str) -> RedirectResponse:
        response = RedirectResponse(_frontend(settings, f"/auth/login?error={reason}"), status_code=302)
        response.delete_cookie(OAUTH_STATE_COOKIE, path="/")
        return response

    if error or not code:
        return fail("google_auth_failed")

    expected_state = request.cookies.get(OAUTH_STATE_COOKIE)
    if not expected_state or not state or not secrets.compare_digest(expected_state, state):
        log_reason = "missing" if not expected_state else "mismatch"
        logger.warning(f"Google OAuth state {log_reason}")
        return fail("invalid_state")

    oauth = GoogleOAuthClient(settings)
    try:
        profile = await oauth.authenticate(code)
    except APIError as e:
        logger.error(f"Google OAuth exchange failed: {e}")
        return fail("google_auth_failed")
    finally:
        await oauth.close()

    session = service.google_login(profile, client)
    user = session.user
    if session.is_new_user or not user.onboarding_completed:
        target = "/onboarding"
    else:
        target = "/dashboard"

    response = RedirectResponse(_frontend(settings, target), status_code=302)
    set_auth_cookies(response, session, settings)
    response.delete_cookie(OAUTH_STATE_COOKIE, path="/")
    return response
