"""FastAPI dependencies shared by the API routes."""

from datetime import datetime
from functools import lru_cache

from fastapi import Depends, HTTPException, Request

from geoscore.auth.service import AuthService, ClientInfo
from geoscore.auth.tokens import TokenError, decode_access_token
from geoscore.config import Settings, get_settings
from geoscore.db.models import Brand, User
from geoscore.db.repository import Repository
from geoscore.integrations import Integrations, get_integrations
from geoscore.middleware.rate_limit import client_ip
from geoscore.pipeline.jobs import JobRegistry
from geoscore.utils.logging import log_security_event

AUTH_COOKIE = "auth_token"
SESSION_COOKIE = "session_token"


@lru_cache
def get_repository() -> Repository:
    repository = Repository()
    repository.create_tables()
    return repository


@lru_cache
def get_job_registry() -> JobRegistry:
    return JobRegistry()


def get_integrations_dependency() -> Integrations:
    return get_integrations()


def get_auth_service(
    repository: Repository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    return AuthService(repository, settings)


def get_client_info(request: Request, settings: Settings = Depends(get_settings)) -> ClientInfo:
    return ClientInfo(
        ip_address=client_ip(request, settings.trust_proxy),
        user_agent=request.headers.get("user-agent"),
    )


def _token_from_request(request: Request) -> str | None:
    token = request.cookies.get(AUTH_COOKIE)
    if token:
        return token
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


def require_auth(
    request: Request,
    repository: Repository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
) -> User:
    """
    Resolve the signed-in user.

    The JWT comes from the ``auth_token`` cookie or a Bearer header. When a
    ``session_token`` cookie is sent it must name an active, unexpired
    session, whose last activity is then moved forward.
    """
    ip_address = client_ip(request, settings.trust_proxy)
    token = _token_from_request(request)
    if not token:
        log_security_event("auth_missing_token", ip_address=ip_address, path=request.url.path)
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_access_token(token, settings)
    except TokenError as e:
        log_security_event("auth_invalid_session", ip_address=ip_address, path=request.url.path, reason=str(e))
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    session_token = request.cookies.get(SESSION_COOKIE)
    if session_token:
        session = repository.get_user_session(session_token)
        if (
            session is None
            or not session.is_active
            or session.expires_at < datetime.utcnow()
            or session.user_id != payload["sub"]
        ):
            log_security_event(
                "auth_invalid_session_token",
                ip_address=ip_address,
                path=request.url.path,
                user_id=payload["sub"],
            )
            raise HTTPException(status_code=401, detail="Session expired or revoked")
        repository.touch_user_session(session.id)

    user = repository.get_user(payload["sub"])
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")

    return user


def require_admin(
    request: Request,
    user: User = Depends(require_auth),
    settings: Settings = Depends(get_settings),
) -> User:
    if not user.is_admin:
        log_security_event(
            "admin_access_denied",
            ip_address=client_ip(request, settings.trust_proxy),
            path=request.url.path,
            user_id=user.id,
        )
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def ensure_brand_access(brand: Brand | None, user: User) -> Brand:
    """Brands of other users look exactly like missing ones."""
    if brand is None or (brand.user_id != user.id and not user.is_admin):
        raise HTTPException(status_code=404, detail="Brand not found")
    return brand


def get_owned_brand(
    brand_id: str,
    user: User = Depends(require_auth),
    repository: Repository = Depends(get_repository),
) -> Brand:
    return ensure_brand_access(repository.get_brand(brand_id), user)
