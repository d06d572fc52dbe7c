import logging
from dataclasses import dataclass

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasicCredentials
from fastapi.security.utils import get_authorization_scheme_param

from funnel_crm.api.admin_auth import authenticate_admin_credentials, security
from funnel_crm.dependencies import get_app_settings
from funnel_crm.domain.timeline.schemas import TimelineViewer
from funnel_crm.infra.auth import CLOSER_TOKEN_ROLE, create_closer_token, decode_access_token
from funnel_crm.infra.logging import update_log_context
from funnel_crm.settings import Settings

logger = logging.getLogger(__name__)

CLOSER_TOKEN_COOKIE = "closerToken"


@dataclass
class CloserIdentity:
    closer_id: str
    email: str | None = None


def issue_closer_token(closer_id: str, app_settings: Settings, email: str | None = None) -> str:
    return create_closer_token(
        closer_id,
        secret=app_settings.auth_secret_key,
        ttl_minutes=app_settings.closer_token_ttl_minutes,
        email=email,
    )


def _token_from_request(request: Request) -> str | None:
    scheme, token = get_authorization_scheme_param(request.headers.get("Authorization"))
    if scheme.lower() == "bearer" and token:
        return token
    return request.cookies.get(CLOSER_TOKEN_COOKIE) or None


def resolve_closer_identity(request: Request, app_settings: Settings) -> CloserIdentity | None:
    token = _token_from_request(request)
    if not token:
        return None
    try:
        payload = decode_access_token(token, app_settings.auth_secret_key)
    except jwt.ExpiredSignatureError:
        logger.info("closer_token_expired")
        return None
    except jwt.InvalidTokenError:
        logger.info("closer_token_invalid")
        return None
    closer_id = payload.get("sub")
    if payload.get("role") != CLOSER_TOKEN_ROLE or not closer_id:
        return None
    return CloserIdentity(closer_id=str(closer_id), email=payload.get("email"))


async def require_timeline_viewer(
    request: Request,
    credentials: HTTPBasicCredentials | None = Depends(security),
    app_settings: Settings = Depends(get_app_settings),
) -> TimelineViewer:
    admin_identity = authenticate_admin_credentials(credentials, app_settings)
    if admin_identity is not None:
        request.state.admin_identity = admin_identity
        update_log_context(role="admin", auth_method=admin_identity.auth_method)
        return TimelineViewer.admin()

    closer_identity = resolve_closer_identity(request, app_settings)
    if closer_identity is not None:
        request.state.closer_identity = closer_identity
        update_log_context(role="closer", auth_method="closer_token")
        return TimelineViewer.closer(closer_identity.closer_id)

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
        headers={"WWW-Authenticate": "Bearer"},
    )
