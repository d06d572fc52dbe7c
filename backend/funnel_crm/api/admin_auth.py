import logging
import secrets
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from funnel_crm.dependencies import get_app_settings
from funnel_crm.infra.logging import update_log_context
from funnel_crm.settings import Settings

logger = logging.getLogger(__name__)

ADMIN_IDENTITY_SOURCE_BASIC = "basic"


@dataclass
class AdminIdentity:
    username: str
    auth_method: str = ADMIN_IDENTITY_SOURCE_BASIC


security = HTTPBasic(auto_error=False)


def _build_auth_exception(detail: str = "Invalid authentication") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Basic"},
    )


def authenticate_admin_credentials(
    credentials: HTTPBasicCredentials | None, app_settings: Settings
) -> AdminIdentity | None:
    username = app_settings.admin_basic_username
    password = app_settings.admin_basic_password
    if not credentials or not username or not password:
        return None
    if secrets.compare_digest(credentials.username, username) and secrets.compare_digest(
        credentials.password, password
    ):
        return AdminIdentity(username=credentials.username)
    return None


async def require_admin(
    request: Request,
    credentials: HTTPBasicCredentials | None = Depends(security),
    app_settings: Settings = Depends(get_app_settings),
) -> AdminIdentity:
    identity = authenticate_admin_credentials(credentials, app_settings)
    if identity is None:
        logger.info(
            "admin_auth_failed",
            extra={
                "extra": {
                    "path": request.url.path,
                    "has_credentials": credentials is not None,
                }
            },
        )
        raise _build_auth_exception()
    request.state.admin_identity = identity
    update_log_context(role="admin", auth_method=identity.auth_method)
    return identity
