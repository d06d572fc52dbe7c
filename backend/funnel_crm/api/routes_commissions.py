import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security.utils import get_authorization_scheme_param
from sqlalchemy.ext.asyncio import AsyncSession

from funnel_crm.api.admin_auth import AdminIdentity, require_admin
from funnel_crm.dependencies import get_app_settings, get_db_session
from funnel_crm.domain.commissions import (
    CommissionStatusSummary,
    ForceReleaseResult,
    ReleaseResult,
    force_release_commission,
    get_commission_status,
    release_eligible_commissions,
)
from funnel_crm.domain.commissions.schemas import ScheduledReleaseResponse
from funnel_crm.settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter()


def require_cron_secret(
    request: Request, app_settings: Settings = Depends(get_app_settings)
) -> None:
    scheme, token = get_authorization_scheme_param(request.headers.get("Authorization"))
    expected = app_settings.cron_secret
    if expected and scheme.lower() == "bearer" and secrets.compare_digest(token, expected):
        return
    logger.warning("commission_release_unauthorized", extra={"extra": {"path": request.url.path}})
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )


@router.get("/v1/admin/commissions/status", response_model=CommissionStatusSummary)
async def commission_status(
    session: AsyncSession = Depends(get_db_session),
    _identity: AdminIdentity = Depends(require_admin),
) -> CommissionStatusSummary:
    return await get_commission_status(session)


@router.post("/v1/admin/commissions/release", response_model=ReleaseResult)
async def release_commissions(
    session: AsyncSession = Depends(get_db_session),
    identity: AdminIdentity = Depends(require_admin),
) -> ReleaseResult:
    result = await release_eligible_commissions(session)
    logger.info(
        "commission_release_manual",
        extra={"extra": {"admin": identity.username, "released_count": result.released_count}},
    )
    return result


@router.post(
    "/v1/admin/commissions/{commission_id}/force-release", response_model=ForceReleaseResult
)
async def force_release(
    commission_id: str,
    session: AsyncSession = Depends(get_db_session),
    identity: AdminIdentity = Depends(require_admin),
) -> ForceReleaseResult:
    result = await force_release_commission(session, commission_id)
    logger.info(
        "commission_force_release_requested",
        extra={"extra": {"admin": identity.username, "commission_id": commission_id}},
    )
    return result


@router.get("/v1/cron/release-commissions", response_model=ScheduledReleaseResponse)
async def scheduled_release(
    session: AsyncSession = Depends(get_db_session),
    app_settings: Settings = Depends(get_app_settings),
    _authorized: None = Depends(require_cron_secret),
) -> ScheduledReleaseResponse:
    result = await release_eligible_commissions(session)
    if result.released_count:
        message = f"Automatically released {result.released_count} commissions"
    else:
        message = "No commissions ready for automatic release"
    return ScheduledReleaseResponse(
        **result.model_dump(),
        message=message,
        hold_days=app_settings.commission_hold_days,
    )
