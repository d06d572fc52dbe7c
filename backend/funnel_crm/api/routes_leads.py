import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from funnel_crm.api.admin_auth import AdminIdentity, require_admin
from funnel_crm.api.closer_auth import require_timeline_viewer
from funnel_crm.dependencies import get_app_settings, get_db_session
from funnel_crm.domain.leads.export import render_leads_csv
from funnel_crm.domain.leads.schemas import (
    DateRange,
    LeadListResponse,
    LeadScope,
    LeadStatusResponse,
)
from funnel_crm.domain.leads.service import (
    calculate_leads,
    get_lead_status,
    get_lead_statuses,
    summarize_lead,
)
from funnel_crm.domain.timeline.schemas import TimelineResponse, TimelineViewer
from funnel_crm.domain.timeline.service import compose_timeline
from funnel_crm.settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter()


def lead_scope_from_query(
    affiliate_id: str | None = Query(default=None),
    affiliate_code: str | None = Query(default=None),
    date_range: DateRange | None = Query(default=None),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    quiz_type: str | None = Query(default=None),
    app_settings: Settings = Depends(get_app_settings),
) -> LeadScope:
    try:
        return LeadScope(
            affiliate_id=affiliate_id,
            affiliate_code=affiliate_code,
            date_range=date_range or app_settings.default_lead_date_range,
            start_date=start_date,
            end_date=end_date,
            quiz_type=quiz_type,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_date_range") from exc


@router.get("/v1/admin/leads", response_model=LeadListResponse)
async def list_leads(
    scope: LeadScope = Depends(lead_scope_from_query),
    session: AsyncSession = Depends(get_db_session),
    _identity: AdminIdentity = Depends(require_admin),
) -> LeadListResponse:
    result = await calculate_leads(session, scope)
    statuses = await get_lead_statuses(session, [lead.id for lead in result.leads])
    return LeadListResponse(
        total_leads=result.total_leads,
        all_completed_sessions=result.all_completed_sessions,
        lead_conversion_rate=result.lead_conversion_rate,
        leads=[summarize_lead(lead, statuses.get(lead.id)) for lead in result.leads],
    )


@router.get("/v1/admin/leads/export")
async def export_leads(
    scope: LeadScope = Depends(lead_scope_from_query),
    session: AsyncSession = Depends(get_db_session),
    _identity: AdminIdentity = Depends(require_admin),
) -> Response:
    result = await calculate_leads(session, scope)
    statuses = await get_lead_statuses(session, [lead.id for lead in result.leads])
    logger.info("leads_exported", extra={"extra": {"count": result.total_leads}})
    return Response(
        content=render_leads_csv(result.leads, statuses),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=leads.csv"},
    )


@router.get("/v1/admin/leads/{session_id}/status", response_model=LeadStatusResponse)
async def lead_status(
    session_id: str,
    session: AsyncSession = Depends(get_db_session),
    _identity: AdminIdentity = Depends(require_admin),
) -> LeadStatusResponse:
    info = await get_lead_status(session, session_id)
    return LeadStatusResponse(session_id=session_id, **info.model_dump())


@router.get("/v1/leads/{session_id}/activities", response_model=TimelineResponse)
async def lead_activities(
    session_id: str,
    session: AsyncSession = Depends(get_db_session),
    viewer: TimelineViewer = Depends(require_timeline_viewer),
) -> TimelineResponse:
    return await compose_timeline(session, session_id, viewer)
