from fastapi import Request

from funnel_crm.infra.db import get_db_session
from funnel_crm.settings import Settings, settings

__all__ = ["get_app_settings", "get_db_session"]


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "app_settings", None) or settings
