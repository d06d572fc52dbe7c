import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from starlette.middleware.base import BaseHTTPMiddleware

from funnel_crm.api.problem_details import (
    PROBLEM_TYPE_SERVER,
    domain_problem,
    http_problem,
    problem_details,
    validation_problem,
)
from funnel_crm.api.routes_commissions import router as commissions_router
from funnel_crm.api.routes_health import router as health_router
from funnel_crm.api.routes_leads import router as leads_router
from funnel_crm.domain.errors import DomainError
from funnel_crm.infra.db import create_db_engine, create_session_factory
from funnel_crm.infra.logging import clear_log_context, configure_logging, update_log_context
from funnel_crm.settings import Settings, settings

logger = logging.getLogger(__name__)


def _resolve_log_identity(request: Request) -> dict[str, str]:
    context: dict[str, str] = {}
    admin_identity = getattr(request.state, "admin_identity", None)
    closer_identity = getattr(request.state, "closer_identity", None)
    if admin_identity:
        context["role"] = "admin"
        context["user_id"] = str(admin_identity.username)
        context["auth_method"] = str(admin_identity.auth_method)
    elif closer_identity:
        context["role"] = "closer"
        context["user_id"] = str(closer_identity.closer_id)
        context["auth_method"] = "closer_token"
    return context


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable):
        logger = logging.getLogger("funnel_crm.request")
        start = time.time()
        request_id = getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID")
        if not request_id:
            request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        update_log_context(request_id=request_id, method=request.method, path=request.url.path)

        response = None
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            identity_context = _resolve_log_identity(request)
            update_log_context(status_code=status_code, **identity_context)
            latency_ms = int((time.time() - start) * 1000)
            update_log_context(latency_ms=latency_ms)
            logger.info("request", extra={"latency_ms": latency_ms})
            if response is not None:
                response.headers.setdefault("X-Request-ID", request_id)
            clear_log_context()


def create_app(app_settings: Settings) -> FastAPI:
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.app_settings = getattr(app.state, "app_settings", None) or app_settings
        owned_engine = None
        if getattr(app.state, "db_session_factory", None) is None:
            owned_engine = create_db_engine(app.state.app_settings)
            app.state.db_session_factory = create_session_factory(owned_engine)
        yield
        if owned_engine is not None:
            await owned_engine.dispose()
            app.state.db_session_factory = None

    app = FastAPI(title="Funnel CRM", version="1.0.0", lifespan=lifespan)

    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return validation_problem(request, exc)

    @app.exception_handler(DomainError)
    async def domain_exception_handler(request: Request, exc: DomainError):
        return domain_problem(request, exc)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return http_problem(request, exc)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        identity_context = _resolve_log_identity(request)
        request_id = getattr(request.state, "request_id", None)
        error_type = type(exc).__name__
        update_log_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status_code=500,
            error_type=error_type,
            **identity_context,
        )
        logger.exception(
            "unhandled_exception",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "error_type": error_type,
                **identity_context,
            },
        )
        return problem_details(
            request=request,
            status=500,
            title="Internal Server Error",
            detail="Unexpected error",
            type_=PROBLEM_TYPE_SERVER,
        )

    app.include_router(health_router)
    app.include_router(leads_router)
    app.include_router(commissions_router)
    return app


app = create_app(settings)
