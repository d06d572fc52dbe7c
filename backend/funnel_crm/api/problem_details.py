"""RFC 7807 problem responses for the funnel API."""

import uuid
from http import HTTPStatus
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from funnel_crm.domain.errors import DomainError

PROBLEM_MEDIA_TYPE = "application/problem+json"
PROBLEM_TYPE_BASE = "https://example.com/problems/"
PROBLEM_TYPE_VALIDATION = PROBLEM_TYPE_BASE + "validation-error"
PROBLEM_TYPE_DOMAIN = PROBLEM_TYPE_BASE + "domain-error"
PROBLEM_TYPE_SERVER = PROBLEM_TYPE_BASE + "server-error"

_TYPE_BY_STATUS: dict[int, str] = {
    401: PROBLEM_TYPE_BASE + "unauthorized",
    403: PROBLEM_TYPE_BASE + "forbidden",
    404: PROBLEM_TYPE_BASE + "not-found",
    409: PROBLEM_TYPE_BASE + "invalid-state",
    422: PROBLEM_TYPE_VALIDATION,
}

# Location prefixes FastAPI adds to request validation errors.
_LOCATION_PREFIXES = {"body", "query", "path", "header", "cookie"}


def problem_type_for(status_code: int) -> str:
    if status_code >= 500:
        return PROBLEM_TYPE_SERVER
    return _TYPE_BY_STATUS.get(status_code, PROBLEM_TYPE_DOMAIN)


def _request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID")
    request_id = request_id or str(uuid.uuid4())
    request.state.request_id = request_id
    return request_id


def _status_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def problem_details(
    request: Request,
    *,
    status: int,
    title: str | None,
    detail: str,
    errors: list[dict[str, Any]] | None = None,
    type_: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    request_id = _request_id(request)
    response = JSONResponse(
        status_code=status,
        content={
            "type": type_ or problem_type_for(status),
            "title": title or _status_phrase(status),
            "status": status,
            "detail": detail,
            "request_id": request_id,
            "errors": errors or [],
        },
        headers=headers,
        media_type=PROBLEM_MEDIA_TYPE,
    )
    response.headers.setdefault("X-Request-ID", request_id)
    return response


def validation_field(location: tuple[Any, ...] | list[Any]) -> str:
    """Dotted field path of a validation error, without its request location."""
    parts = [str(part) for part in location if part not in _LOCATION_PREFIXES]
    return ".".join(parts) or "body"


def validation_problem(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": validation_field(error.get("loc", ())), "message": error.get("msg", "Invalid value")}
        for error in exc.errors()
    ]
    return problem_details(
        request,
        status=422,
        title="Validation Error",
        detail="Request validation failed",
        errors=errors,
        type_=PROBLEM_TYPE_VALIDATION,
    )


def domain_problem(request: Request, exc: DomainError) -> JSONResponse:
    return problem_details(
        request,
        status=exc.status,
        title=exc.title,
        detail=exc.detail,
        errors=exc.errors,
        type_=exc.type,
    )


def http_problem(request: Request, exc: HTTPException) -> JSONResponse:
    # Route handlers raise HTTPException with short machine-readable details.
    if isinstance(exc.detail, str):
        title, detail = exc.detail, exc.detail
    else:
        title, detail = None, "Request failed"
    return problem_details(
        request,
        status=exc.status_code,
        title=title,
        detail=detail,
        headers=exc.headers,
    )
