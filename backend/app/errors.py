"""Problem-details (RFC 7807 style) error responses for every failure path.

Every body carries ``type, title, status, detail, instance`` plus the stable
``code`` of the domain error and the request id echoed in ``X-Request-ID``.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import DomainException

logger = logging.getLogger(__name__)

PROBLEM_TYPE_BASE = "/problems/"

_TITLES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
    503: "Service Unavailable",
}


def _problem(
    request: Request,
    *,
    status: int,
    detail: Optional[str] = None,
    code: Optional[str] = None,
    errors: Optional[Any] = None,
) -> Dict[str, Any]:
    problem: Dict[str, Any] = {
        "type": f"{PROBLEM_TYPE_BASE}{code.lower()}" if code else "about:blank",
        "title": _TITLES.get(status, "Error"),
        "status": status,
        "detail": detail or "",
        "instance": request.url.path,
    }
    if code:
        problem["code"] = code
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        problem["request_id"] = request_id
    if errors:
        problem["errors"] = jsonable_encoder(errors)
    return problem


def _split_detail(detail: Any) -> tuple[Optional[str], Optional[str], Optional[Any]]:
    """(message, code, errors) from an HTTPException detail, which routes fill with DomainException.to_dict()."""
    if isinstance(detail, dict):
        code = detail.get("code") if isinstance(detail.get("code"), str) else None
        message = detail.get("message") or detail.get("detail")
        return (
            message if isinstance(message, str) else None,
            code,
            detail.get("details") or detail.get("errors"),
        )
    if detail is None:
        return None, None, None
    return str(detail), None, None


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message, code, errors = _split_detail(exc.detail)
        problem = _problem(request, status=exc.status_code, detail=message, code=code, errors=errors)
        return JSONResponse(problem, status_code=exc.status_code, headers=getattr(exc, "headers", None))

    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        http_exc = exc.to_http_exception()
        body = exc.to_dict()
        problem = _problem(
            request,
            status=exc.status_code,
            detail=body["message"],
            code=exc.code,
            errors=body["details"],
        )
        return JSONResponse(problem, status_code=exc.status_code, headers=http_exc.headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        problem = _problem(
            request,
            status=422,
            detail="Request validation failed",
            code="validation_error",
            errors=exc.errors(),
        )
        return JSONResponse(problem, status_code=422)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled error on %s",
            request.url.path,
            extra={"request_id": getattr(request.state, "request_id", None)},
        )
        problem = _problem(request, status=500, detail="Internal Server Error", code="internal_server_error")
        return JSONResponse(problem, status_code=500)
