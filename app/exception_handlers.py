from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional, List, Union

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.errors import AppError
from dbadmin.errors.exceptions import DbAdminError
from dbadmin.errors.mapper import map_error

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str:
    return request.headers.get("X-Request-ID") or str(uuid.uuid4())


def error_response(
    request: Request,
    *,
    status: int,
    code: str,
    message: str,
    retryable: bool = False,
    details: Optional[Union[List[str], Dict[str, Any]]] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    request_id = _request_id(request)
    payload = {
        "error": {
            "code": code,
            "message": message,
            "details": details,
            "retryable": retryable,
            "request_id": request_id,
            "extra": extra or {},
        }
    }

    headers = {"X-Request-ID": request_id}
    if retryable:
        headers["Retry-After"] = "2"

    return JSONResponse(status_code=status, content=payload, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers for the FastAPI application."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return error_response(
            request,
            status=getattr(exc, "http_status", 500),
            code=getattr(exc, "code", "app_error"),
            message=getattr(exc, "message", str(exc)),
            retryable=bool(getattr(exc, "retryable", False)),
            details=getattr(exc, "details", None),
            extra=getattr(exc, "extra", {}) or {},
        )

    @app.exception_handler(DbAdminError)
    async def db_admin_error_handler(
        request: Request, exc: DbAdminError
    ) -> JSONResponse:
        status, retryable = map_error(exc.code)
        if status >= 500:
            logger.warning(
                "Request failed",
                extra={"path": request.url.path, "code": exc.code.value, "error": exc.message},
            )
        return error_response(
            request,
            status=status,
            code=exc.code.value,
            message=exc.message,
            retryable=retryable,
            details=exc.details,
            extra=exc.extra,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = [
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in exc.errors()
        ]
        return error_response(
            request,
            status=400,
            code="bad_request",
            message="Invalid request payload",
            details=details,
        )
