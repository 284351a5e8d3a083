from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ledgerhub.apps.api.response import error_response, is_versioned_request
from ledgerhub.core.errors import LedgerHubError, UnknownResource


logger = logging.getLogger(__name__)

_DEFAULT_ERROR_CODES: dict[int, str] = {
    400: "INVALID_REQUEST",
    401: "AUTH_UNAUTHORIZED",
    403: "AUTH_FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
}


def _default_code(status_code: int) -> str:
    return _DEFAULT_ERROR_CODES.get(status_code, "UNKNOWN_ERROR")


def _split_detail(detail: Any, status_code: int) -> tuple[str, str, dict[str, Any] | None]:
    # Extract code/message/details from FastAPI HTTPException detail payloads.
    if isinstance(detail, dict):
        code = str(detail.get("code") or _default_code(status_code))
        message = str(detail.get("message") or "Request failed")
        details = {k: v for k, v in detail.items() if k not in {"code", "message"}}
        return code, message, details or None
    if isinstance(detail, str):
        return _default_code(status_code), detail, None
    return _default_code(status_code), "Request failed", None


def _render(request: Request, *, status_code: int, code: str, message: str, headers=None) -> JSONResponse:
    if not is_versioned_request(request):
        return JSONResponse(
            content={"detail": {"code": code, "message": message}},
            status_code=status_code,
            headers=headers,
        )
    payload = error_response(request=request, code=code, message=message)
    return JSONResponse(content=payload, status_code=status_code, headers=headers)


async def ledgerhub_error_handler(request: Request, exc: LedgerHubError) -> JSONResponse:
    # Log the internal reason; the wire only ever carries the stable public message.
    if exc.status_code >= 500:
        logger.error(
            "request_failed path=%s code=%s", request.url.path, exc.code, exc_info=exc.__cause__ or exc
        )
    else:
        reason = "unknown_resource" if isinstance(exc, UnknownResource) else type(exc).__name__
        logger.info(
            "request_rejected path=%s code=%s reason=%s message=%s",
            request.url.path,
            exc.code,
            reason,
            exc.message,
        )
    return _render(request, status_code=exc.status_code, code=exc.code, message=exc.message)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    if not is_versioned_request(request):
        return JSONResponse(content={"detail": exc.detail}, status_code=exc.status_code, headers=exc.headers)
    code, message, details = _split_detail(exc.detail, exc.status_code)
    payload = error_response(request=request, code=code, message=message, details=details)
    return JSONResponse(content=payload, status_code=exc.status_code, headers=exc.headers)


async def starlette_http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    # Ensure Starlette-raised exceptions (404 routes, 405) are wrapped consistently for v1 routes.
    if not is_versioned_request(request):
        return JSONResponse(content={"detail": exc.detail}, status_code=exc.status_code, headers=exc.headers)
    code, message, details = _split_detail(exc.detail, exc.status_code)
    payload = error_response(request=request, code=code, message=message, details=details)
    return JSONResponse(content=payload, status_code=exc.status_code, headers=exc.headers)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    if not is_versioned_request(request):
        return JSONResponse(content={"detail": jsonable_encoder(exc.errors())}, status_code=422)
    payload = error_response(
        request=request,
        code="REQUEST_VALIDATION_ERROR",
        message="Validation error",
        details={"errors": jsonable_encoder(exc.errors())},
    )
    return JSONResponse(content=payload, status_code=422)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Avoid leaking stack traces; return a stable internal error envelope.
    logger.error("request_unhandled_error path=%s", request.url.path, exc_info=exc)
    return _render(request, status_code=500, code="INTERNAL_ERROR", message="Internal server error")
