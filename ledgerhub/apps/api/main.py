from __future__ import annotations

import json
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.openapi.utils import get_openapi
from fastapi.responses import HTMLResponse, JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from ledgerhub.apps.api.errors import (
    http_exception_handler,
    ledgerhub_error_handler,
    starlette_http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from ledgerhub.apps.api.response import API_VERSION, is_versioned_request
from ledgerhub.apps.api.routes.assets import router as assets_router
from ledgerhub.apps.api.routes.health import router as health_router
from ledgerhub.apps.api.routes.issuer_nodes import router as issuer_nodes_router
from ledgerhub.core.errors import LedgerHubError
from ledgerhub.core.logging import configure_logging


_ENVELOPE_EXEMPT_PREFIXES = (
    "/v1/openapi.json",
    "/v1/docs",
)
_PUBLIC_PATHS = {"/v1/health", "/health"}


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="LedgerHub API")

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):  # type: ignore[override]
        # Preserve incoming request IDs or assign a new one for traceability.
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        # Wrap versioned JSON responses in the standardized success envelope.
        if (
            is_versioned_request(request)
            and not request.url.path.startswith(_ENVELOPE_EXEMPT_PREFIXES)
            and response.status_code < 400
            and response.headers.get("content-type", "").startswith("application/json")
        ):
            raw_body = getattr(response, "body", None)
            if raw_body is None:
                # Responses from call_next stream their body; drain it once and rebuild.
                chunks = [chunk async for chunk in response.body_iterator]
                raw_body = b"".join(chunks)
                response = Response(
                    content=raw_body,
                    status_code=response.status_code,
                    headers=dict(response.headers),
                )
            try:
                payload = json.loads(raw_body) if raw_body else None
            except (TypeError, ValueError):
                payload = None
            if payload is not None:
                wrapped = {"data": payload, "meta": {"request_id": request_id, "api_version": API_VERSION}}
                wrapped_response = JSONResponse(content=wrapped, status_code=response.status_code)
                for key, value in response.headers.items():
                    if key.lower() in {"content-length", "content-type"}:
                        continue
                    wrapped_response.headers[key] = value
                response = wrapped_response
        response.headers.setdefault("X-Request-Id", request_id)
        return response

    @app.exception_handler(LedgerHubError)
    async def _ledgerhub_error_handler(request: Request, exc: LedgerHubError):
        return await ledgerhub_error_handler(request, exc)

    @app.exception_handler(StarletteHTTPException)
    async def _starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
        return await starlette_http_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        return await unhandled_exception_handler(request, exc)

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(request: Request, exc: RequestValidationError):
        return await validation_exception_handler(request, exc)

    @app.exception_handler(HTTPException)
    async def _http_exception_handler(request: Request, exc: HTTPException):
        return await http_exception_handler(request, exc)

    # Versioned routes carry the envelope; unversioned aliases return bare bodies.
    for router in (health_router, issuer_nodes_router, assets_router):
        app.include_router(router, prefix=f"/{API_VERSION}")
        app.include_router(router, include_in_schema=False)

    @app.get("/v1/openapi.json", include_in_schema=False)
    async def openapi_json() -> JSONResponse:
        return JSONResponse(app.openapi())

    @app.get("/v1/docs", include_in_schema=False)
    async def v1_docs() -> HTMLResponse:
        return get_swagger_ui_html(openapi_url="/v1/openapi.json", title="LedgerHub API v1")

    def custom_openapi() -> dict:
        # Inject bearer auth and version metadata into the OpenAPI schema.
        if app.openapi_schema:
            return app.openapi_schema
        schema = get_openapi(title="LedgerHub API", version=API_VERSION, routes=app.routes)
        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes["BearerAuth"] = {"type": "http", "scheme": "bearer"}
        for path, operations in schema.get("paths", {}).items():
            if path in _PUBLIC_PATHS:
                continue
            for operation in operations.values():
                operation.setdefault("security", [{"BearerAuth": []}])
        app.openapi_schema = schema
        return app.openapi_schema

    app.openapi = custom_openapi

    return app


app = create_app()
