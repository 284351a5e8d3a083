from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from ledgerhub.apps.api.response import ErrorEnvelope


def _error_example(*, code: str, message: str) -> dict[str, Any]:
    # Build a consistent error envelope example for OpenAPI docs.
    return {
        "error": {"code": code, "message": message},
        "meta": {"request_id": "req_example", "api_version": "v1"},
    }


def _response(description: str, code: str, message: str) -> dict[str, Any]:
    return {
        "model": ErrorEnvelope,
        "description": description,
        "content": {"application/json": {"example": _error_example(code=code, message=message)}},
    }


DEFAULT_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: _response("Invalid request", "INVALID_REQUEST", "pageSize must be a positive integer"),
    401: _response("Unauthorized", "AUTH_UNAUTHORIZED", "Missing or invalid bearer token"),
    # Unknown ids and missing rights share this response so existence is never revealed.
    403: _response("Forbidden", "AUTH_FORBIDDEN", "Not authorized for this resource"),
    404: _response("Not found", "NOT_FOUND", "Resource not found"),
    409: _response("Conflict", "CONFLICT", "signature policy lists the same external key twice"),
    500: _response("Internal error", "INTERNAL_ERROR", "Internal server error"),
}


def json_body(model: type[BaseModel] | None = None, examples: dict[str, Any] | None = None) -> dict[str, Any]:
    # Routes that read the raw body after authorization still document its shape.
    content: dict[str, Any] = {}
    if model is not None:
        content["schema"] = model.model_json_schema()
    if examples:
        content["examples"] = examples
    return {"requestBody": {"required": True, "content": {"application/json": content}}}
