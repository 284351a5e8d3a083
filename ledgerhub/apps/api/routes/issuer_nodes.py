from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel

from ledgerhub.apps.api.deps import PageParams, Principal, get_current_principal, get_handlers, page_params
from ledgerhub.apps.api.openapi import DEFAULT_ERROR_RESPONSES, json_body
from ledgerhub.services.normalize import LabelUpdateRequest
from ledgerhub.services.resources import ResourceHandlers


router = APIRouter(tags=["issuer-nodes"], responses=DEFAULT_ERROR_RESPONSES)


class KeyResponse(BaseModel):
    source: str
    public_key: str


class CreatedKeyResponse(KeyResponse):
    # Generated keys carry their private half on the creation response only.
    private_key: str | None = None


class IssuerNodeResponse(BaseModel):
    id: str
    label: str
    project_id: str
    sigs_required: int
    keys: list[KeyResponse]


class CreatedIssuerNodeResponse(IssuerNodeResponse):
    keys: list[CreatedKeyResponse]


class IssuerNodeListResponse(BaseModel):
    last: str | None
    issuer_nodes: list[IssuerNodeResponse]


class ActivityResponse(BaseModel):
    id: str
    issuer_node_id: str
    asset_id: str | None
    kind: str
    data: dict[str, Any]
    created_at: str


class ActivityListResponse(BaseModel):
    last: str | None
    activities: list[ActivityResponse]


class TransactionResponse(BaseModel):
    id: str
    tx_hash: str
    issuer_node_id: str
    asset_id: str | None
    data: dict[str, Any]
    created_at: str


class TransactionListResponse(BaseModel):
    last: str | None
    transactions: list[TransactionResponse]


_EXAMPLE_KEY = "d75a980182b10ab7d54bfed3c964073a0ee172f3daa62325af021a68f707511a"

# External keys, including deprecated `xpubs` entries, are raw Ed25519 public keys in hex.
_CREATE_EXAMPLES = {
    "canonical": {
        "value": {
            "label": "Treasury",
            "keys": [{"external_key": _EXAMPLE_KEY}, {"generate": True}],
            "sigs_required": 2,
        }
    },
    "deprecated": {
        "value": {"label": "Treasury", "xpubs": [_EXAMPLE_KEY], "generate_key": True}
    },
}


@router.post(
    "/projects/{project_id}/issuer-nodes",
    status_code=status.HTTP_201_CREATED,
    response_model=CreatedIssuerNodeResponse,
    response_model_exclude_none=True,
    openapi_extra=json_body(examples=_CREATE_EXAMPLES),
)
async def create_issuer_node(
    project_id: str,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    handlers: ResourceHandlers = Depends(get_handlers),
) -> dict[str, Any]:
    # Pass the raw body through; it is decoded only after authorization succeeds.
    return await handlers.create_issuer_node(principal, project_id, await request.body())


@router.get("/projects/{project_id}/issuer-nodes", response_model=IssuerNodeListResponse)
async def list_issuer_nodes(
    project_id: str,
    page: PageParams = Depends(page_params),
    principal: Principal = Depends(get_current_principal),
    handlers: ResourceHandlers = Depends(get_handlers),
) -> dict[str, Any]:
    return await handlers.list_issuer_nodes(principal, project_id, page.cursor, page.page_size)


@router.get(
    "/issuer-nodes/{issuer_node_id}",
    response_model=IssuerNodeResponse,
)
async def get_issuer_node(
    issuer_node_id: str,
    principal: Principal = Depends(get_current_principal),
    handlers: ResourceHandlers = Depends(get_handlers),
) -> dict[str, Any]:
    return await handlers.get_issuer_node(principal, issuer_node_id)


@router.put(
    "/issuer-nodes/{issuer_node_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    openapi_extra=json_body(LabelUpdateRequest),
)
async def update_issuer_node(
    issuer_node_id: str,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    handlers: ResourceHandlers = Depends(get_handlers),
) -> Response:
    await handlers.update_issuer_node(principal, issuer_node_id, await request.body())
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/issuer-nodes/{issuer_node_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_issuer_node(
    issuer_node_id: str,
    principal: Principal = Depends(get_current_principal),
    handlers: ResourceHandlers = Depends(get_handlers),
) -> Response:
    await handlers.delete_issuer_node(principal, issuer_node_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/issuer-nodes/{issuer_node_id}/activity", response_model=ActivityListResponse)
async def get_issuer_node_activity(
    issuer_node_id: str,
    page: PageParams = Depends(page_params),
    principal: Principal = Depends(get_current_principal),
    handlers: ResourceHandlers = Depends(get_handlers),
) -> dict[str, Any]:
    return await handlers.issuer_node_activity(principal, issuer_node_id, page.cursor, page.page_size)


@router.get("/issuer-nodes/{issuer_node_id}/transactions", response_model=TransactionListResponse)
async def get_issuer_node_transactions(
    issuer_node_id: str,
    page: PageParams = Depends(page_params),
    principal: Principal = Depends(get_current_principal),
    handlers: ResourceHandlers = Depends(get_handlers),
) -> dict[str, Any]:
    return await handlers.issuer_node_transactions(principal, issuer_node_id, page.cursor, page.page_size)
