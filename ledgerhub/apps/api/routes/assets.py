from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel

from ledgerhub.apps.api.deps import PageParams, Principal, get_current_principal, get_handlers, page_params
from ledgerhub.apps.api.openapi import DEFAULT_ERROR_RESPONSES, json_body
from ledgerhub.apps.api.routes.issuer_nodes import ActivityListResponse, TransactionListResponse
from ledgerhub.services.normalize import AssetCreateRequest, LabelUpdateRequest
from ledgerhub.services.resources import ResourceHandlers


router = APIRouter(tags=["assets"], responses=DEFAULT_ERROR_RESPONSES)


class AssetCreatedResponse(BaseModel):
    id: str
    issuer_node_id: str
    label: str


class AssetResponse(BaseModel):
    id: str
    label: str
    circulation: int


class AssetListResponse(BaseModel):
    last: str | None
    assets: list[AssetResponse]


@router.get("/issuer-nodes/{issuer_node_id}/assets", response_model=AssetListResponse)
async def list_assets(
    issuer_node_id: str,
    page: PageParams = Depends(page_params),
    principal: Principal = Depends(get_current_principal),
    handlers: ResourceHandlers = Depends(get_handlers),
) -> dict[str, Any]:
    return await handlers.list_assets(principal, issuer_node_id, page.cursor, page.page_size)


@router.post(
    "/issuer-nodes/{issuer_node_id}/assets",
    status_code=status.HTTP_201_CREATED,
    response_model=AssetCreatedResponse,
    openapi_extra=json_body(AssetCreateRequest),
)
async def create_asset(
    issuer_node_id: str,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    handlers: ResourceHandlers = Depends(get_handlers),
) -> dict[str, Any]:
    return await handlers.create_asset(principal, issuer_node_id, await request.body())


@router.get("/assets/{asset_id}", response_model=AssetResponse)
async def get_asset(
    asset_id: str,
    principal: Principal = Depends(get_current_principal),
    handlers: ResourceHandlers = Depends(get_handlers),
) -> dict[str, Any]:
    return await handlers.get_asset(principal, asset_id)


@router.put(
    "/assets/{asset_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    openapi_extra=json_body(LabelUpdateRequest),
)
async def update_asset(
    asset_id: str,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    handlers: ResourceHandlers = Depends(get_handlers),
) -> Response:
    await handlers.update_asset(principal, asset_id, await request.body())
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/assets/{asset_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_asset(
    asset_id: str,
    principal: Principal = Depends(get_current_principal),
    handlers: ResourceHandlers = Depends(get_handlers),
) -> Response:
    await handlers.delete_asset(principal, asset_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/assets/{asset_id}/activity", response_model=ActivityListResponse)
async def get_asset_activity(
    asset_id: str,
    page: PageParams = Depends(page_params),
    principal: Principal = Depends(get_current_principal),
    handlers: ResourceHandlers = Depends(get_handlers),
) -> dict[str, Any]:
    return await handlers.asset_activity(principal, asset_id, page.cursor, page.page_size)


@router.get("/assets/{asset_id}/transactions", response_model=TransactionListResponse)
async def get_asset_transactions(
    asset_id: str,
    page: PageParams = Depends(page_params),
    principal: Principal = Depends(get_current_principal),
    handlers: ResourceHandlers = Depends(get_handlers),
) -> dict[str, Any]:
    return await handlers.asset_transactions(principal, asset_id, page.cursor, page.page_size)
