from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerhub.domain.models import Asset
from ledgerhub.persistence.repos.keyset import keyset_after, order_columns


async def get_asset(session: AsyncSession, asset_id: str) -> Asset | None:
    result = await session.execute(
        select(Asset).where(Asset.id == asset_id, Asset.archived.is_(False))
    )
    return result.scalar_one_or_none()


async def get_issuer_node_id(session: AsyncSession, asset_id: str) -> str | None:
    result = await session.execute(
        select(Asset.issuer_node_id).where(Asset.id == asset_id, Asset.archived.is_(False))
    )
    return result.scalar_one_or_none()


async def list_assets(
    session: AsyncSession,
    issuer_node_id: str,
    *,
    after: list[Any] | None,
    limit: int,
) -> list[Asset]:
    columns = [Asset.created_at, Asset.id]
    stmt = select(Asset).where(Asset.issuer_node_id == issuer_node_id, Asset.archived.is_(False))
    if after is not None:
        stmt = stmt.where(keyset_after(columns, after))
    result = await session.execute(stmt.order_by(*order_columns(columns)).limit(limit))
    return list(result.scalars().all())


async def update_label(session: AsyncSession, asset_id: str, label: str | None) -> Asset | None:
    asset = await get_asset(session, asset_id)
    if asset is None:
        return None
    if label is not None:
        asset.label = label
    return asset


async def archive(session: AsyncSession, asset_id: str) -> Asset | None:
    asset = await get_asset(session, asset_id)
    if asset is None:
        return None
    asset.archived = True
    return asset
