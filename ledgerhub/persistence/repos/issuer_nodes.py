from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerhub.domain.models import IssuerNode
from ledgerhub.persistence.repos.keyset import keyset_after, order_columns


async def get_issuer_node(session: AsyncSession, issuer_node_id: str) -> IssuerNode | None:
    # Archived nodes behave as missing for every caller.
    result = await session.execute(
        select(IssuerNode).where(IssuerNode.id == issuer_node_id, IssuerNode.archived.is_(False))
    )
    return result.scalar_one_or_none()


async def get_project_id(session: AsyncSession, issuer_node_id: str) -> str | None:
    result = await session.execute(
        select(IssuerNode.project_id).where(
            IssuerNode.id == issuer_node_id, IssuerNode.archived.is_(False)
        )
    )
    return result.scalar_one_or_none()


async def list_issuer_nodes(
    session: AsyncSession,
    project_id: str,
    *,
    after: list[Any] | None,
    limit: int,
) -> list[IssuerNode]:
    columns = [IssuerNode.created_at, IssuerNode.id]
    stmt = select(IssuerNode).where(
        IssuerNode.project_id == project_id, IssuerNode.archived.is_(False)
    )
    if after is not None:
        stmt = stmt.where(keyset_after(columns, after))
    result = await session.execute(stmt.order_by(*order_columns(columns)).limit(limit))
    return list(result.scalars().all())


async def update_label(session: AsyncSession, issuer_node_id: str, label: str | None) -> IssuerNode | None:
    # Fetch first so a missing node is reported instead of silently updating nothing.
    node = await get_issuer_node(session, issuer_node_id)
    if node is None:
        return None
    if label is not None:
        node.label = label
    return node


async def archive(session: AsyncSession, issuer_node_id: str) -> IssuerNode | None:
    node = await get_issuer_node(session, issuer_node_id)
    if node is None:
        return None
    node.archived = True
    return node
