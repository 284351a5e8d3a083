from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerhub.domain.models import ActivityRecord, TransactionRecord
from ledgerhub.persistence.repos.keyset import keyset_after, order_columns


# Activity and transactions are append-only feeds served newest first.
_DIRECTION = "desc"


async def _list(
    session: AsyncSession,
    model: type[ActivityRecord] | type[TransactionRecord],
    *,
    issuer_node_id: str | None = None,
    asset_id: str | None = None,
    after: list[Any] | None,
    limit: int,
) -> list[Any]:
    columns = [model.id]
    stmt = select(model)
    if issuer_node_id is not None:
        stmt = stmt.where(model.issuer_node_id == issuer_node_id)
    if asset_id is not None:
        stmt = stmt.where(model.asset_id == asset_id)
    if after is not None:
        stmt = stmt.where(keyset_after(columns, after, direction=_DIRECTION))
    result = await session.execute(
        stmt.order_by(*order_columns(columns, direction=_DIRECTION)).limit(limit)
    )
    return list(result.scalars().all())


async def list_issuer_node_activity(
    session: AsyncSession, issuer_node_id: str, *, after: list[Any] | None, limit: int
) -> list[ActivityRecord]:
    return await _list(session, ActivityRecord, issuer_node_id=issuer_node_id, after=after, limit=limit)


async def list_asset_activity(
    session: AsyncSession, asset_id: str, *, after: list[Any] | None, limit: int
) -> list[ActivityRecord]:
    return await _list(session, ActivityRecord, asset_id=asset_id, after=after, limit=limit)


async def list_issuer_node_transactions(
    session: AsyncSession, issuer_node_id: str, *, after: list[Any] | None, limit: int
) -> list[TransactionRecord]:
    return await _list(session, TransactionRecord, issuer_node_id=issuer_node_id, after=after, limit=limit)


async def list_asset_transactions(
    session: AsyncSession, asset_id: str, *, after: list[Any] | None, limit: int
) -> list[TransactionRecord]:
    return await _list(session, TransactionRecord, asset_id=asset_id, after=after, limit=limit)


def append_activity(
    session: AsyncSession,
    *,
    issuer_node_id: str,
    kind: str,
    data: dict[str, Any],
    asset_id: str | None = None,
) -> ActivityRecord:
    # Activity rows join the caller's transaction; they are never updated afterwards.
    record = ActivityRecord(issuer_node_id=issuer_node_id, asset_id=asset_id, kind=kind, data=data)
    session.add(record)
    return record
