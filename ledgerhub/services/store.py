from __future__ import annotations

from functools import wraps
import logging
from typing import Any, Awaitable, Callable, Sequence, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerhub.core.errors import InternalError
from ledgerhub.persistence.repos import assets as assets_repo
from ledgerhub.persistence.repos import history as history_repo
from ledgerhub.persistence.repos import issuer_nodes as issuer_nodes_repo
from ledgerhub.persistence.repos import projects as projects_repo
from ledgerhub.services.pagination import CursorError, parse_timestamp


logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def _db_errors(operation: str) -> Callable[[F], F]:
    # Shield callers from raw database errors while keeping the cause chained for logs.
    def decorator(func: F) -> F:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except SQLAlchemyError as exc:
                logger.error("store_error operation=%s", operation, exc_info=exc)
                raise InternalError(f"Database error while {operation}") from exc

        return wrapper  # type: ignore[return-value]

    return decorator


def _created_key(after: list[Any] | None) -> list[Any] | None:
    if after is None:
        return None
    if len(after) != 2 or not isinstance(after[1], str):
        raise CursorError("Invalid cursor key")
    return [parse_timestamp(after[0]), after[1]]


def _sequence_key(after: list[Any] | None) -> list[Any] | None:
    if after is None:
        return None
    if len(after) != 1 or isinstance(after[0], bool) or not isinstance(after[0], int):
        raise CursorError("Invalid cursor key")
    return [after[0]]


class SqlDataStore:
    """DataStore and AuthorizationSource backed by one request-scoped session.

    Writes are flushed but not committed; the request's unit of work decides.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @_db_errors("resolving membership")
    async def member_role(self, project_id: str, user_id: str) -> str | None:
        member = await projects_repo.get_membership(self.session, project_id=project_id, user_id=user_id)
        return member.role if member else None

    @_db_errors("resolving issuer node")
    async def issuer_node_project_id(self, issuer_node_id: str) -> str | None:
        return await issuer_nodes_repo.get_project_id(self.session, issuer_node_id)

    @_db_errors("resolving asset")
    async def asset_issuer_node_id(self, asset_id: str) -> str | None:
        return await assets_repo.get_issuer_node_id(self.session, asset_id)

    @_db_errors("fetching issuer node")
    async def get_issuer_node(self, issuer_node_id: str):
        return await issuer_nodes_repo.get_issuer_node(self.session, issuer_node_id)

    @_db_errors("listing issuer nodes")
    async def list_issuer_nodes(self, project_id: str, after: list[Any] | None, limit: int) -> Sequence[Any]:
        return await issuer_nodes_repo.list_issuer_nodes(
            self.session, project_id, after=_created_key(after), limit=limit
        )

    @_db_errors("updating issuer node")
    async def update_issuer_node(self, issuer_node_id: str, label: str | None) -> bool:
        node = await issuer_nodes_repo.update_label(self.session, issuer_node_id, label)
        if node is None:
            return False
        if label is not None:
            history_repo.append_activity(
                self.session,
                issuer_node_id=node.id,
                kind="issuer_node.updated",
                data={"label": label},
            )
        await self.session.flush()
        return True

    @_db_errors("deleting issuer node")
    async def delete_issuer_node(self, issuer_node_id: str) -> bool:
        node = await issuer_nodes_repo.archive(self.session, issuer_node_id)
        await self.session.flush()
        return node is not None

    @_db_errors("fetching asset")
    async def get_asset(self, asset_id: str):
        return await assets_repo.get_asset(self.session, asset_id)

    @_db_errors("listing assets")
    async def list_assets(self, issuer_node_id: str, after: list[Any] | None, limit: int) -> Sequence[Any]:
        return await assets_repo.list_assets(
            self.session, issuer_node_id, after=_created_key(after), limit=limit
        )

    @_db_errors("updating asset")
    async def update_asset(self, asset_id: str, label: str | None) -> bool:
        asset = await assets_repo.update_label(self.session, asset_id, label)
        if asset is None:
            return False
        if label is not None:
            history_repo.append_activity(
                self.session,
                issuer_node_id=asset.issuer_node_id,
                asset_id=asset.id,
                kind="asset.updated",
                data={"label": label},
            )
        await self.session.flush()
        return True

    @_db_errors("deleting asset")
    async def delete_asset(self, asset_id: str) -> bool:
        asset = await assets_repo.archive(self.session, asset_id)
        await self.session.flush()
        return asset is not None

    @_db_errors("listing activity")
    async def list_activity(
        self, kind: str, resource_id: str, after: list[Any] | None, limit: int
    ) -> Sequence[Any]:
        key = _sequence_key(after)
        if kind == "asset":
            return await history_repo.list_asset_activity(self.session, resource_id, after=key, limit=limit)
        return await history_repo.list_issuer_node_activity(self.session, resource_id, after=key, limit=limit)

    @_db_errors("listing transactions")
    async def list_transactions(
        self, kind: str, resource_id: str, after: list[Any] | None, limit: int
    ) -> Sequence[Any]:
        key = _sequence_key(after)
        if kind == "asset":
            return await history_repo.list_asset_transactions(self.session, resource_id, after=key, limit=limit)
        return await history_repo.list_issuer_node_transactions(
            self.session, resource_id, after=key, limit=limit
        )
