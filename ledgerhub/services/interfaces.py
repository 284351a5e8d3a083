from __future__ import annotations

from typing import Any, Protocol, Sequence

from ledgerhub.services.normalize import CanonicalCreateRequest


class AuthorizationSource(Protocol):
    # Parent lookups return None when the child id does not resolve.
    async def member_role(self, project_id: str, user_id: str) -> str | None:
        ...

    async def issuer_node_project_id(self, issuer_node_id: str) -> str | None:
        ...

    async def asset_issuer_node_id(self, asset_id: str) -> str | None:
        ...


class DataStore(AuthorizationSource, Protocol):
    async def get_issuer_node(self, issuer_node_id: str) -> Any | None:
        ...

    async def list_issuer_nodes(
        self, project_id: str, after: list[Any] | None, limit: int
    ) -> Sequence[Any]:
        ...

    async def update_issuer_node(self, issuer_node_id: str, label: str | None) -> bool:
        ...

    async def delete_issuer_node(self, issuer_node_id: str) -> bool:
        ...

    async def get_asset(self, asset_id: str) -> Any | None:
        ...

    async def list_assets(self, issuer_node_id: str, after: list[Any] | None, limit: int) -> Sequence[Any]:
        ...

    async def update_asset(self, asset_id: str, label: str | None) -> bool:
        ...

    async def delete_asset(self, asset_id: str) -> bool:
        ...

    async def list_activity(
        self, kind: str, resource_id: str, after: list[Any] | None, limit: int
    ) -> Sequence[Any]:
        ...

    async def list_transactions(
        self, kind: str, resource_id: str, after: list[Any] | None, limit: int
    ) -> Sequence[Any]:
        ...


class DomainCreator(Protocol):
    """Creates resources inside an already-open transactional scope."""

    async def create_issuer_node(self, scope: Any, project_id: str, request: CanonicalCreateRequest) -> Any:
        ...

    async def create_asset(
        self, scope: Any, issuer_node_id: str, label: str, definition: dict[str, Any]
    ) -> Any:
        ...


class TransactionProvider(Protocol):
    """Begin/commit/rollback contract for one unit of work."""

    def in_transaction(self) -> bool:
        ...

    async def begin(self) -> Any:
        ...

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...
