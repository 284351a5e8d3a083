"""Resource handlers for issuer nodes, assets and their histories.

Every operation authorizes first, and write bodies are parsed only after
that. Creation runs the domain creator inside one transaction; listings go
through the cursor pagination protocol.
"""

from __future__ import annotations

import logging
from typing import Any

from ledgerhub.core.errors import NotFound
from ledgerhub.services.authz import AuthorizationResolver, ResourceKind
from ledgerhub.services.interfaces import DataStore, DomainCreator, TransactionProvider
from ledgerhub.services.normalize import normalize, parse_asset_request, parse_label_update
from ledgerhub.services.pagination import (
    Collection,
    Page,
    activity_collection,
    asset_collection,
    issuer_node_collection,
    paginate,
    serialize_timestamp,
    transaction_collection,
)
from ledgerhub.services.transactions import create_within_transaction, run_in_transaction


logger = logging.getLogger(__name__)

READ_ROLE = "reader"
WRITE_ROLE = "editor"
DELETE_ROLE = "admin"


def shape_issuer_node(node: Any, private_keys: dict[int, str] | None = None) -> dict[str, Any]:
    keys = []
    for position, key in enumerate(node.keys):
        item = {"source": key.source, "public_key": key.public_key}
        if private_keys and position in private_keys:
            item["private_key"] = private_keys[position]
        keys.append(item)
    return {
        "id": node.id,
        "label": node.label,
        "project_id": node.project_id,
        "sigs_required": node.sigs_required,
        "keys": keys,
    }


def shape_asset(asset: Any) -> dict[str, Any]:
    # HACK: confirmed and total issuance are not split until block generation
    # is automatic, so only the total circulation is exposed for now.
    return {
        "id": asset.id,
        "label": asset.label,
        "circulation": asset.circulation_total,
    }


def shape_created_asset(asset: Any) -> dict[str, Any]:
    return {
        "id": asset.id,
        "issuer_node_id": asset.issuer_node_id,
        "label": asset.label,
    }


def shape_activity(record: Any) -> dict[str, Any]:
    return {
        "id": str(record.id),
        "issuer_node_id": record.issuer_node_id,
        "asset_id": record.asset_id,
        "kind": record.kind,
        "data": record.data,
        "created_at": serialize_timestamp(record.created_at),
    }


def shape_transaction(record: Any) -> dict[str, Any]:
    return {
        "id": str(record.id),
        "tx_hash": record.tx_hash,
        "issuer_node_id": record.issuer_node_id,
        "asset_id": record.asset_id,
        "data": record.data,
        "created_at": serialize_timestamp(record.created_at),
    }


def _listing(page: Page[Any], items_key: str, shape) -> dict[str, Any]:
    return {"last": page.next_cursor, items_key: [shape(item) for item in page.items]}


class ResourceHandlers:
    """Composes authorization, normalization, transactions and pagination.

    One instance serves one operation; the resolver memoizes parent lookups
    for that operation only.
    """

    def __init__(
        self,
        *,
        store: DataStore,
        creator: DomainCreator,
        scope: TransactionProvider,
        resolver: AuthorizationResolver | None = None,
        cursor_secret: str | None = None,
    ) -> None:
        self.store = store
        self.creator = creator
        self.scope = scope
        self.resolver = resolver or AuthorizationResolver(store)
        self.cursor_secret = cursor_secret

    async def _page(
        self,
        collection: Collection,
        cursor: str | None,
        page_size: int | str | None,
        fetch,
    ) -> Page[Any]:
        return await paginate(collection, cursor, page_size, fetch, secret=self.cursor_secret)

    # Issuer nodes

    async def create_issuer_node(self, principal: Any, project_id: str, payload: Any) -> dict[str, Any]:
        await self.resolver.authorize(principal, ResourceKind.PROJECT, project_id, minimum_role=WRITE_ROLE)
        request = normalize(payload)
        created = await create_within_transaction(
            self.scope,
            lambda scope: self.creator.create_issuer_node(scope, project_id, request),
        )
        return shape_issuer_node(created.node, created.private_keys)

    async def list_issuer_nodes(
        self, principal: Any, project_id: str, cursor: str | None, page_size: int | str | None
    ) -> dict[str, Any]:
        await self.resolver.authorize(principal, ResourceKind.PROJECT, project_id, minimum_role=READ_ROLE)
        page = await self._page(
            issuer_node_collection(project_id),
            cursor,
            page_size,
            lambda after, limit: self.store.list_issuer_nodes(project_id, after, limit),
        )
        return _listing(page, "issuer_nodes", shape_issuer_node)

    async def get_issuer_node(self, principal: Any, issuer_node_id: str) -> dict[str, Any]:
        await self.resolver.authorize(principal, ResourceKind.ISSUER_NODE, issuer_node_id, minimum_role=READ_ROLE)
        node = await self.store.get_issuer_node(issuer_node_id)
        if node is None:
            raise NotFound("Issuer node not found")
        return shape_issuer_node(node)

    async def update_issuer_node(self, principal: Any, issuer_node_id: str, payload: Any) -> None:
        await self.resolver.authorize(principal, ResourceKind.ISSUER_NODE, issuer_node_id, minimum_role=WRITE_ROLE)
        label = parse_label_update(payload).label

        async def _update(_scope: Any) -> None:
            if not await self.store.update_issuer_node(issuer_node_id, label):
                raise NotFound("Issuer node not found")

        await run_in_transaction(self.scope, _update)

    async def delete_issuer_node(self, principal: Any, issuer_node_id: str) -> None:
        await self.resolver.authorize(principal, ResourceKind.ISSUER_NODE, issuer_node_id, minimum_role=DELETE_ROLE)

        async def _delete(_scope: Any) -> None:
            if not await self.store.delete_issuer_node(issuer_node_id):
                raise NotFound("Issuer node not found")

        await run_in_transaction(self.scope, _delete)
        logger.info("issuer_node_deleted id=%s subject_id=%s", issuer_node_id, principal.subject_id)

    # Assets

    async def list_assets(
        self, principal: Any, issuer_node_id: str, cursor: str | None, page_size: int | str | None
    ) -> dict[str, Any]:
        await self.resolver.authorize(principal, ResourceKind.ISSUER_NODE, issuer_node_id, minimum_role=READ_ROLE)
        page = await self._page(
            asset_collection(issuer_node_id),
            cursor,
            page_size,
            lambda after, limit: self.store.list_assets(issuer_node_id, after, limit),
        )
        return _listing(page, "assets", shape_asset)

    async def create_asset(self, principal: Any, issuer_node_id: str, payload: Any) -> dict[str, Any]:
        await self.resolver.authorize(principal, ResourceKind.ISSUER_NODE, issuer_node_id, minimum_role=WRITE_ROLE)
        request = parse_asset_request(payload)
        asset = await create_within_transaction(
            self.scope,
            lambda scope: self.creator.create_asset(scope, issuer_node_id, request.label, dict(request.definition)),
        )
        return shape_created_asset(asset)

    async def get_asset(self, principal: Any, asset_id: str) -> dict[str, Any]:
        await self.resolver.authorize(principal, ResourceKind.ASSET, asset_id, minimum_role=READ_ROLE)
        asset = await self.store.get_asset(asset_id)
        if asset is None:
            raise NotFound("Asset not found")
        return shape_asset(asset)

    async def update_asset(self, principal: Any, asset_id: str, payload: Any) -> None:
        await self.resolver.authorize(principal, ResourceKind.ASSET, asset_id, minimum_role=WRITE_ROLE)
        label = parse_label_update(payload).label

        async def _update(_scope: Any) -> None:
            if not await self.store.update_asset(asset_id, label):
                raise NotFound("Asset not found")

        await run_in_transaction(self.scope, _update)

    async def delete_asset(self, principal: Any, asset_id: str) -> None:
        await self.resolver.authorize(principal, ResourceKind.ASSET, asset_id, minimum_role=DELETE_ROLE)

        async def _delete(_scope: Any) -> None:
            if not await self.store.delete_asset(asset_id):
                raise NotFound("Asset not found")

        await run_in_transaction(self.scope, _delete)
        logger.info("asset_deleted id=%s subject_id=%s", asset_id, principal.subject_id)

    # Activity and transactions

    async def issuer_node_activity(
        self, principal: Any, issuer_node_id: str, cursor: str | None, page_size: int | str | None
    ) -> dict[str, Any]:
        return await self._activity(principal, ResourceKind.ISSUER_NODE, issuer_node_id, cursor, page_size)

    async def asset_activity(
        self, principal: Any, asset_id: str, cursor: str | None, page_size: int | str | None
    ) -> dict[str, Any]:
        return await self._activity(principal, ResourceKind.ASSET, asset_id, cursor, page_size)

    async def issuer_node_transactions(
        self, principal: Any, issuer_node_id: str, cursor: str | None, page_size: int | str | None
    ) -> dict[str, Any]:
        return await self._transactions(principal, ResourceKind.ISSUER_NODE, issuer_node_id, cursor, page_size)

    async def asset_transactions(
        self, principal: Any, asset_id: str, cursor: str | None, page_size: int | str | None
    ) -> dict[str, Any]:
        return await self._transactions(principal, ResourceKind.ASSET, asset_id, cursor, page_size)

    async def _activity(
        self,
        principal: Any,
        kind: ResourceKind,
        resource_id: str,
        cursor: str | None,
        page_size: int | str | None,
    ) -> dict[str, Any]:
        await self.resolver.authorize(principal, kind, resource_id, minimum_role=READ_ROLE)
        owner = "asset" if kind is ResourceKind.ASSET else "issuer_node"
        page = await self._page(
            activity_collection(owner, resource_id),
            cursor,
            page_size,
            lambda after, limit: self.store.list_activity(owner, resource_id, after, limit),
        )
        return _listing(page, "activities", shape_activity)

    async def _transactions(
        self,
        principal: Any,
        kind: ResourceKind,
        resource_id: str,
        cursor: str | None,
        page_size: int | str | None,
    ) -> dict[str, Any]:
        await self.resolver.authorize(principal, kind, resource_id, minimum_role=READ_ROLE)
        owner = "asset" if kind is ResourceKind.ASSET else "issuer_node"
        page = await self._page(
            transaction_collection(owner, resource_id),
            cursor,
            page_size,
            lambda after, limit: self.store.list_transactions(owner, resource_id, after, limit),
        )
        return _listing(page, "transactions", shape_transaction)
