from __future__ import annotations

from enum import Enum
import logging
from typing import Any

from ledgerhub.core.errors import Forbidden, UnknownResource
from ledgerhub.services.interfaces import AuthorizationSource


logger = logging.getLogger(__name__)

# Project membership roles, least privileged first.
PROJECT_ROLES = ("reader", "editor", "admin")


def parse_role(role: str) -> str:
    normalized = role.strip().lower()
    if normalized not in PROJECT_ROLES:
        raise ValueError(f"Unsupported project role: {role}")
    return normalized


def role_satisfies(role: str, minimum_role: str) -> bool:
    # Roles outside the vocabulary grant nothing.
    if role not in PROJECT_ROLES:
        return False
    return PROJECT_ROLES.index(role) >= PROJECT_ROLES.index(minimum_role)


class ResourceKind(str, Enum):
    PROJECT = "project"
    ISSUER_NODE = "issuer_node"
    ASSET = "asset"


class AuthorizationResolver:
    """Top-down authorization over project → issuer node → asset.

    Access to a node or asset is exactly access to its owning project. Build
    one resolver per operation: child → parent lookups are memoized on the
    instance and must not outlive the request.
    """

    def __init__(self, source: AuthorizationSource) -> None:
        self._source = source
        self._parents: dict[tuple[ResourceKind, str], str | None] = {}

    async def authorize(
        self,
        principal: Any,
        kind: ResourceKind,
        resource_id: str,
        *,
        minimum_role: str = "reader",
    ) -> None:
        if kind is ResourceKind.PROJECT:
            await self._authorize_project(principal, resource_id, minimum_role)
        elif kind is ResourceKind.ISSUER_NODE:
            project_id = await self._parent(kind, resource_id)
            await self._authorize_project(principal, project_id, minimum_role)
        elif kind is ResourceKind.ASSET:
            issuer_node_id = await self._parent(kind, resource_id)
            project_id = await self._parent(ResourceKind.ISSUER_NODE, issuer_node_id)
            await self._authorize_project(principal, project_id, minimum_role)
        else:
            raise ValueError(f"Unsupported resource kind: {kind}")

    async def _parent(self, kind: ResourceKind, resource_id: str) -> str:
        cache_key = (kind, resource_id)
        if cache_key not in self._parents:
            if kind is ResourceKind.ISSUER_NODE:
                parent = await self._source.issuer_node_project_id(resource_id)
            else:
                parent = await self._source.asset_issuer_node_id(resource_id)
            self._parents[cache_key] = parent
        parent = self._parents[cache_key]
        if parent is None:
            logger.info("authz_unresolved kind=%s id=%s", kind.value, resource_id)
            raise UnknownResource()
        return parent

    async def _authorize_project(self, principal: Any, project_id: str, minimum_role: str) -> None:
        role = await self._source.member_role(project_id, principal.subject_id)
        if role is None:
            logger.info(
                "authz_denied reason=not_member project_id=%s subject_id=%s",
                project_id,
                principal.subject_id,
            )
            raise Forbidden()
        if not role_satisfies(role, minimum_role):
            logger.info(
                "authz_denied reason=insufficient_role project_id=%s subject_id=%s role=%s required=%s",
                project_id,
                principal.subject_id,
                role,
                minimum_role,
            )
            raise Forbidden()
