from __future__ import annotations

from dataclasses import dataclass, field
import hashlib
import json
import logging
from typing import Any
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerhub.core.errors import Conflict, InternalError, InvalidRequest, NotFound
from ledgerhub.domain.models import Asset, IssuerNode, IssuerNodeKey
from ledgerhub.persistence.repos.history import append_activity
from ledgerhub.services.keys import generate_key, validate_public_key
from ledgerhub.services.normalize import CanonicalCreateRequest


logger = logging.getLogger(__name__)


@dataclass
class CreatedIssuerNode:
    node: IssuerNode
    # Generated private keys by key position; only ever handed back once.
    private_keys: dict[int, str] = field(default_factory=dict)


def canonical_json(value: Any) -> str:
    try:
        return json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise InvalidRequest("asset definition must be JSON-serializable") from exc


def asset_id_for(node: IssuerNode, index: int, definition: dict[str, Any]) -> str:
    # Content-derived: the issuing policy, the node-local index and the definition.
    material = canonical_json(
        {
            "issuer_node_id": node.id,
            "keys": [key.public_key for key in node.keys],
            "sigs_required": node.sigs_required,
            "index": index,
            "definition": definition,
        }
    )
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


async def _flush(session: AsyncSession, what: str) -> None:
    try:
        await session.flush()
    except IntegrityError as exc:
        logger.info("issuance_conflict resource=%s", what)
        raise Conflict(f"{what} conflicts with an existing resource") from exc
    except SQLAlchemyError as exc:
        raise InternalError(f"Database error while creating {what}") from exc


class IssuanceService:
    """SQL-backed domain creator for issuer nodes and assets.

    Every method expects an open transactional scope and leaves committing to
    the caller.
    """

    async def create_issuer_node(
        self, session: AsyncSession, project_id: str, request: CanonicalCreateRequest
    ) -> CreatedIssuerNode:
        node = IssuerNode(
            id=f"in_{uuid4().hex}",
            project_id=project_id,
            label=request.label,
            sigs_required=request.sigs_required,
            next_asset_index=0,
            archived=False,
        )
        created = CreatedIssuerNode(node=node)
        seen_external: set[str] = set()
        keys: list[IssuerNodeKey] = []
        for position, spec in enumerate(request.keys):
            if spec.is_generated:
                generated = generate_key()
                public_key = generated.public_key
                created.private_keys[position] = generated.private_key
                source = "generated"
            else:
                public_key = validate_public_key(spec.external_key or "")
                if public_key in seen_external:
                    raise Conflict("signature policy lists the same external key twice")
                seen_external.add(public_key)
                source = "external"
            keys.append(IssuerNodeKey(position=position, source=source, public_key=public_key))
        node.keys = keys
        session.add(node)
        await _flush(session, "issuer node")
        append_activity(
            session,
            issuer_node_id=node.id,
            kind="issuer_node.created",
            data={"label": node.label, "sigs_required": node.sigs_required, "key_count": len(keys)},
        )
        await _flush(session, "issuer node activity")
        logger.info("issuer_node_created id=%s project_id=%s keys=%s", node.id, project_id, len(keys))
        return created

    async def create_asset(
        self,
        session: AsyncSession,
        issuer_node_id: str,
        label: str,
        definition: dict[str, Any],
    ) -> Asset:
        # Lock the node row so concurrent creations draw distinct indexes.
        result = await session.execute(
            select(IssuerNode)
            .where(IssuerNode.id == issuer_node_id, IssuerNode.archived.is_(False))
            .with_for_update()
        )
        node = result.scalar_one_or_none()
        if node is None:
            raise NotFound("Issuer node not found")
        index = node.next_asset_index
        node.next_asset_index = index + 1
        asset = Asset(
            id=asset_id_for(node, index, definition),
            issuer_node_id=node.id,
            label=label,
            definition=definition,
            circulation_total=0,
            archived=False,
        )
        session.add(asset)
        await _flush(session, "asset")
        append_activity(
            session,
            issuer_node_id=node.id,
            asset_id=asset.id,
            kind="asset.created",
            data={"label": label},
        )
        await _flush(session, "asset activity")
        logger.info("asset_created id=%s issuer_node_id=%s", asset.id, node.id)
        return asset
