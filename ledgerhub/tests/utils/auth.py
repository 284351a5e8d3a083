from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from ledgerhub.domain.models import Project, User
from ledgerhub.persistence.db import SessionLocal
from ledgerhub.persistence.repos.projects import add_member
from ledgerhub.services.auth.api_keys import issue_api_key
from ledgerhub.services.authz import parse_role


def _utc_now() -> datetime:
    # Keep timestamps consistent for test-generated auth records.
    return datetime.now(timezone.utc)


async def create_test_api_key(
    *,
    name: str = "test-key",
    user_active: bool = True,
    key_revoked: bool = False,
    key_expires_at: datetime | None = None,
) -> tuple[str, dict[str, str], str, str]:
    # Provision a user + API key pair for integration tests.
    user_id = uuid4().hex
    api_key, raw_key = issue_api_key(
        user_id=user_id,
        name=name,
        expires_at=key_expires_at,
        revoked_at=_utc_now() if key_revoked else None,
    )

    async with SessionLocal() as session:
        user = User(id=user_id, email=None, is_active=user_active)
        session.add(user)
        # Flush the user insert before the API key to satisfy FK constraints.
        await session.flush()
        session.add(api_key)
        await session.commit()

    headers = {"Authorization": f"Bearer {raw_key}"}
    return raw_key, headers, user_id, api_key.id


async def create_test_project(*, members: dict[str, str] | None = None, name: str = "test-project") -> str:
    # Projects are operator-provisioned, so tests seed them straight into the database.
    project_id = f"proj-{uuid4().hex}"
    async with SessionLocal() as session:
        session.add(Project(id=project_id, name=name))
        await session.flush()
        for user_id, role in (members or {}).items():
            await add_member(session, project_id=project_id, user_id=user_id, role=parse_role(role))
        await session.commit()
    return project_id


async def create_member_headers(project_id: str, role: str) -> tuple[dict[str, str], str]:
    # One call for the common "key with a role on this project" setup.
    _raw_key, headers, user_id, _key_id = await create_test_api_key(name=f"{role}-key")
    async with SessionLocal() as session:
        await add_member(session, project_id=project_id, user_id=user_id, role=parse_role(role))
        await session.commit()
    return headers, user_id
