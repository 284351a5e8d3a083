from __future__ import annotations

import argparse
import asyncio
import sys
from uuid import uuid4

from ledgerhub.domain.models import Project, User
from ledgerhub.persistence.db import SessionLocal
from ledgerhub.persistence.repos.projects import add_member
from ledgerhub.services.authz import parse_role


def _build_parser() -> argparse.ArgumentParser:
    # Projects are provisioned by operators; the API never creates them.
    parser = argparse.ArgumentParser(description="Create a project and optionally grant a member")
    parser.add_argument("--name", required=True, help="Project display name")
    parser.add_argument("--project-id", default=None, help="Explicit project id")
    parser.add_argument("--member", default=None, help="Existing user id to grant access")
    parser.add_argument("--role", default="admin", help="Member role: reader|editor|admin")
    return parser


async def _create_project(args: argparse.Namespace) -> int:
    role = parse_role(args.role)
    project_id = args.project_id or f"proj_{uuid4().hex}"

    async with SessionLocal() as session:
        if await session.get(Project, project_id) is not None:
            raise ValueError(f"Project already exists: {project_id}")
        session.add(Project(id=project_id, name=args.name))
        await session.flush()
        if args.member:
            if await session.get(User, args.member) is None:
                raise ValueError(f"User not found: {args.member}")
            await add_member(session, project_id=project_id, user_id=args.member, role=role)
        await session.commit()

    print("Project created:")
    print(f"  project_id: {project_id}")
    if args.member:
        print(f"  member: {args.member} ({role})")
    return 0


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()
    try:
        return asyncio.run(_create_project(args))
    except Exception as exc:  # noqa: BLE001 - surface provisioning failures clearly
        print(f"create_project failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
