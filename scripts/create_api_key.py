from __future__ import annotations

import argparse
import asyncio
from datetime import datetime, timedelta, timezone
import sys
from uuid import uuid4

from ledgerhub.domain.models import User
from ledgerhub.persistence.db import SessionLocal
from ledgerhub.persistence.repos.projects import add_member, get_project
from ledgerhub.services.auth.api_keys import issue_api_key
from ledgerhub.services.authz import parse_role


def _build_parser() -> argparse.ArgumentParser:
    # Keep CLI arguments explicit to avoid accidental key misuse.
    parser = argparse.ArgumentParser(description="Create an API key for a user")
    parser.add_argument("--name", required=True, help="Key label for operators")
    parser.add_argument("--user-id", default=None, help="Existing user id to attach")
    parser.add_argument("--email", default=None, help="Optional user email")
    parser.add_argument("--project", default=None, help="Grant membership on this project")
    parser.add_argument("--role", default="reader", help="Membership role: reader|editor|admin")
    parser.add_argument("--expires-in-days", type=int, default=None, help="Optional key lifetime")
    return parser


async def _create_key(args: argparse.Namespace) -> int:
    role = parse_role(args.role)
    user_id = args.user_id or uuid4().hex
    expires_at = None
    if args.expires_in_days is not None:
        expires_at = datetime.now(timezone.utc) + timedelta(days=max(1, int(args.expires_in_days)))
    api_key, raw_key = issue_api_key(user_id=user_id, name=args.name, expires_at=expires_at)

    async with SessionLocal() as session:
        user = await session.get(User, user_id)
        if user is None:
            user = User(id=user_id, email=args.email, is_active=True)
            session.add(user)
        elif args.email and user.email != args.email:
            user.email = args.email
        # Flush the user row before inserting API keys to satisfy FK constraints.
        await session.flush()

        if args.project:
            if await get_project(session, args.project) is None:
                raise ValueError(f"Project not found: {args.project}")
            await add_member(session, project_id=args.project, user_id=user.id, role=role)

        session.add(api_key)
        await session.commit()

    print("API key created:")
    print(f"  user_id: {user_id}")
    print(f"  key_id: {api_key.id}")
    print(f"  key_prefix: {api_key.key_prefix}")
    if args.project:
        print(f"  project: {args.project} ({role})")
    print("  api_key: ")
    print(f"    {raw_key}")
    return 0


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()
    try:
        return asyncio.run(_create_key(args))
    except Exception as exc:  # noqa: BLE001 - surface provisioning failures clearly
        print(f"create_api_key failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
