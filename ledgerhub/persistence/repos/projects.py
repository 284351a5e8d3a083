from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerhub.domain.models import Project, ProjectMember


async def get_project(session: AsyncSession, project_id: str) -> Project | None:
    result = await session.execute(select(Project).where(Project.id == project_id))
    return result.scalar_one_or_none()


async def get_membership(
    session: AsyncSession, *, project_id: str, user_id: str
) -> ProjectMember | None:
    result = await session.execute(
        select(ProjectMember).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def add_member(
    session: AsyncSession, *, project_id: str, user_id: str, role: str
) -> ProjectMember:
    # Upsert in Python so operator scripts can re-run safely.
    member = await get_membership(session, project_id=project_id, user_id=user_id)
    if member is None:
        member = ProjectMember(project_id=project_id, user_id=user_id, role=role)
        session.add(member)
    else:
        member.role = role
    return member
