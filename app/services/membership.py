"""
Membership resolver: answers "who belongs where" against the current session
snapshot. Every authorization decision is composed from these lookups.
"""

from __future__ import annotations

import uuid
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.assignments import ProjectMember, TaskGroup
from app.models.group import GroupMember
from app.models.project import Project
from app.models.workspace import WorkspaceMember
from crewdesk_shared.schemas.common import WorkspaceRole


async def role_of(
    session: AsyncSession, workspace_id: uuid.UUID, user_id: uuid.UUID
) -> WorkspaceRole:
    """Workspace-scoped role; NONE when the user has no member row."""
    result = await session.execute(
        select(WorkspaceMember.role).where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.user_id == user_id,
        )
    )
    role = result.scalar_one_or_none()
    if role is None:
        return WorkspaceRole.NONE
    return WorkspaceRole.ADMIN if role == WorkspaceRole.ADMIN.value else WorkspaceRole.MEMBER


async def is_group_member(
    session: AsyncSession, group_id: uuid.UUID, user_id: uuid.UUID
) -> bool:
    result = await session.execute(
        select(GroupMember.user_id).where(
            GroupMember.group_id == group_id, GroupMember.user_id == user_id
        )
    )
    return result.first() is not None


async def is_project_lead(
    session: AsyncSession, project_id: uuid.UUID, user_id: uuid.UUID
) -> bool:
    result = await session.execute(select(Project.team_lead).where(Project.id == project_id))
    return result.scalar_one_or_none() == user_id


async def workspace_member_ids(
    session: AsyncSession, workspace_id: uuid.UUID
) -> set[uuid.UUID]:
    result = await session.execute(
        select(WorkspaceMember.user_id).where(WorkspaceMember.workspace_id == workspace_id)
    )
    return {row[0] for row in result.all()}


async def group_member_ids(
    session: AsyncSession, group_ids: Iterable[uuid.UUID]
) -> set[uuid.UUID]:
    """Union of the members of every group in ``group_ids``."""
    ids = list(group_ids)
    if not ids:
        return set()
    result = await session.execute(
        select(GroupMember.user_id).where(GroupMember.group_id.in_(ids))
    )
    return {row[0] for row in result.all()}


async def project_member_ids(
    session: AsyncSession, project_id: uuid.UUID
) -> set[uuid.UUID]:
    result = await session.execute(
        select(ProjectMember.user_id).where(ProjectMember.project_id == project_id)
    )
    return {row[0] for row in result.all()}


async def task_group_ids(session: AsyncSession, task_id: uuid.UUID) -> list[uuid.UUID]:
    result = await session.execute(
        select(TaskGroup.group_id).where(TaskGroup.task_id == task_id)
    )
    return [row[0] for row in result.all()]
