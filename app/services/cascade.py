"""
Manual child-before-parent deletes.

There are no ON DELETE CASCADE rules in the schema, so every parent delete
walks its children explicitly in foreign-key order.
"""

from __future__ import annotations

import uuid
from typing import Iterable

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.assignments import ProjectGroup, ProjectMember, TaskAssignee, TaskGroup
from app.models.group import Group, GroupMember, GroupMessage
from app.models.project import Project
from app.models.task import Comment, Task


async def delete_tasks(session: AsyncSession, task_ids: Iterable[uuid.UUID]) -> int:
    ids = list(task_ids)
    if not ids:
        return 0
    await session.execute(delete(Comment).where(Comment.task_id.in_(ids)))
    await session.execute(delete(TaskAssignee).where(TaskAssignee.task_id.in_(ids)))
    await session.execute(delete(TaskGroup).where(TaskGroup.task_id.in_(ids)))
    result = await session.execute(delete(Task).where(Task.id.in_(ids)))
    return result.rowcount or 0


async def delete_projects(session: AsyncSession, project_ids: Iterable[uuid.UUID]) -> int:
    ids = list(project_ids)
    if not ids:
        return 0
    result = await session.execute(select(Task.id).where(Task.project_id.in_(ids)))
    await delete_tasks(session, [row[0] for row in result.all()])
    await session.execute(delete(ProjectMember).where(ProjectMember.project_id.in_(ids)))
    await session.execute(delete(ProjectGroup).where(ProjectGroup.project_id.in_(ids)))
    result = await session.execute(delete(Project).where(Project.id.in_(ids)))
    return result.rowcount or 0


async def delete_groups(session: AsyncSession, group_ids: Iterable[uuid.UUID]) -> int:
    ids = list(group_ids)
    if not ids:
        return 0
    await session.execute(delete(GroupMessage).where(GroupMessage.group_id.in_(ids)))
    await session.execute(delete(GroupMember).where(GroupMember.group_id.in_(ids)))
    await session.execute(delete(ProjectGroup).where(ProjectGroup.group_id.in_(ids)))
    await session.execute(delete(TaskGroup).where(TaskGroup.group_id.in_(ids)))
    result = await session.execute(delete(Group).where(Group.id.in_(ids)))
    return result.rowcount or 0
