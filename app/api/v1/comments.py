"""
Comment endpoints.

Reading and writing both require the task audience: the members of the
task's groups, or, for a task with no groups, the project's members and
team lead. Global admins bypass the check.
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Principal, get_principal
from app.core.database import get_session
from app.models.user import User
from app.services import policies, tasks as task_service
from crewdesk_shared.schemas.tasks import CommentCreate, CommentRead

router = APIRouter()


@router.post("", response_model=CommentRead, status_code=201)
async def add_comment(
    body: CommentCreate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    task, project = await task_service.get_task_and_project(session, body.task_id)
    await policies.ensure_task_audience(session, principal, task, project)
    comment = await task_service.add_comment(session, task, principal.user_id, body.content)
    await session.commit()
    author = await session.get(User, principal.user_id)
    return task_service.comment_read(comment, author)


@router.get("/{task_id}", response_model=List[CommentRead])
async def list_comments(
    task_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    task, project = await task_service.get_task_and_project(session, task_id)
    await policies.ensure_task_audience(session, principal, task, project)
    return await task_service.list_comments(session, task)
