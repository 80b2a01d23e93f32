"""
Task endpoints.

Writes are limited to the project's team lead, workspace admins and global
admins. Assignees are filtered to the members of the task's groups.
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import request_origin
from app.core.auth import Principal, get_principal
from app.core.database import get_session
from app.core.mail import Mailer, get_mailer
from app.services import policies, projects as project_service, tasks as task_service
from crewdesk_shared.schemas.tasks import (
    TaskCreate,
    TaskDeleteRequest,
    TaskDeleteResponse,
    TaskRead,
    TaskUpdate,
)

router = APIRouter()


@router.get("", response_model=List[TaskRead])
async def list_tasks(
    project_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project = await project_service.get_project_or_404(session, project_id)
    await policies.ensure_workspace_member(session, principal, project.workspace_id)
    tasks = await task_service.list_for_project(session, project.id)
    return await task_service.to_reads(session, tasks)


@router.post("", response_model=TaskRead, status_code=201)
async def create_task(
    body: TaskCreate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
    origin: str = Depends(request_origin),
):
    project = await project_service.get_project_or_404(session, body.project_id)
    await policies.ensure_project_manager(session, principal, project)
    task, assigned = await task_service.create_task(session, project, body)
    await session.commit()
    await task_service.notify_assignees(session, mailer, task, assigned, origin)
    return await task_service.to_read(session, task)


@router.get("/{task_id}", response_model=TaskRead)
async def get_task(
    task_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    task, project = await task_service.get_task_and_project(session, task_id)
    await policies.ensure_workspace_member(session, principal, project.workspace_id)
    return await task_service.to_read(session, task)


@router.patch("/{task_id}", response_model=TaskRead)
async def update_task(
    task_id: uuid.UUID,
    body: TaskUpdate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    task, project = await task_service.get_task_and_project(session, task_id)
    await policies.ensure_project_manager(session, principal, project)
    await task_service.update_task(session, project, task, body)
    await session.commit()
    return await task_service.to_read(session, task)


@router.post("/delete", response_model=TaskDeleteResponse)
async def delete_tasks(
    body: TaskDeleteRequest,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    """Delete several tasks of one project."""
    tasks, project = await task_service.load_for_delete(session, body.task_ids)
    await policies.ensure_project_manager(session, principal, project)
    deleted = await task_service.delete_tasks(session, tasks)
    await session.commit()
    return TaskDeleteResponse(deleted=deleted)
