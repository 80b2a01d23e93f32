"""
Project endpoints: CRUD and membership.

- Create: workspace admin (or global admin)
- Update, delete, add member: team lead, workspace admin or global admin
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
from app.services import policies, projects as project_service
from crewdesk_shared.schemas.common import MessageResponse
from crewdesk_shared.schemas.projects import (
    ProjectCreate,
    ProjectMemberAdd,
    ProjectMemberRead,
    ProjectRead,
    ProjectUpdate,
)

router = APIRouter()


@router.get("", response_model=List[ProjectRead])
async def list_projects(
    workspace_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    await policies.ensure_workspace_member(session, principal, workspace_id)
    projects = await project_service.list_projects(session, workspace_id)
    return await project_service.to_reads(session, projects)


@router.post("", response_model=ProjectRead, status_code=201)
async def create_project(
    body: ProjectCreate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    await policies.ensure_workspace_admin(
        session,
        principal,
        body.workspace_id,
        "You don't have permission to create projects in this workspace",
    )
    project = await project_service.create_project(session, body, principal.user_id)
    await session.commit()
    return await project_service.to_read(session, project)


@router.get("/{project_id}", response_model=ProjectRead)
async def get_project(
    project_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project = await project_service.get_project_or_404(session, project_id)
    await policies.ensure_workspace_member(session, principal, project.workspace_id)
    return await project_service.to_read(session, project)


@router.patch("/{project_id}", response_model=ProjectRead)
async def update_project(
    project_id: uuid.UUID,
    body: ProjectUpdate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project = await project_service.get_project_or_404(session, project_id)
    await policies.ensure_project_manager(
        session, principal, project, "You don't have permission to update this project"
    )
    await project_service.update_project(session, project, body)
    await session.commit()
    return await project_service.to_read(session, project)


@router.delete("/{project_id}", response_model=MessageResponse)
async def delete_project(
    project_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    project = await project_service.get_project_or_404(session, project_id)
    await policies.ensure_project_manager(
        session, principal, project, "You don't have permission to delete this project"
    )
    await project_service.delete_project(session, project)
    await session.commit()
    return MessageResponse(message="Project deleted successfully")


@router.post("/{project_id}/members", response_model=ProjectMemberRead)
async def add_project_member(
    project_id: uuid.UUID,
    body: ProjectMemberAdd,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
    origin: str = Depends(request_origin),
):
    """Add a user (by email) to the project, inviting them if they are new."""
    project = await project_service.get_project_or_404(session, project_id)
    await policies.ensure_project_manager(
        session, principal, project, "Only the project lead can add members"
    )
    user = await project_service.add_member(session, mailer, project, str(body.email), origin)
    await session.commit()
    return ProjectMemberRead(project_id=project.id, user=user)
