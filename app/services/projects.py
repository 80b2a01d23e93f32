"""
Project service: CRUD, project membership and the group scoping used for
task assignment.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from enum import Enum
from typing import Iterable, Sequence

import structlog
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import NotFoundError, ValidationError
from app.core.mail import Mailer
from app.models.assignments import ProjectGroup, ProjectMember
from app.models.project import Project
from app.models.workspace import Workspace, WorkspaceMember
from app.services import cascade, emails, membership, users as user_service
from app.services.groups import restrict_to_workspace
from crewdesk_shared.schemas.common import WorkspaceRole
from crewdesk_shared.schemas.projects import ProjectCreate, ProjectRead, ProjectUpdate
from crewdesk_shared.schemas.users import UserRead

log = structlog.get_logger()

_REQUIRED_FIELDS = {"name", "status", "priority", "progress"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_project_or_404(session: AsyncSession, project_id: uuid.UUID) -> Project:
    project = await session.get(Project, project_id)
    if not project:
        raise NotFoundError("Project not found")
    return project


async def project_group_ids(session: AsyncSession, project_id: uuid.UUID) -> list[uuid.UUID]:
    result = await session.execute(
        select(ProjectGroup.group_id).where(ProjectGroup.project_id == project_id)
    )
    return [row[0] for row in result.all()]


async def to_reads(session: AsyncSession, projects: Sequence[Project]) -> list[ProjectRead]:
    if not projects:
        return []
    ids = [p.id for p in projects]

    members: dict[uuid.UUID, list[uuid.UUID]] = defaultdict(list)
    result = await session.execute(
        select(ProjectMember.project_id, ProjectMember.user_id).where(ProjectMember.project_id.in_(ids))
    )
    for project_id, user_id in result.all():
        members[project_id].append(user_id)

    groups: dict[uuid.UUID, list[uuid.UUID]] = defaultdict(list)
    result = await session.execute(
        select(ProjectGroup.project_id, ProjectGroup.group_id).where(ProjectGroup.project_id.in_(ids))
    )
    for project_id, group_id in result.all():
        groups[project_id].append(group_id)

    return [
        ProjectRead(
            id=p.id,
            workspace_id=p.workspace_id,
            name=p.name,
            description=p.description,
            status=p.status,
            priority=p.priority,
            progress=p.progress,
            team_lead=p.team_lead,
            start_date=p.start_date,
            end_date=p.end_date,
            member_ids=members.get(p.id, []),
            group_ids=groups.get(p.id, []),
            created_at=p.created_at,
            updated_at=p.updated_at,
        )
        for p in projects
    ]


async def to_read(session: AsyncSession, project: Project) -> ProjectRead:
    return (await to_reads(session, [project]))[0]


async def _replace_groups(
    session: AsyncSession, project: Project, group_ids: Iterable[uuid.UUID]
) -> set[uuid.UUID]:
    valid = await restrict_to_workspace(session, project.workspace_id, group_ids)
    await session.execute(delete(ProjectGroup).where(ProjectGroup.project_id == project.id))
    for group_id in valid:
        session.add(ProjectGroup(project_id=project.id, group_id=group_id))
    await session.flush()
    return valid


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def list_projects(session: AsyncSession, workspace_id: uuid.UUID) -> list[Project]:
    result = await session.execute(
        select(Project).where(Project.workspace_id == workspace_id).order_by(Project.created_at)
    )
    return list(result.scalars().all())


async def create_project(
    session: AsyncSession, req: ProjectCreate, caller_id: uuid.UUID
) -> Project:
    """Create a project. The team lead defaults to the caller."""
    if not await session.get(Workspace, req.workspace_id):
        raise NotFoundError("Workspace not found")

    team_lead = req.team_lead or caller_id
    if team_lead != caller_id:
        role = await membership.role_of(session, req.workspace_id, team_lead)
        if role == WorkspaceRole.NONE:
            raise ValidationError("Team lead must be a member of the workspace")

    project = Project(
        workspace_id=req.workspace_id,
        name=req.name,
        description=req.description,
        status=req.status.value,
        priority=req.priority.value,
        progress=req.progress,
        team_lead=team_lead,
        start_date=req.start_date,
        end_date=req.end_date,
    )
    session.add(project)
    await session.flush()

    if req.group_ids:
        await _replace_groups(session, project, req.group_ids)

    log.info("project.created", project_id=str(project.id), workspace_id=str(project.workspace_id))
    return project


async def update_project(session: AsyncSession, project: Project, req: ProjectUpdate) -> Project:
    changes = req.model_dump(exclude_unset=True, exclude={"group_ids"})
    for field, value in changes.items():
        if value is None and field in _REQUIRED_FIELDS:
            continue
        if isinstance(value, Enum):
            value = value.value
        setattr(project, field, value)
    session.add(project)
    await session.flush()

    if req.group_ids is not None:
        await _replace_groups(session, project, req.group_ids)

    log.info("project.updated", project_id=str(project.id), fields=sorted(changes))
    return project


async def add_member(
    session: AsyncSession,
    mailer: Mailer,
    project: Project,
    email: str,
    origin: str = "",
) -> UserRead:
    """Add a user to the project, provisioning them if needed.

    The user also gains a MEMBER row in the owning workspace when missing.
    """
    email = email.strip().lower()
    existing = await user_service.get_by_email(session, email)
    if existing and existing.id in await membership.project_member_ids(session, project.id):
        raise ValidationError("User is already a member")

    user, temp_password = await user_service.provision_invitee(session, email)

    if await membership.role_of(session, project.workspace_id, user.id) == WorkspaceRole.NONE:
        session.add(
            WorkspaceMember(
                user_id=user.id,
                workspace_id=project.workspace_id,
                role=WorkspaceRole.MEMBER.value,
            )
        )
    session.add(ProjectMember(project_id=project.id, user_id=user.id))
    await session.flush()
    log.info("project.member_added", project_id=str(project.id), user_id=str(user.id))

    if temp_password:
        subject, html = emails.project_invitation(origin, project.name, email, temp_password)
        await user_service.send_credentials(mailer, email, subject, html)
    return UserRead.model_validate(user)


async def delete_project(session: AsyncSession, project: Project) -> None:
    await cascade.delete_projects(session, [project.id])
    log.info("project.deleted", project_id=str(project.id), workspace_id=str(project.workspace_id))
