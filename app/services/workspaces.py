"""
Workspace service: workspace CRUD, membership, project import and the full
child-first teardown on delete.
"""

from __future__ import annotations

import random
import re
import time
import uuid
from collections import defaultdict
from typing import Iterable, Optional, Sequence

import structlog
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import NotFoundError, ValidationError
from app.core.mail import Mailer
from app.core.storage import ObjectStorage, purge_images
from app.models.assignments import ProjectMember
from app.models.attendance import Attendance
from app.models.group import Group, GroupMember
from app.models.notification import Notification
from app.models.project import Project
from app.models.task import Task
from app.models.user import User
from app.models.workspace import Workspace, WorkspaceMember
from app.services import cascade, emails, groups as group_service, users as user_service
from crewdesk_shared.schemas.common import WorkspaceRole, normalize_member_role
from crewdesk_shared.schemas.users import MemberRead, UserRead
from crewdesk_shared.schemas.workspaces import WorkspaceDetail, WorkspaceRead

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Slugs
# ---------------------------------------------------------------------------


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", str(name).strip().lower()).strip("-")


async def unique_slug(session: AsyncSession, name: str) -> str:
    """Slug from the name; a random 4-digit suffix is appended on collision.

    The unique index on ``workspaces.slug`` remains the final arbiter.
    """
    slug = slugify(name) or f"workspace-{int(time.time() * 1000)}"
    existing = await session.execute(select(Workspace.id).where(Workspace.slug == slug))
    if existing.first() is not None:
        slug = f"{slug}-{random.randint(1000, 9999)}"
    return slug


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_workspace_or_404(session: AsyncSession, workspace_id: uuid.UUID) -> Workspace:
    workspace = await session.get(Workspace, workspace_id)
    if not workspace:
        raise NotFoundError("Workspace not found")
    return workspace


async def list_members(session: AsyncSession, workspace_id: uuid.UUID) -> list[MemberRead]:
    result = await session.execute(
        select(User, WorkspaceMember.role)
        .join(WorkspaceMember, WorkspaceMember.user_id == User.id)
        .where(WorkspaceMember.workspace_id == workspace_id)
        .order_by(User.email)
    )
    return [
        MemberRead(
            user=UserRead.model_validate(user),
            workspace_id=workspace_id,
            role=normalize_member_role(role),
        )
        for user, role in result.all()
    ]


async def to_detail(session: AsyncSession, workspace: Workspace) -> WorkspaceDetail:
    groups = await group_service.list_for_workspace(session, workspace.id)
    return WorkspaceDetail(
        **WorkspaceRead.model_validate(workspace).model_dump(),
        members=await list_members(session, workspace.id),
        groups=await group_service.to_reads(session, groups),
    )


async def list_for_user(session: AsyncSession, user_id: uuid.UUID) -> list[Workspace]:
    result = await session.execute(
        select(Workspace)
        .join(WorkspaceMember, WorkspaceMember.workspace_id == Workspace.id)
        .where(WorkspaceMember.user_id == user_id)
        .order_by(Workspace.created_at)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


async def create_workspace(
    session: AsyncSession,
    owner_id: uuid.UUID,
    name: str,
    description: Optional[str] = None,
    image_url: Optional[str] = None,
) -> Workspace:
    """Create a workspace; the creator becomes its ADMIN member."""
    workspace = Workspace(
        name=name,
        slug=await unique_slug(session, name),
        description=description or None,
        image_url=image_url or "",
        owner_id=owner_id,
    )
    session.add(workspace)
    await session.flush()

    session.add(
        WorkspaceMember(user_id=owner_id, workspace_id=workspace.id, role=WorkspaceRole.ADMIN.value)
    )
    await session.flush()

    log.info("workspace.created", workspace_id=str(workspace.id), slug=workspace.slug, owner=str(owner_id))
    return workspace


async def update_workspace(
    session: AsyncSession,
    workspace: Workspace,
    name: Optional[str] = None,
    description: Optional[str] = None,
    image_url: Optional[str] = None,
) -> Workspace:
    if name is not None:
        workspace.name = name
    if description is not None:
        workspace.description = description
    if image_url is not None:
        workspace.image_url = image_url
    session.add(workspace)
    await session.flush()
    log.info("workspace.updated", workspace_id=str(workspace.id))
    return workspace


async def _is_member(session: AsyncSession, workspace_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    result = await session.execute(
        select(WorkspaceMember.user_id).where(
            WorkspaceMember.workspace_id == workspace_id, WorkspaceMember.user_id == user_id
        )
    )
    return result.first() is not None


async def _add_member(
    session: AsyncSession,
    mailer: Mailer,
    workspace: Workspace,
    email: str,
    role: WorkspaceRole,
    origin: str,
    *,
    best_effort: bool,
) -> tuple[WorkspaceMember, User]:
    user, temp_password = await user_service.provision_invitee(session, email)
    member = WorkspaceMember(user_id=user.id, workspace_id=workspace.id, role=role.value)
    session.add(member)
    await session.flush()
    log.info("workspace.member_added", workspace_id=str(workspace.id), user_id=str(user.id), role=role.value)

    if temp_password:
        subject, html = emails.workspace_invitation(origin, workspace.name, email, temp_password)
        if best_effort:
            await mailer.notify([email], subject, html)
        else:
            await user_service.send_credentials(mailer, email, subject, html)
    return member, user


async def invite_member(
    session: AsyncSession,
    mailer: Mailer,
    workspace: Workspace,
    email: str,
    role: Optional[str] = None,
    origin: str = "",
) -> MemberRead:
    """Invite one user. An existing member is a 400."""
    email = email.strip().lower()
    existing = await user_service.get_by_email(session, email)
    if existing and await _is_member(session, workspace.id, existing.id):
        raise ValidationError("User is already a member")

    normalized = normalize_member_role(role)
    _member, user = await _add_member(
        session, mailer, workspace, email, normalized, origin, best_effort=False
    )
    return MemberRead(user=UserRead.model_validate(user), workspace_id=workspace.id, role=normalized)


async def invite_members_bulk(
    session: AsyncSession,
    mailer: Mailer,
    workspace: Workspace,
    emails_in: Iterable[str],
    role: Optional[str] = None,
    origin: str = "",
) -> list[str]:
    """Best-effort bulk invite. Blanks and existing members are skipped."""
    normalized = normalize_member_role(role)
    member_emails = {m.user.email.lower() for m in await list_members(session, workspace.id)}
    invited: list[str] = []

    for raw in emails_in:
        email = str(raw).strip().lower()
        if not email or email in member_emails:
            continue
        await _add_member(session, mailer, workspace, email, normalized, origin, best_effort=True)
        member_emails.add(email)
        invited.append(email)

    log.info("workspace.bulk_invited", workspace_id=str(workspace.id), count=len(invited))
    return invited


async def remove_members_bulk(
    session: AsyncSession, workspace: Workspace, user_ids: Iterable[uuid.UUID]
) -> int:
    """Remove members and drop them from this workspace's groups and projects."""
    ids = list(set(user_ids))
    if not ids:
        raise ValidationError("user_ids are required")

    group_ids = select(Group.id).where(Group.workspace_id == workspace.id)
    await session.execute(
        delete(GroupMember).where(
            GroupMember.group_id.in_(group_ids), GroupMember.user_id.in_(ids)
        )
    )
    project_ids = select(Project.id).where(Project.workspace_id == workspace.id)
    await session.execute(
        delete(ProjectMember).where(
            ProjectMember.project_id.in_(project_ids), ProjectMember.user_id.in_(ids)
        )
    )
    result = await session.execute(
        delete(WorkspaceMember).where(
            WorkspaceMember.workspace_id == workspace.id, WorkspaceMember.user_id.in_(ids)
        )
    )
    removed = result.rowcount or 0
    log.info("workspace.members_removed", workspace_id=str(workspace.id), count=removed)
    return removed


async def import_projects(
    session: AsyncSession,
    target: Workspace,
    source: Workspace,
    team_lead: uuid.UUID,
) -> int:
    """Copy every project of ``source`` (and its tasks) into ``target``.

    Copies carry no members, groups, assignees or comments.
    """
    result = await session.execute(select(Project).where(Project.workspace_id == source.id))
    projects: Sequence[Project] = result.scalars().all()
    if not projects:
        return 0

    result = await session.execute(
        select(Task).where(Task.project_id.in_([p.id for p in projects]))
    )
    tasks_by_project: dict[uuid.UUID, list[Task]] = defaultdict(list)
    for task in result.scalars().all():
        tasks_by_project[task.project_id].append(task)

    for project in projects:
        copy = Project(
            workspace_id=target.id,
            name=project.name,
            description=project.description,
            status=project.status,
            priority=project.priority,
            progress=project.progress,
            start_date=project.start_date,
            end_date=project.end_date,
            team_lead=team_lead,
        )
        session.add(copy)
        await session.flush()
        for task in tasks_by_project.get(project.id, []):
            session.add(
                Task(
                    project_id=copy.id,
                    title=task.title,
                    description=task.description,
                    type=task.type,
                    status=task.status,
                    priority=task.priority,
                    due_date=task.due_date,
                )
            )
    await session.flush()

    log.info(
        "workspace.projects_imported",
        target=str(target.id),
        source=str(source.id),
        count=len(projects),
    )
    return len(projects)


async def delete_workspace(
    session: AsyncSession, storage: ObjectStorage, workspace: Workspace
) -> None:
    """Purge attendance images (best effort), then delete children before parents."""
    result = await session.execute(
        select(Attendance.image_url).where(Attendance.workspace_id == workspace.id)
    )
    batches = await purge_images(storage, [row[0] for row in result.all()])

    result = await session.execute(select(Project.id).where(Project.workspace_id == workspace.id))
    await cascade.delete_projects(session, [row[0] for row in result.all()])

    result = await session.execute(select(Group.id).where(Group.workspace_id == workspace.id))
    await cascade.delete_groups(session, [row[0] for row in result.all()])

    await session.execute(delete(Notification).where(Notification.workspace_id == workspace.id))
    await session.execute(delete(Attendance).where(Attendance.workspace_id == workspace.id))
    await session.execute(delete(WorkspaceMember).where(WorkspaceMember.workspace_id == workspace.id))
    await session.delete(workspace)
    await session.flush()

    log.info("workspace.deleted", workspace_id=str(workspace.id), image_batches=batches)
