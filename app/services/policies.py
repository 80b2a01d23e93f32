"""
Authorization gate.

Every mutating operation is guarded by one of five policies:

1. global-admin only:  the ADMIN session claim
2. workspace admin:    ADMIN member row in the workspace, OR the claim
3. project manager:    project team lead, OR workspace admin, OR the claim
4. task audience:      workspace members who are in the task's groups; when
                       the task has no groups, the project's members and lead
5. attendance image:   the record's owner (same day only) or the claim

The session claim and the derived workspace role are kept as two separate
predicates and OR-ed at each call site so the bypass stays visible.

All ``ensure_*`` helpers raise before any write is performed.
"""

from __future__ import annotations

import datetime as dt
import uuid
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Principal
from app.core.errors import AuthorizationError
from app.models.attendance import Attendance
from app.models.project import Project
from app.models.task import Task
from app.services import membership
from crewdesk_shared.schemas.common import WorkspaceRole


def restrict(candidates: Iterable[uuid.UUID], allowed: Iterable[uuid.UUID]) -> set[uuid.UUID]:
    """Keep exactly the candidates present in ``allowed``; drop the rest silently."""
    return set(candidates) & set(allowed)


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def has_admin_claim(principal: Principal) -> bool:
    return principal.is_global_admin


async def is_workspace_admin(
    session: AsyncSession, workspace_id: uuid.UUID, user_id: uuid.UUID
) -> bool:
    return await membership.role_of(session, workspace_id, user_id) == WorkspaceRole.ADMIN


async def can_administer_workspace(
    session: AsyncSession, principal: Principal, workspace_id: uuid.UUID
) -> bool:
    return has_admin_claim(principal) or await is_workspace_admin(
        session, workspace_id, principal.user_id
    )


async def can_manage_project(
    session: AsyncSession, principal: Principal, project: Project
) -> bool:
    if has_admin_claim(principal):
        return True
    # a team lead who has left the workspace loses the project with it
    role = await membership.role_of(session, project.workspace_id, principal.user_id)
    if role == WorkspaceRole.NONE:
        return False
    if role == WorkspaceRole.ADMIN:
        return True
    return await membership.is_project_lead(session, project.id, principal.user_id)


@dataclass(frozen=True)
class TaskAudience:
    """Users allowed to read and write a task's comments."""

    group_gated: bool
    user_ids: frozenset[uuid.UUID]

    def admits(self, user_id: uuid.UUID) -> bool:
        return user_id in self.user_ids


async def task_audience(session: AsyncSession, task: Task, project: Project) -> TaskAudience:
    group_ids = await membership.task_group_ids(session, task.id)
    if group_ids:
        members = await membership.group_member_ids(session, group_ids)
        return TaskAudience(group_gated=True, user_ids=frozenset(members))
    members = await membership.project_member_ids(session, project.id)
    members.add(project.team_lead)
    return TaskAudience(group_gated=False, user_ids=frozenset(members))


async def assignable_user_ids(
    session: AsyncSession, group_ids: Iterable[uuid.UUID]
) -> set[uuid.UUID]:
    """Assignment eligibility: the union of the task's groups' members.

    A task without groups has no eligible assignees. This differs from
    comment access, which falls back to project membership.
    """
    return await membership.group_member_ids(session, group_ids)


def can_see_attendance_image(principal: Principal, record: Attendance, today: dt.date) -> bool:
    if has_admin_claim(principal):
        return True
    return record.user_id == principal.user_id and record.date == today


# ---------------------------------------------------------------------------
# Enforcement
# ---------------------------------------------------------------------------


def ensure_global_admin(principal: Principal, detail: str = "Administrator access required") -> None:
    if not has_admin_claim(principal):
        raise AuthorizationError(detail)


async def ensure_workspace_member(
    session: AsyncSession,
    principal: Principal,
    workspace_id: uuid.UUID,
    detail: str = "You are not a member of this workspace",
) -> WorkspaceRole:
    """Any workspace-scoped action requires a member row or the admin claim."""
    role = await membership.role_of(session, workspace_id, principal.user_id)
    if role == WorkspaceRole.NONE and not has_admin_claim(principal):
        raise AuthorizationError(detail)
    return role


async def ensure_workspace_admin(
    session: AsyncSession,
    principal: Principal,
    workspace_id: uuid.UUID,
    detail: str = "Workspace administrator access required",
) -> None:
    if not await can_administer_workspace(session, principal, workspace_id):
        raise AuthorizationError(detail)


async def ensure_project_manager(
    session: AsyncSession,
    principal: Principal,
    project: Project,
    detail: str = "You don't have admin privileges for this project",
) -> None:
    if not await can_manage_project(session, principal, project):
        raise AuthorizationError(detail)


async def ensure_task_audience(
    session: AsyncSession,
    principal: Principal,
    task: Task,
    project: Project,
) -> None:
    """Comment access: a workspace member row first, then the task audience."""
    if has_admin_claim(principal):
        return
    await ensure_workspace_member(session, principal, project.workspace_id)
    audience = await task_audience(session, task, project)
    if not audience.admits(principal.user_id):
        if audience.group_gated:
            raise AuthorizationError("Only members of this task's groups can access its comments")
        raise AuthorizationError("Only project members can access this task's comments")
