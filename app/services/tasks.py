"""
Task service layer.

Handles:
- Task CRUD under a project
- Group scoping: a task's groups are drawn from the workspace's groups, and
  further from the project's groups when the project has any
- Assignment eligibility: assignees are restricted to the members of the
  task's groups at assignment time; a task with no groups has no assignees
- Comments, gated by the task audience
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from enum import Enum
from typing import Iterable, Optional, Sequence

import structlog
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import NotFoundError, ValidationError
from app.core.mail import Mailer
from app.models.assignments import TaskAssignee, TaskGroup
from app.models.project import Project
from app.models.task import Comment, Task
from app.services import cascade, emails, membership, users as user_service
from app.services.groups import restrict_to_workspace
from app.services.policies import assignable_user_ids, restrict
from app.services.projects import project_group_ids
from crewdesk_shared.schemas.tasks import CommentRead, TaskCreate, TaskRead, TaskUpdate
from crewdesk_shared.schemas.users import UserRead

log = structlog.get_logger()

_REQUIRED_FIELDS = {"title", "type", "status", "priority"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_task_or_404(session: AsyncSession, task_id: uuid.UUID) -> Task:
    task = await session.get(Task, task_id)
    if not task:
        raise NotFoundError("Task not found")
    return task


async def get_task_and_project(session: AsyncSession, task_id: uuid.UUID) -> tuple[Task, Project]:
    task = await get_task_or_404(session, task_id)
    project = await session.get(Project, task.project_id)
    if not project:
        raise NotFoundError("Project not found")
    return task, project


async def assignee_ids(session: AsyncSession, task_id: uuid.UUID) -> list[uuid.UUID]:
    result = await session.execute(
        select(TaskAssignee.user_id).where(TaskAssignee.task_id == task_id)
    )
    return [row[0] for row in result.all()]


async def to_reads(session: AsyncSession, tasks: Sequence[Task]) -> list[TaskRead]:
    if not tasks:
        return []
    ids = [t.id for t in tasks]

    groups: dict[uuid.UUID, list[uuid.UUID]] = defaultdict(list)
    result = await session.execute(
        select(TaskGroup.task_id, TaskGroup.group_id).where(TaskGroup.task_id.in_(ids))
    )
    for task_id, group_id in result.all():
        groups[task_id].append(group_id)

    assignees: dict[uuid.UUID, list[uuid.UUID]] = defaultdict(list)
    result = await session.execute(
        select(TaskAssignee.task_id, TaskAssignee.user_id).where(TaskAssignee.task_id.in_(ids))
    )
    for task_id, user_id in result.all():
        assignees[task_id].append(user_id)

    return [
        TaskRead(
            id=t.id,
            project_id=t.project_id,
            title=t.title,
            description=t.description,
            type=t.type,
            status=t.status,
            priority=t.priority,
            due_date=t.due_date,
            group_ids=groups.get(t.id, []),
            assignee_ids=assignees.get(t.id, []),
            created_at=t.created_at,
            updated_at=t.updated_at,
        )
        for t in tasks
    ]


async def to_read(session: AsyncSession, task: Task) -> TaskRead:
    return (await to_reads(session, [task]))[0]


async def list_for_project(session: AsyncSession, project_id: uuid.UUID) -> list[Task]:
    result = await session.execute(
        select(Task).where(Task.project_id == project_id).order_by(Task.created_at)
    )
    return list(result.scalars().all())


async def eligible_group_ids(
    session: AsyncSession, project: Project, group_ids: Iterable[uuid.UUID]
) -> set[uuid.UUID]:
    """Groups a task under ``project`` may be scoped to."""
    valid = await restrict_to_workspace(session, project.workspace_id, group_ids)
    scoped = await project_group_ids(session, project.id)
    if scoped:
        valid = restrict(valid, scoped)
    return valid


async def _set_groups(session: AsyncSession, task: Task, group_ids: set[uuid.UUID]) -> None:
    await session.execute(delete(TaskGroup).where(TaskGroup.task_id == task.id))
    for group_id in group_ids:
        session.add(TaskGroup(task_id=task.id, group_id=group_id))
    await session.flush()


async def _set_assignees(
    session: AsyncSession,
    task: Task,
    group_ids: Iterable[uuid.UUID],
    requested: Iterable[uuid.UUID],
) -> set[uuid.UUID]:
    allowed = await assignable_user_ids(session, group_ids)
    chosen = restrict(requested, allowed)
    await session.execute(delete(TaskAssignee).where(TaskAssignee.task_id == task.id))
    for user_id in chosen:
        session.add(TaskAssignee(task_id=task.id, user_id=user_id))
    await session.flush()
    return chosen


async def notify_assignees(
    session: AsyncSession, mailer: Mailer, task: Task, user_ids: Iterable[uuid.UUID], origin: str = ""
) -> list[str]:
    """Assignment mail; sent once the task is committed."""
    people = await user_service.get_many(session, user_ids)
    if not people:
        return []
    subject, html = emails.task_assignment(origin, task.title, task.description, task.due_date)
    return await mailer.notify([u.email for u in people.values()], subject, html)


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_task(
    session: AsyncSession, project: Project, req: TaskCreate
) -> tuple[Task, set[uuid.UUID]]:
    """Create the task and return it with the ids actually assigned."""
    task = Task(
        project_id=project.id,
        title=req.title,
        description=req.description,
        type=req.type.value,
        status=req.status.value,
        priority=req.priority.value,
        due_date=req.due_date,
    )
    session.add(task)
    await session.flush()

    groups = await eligible_group_ids(session, project, req.group_ids)
    await _set_groups(session, task, groups)
    assigned = await _set_assignees(session, task, groups, req.assignee_ids)

    log.info(
        "task.created",
        task_id=str(task.id),
        project_id=str(project.id),
        groups=len(groups),
        assignees=len(assigned),
    )
    return task, assigned


async def update_task(
    session: AsyncSession, project: Project, task: Task, req: TaskUpdate
) -> Task:
    changes = req.model_dump(exclude_unset=True, exclude={"group_ids", "assignee_ids"})
    for field, value in changes.items():
        if value is None and field in _REQUIRED_FIELDS:
            continue
        if isinstance(value, Enum):
            value = value.value
        setattr(task, field, value)
    session.add(task)
    await session.flush()

    if req.group_ids is not None:
        groups = await eligible_group_ids(session, project, req.group_ids)
        await _set_groups(session, task, groups)
    else:
        groups = set(await membership.task_group_ids(session, task.id))

    if req.assignee_ids is not None:
        await _set_assignees(session, task, groups, req.assignee_ids)

    log.info("task.updated", task_id=str(task.id), fields=sorted(changes))
    return task


async def load_for_delete(
    session: AsyncSession, task_ids: Iterable[uuid.UUID]
) -> tuple[list[Task], Project]:
    """Load the tasks of a bulk delete; they must all belong to one project."""
    ids = list(set(task_ids))
    result = await session.execute(select(Task).where(Task.id.in_(ids)))
    tasks = list(result.scalars().all())
    if not tasks or len(tasks) != len(ids):
        raise NotFoundError("Task not found")
    project_ids = {t.project_id for t in tasks}
    if len(project_ids) != 1:
        raise ValidationError("Tasks must belong to a single project")
    project = await session.get(Project, project_ids.pop())
    if not project:
        raise NotFoundError("Project not found")
    return tasks, project


async def delete_tasks(session: AsyncSession, tasks: Sequence[Task]) -> int:
    deleted = await cascade.delete_tasks(session, [t.id for t in tasks])
    log.info("task.deleted", count=deleted, project_id=str(tasks[0].project_id) if tasks else None)
    return deleted


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


async def add_comment(
    session: AsyncSession, task: Task, user_id: uuid.UUID, content: str
) -> Comment:
    content = (content or "").strip()
    if not content:
        raise ValidationError("Comment content is required")
    comment = Comment(task_id=task.id, user_id=user_id, content=content)
    session.add(comment)
    await session.flush()
    log.info("comment.created", comment_id=str(comment.id), task_id=str(task.id))
    return comment


async def list_comments(session: AsyncSession, task: Task) -> list[CommentRead]:
    result = await session.execute(
        select(Comment).where(Comment.task_id == task.id).order_by(Comment.created_at)
    )
    comments = list(result.scalars().all())
    authors = await user_service.get_many(session, [c.user_id for c in comments])
    return [comment_read(c, authors.get(c.user_id)) for c in comments]


def comment_read(comment: Comment, author: Optional[object] = None) -> CommentRead:
    return CommentRead(
        id=comment.id,
        task_id=comment.task_id,
        user_id=comment.user_id,
        content=comment.content,
        created_at=comment.created_at,
        user=UserRead.model_validate(author) if author is not None else None,
    )
