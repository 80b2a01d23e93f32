"""
Group service: named subsets of a workspace's members, plus group chat.

Invariant: every group member is also a member of the owning workspace.
Candidates that are not are dropped silently on create and on add.
Removing a member never touches task assignments made while they were in
the group.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from typing import Iterable, Sequence

import structlog
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.core.mail import Mailer
from app.models.group import Group, GroupMember, GroupMessage
from app.models.workspace import Workspace
from app.services import cascade, emails, membership, users as user_service
from app.services.policies import restrict
from crewdesk_shared.schemas.groups import GroupRead, GroupMessageRead
from crewdesk_shared.schemas.users import UserRead

log = structlog.get_logger()


async def get_group_or_404(session: AsyncSession, group_id: uuid.UUID) -> Group:
    group = await session.get(Group, group_id)
    if not group:
        raise NotFoundError("Group not found")
    return group


async def to_reads(session: AsyncSession, groups: Sequence[Group]) -> list[GroupRead]:
    if not groups:
        return []
    result = await session.execute(
        select(GroupMember.group_id, GroupMember.user_id).where(
            GroupMember.group_id.in_([g.id for g in groups])
        )
    )
    members: dict[uuid.UUID, list[uuid.UUID]] = defaultdict(list)
    for group_id, user_id in result.all():
        members[group_id].append(user_id)
    return [
        GroupRead(
            id=g.id,
            workspace_id=g.workspace_id,
            name=g.name,
            created_at=g.created_at,
            member_ids=members.get(g.id, []),
        )
        for g in groups
    ]


async def list_for_workspace(session: AsyncSession, workspace_id: uuid.UUID) -> list[Group]:
    result = await session.execute(
        select(Group).where(Group.workspace_id == workspace_id).order_by(Group.name)
    )
    return list(result.scalars().all())


async def restrict_to_workspace(
    session: AsyncSession, workspace_id: uuid.UUID, group_ids: Iterable[uuid.UUID]
) -> set[uuid.UUID]:
    """Keep only the ids that name groups of this workspace."""
    ids = set(group_ids)
    if not ids:
        return set()
    result = await session.execute(
        select(Group.id).where(Group.workspace_id == workspace_id, Group.id.in_(ids))
    )
    return restrict(ids, {row[0] for row in result.all()})


async def notify_added(
    session: AsyncSession,
    mailer: Mailer,
    group: Group,
    user_ids: Iterable[uuid.UUID],
    origin: str = "",
) -> list[str]:
    """Send the "added to group" mail once the membership change is committed."""
    people = await user_service.get_many(session, user_ids)
    if not people:
        return []
    workspace = await session.get(Workspace, group.workspace_id)
    subject, html = emails.group_added(origin, group.name, workspace.name if workspace else "")
    return await mailer.notify([u.email for u in people.values()], subject, html)


async def create_group(
    session: AsyncSession,
    workspace_id: uuid.UUID,
    name: str,
    member_ids: Iterable[uuid.UUID],
) -> tuple[Group, set[uuid.UUID]]:
    name = name.strip()
    if not name:
        raise ValidationError("Group name is required")
    if not await session.get(Workspace, workspace_id):
        raise NotFoundError("Workspace not found")

    existing = await session.execute(
        select(Group.id).where(Group.workspace_id == workspace_id, Group.name == name)
    )
    if existing.first() is not None:
        raise ConflictError("Group name already exists in this workspace")

    group = Group(workspace_id=workspace_id, name=name)
    session.add(group)
    await session.flush()

    allowed = await membership.workspace_member_ids(session, workspace_id)
    added = restrict(member_ids, allowed)
    for user_id in added:
        session.add(GroupMember(group_id=group.id, user_id=user_id))
    await session.flush()

    log.info("group.created", group_id=str(group.id), workspace_id=str(workspace_id), members=len(added))
    return group, added


async def update_members(
    session: AsyncSession,
    group: Group,
    add_user_ids: Iterable[uuid.UUID],
    remove_user_ids: Iterable[uuid.UUID],
) -> set[uuid.UUID]:
    """Apply adds and removals; returns the ids newly added."""
    current = await membership.group_member_ids(session, [group.id])
    allowed = await membership.workspace_member_ids(session, group.workspace_id)
    to_add = restrict(add_user_ids, allowed) - current
    to_remove = set(remove_user_ids) & current

    if to_remove:
        await session.execute(
            delete(GroupMember).where(
                GroupMember.group_id == group.id, GroupMember.user_id.in_(to_remove)
            )
        )
    for user_id in to_add:
        session.add(GroupMember(group_id=group.id, user_id=user_id))
    await session.flush()

    log.info(
        "group.members_updated",
        group_id=str(group.id),
        added=len(to_add),
        removed=len(to_remove),
    )
    return to_add


async def delete_group(session: AsyncSession, group: Group) -> None:
    await cascade.delete_groups(session, [group.id])
    log.info("group.deleted", group_id=str(group.id), workspace_id=str(group.workspace_id))


# ---------------------------------------------------------------------------
# Group chat
# ---------------------------------------------------------------------------


async def list_messages(session: AsyncSession, group: Group) -> list[GroupMessageRead]:
    result = await session.execute(
        select(GroupMessage)
        .where(GroupMessage.group_id == group.id)
        .order_by(GroupMessage.created_at)
    )
    messages = list(result.scalars().all())
    authors = await user_service.get_many(session, [m.user_id for m in messages])
    return [
        GroupMessageRead(
            id=m.id,
            group_id=m.group_id,
            user_id=m.user_id,
            content=m.content,
            created_at=m.created_at,
            user=UserRead.model_validate(authors[m.user_id]) if m.user_id in authors else None,
        )
        for m in messages
    ]


async def post_message(
    session: AsyncSession, group: Group, user_id: uuid.UUID, content: str
) -> GroupMessage:
    content = content.strip()
    if not content:
        raise ValidationError("Message content is required")
    message = GroupMessage(group_id=group.id, user_id=user_id, content=content)
    session.add(message)
    await session.flush()
    log.info("group.message_posted", group_id=str(group.id), user_id=str(user_id))
    return message


async def clear_messages(session: AsyncSession, group: Group) -> int:
    result = await session.execute(delete(GroupMessage).where(GroupMessage.group_id == group.id))
    log.info("group.messages_cleared", group_id=str(group.id))
    return result.rowcount or 0
