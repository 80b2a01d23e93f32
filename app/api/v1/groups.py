"""
Group endpoints: group CRUD (global admin) and group chat (group members).
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import request_origin
from app.core.auth import Principal, get_principal, require_global_admin
from app.core.database import get_session
from app.core.errors import AuthorizationError
from app.core.mail import Mailer, get_mailer
from app.models.group import Group
from app.models.user import User
from app.services import groups as group_service, membership, policies
from crewdesk_shared.schemas.common import MessageResponse
from crewdesk_shared.schemas.groups import (
    GroupCreate,
    GroupMembersUpdate,
    GroupMessageCreate,
    GroupMessageRead,
    GroupRead,
)
from crewdesk_shared.schemas.users import UserRead

router = APIRouter()


async def _ensure_chat_access(session: AsyncSession, principal: Principal, group: Group) -> None:
    if policies.has_admin_claim(principal):
        return
    if not await membership.is_group_member(session, group.id, principal.user_id):
        raise AuthorizationError("You are not a member of this group")


@router.get("", response_model=List[GroupRead])
async def list_groups(
    workspace_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    await policies.ensure_workspace_member(session, principal, workspace_id)
    groups = await group_service.list_for_workspace(session, workspace_id)
    return await group_service.to_reads(session, groups)


@router.post("", response_model=GroupRead, status_code=201)
async def create_group(
    body: GroupCreate,
    principal: Principal = Depends(require_global_admin),
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
    origin: str = Depends(request_origin),
):
    group, added = await group_service.create_group(
        session, body.workspace_id, body.name, body.member_ids
    )
    await session.commit()
    await group_service.notify_added(session, mailer, group, added, origin)
    return (await group_service.to_reads(session, [group]))[0]


@router.get("/{group_id}", response_model=GroupRead)
async def get_group(
    group_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    group = await group_service.get_group_or_404(session, group_id)
    await policies.ensure_workspace_member(session, principal, group.workspace_id)
    return (await group_service.to_reads(session, [group]))[0]


@router.patch("/{group_id}/members", response_model=GroupRead)
async def update_group_members(
    group_id: uuid.UUID,
    body: GroupMembersUpdate,
    principal: Principal = Depends(require_global_admin),
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
    origin: str = Depends(request_origin),
):
    """Add and/or remove members. Existing task assignments are left alone."""
    group = await group_service.get_group_or_404(session, group_id)
    added = await group_service.update_members(
        session, group, body.add_user_ids, body.remove_user_ids
    )
    await session.commit()
    await group_service.notify_added(session, mailer, group, added, origin)
    return (await group_service.to_reads(session, [group]))[0]


@router.delete("/{group_id}", response_model=MessageResponse)
async def delete_group(
    group_id: uuid.UUID,
    principal: Principal = Depends(require_global_admin),
    session: AsyncSession = Depends(get_session),
):
    group = await group_service.get_group_or_404(session, group_id)
    await group_service.delete_group(session, group)
    await session.commit()
    return MessageResponse(message="Group deleted successfully")


# ---------------------------------------------------------------------------
# Group chat
# ---------------------------------------------------------------------------


@router.get("/{group_id}/messages", response_model=List[GroupMessageRead])
async def list_group_messages(
    group_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    group = await group_service.get_group_or_404(session, group_id)
    await _ensure_chat_access(session, principal, group)
    return await group_service.list_messages(session, group)


@router.post("/{group_id}/messages", response_model=GroupMessageRead, status_code=201)
async def post_group_message(
    group_id: uuid.UUID,
    body: GroupMessageCreate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    group = await group_service.get_group_or_404(session, group_id)
    await _ensure_chat_access(session, principal, group)
    message = await group_service.post_message(session, group, principal.user_id, body.content)
    await session.commit()
    author = await session.get(User, principal.user_id)
    return GroupMessageRead(
        id=message.id,
        group_id=message.group_id,
        user_id=message.user_id,
        content=message.content,
        created_at=message.created_at,
        user=UserRead.model_validate(author) if author else None,
    )


@router.delete("/{group_id}/messages", response_model=MessageResponse)
async def clear_group_messages(
    group_id: uuid.UUID,
    principal: Principal = Depends(require_global_admin),
    session: AsyncSession = Depends(get_session),
):
    group = await group_service.get_group_or_404(session, group_id)
    await group_service.clear_messages(session, group)
    await session.commit()
    return MessageResponse(message="Group messages cleared")
