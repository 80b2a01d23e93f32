"""
Workspace endpoints: CRUD, membership, project import.

- Create / delete: global admin only
- Update, invite, remove, import: workspace admin (or global admin)
- Read: workspace members (or global admin)
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import request_origin
from app.core.auth import Principal, get_principal, require_global_admin
from app.core.database import get_session
from app.core.mail import Mailer, get_mailer
from app.core.storage import ObjectStorage, get_storage
from app.services import policies, workspaces as workspace_service
from crewdesk_shared.schemas.common import MessageResponse
from crewdesk_shared.schemas.workspaces import (
    BulkInvite,
    BulkInviteResponse,
    BulkRemove,
    ImportProjectsRequest,
    ImportProjectsResponse,
    MemberInvite,
    MemberInviteResponse,
    WorkspaceCreate,
    WorkspaceDetail,
    WorkspaceListResponse,
    WorkspaceUpdate,
)

router = APIRouter()


@router.get("", response_model=WorkspaceListResponse)
async def list_my_workspaces(
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    """Workspaces the caller is a member of."""
    workspaces = await workspace_service.list_for_user(session, principal.user_id)
    return WorkspaceListResponse(
        workspaces=[await workspace_service.to_detail(session, w) for w in workspaces]
    )


@router.post("", response_model=WorkspaceDetail, status_code=201)
async def create_workspace(
    body: WorkspaceCreate,
    principal: Principal = Depends(require_global_admin),
    session: AsyncSession = Depends(get_session),
):
    workspace = await workspace_service.create_workspace(
        session, principal.user_id, body.name, body.description, body.image_url
    )
    await session.commit()
    return await workspace_service.to_detail(session, workspace)


@router.get("/{workspace_id}", response_model=WorkspaceDetail)
async def get_workspace(
    workspace_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    workspace = await workspace_service.get_workspace_or_404(session, workspace_id)
    await policies.ensure_workspace_member(session, principal, workspace.id)
    return await workspace_service.to_detail(session, workspace)


@router.patch("/{workspace_id}", response_model=WorkspaceDetail)
async def update_workspace(
    workspace_id: uuid.UUID,
    body: WorkspaceUpdate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    workspace = await workspace_service.get_workspace_or_404(session, workspace_id)
    await policies.ensure_workspace_admin(
        session, principal, workspace.id, "You don't have permission to update this workspace"
    )
    await workspace_service.update_workspace(
        session, workspace, body.name, body.description, body.image_url
    )
    await session.commit()
    return await workspace_service.to_detail(session, workspace)


@router.delete("/{workspace_id}", response_model=MessageResponse)
async def delete_workspace(
    workspace_id: uuid.UUID,
    principal: Principal = Depends(require_global_admin),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_storage),
):
    """Delete a workspace and everything it owns, including attendance photos."""
    workspace = await workspace_service.get_workspace_or_404(session, workspace_id)
    await workspace_service.delete_workspace(session, storage, workspace)
    await session.commit()
    return MessageResponse(message="Workspace deleted successfully")


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------


@router.post("/{workspace_id}/members", response_model=MemberInviteResponse)
async def invite_member(
    workspace_id: uuid.UUID,
    body: MemberInvite,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
    origin: str = Depends(request_origin),
):
    workspace = await workspace_service.get_workspace_or_404(session, workspace_id)
    await policies.ensure_workspace_admin(
        session, principal, workspace.id, "You don't have permission to invite members"
    )
    member = await workspace_service.invite_member(
        session, mailer, workspace, str(body.email), body.role, origin
    )
    await session.commit()
    return MemberInviteResponse(member=member)


@router.post("/{workspace_id}/members/bulk", response_model=BulkInviteResponse)
async def invite_members_bulk(
    workspace_id: uuid.UUID,
    body: BulkInvite,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
    origin: str = Depends(request_origin),
):
    workspace = await workspace_service.get_workspace_or_404(session, workspace_id)
    await policies.ensure_workspace_admin(
        session, principal, workspace.id, "You don't have permission to invite members"
    )
    invited = await workspace_service.invite_members_bulk(
        session, mailer, workspace, body.emails, body.role, origin
    )
    await session.commit()
    return BulkInviteResponse(invited=invited)


@router.post("/{workspace_id}/members/remove", response_model=MessageResponse)
async def remove_members_bulk(
    workspace_id: uuid.UUID,
    body: BulkRemove,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    workspace = await workspace_service.get_workspace_or_404(session, workspace_id)
    await policies.ensure_workspace_admin(
        session, principal, workspace.id, "You don't have permission to remove members"
    )
    await workspace_service.remove_members_bulk(session, workspace, body.user_ids)
    await session.commit()
    return MessageResponse(message="Members removed successfully")


@router.post("/{workspace_id}/import", response_model=ImportProjectsResponse)
async def import_projects(
    workspace_id: uuid.UUID,
    body: ImportProjectsRequest,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    """Copy all projects (and their tasks) from another workspace."""
    target = await workspace_service.get_workspace_or_404(session, workspace_id)
    await policies.ensure_workspace_admin(
        session, principal, target.id, "You don't have permission to import"
    )
    source = await workspace_service.get_workspace_or_404(session, body.source_workspace_id)
    await policies.ensure_workspace_member(session, principal, source.id)
    imported = await workspace_service.import_projects(session, target, source, principal.user_id)
    await session.commit()
    return ImportProjectsResponse(imported=imported)
