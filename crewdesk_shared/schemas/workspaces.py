"""Workspace schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from .groups import GroupRead
from .users import MemberRead


class WorkspaceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    image_url: Optional[str] = None


class WorkspaceUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    image_url: Optional[str] = None


class WorkspaceRead(BaseModel):
    id: UUID
    name: str
    slug: str
    description: Optional[str] = None
    image_url: str = ""
    owner_id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class WorkspaceDetail(WorkspaceRead):
    members: List[MemberRead] = Field(default_factory=list)
    groups: List[GroupRead] = Field(default_factory=list)


class WorkspaceListResponse(BaseModel):
    workspaces: List[WorkspaceDetail]


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------

class MemberInvite(BaseModel):
    email: EmailStr
    role: Optional[str] = None  # normalised to ADMIN | MEMBER


class MemberInviteResponse(BaseModel):
    member: MemberRead
    message: str = "Member invited successfully"


class BulkInvite(BaseModel):
    emails: List[str] = Field(min_length=1)
    role: Optional[str] = None


class BulkInviteResponse(BaseModel):
    invited: List[str]
    message: str = "Invitations sent"


class BulkRemove(BaseModel):
    user_ids: List[UUID] = Field(min_length=1)


class ImportProjectsRequest(BaseModel):
    source_workspace_id: UUID


class ImportProjectsResponse(BaseModel):
    imported: int
    message: str = "Projects imported successfully"
