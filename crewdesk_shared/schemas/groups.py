"""Group and group-chat schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .users import UserRead


class GroupCreate(BaseModel):
    workspace_id: UUID
    name: str = Field(min_length=1, max_length=200)
    member_ids: List[UUID] = Field(default_factory=list)


class GroupMembersUpdate(BaseModel):
    add_user_ids: List[UUID] = Field(default_factory=list)
    remove_user_ids: List[UUID] = Field(default_factory=list)


class GroupRead(BaseModel):
    id: UUID
    workspace_id: UUID
    name: str
    created_at: datetime
    member_ids: List[UUID] = Field(default_factory=list)


class GroupMessageCreate(BaseModel):
    content: str


class GroupMessageRead(BaseModel):
    id: UUID
    group_id: UUID
    user_id: UUID
    content: str
    created_at: datetime
    user: Optional[UserRead] = None
