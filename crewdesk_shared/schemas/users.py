"""User and membership read models."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from .common import WorkspaceRole


class UserRead(BaseModel):
    id: UUID
    email: str
    name: str = ""
    image: str = ""
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class MemberRead(BaseModel):
    """A user's membership row in a workspace."""
    user: UserRead
    workspace_id: UUID
    role: WorkspaceRole
