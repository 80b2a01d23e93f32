"""Workspace and workspace membership."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, TimestampMixin, UUIDMixin


class Workspace(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "workspaces"

    name: str = Field(nullable=False)
    slug: str = Field(unique=True, nullable=False, index=True)
    description: Optional[str] = None
    image_url: str = Field(default="", nullable=False)
    owner_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)


class WorkspaceMember(CreatedAtMixin, SQLModel, table=True):
    """Sole source of truth for workspace-scoped roles."""

    __tablename__ = "workspace_members"

    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True)
    workspace_id: uuid.UUID = Field(foreign_key="workspaces.id", primary_key=True, index=True)
    role: str = Field(nullable=False, default="MEMBER")  # ADMIN | MEMBER
