"""Groups: named subsets of a workspace's members, plus their chat messages."""

import uuid

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, UUIDMixin


class Group(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "groups"
    __table_args__ = (
        UniqueConstraint("workspace_id", "name", name="uq_groups_workspace_name"),
    )

    workspace_id: uuid.UUID = Field(foreign_key="workspaces.id", nullable=False, index=True)
    name: str = Field(nullable=False)


class GroupMember(CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "group_members"

    group_id: uuid.UUID = Field(foreign_key="groups.id", primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True, index=True)


class GroupMessage(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "group_messages"

    group_id: uuid.UUID = Field(foreign_key="groups.id", nullable=False, index=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    content: str = Field(nullable=False)
