"""Workspace-wide broadcast notification."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Notification(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "notifications"

    workspace_id: uuid.UUID = Field(foreign_key="workspaces.id", nullable=False, index=True)
    title: str = Field(nullable=False)
    subtitle: Optional[str] = None
    button_name: Optional[str] = None
    button_url: Optional[str] = None
    open_in_new_tab: bool = Field(default=False, nullable=False)
