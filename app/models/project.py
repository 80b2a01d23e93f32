"""Project model."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Project(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "projects"

    workspace_id: uuid.UUID = Field(foreign_key="workspaces.id", nullable=False, index=True)
    name: str = Field(nullable=False)
    description: Optional[str] = None
    status: str = Field(default="PLANNING", nullable=False)
    priority: str = Field(default="MEDIUM", nullable=False)
    progress: int = Field(default=0, nullable=False)
    team_lead: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    start_date: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    end_date: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
