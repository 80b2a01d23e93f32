"""Task and comment models."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, TimestampMixin, UUIDMixin


class Task(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "tasks"

    project_id: uuid.UUID = Field(foreign_key="projects.id", nullable=False, index=True)
    title: str = Field(nullable=False)
    description: Optional[str] = None
    type: str = Field(nullable=False, default="TASK")  # TASK | BUG | FEATURE | IMPROVEMENT | OTHER
    status: str = Field(nullable=False, default="TODO")  # TODO | IN_PROGRESS | DONE
    priority: str = Field(nullable=False, default="MEDIUM")  # LOW | MEDIUM | HIGH
    due_date: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))


class Comment(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "comments"

    task_id: uuid.UUID = Field(foreign_key="tasks.id", nullable=False, index=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    content: str = Field(nullable=False)
