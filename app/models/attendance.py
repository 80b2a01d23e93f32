"""Attendance: one proof-of-presence photo per (workspace, user, day)."""

import datetime as dt
import uuid

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, UUIDMixin


class Attendance(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("workspace_id", "user_id", "date", name="uq_attendance_workspace_user_day"),
    )

    workspace_id: uuid.UUID = Field(foreign_key="workspaces.id", nullable=False, index=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    date: dt.date = Field(nullable=False, index=True)
    image_url: str = Field(nullable=False)
