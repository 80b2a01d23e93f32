"""Task and comment schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .common import Priority, TaskStatus, TaskType
from .users import UserRead


# ---------------------------------------------------------------------------
# Task CRUD
# ---------------------------------------------------------------------------

class TaskCreate(BaseModel):
    project_id: UUID
    title: str = Field(min_length=1)
    description: Optional[str] = None
    type: TaskType = TaskType.TASK
    status: TaskStatus = TaskStatus.TODO
    priority: Priority = Priority.MEDIUM
    due_date: Optional[datetime] = None
    group_ids: List[UUID] = Field(default_factory=list)
    assignee_ids: List[UUID] = Field(default_factory=list)


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    type: Optional[TaskType] = None
    status: Optional[TaskStatus] = None
    priority: Optional[Priority] = None
    due_date: Optional[datetime] = None
    group_ids: Optional[List[UUID]] = None
    assignee_ids: Optional[List[UUID]] = None


class TaskRead(BaseModel):
    id: UUID
    project_id: UUID
    title: str
    description: Optional[str] = None
    type: str
    status: str
    priority: str
    due_date: Optional[datetime] = None
    group_ids: List[UUID] = Field(default_factory=list)
    assignee_ids: List[UUID] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class TaskDeleteRequest(BaseModel):
    task_ids: List[UUID] = Field(min_length=1)


class TaskDeleteResponse(BaseModel):
    deleted: int
    message: str = "Task deleted successfully"


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

class CommentCreate(BaseModel):
    task_id: UUID
    content: str


class CommentRead(BaseModel):
    id: UUID
    task_id: UUID
    user_id: UUID
    content: str
    created_at: datetime
    user: Optional[UserRead] = None
