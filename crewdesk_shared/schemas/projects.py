from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from .common import Priority, ProjectStatus
from .users import UserRead


class ProjectCreate(BaseModel):
    workspace_id: UUID
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    status: ProjectStatus = ProjectStatus.PLANNING
    priority: Priority = Priority.MEDIUM
    progress: int = Field(default=0, ge=0, le=100)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    team_lead: Optional[UUID] = None  # defaults to the caller
    group_ids: List[UUID] = Field(default_factory=list)


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None
    priority: Optional[Priority] = None
    progress: Optional[int] = Field(default=None, ge=0, le=100)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    group_ids: Optional[List[UUID]] = None


class ProjectRead(BaseModel):
    id: UUID
    workspace_id: UUID
    name: str
    description: Optional[str] = None
    status: ProjectStatus
    priority: Priority
    progress: int
    team_lead: UUID
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    member_ids: List[UUID] = Field(default_factory=list)
    group_ids: List[UUID] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ProjectMemberAdd(BaseModel):
    email: EmailStr


class ProjectMemberRead(BaseModel):
    project_id: UUID
    user: UserRead
    message: str = "Member added successfully"
