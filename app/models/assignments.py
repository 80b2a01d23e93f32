"""Association tables: project membership, group scoping, task assignment."""

import uuid

from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin


class ProjectMember(CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "project_members"

    project_id: uuid.UUID = Field(foreign_key="projects.id", primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True, index=True)


class ProjectGroup(SQLModel, table=True):
    """Narrows which groups' members may be assigned tasks under a project."""

    __tablename__ = "project_groups"

    project_id: uuid.UUID = Field(foreign_key="projects.id", primary_key=True)
    group_id: uuid.UUID = Field(foreign_key="groups.id", primary_key=True, index=True)


class TaskGroup(SQLModel, table=True):
    __tablename__ = "task_groups"

    task_id: uuid.UUID = Field(foreign_key="tasks.id", primary_key=True)
    group_id: uuid.UUID = Field(foreign_key="groups.id", primary_key=True, index=True)


class TaskAssignee(SQLModel, table=True):
    __tablename__ = "task_assignees"

    task_id: uuid.UUID = Field(foreign_key="tasks.id", primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True, index=True)
