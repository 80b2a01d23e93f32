"""User model.

Roles are not stored here; they are scoped per workspace (see WorkspaceMember).
"""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, UUIDMixin


class User(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(unique=True, index=True, nullable=False)
    name: str = Field(default="", nullable=False)
    image: str = Field(default="", nullable=False)
    # NULL until the user is invited and receives a temporary password
    password_hash: Optional[str] = Field(default=None)
