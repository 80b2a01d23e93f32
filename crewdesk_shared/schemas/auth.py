"""Authentication request/response schemas."""

from uuid import UUID

from pydantic import BaseModel, Field

from .common import SessionRole
from .users import UserRead


class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class LoginResponse(BaseModel):
    token: str
    user: UserRead
    role: SessionRole


class PrincipalRead(BaseModel):
    user_id: UUID
    email: str
    role: SessionRole
