"""
Authentication endpoints.

- Email/Password login (stored bcrypt hash or the configured admin credential)
- Session introspection
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Principal, get_principal
from app.core.database import get_session
from app.services import auth as auth_service
from crewdesk_shared.schemas.auth import LoginRequest, LoginResponse, PrincipalRead
from crewdesk_shared.schemas.users import UserRead

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    session: AsyncSession = Depends(get_session),
):
    """Exchange email/password for a bearer token."""
    token, user, role = await auth_service.login(session, body.email.strip(), body.password)
    await session.commit()
    return LoginResponse(token=token, user=UserRead.model_validate(user), role=role)


@router.get("/me", response_model=PrincipalRead)
async def me(principal: Principal = Depends(get_principal)):
    return PrincipalRead(user_id=principal.user_id, email=principal.email, role=principal.role)
