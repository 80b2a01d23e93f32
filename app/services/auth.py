"""
Login: the configured admin credential or a stored bcrypt hash.
"""

from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import create_jwt, is_admin_credential, verify_password
from app.core.errors import AuthenticationError
from app.models.user import User
from app.services import users as user_service
from crewdesk_shared.schemas.common import SessionRole

log = structlog.get_logger()


async def _ensure_admin_user(session: AsyncSession, email: str) -> User:
    user = await user_service.get_by_email(session, email)
    if user is not None:
        return user
    user = User(email=email, name="Admin")
    session.add(user)
    await session.flush()
    log.info("auth.admin_user_created", user_id=str(user.id))
    return user


async def login(session: AsyncSession, email: str, password: str) -> tuple[str, User, SessionRole]:
    """Authenticate and issue a session token. Returns (token, user, role)."""
    if is_admin_credential(email, password):
        user = await _ensure_admin_user(session, email)
        token, _jti = create_jwt(user.id, user.email, SessionRole.ADMIN)
        log.info("auth.login", user_id=str(user.id), role=SessionRole.ADMIN.value)
        return token, user, SessionRole.ADMIN

    user = await user_service.get_by_email(session, email)
    if user is None or not user.password_hash:
        log.info("auth.login_failed", reason="unknown_user")
        raise AuthenticationError("Invalid credentials")
    if not verify_password(password, user.password_hash):
        log.info("auth.login_failed", reason="bad_password", user_id=str(user.id))
        raise AuthenticationError("Invalid credentials")

    token, _jti = create_jwt(user.id, user.email, SessionRole.MEMBER)
    log.info("auth.login", user_id=str(user.id), role=SessionRole.MEMBER.value)
    return token, user, SessionRole.MEMBER
