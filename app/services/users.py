"""
User lookups and invitation provisioning shared by workspace and project
membership flows.
"""

from __future__ import annotations

import uuid
from typing import Iterable, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import generate_temp_password, hash_password
from app.core.mail import Mailer, TransportError
from app.models.user import User

log = structlog.get_logger()


async def get_by_email(session: AsyncSession, email: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_many(session: AsyncSession, user_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, User]:
    ids = list(set(user_ids))
    if not ids:
        return {}
    result = await session.execute(select(User).where(User.id.in_(ids)))
    return {u.id: u for u in result.scalars().all()}


async def provision_invitee(session: AsyncSession, email: str) -> tuple[User, Optional[str]]:
    """Find or create the user behind an invitation.

    Returns ``(user, temp_password)``. A temporary password is generated for
    brand-new users and for existing users who never had one; otherwise it
    is None and no credentials email should be sent.
    """
    user = await get_by_email(session, email)
    temp_password: Optional[str] = None

    if user is None:
        temp_password = generate_temp_password()
        user = User(
            email=email,
            name=email.split("@")[0],
            password_hash=hash_password(temp_password),
        )
        session.add(user)
        await session.flush()
        log.info("user.provisioned", user_id=str(user.id))
    elif not user.password_hash:
        temp_password = generate_temp_password()
        user.password_hash = hash_password(temp_password)
        session.add(user)
        await session.flush()
        log.info("user.password_issued", user_id=str(user.id))

    return user, temp_password


async def send_credentials(mailer: Mailer, email: str, subject: str, html: str) -> None:
    """Send an invitation carrying a temporary password.

    An exhausted quota propagates as a 409 so the request rolls back and the
    invitee is not left with credentials they never received. A transport
    failure is logged; the membership stands.
    """
    try:
        await mailer.send(email, subject, html)
    except TransportError as exc:
        log.warning("mail.invitation_failed", to=email, error=str(exc))
