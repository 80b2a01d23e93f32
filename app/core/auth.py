"""
Authentication primitives for Crewdesk.

Supports:
- Email/Password login with bcrypt hashes
- The single configured global-admin credential
- JWT bearer sessions carrying {sub, email, role}
- Caller identity resolution for every protected route
"""

from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends
from fastapi.security import APIKeyHeader

from app.core.config import get_settings
from app.core.errors import AuthenticationError, AuthorizationError
from crewdesk_shared.schemas.common import SessionRole

log = structlog.get_logger()
settings = get_settings()

api_key_header = APIKeyHeader(name="Authorization", auto_error=False)

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with cost factor 10."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=10)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode(), hashed.encode())


def generate_temp_password() -> str:
    """Six hex characters, mailed to invited users for their first login."""
    return secrets.token_hex(3)


def is_admin_credential(email: str, password: str) -> bool:
    if not settings.admin_email or not settings.admin_password:
        return False
    return secrets.compare_digest(email, settings.admin_email) and secrets.compare_digest(
        password, settings.admin_password
    )


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    email: str,
    role: SessionRole,
    *,
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a signed JWT. Returns (token, jti)."""
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role.value,
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


# ---------------------------------------------------------------------------
# Caller identity
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Principal:
    """The verified caller of a request.

    ``role`` is the session claim issued at login. It is never derived from
    workspace membership; workspace roles are resolved separately.
    """

    user_id: uuid.UUID
    email: str
    role: SessionRole

    @property
    def is_global_admin(self) -> bool:
        return self.role == SessionRole.ADMIN


def principal_from_token(token: str) -> Principal:
    try:
        payload = decode_jwt(token)
        return Principal(
            user_id=uuid.UUID(payload["sub"]),
            email=payload.get("email", ""),
            role=SessionRole(payload.get("role", SessionRole.MEMBER.value)),
        )
    except (jwt.PyJWTError, KeyError, ValueError) as exc:
        log.info("auth.invalid_token", reason=type(exc).__name__)
        raise AuthenticationError("Invalid or expired session")


async def get_principal(
    authorization: Optional[str] = Depends(api_key_header),
) -> Principal:
    """Main authentication dependency: resolves the bearer token."""
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Unauthorized")
    token = authorization[7:].strip()
    if not token:
        raise AuthenticationError("Unauthorized")
    return principal_from_token(token)


async def require_global_admin(
    principal: Principal = Depends(get_principal),
) -> Principal:
    """Requires the global-admin session claim."""
    if not principal.is_global_admin:
        raise AuthorizationError("Administrator access required")
    return principal
