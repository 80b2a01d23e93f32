"""
Shared fixtures: in-memory SQLite store, fake mail transport, fake object
storage and an HTTP client wired to all three through dependency overrides.
"""

from __future__ import annotations

import os

os.environ.setdefault("CD_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("CD_SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
os.environ.setdefault("CD_ADMIN_EMAIL", "root@crewdesk.test")
os.environ.setdefault("CD_ADMIN_PASSWORD", "root-password")

from dataclasses import dataclass
from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401
from app.core.auth import create_jwt, hash_password
from app.core.database import get_session
from app.core.mail import InMemoryDailyQuota, Mailer, TransportError, get_mailer
from app.core.storage import decode_image, extract_resource_id, get_storage
from app.main import create_app
from app.models.assignments import ProjectMember
from app.models.group import Group, GroupMember
from app.models.project import Project
from app.models.user import User
from app.models.workspace import Workspace, WorkspaceMember
from crewdesk_shared.schemas.common import SessionRole

MEDIA_BASE = "https://media.test"


# ---------------------------------------------------------------------------
# Fakes for the external collaborators
# ---------------------------------------------------------------------------


class FakeTransport:
    def __init__(self):
        self.sent: list[tuple[str, str, str]] = []
        self.fail_for: set[str] = set()

    async def send(self, to: str, subject: str, html: str) -> None:
        if to in self.fail_for:
            raise TransportError(f"mailbox unavailable: {to}")
        self.sent.append((to, subject, html))

    def recipients(self) -> list[str]:
        return [to for to, _, _ in self.sent]


class FakeStorage:
    def __init__(self):
        self.uploads: list[str] = []
        self.batches: list[list[str]] = []
        self.fail_batches = False
        self._n = 0

    async def upload(self, image_base64: str, folder: str) -> str:
        decode_image(image_base64)
        self._n += 1
        url = f"{MEDIA_BASE}/{folder}/{self._n}.png"
        self.uploads.append(url)
        return url

    async def delete_batch(self, resource_ids: list[str]) -> None:
        self.batches.append(list(resource_ids))
        if self.fail_batches:
            raise RuntimeError("storage unavailable")

    def resource_id(self, url: str) -> Optional[str]:
        return extract_resource_id(url, base_url=MEDIA_BASE)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


# ---------------------------------------------------------------------------
# Collaborators and HTTP client
# ---------------------------------------------------------------------------


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def mailer(transport):
    return Mailer(transport, InMemoryDailyQuota(limit=100))


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def fail_commits(monkeypatch):
    """Call the returned function to make every later COMMIT fail."""

    async def _commit(self):
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    def _arm():
        monkeypatch.setattr(AsyncSession, "commit", _commit)

    return _arm


@pytest.fixture
async def client(session_factory, mailer, storage):
    app = create_app()

    async def _session():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_storage] = lambda: storage

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------


def bearer(user: User, role: SessionRole = SessionRole.MEMBER) -> dict[str, str]:
    token, _ = create_jwt(user.id, user.email, role)
    return {"Authorization": f"Bearer {token}"}


async def make_user(session: AsyncSession, email: str, password: Optional[str] = None) -> User:
    user = User(
        email=email,
        name=email.split("@")[0],
        password_hash=hash_password(password) if password else None,
    )
    session.add(user)
    await session.flush()
    return user


async def make_group(
    session: AsyncSession, workspace: Workspace, name: str, members: list[User]
) -> Group:
    group = Group(workspace_id=workspace.id, name=name)
    session.add(group)
    await session.flush()
    for user in members:
        session.add(GroupMember(group_id=group.id, user_id=user.id))
    await session.flush()
    return group


@dataclass
class World:
    """Workspace W with ADMIN member A, MEMBER M, another MEMBER P, an
    outsider O, the global admin G and a project led by A."""

    root: User
    admin: User
    member: User
    peer: User
    outsider: User
    workspace: Workspace
    project: Project

    @property
    def root_headers(self):
        return bearer(self.root, SessionRole.ADMIN)

    @property
    def admin_headers(self):
        return bearer(self.admin)

    @property
    def member_headers(self):
        return bearer(self.member)

    @property
    def peer_headers(self):
        return bearer(self.peer)

    @property
    def outsider_headers(self):
        return bearer(self.outsider)


@pytest.fixture
async def world(session) -> World:
    root = await make_user(session, "root@crewdesk.test")
    admin = await make_user(session, "alice@example.com", "alice-pw")
    member = await make_user(session, "mark@example.com", "mark-pw")
    peer = await make_user(session, "pat@example.com", "pat-pw")
    outsider = await make_user(session, "olga@example.com", "olga-pw")

    workspace = Workspace(name="Acme", slug="acme", owner_id=admin.id)
    session.add(workspace)
    await session.flush()
    session.add(WorkspaceMember(user_id=admin.id, workspace_id=workspace.id, role="ADMIN"))
    session.add(WorkspaceMember(user_id=member.id, workspace_id=workspace.id, role="MEMBER"))
    session.add(WorkspaceMember(user_id=peer.id, workspace_id=workspace.id, role="MEMBER"))

    project = Project(workspace_id=workspace.id, name="Launch", team_lead=admin.id)
    session.add(project)
    await session.flush()
    session.add(ProjectMember(project_id=project.id, user_id=member.id))
    session.add(ProjectMember(project_id=project.id, user_id=peer.id))
    await session.commit()

    return World(
        root=root,
        admin=admin,
        member=member,
        peer=peer,
        outsider=outsider,
        workspace=workspace,
        project=project,
    )


@pytest.fixture
def headers():
    return bearer


@pytest.fixture
def user_factory(session):
    async def _make(email: str, password: Optional[str] = None) -> User:
        user = await make_user(session, email, password)
        await session.commit()
        return user

    return _make


@pytest.fixture
def group_factory(session):
    async def _make(workspace: Workspace, name: str, members: list[User]) -> Group:
        group = await make_group(session, workspace, name, members)
        await session.commit()
        return group

    return _make
