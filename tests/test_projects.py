"""
Tests for projects.

Covers:
- Create: workspace admin only, team lead defaults to the caller
- Group scoping restricted to the workspace's groups
- Partial update leaves required fields alone
- Adding members by email, with invitation of new users
- Delete cascades to tasks and comments
"""

from __future__ import annotations

import uuid

import pytest
from httpx import AsyncClient
from sqlmodel import select

from app.models.assignments import TaskAssignee
from app.models.task import Comment, Task
from app.models.workspace import Workspace, WorkspaceMember


class TestCreateProject:
    @pytest.mark.asyncio
    async def test_member_cannot_create(self, client: AsyncClient, world):
        resp = await client.post(
            "/api/projects",
            json={"workspace_id": str(world.workspace.id), "name": "Side quest"},
            headers=world.member_headers,
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_lead_defaults_to_caller(self, client: AsyncClient, world):
        resp = await client.post(
            "/api/projects",
            json={"workspace_id": str(world.workspace.id), "name": "Side quest"},
            headers=world.admin_headers,
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["team_lead"] == str(world.admin.id)
        assert data["status"] == "PLANNING"
        assert data["priority"] == "MEDIUM"
        assert data["progress"] == 0

    @pytest.mark.asyncio
    async def test_lead_must_be_workspace_member(self, client: AsyncClient, world):
        resp = await client.post(
            "/api/projects",
            json={
                "workspace_id": str(world.workspace.id),
                "name": "Side quest",
                "team_lead": str(world.outsider.id),
            },
            headers=world.admin_headers,
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_progress_out_of_range(self, client: AsyncClient, world):
        resp = await client.post(
            "/api/projects",
            json={"workspace_id": str(world.workspace.id), "name": "X", "progress": 101},
            headers=world.admin_headers,
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_foreign_groups_dropped(self, client: AsyncClient, session, world, group_factory):
        other = Workspace(name="Other", slug="other", owner_id=world.outsider.id)
        session.add(other)
        await session.commit()
        mine = await group_factory(world.workspace, "Crew", [world.member])
        foreign = await group_factory(other, "Crew", [])

        resp = await client.post(
            "/api/projects",
            json={
                "workspace_id": str(world.workspace.id),
                "name": "Scoped",
                "group_ids": [str(mine.id), str(foreign.id)],
            },
            headers=world.admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["group_ids"] == [str(mine.id)]


class TestUpdateProject:
    @pytest.mark.asyncio
    async def test_null_required_field_ignored(self, client: AsyncClient, world):
        resp = await client.patch(
            f"/api/projects/{world.project.id}",
            json={"name": None, "description": "Go to market"},
            headers=world.admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["name"] == "Launch"
        assert resp.json()["description"] == "Go to market"

    @pytest.mark.asyncio
    async def test_outsider_cannot_read(self, client: AsyncClient, world):
        resp = await client.get(f"/api/projects/{world.project.id}", headers=world.outsider_headers)
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_list_requires_membership(self, client: AsyncClient, world):
        params = {"workspace_id": str(world.workspace.id)}
        assert (await client.get("/api/projects", params=params, headers=world.outsider_headers)).status_code == 403
        resp = await client.get("/api/projects", params=params, headers=world.member_headers)
        assert [p["name"] for p in resp.json()] == ["Launch"]


class TestProjectMembers:
    @pytest.mark.asyncio
    async def test_add_new_user_invites_and_joins_workspace(
        self, client: AsyncClient, world, transport, session_factory
    ):
        resp = await client.post(
            f"/api/projects/{world.project.id}/members",
            json={"email": "fresh@example.com"},
            headers=world.admin_headers,
        )
        assert resp.status_code == 200
        user_id = uuid.UUID(resp.json()["user"]["id"])

        assert transport.recipients() == ["fresh@example.com"]
        assert transport.sent[0][1] == "You have been invited"

        async with session_factory() as s:
            row = (
                await s.execute(
                    select(WorkspaceMember.role).where(
                        WorkspaceMember.workspace_id == world.workspace.id,
                        WorkspaceMember.user_id == user_id,
                    )
                )
            ).scalar_one()
        assert row == "MEMBER"

    @pytest.mark.asyncio
    async def test_existing_project_member_is_400(self, client: AsyncClient, world):
        resp = await client.post(
            f"/api/projects/{world.project.id}/members",
            json={"email": "mark@example.com"},
            headers=world.admin_headers,
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_only_managers_add_members(self, client: AsyncClient, world):
        resp = await client.post(
            f"/api/projects/{world.project.id}/members",
            json={"email": "fresh@example.com"},
            headers=world.member_headers,
        )
        assert resp.status_code == 403


class TestDeleteProject:
    @pytest.mark.asyncio
    async def test_delete_cascades(self, client: AsyncClient, session, world, session_factory):
        task = Task(project_id=world.project.id, title="Doomed")
        session.add(task)
        await session.flush()
        session.add(Comment(task_id=task.id, user_id=world.member.id, content="bye"))
        session.add(TaskAssignee(task_id=task.id, user_id=world.member.id))
        await session.commit()

        assert (
            await client.delete(f"/api/projects/{world.project.id}", headers=world.member_headers)
        ).status_code == 403

        resp = await client.delete(f"/api/projects/{world.project.id}", headers=world.admin_headers)
        assert resp.status_code == 200

        async with session_factory() as s:
            assert (await s.execute(select(Task))).first() is None
            assert (await s.execute(select(Comment))).first() is None
            assert (await s.execute(select(TaskAssignee))).first() is None
