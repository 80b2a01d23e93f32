"""
Tests for workspace notifications.

Covers:
- Broadcast stores the notification and mails every current member
- Delivery is best effort: quota exhaustion and bounces do not fail the request
- The attendance reminder is prepended for members who have not marked today
- Writes are global-admin only
- Mail only follows a committed notification
"""

from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlmodel import select

from app.core.mail import InMemoryDailyQuota
from app.models.attendance import Attendance
from app.models.notification import Notification
from app.services import attendance as attendance_service
from app.services.notifications import ATTENDANCE_REMINDER_ID


async def _broadcast(client: AsyncClient, world, title="Standup moved", headers=None):
    return await client.post(
        "/api/notifications",
        json={
            "workspace_id": str(world.workspace.id),
            "title": title,
            "subtitle": "Now at 10:00",
            "button_name": "Calendar",
            "button_url": "https://cal.example.com",
            "open_in_new_tab": True,
        },
        headers=headers or world.root_headers,
    )


class TestBroadcast:
    @pytest.mark.asyncio
    async def test_failed_commit_sends_no_mail(
        self, client: AsyncClient, world, transport, session_factory, fail_commits
    ):
        fail_commits()
        resp = await _broadcast(client, world)
        assert resp.status_code == 500
        assert transport.sent == []

        async with session_factory() as s:
            rows = (await s.execute(select(Notification))).all()
        assert rows == []

    @pytest.mark.asyncio
    async def test_mails_every_member(self, client: AsyncClient, world, transport):
        resp = await _broadcast(client, world)
        assert resp.status_code == 201
        assert resp.json()["delivered"] == 3
        assert sorted(transport.recipients()) == [
            "alice@example.com",
            "mark@example.com",
            "pat@example.com",
        ]
        _, subject, html = transport.sent[0]
        assert subject == "New notification: Standup moved"
        assert 'target="_blank"' in html

    @pytest.mark.asyncio
    async def test_quota_stops_fan_out_but_keeps_notification(
        self, client: AsyncClient, world, mailer, transport
    ):
        mailer.quota = InMemoryDailyQuota(limit=2)
        resp = await _broadcast(client, world)
        assert resp.status_code == 201
        assert resp.json()["delivered"] == 2
        assert len(transport.sent) == 2

        listed = await client.get(
            "/api/notifications",
            params={"workspace_id": str(world.workspace.id)},
            headers=world.root_headers,
        )
        assert [n["title"] for n in listed.json()["notifications"]] == ["Standup moved"]

    @pytest.mark.asyncio
    async def test_bounce_skips_one_recipient(self, client: AsyncClient, world, transport):
        transport.fail_for.add("mark@example.com")
        resp = await _broadcast(client, world)
        assert resp.json()["delivered"] == 2
        assert "mark@example.com" not in transport.recipients()

    @pytest.mark.asyncio
    async def test_workspace_admin_cannot_broadcast(self, client: AsyncClient, world):
        resp = await _broadcast(client, world, headers=world.admin_headers)
        assert resp.status_code == 403


class TestReadAndEdit:
    @pytest.mark.asyncio
    async def test_newest_first(self, client: AsyncClient, world):
        await _broadcast(client, world, title="First")
        await _broadcast(client, world, title="Second")

        listed = await client.get(
            "/api/notifications",
            params={"workspace_id": str(world.workspace.id)},
            headers=world.root_headers,
        )
        assert [n["title"] for n in listed.json()["notifications"]] == ["Second", "First"]

    @pytest.mark.asyncio
    async def test_update_and_delete(self, client: AsyncClient, world):
        created = (await _broadcast(client, world)).json()["notification"]
        url = f"/api/notifications/{created['id']}"

        resp = await client.patch(url, json={"title": "Standup cancelled", "subtitle": None}, headers=world.root_headers)
        assert resp.status_code == 200
        assert resp.json()["title"] == "Standup cancelled"
        assert resp.json()["subtitle"] is None
        assert resp.json()["button_name"] == "Calendar"

        assert (await client.delete(url, headers=world.member_headers)).status_code == 403
        assert (await client.delete(url, headers=world.root_headers)).status_code == 200
        assert (await client.delete(url, headers=world.root_headers)).status_code == 404


class TestAttendanceReminder:
    @pytest.mark.asyncio
    async def test_prepended_for_member_without_attendance(self, client: AsyncClient, world):
        await _broadcast(client, world)
        listed = await client.get(
            "/api/notifications",
            params={"workspace_id": str(world.workspace.id)},
            headers=world.member_headers,
        )
        ids = [n["id"] for n in listed.json()["notifications"]]
        assert ids[0] == ATTENDANCE_REMINDER_ID
        assert len(ids) == 2

    @pytest.mark.asyncio
    async def test_absent_once_marked(self, client: AsyncClient, session, world):
        session.add(
            Attendance(
                workspace_id=world.workspace.id,
                user_id=world.member.id,
                date=attendance_service.today(),
                image_url="https://media.test/attendance/mark/1.png",
            )
        )
        await session.commit()

        listed = await client.get(
            "/api/notifications",
            params={"workspace_id": str(world.workspace.id)},
            headers=world.member_headers,
        )
        assert listed.json()["notifications"] == []

    @pytest.mark.asyncio
    async def test_not_shown_to_global_admin(self, client: AsyncClient, world):
        listed = await client.get(
            "/api/notifications",
            params={"workspace_id": str(world.workspace.id)},
            headers=world.root_headers,
        )
        assert listed.json()["notifications"] == []

    @pytest.mark.asyncio
    async def test_outsider_denied(self, client: AsyncClient, world):
        resp = await client.get(
            "/api/notifications",
            params={"workspace_id": str(world.workspace.id)},
            headers=world.outsider_headers,
        )
        assert resp.status_code == 403
