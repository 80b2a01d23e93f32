"""
Tests for attendance.

Covers:
- One mark per user per workspace per day
- A second mark is rejected before any upload
- A concurrent duplicate purges its own upload and reports a conflict
- Image visibility: owner today only, global admin always
- Month history (YYYY-MM or a date in the month), day roster and range delete
"""

from __future__ import annotations

import datetime as dt

import pytest
from httpx import AsyncClient
from sqlmodel import select

from app.models.attendance import Attendance
from app.services import attendance as attendance_service

PNG = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="


async def _mark(client: AsyncClient, world, headers=None, image=PNG):
    return await client.post(
        "/api/attendance",
        json={"workspace_id": str(world.workspace.id), "image_base64": image},
        headers=headers or world.member_headers,
    )


async def _seed(session, world, *days: dt.date):
    for day in days:
        session.add(
            Attendance(
                workspace_id=world.workspace.id,
                user_id=world.member.id,
                date=day,
                image_url=f"https://media.test/attendance/mark-example-com/{day.isoformat()}.png",
            )
        )
    await session.commit()


class TestMark:
    @pytest.mark.asyncio
    async def test_mark_today(self, client: AsyncClient, world, storage):
        resp = await _mark(client, world)
        assert resp.status_code == 201
        data = resp.json()
        assert data["date"] == attendance_service.today().isoformat()
        assert data["image_url"] == storage.uploads[0]
        assert storage.uploads[0].startswith("https://media.test/attendance/mark-example-com/")

    @pytest.mark.asyncio
    async def test_data_url_accepted(self, client: AsyncClient, world):
        resp = await _mark(client, world, image=f"data:image/png;base64,{PNG}")
        assert resp.status_code == 201

    @pytest.mark.asyncio
    async def test_second_mark_rejected_without_upload(self, client: AsyncClient, world, storage):
        assert (await _mark(client, world)).status_code == 201
        resp = await _mark(client, world)
        assert resp.status_code == 409
        assert resp.json()["detail"] == "Attendance already marked for today"
        assert len(storage.uploads) == 1

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_purges_upload(
        self, client: AsyncClient, session, world, storage, monkeypatch, session_factory
    ):
        await _seed(session, world, attendance_service.today())

        async def _not_found(*args, **kwargs):
            return None

        monkeypatch.setattr(attendance_service, "find_for_day", _not_found)

        resp = await _mark(client, world)
        assert resp.status_code == 409
        assert len(storage.uploads) == 1
        key = storage.resource_id(storage.uploads[0])
        assert storage.batches == [[key]]

        async with session_factory() as s:
            rows = (await s.execute(select(Attendance))).all()
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_other_members_mark_independently(self, client: AsyncClient, world):
        assert (await _mark(client, world)).status_code == 201
        assert (await _mark(client, world, headers=world.peer_headers)).status_code == 201

    @pytest.mark.asyncio
    async def test_invalid_image(self, client: AsyncClient, world, storage):
        resp = await _mark(client, world, image="not base64 at all!")
        assert resp.status_code == 400
        assert storage.uploads == []

    @pytest.mark.asyncio
    async def test_outsider_denied(self, client: AsyncClient, world):
        resp = await _mark(client, world, headers=world.outsider_headers)
        assert resp.status_code == 403


class TestHistory:
    @pytest.mark.asyncio
    async def test_month_hides_past_images(self, client: AsyncClient, session, world):
        await _seed(session, world, dt.date(2025, 2, 3), dt.date(2025, 2, 20), dt.date(2025, 3, 1))

        resp = await client.get(
            "/api/attendance/me",
            params={"workspace_id": str(world.workspace.id), "month": "2025-02-10"},
            headers=world.member_headers,
        )
        assert resp.status_code == 200
        records = resp.json()["attendances"]
        assert [r["date"] for r in records] == ["2025-02-03", "2025-02-20"]
        assert all(r["image_url"] is None for r in records)

    @pytest.mark.asyncio
    async def test_year_month_form(self, client: AsyncClient, session, world):
        await _seed(session, world, dt.date(2025, 2, 3), dt.date(2025, 3, 1))

        resp = await client.get(
            "/api/attendance/me",
            params={"workspace_id": str(world.workspace.id), "month": "2025-02"},
            headers=world.member_headers,
        )
        assert resp.status_code == 200
        assert [r["date"] for r in resp.json()["attendances"]] == ["2025-02-03"]

    @pytest.mark.asyncio
    async def test_bad_month(self, client: AsyncClient, world):
        resp = await client.get(
            "/api/attendance/me",
            params={"workspace_id": str(world.workspace.id), "month": "February"},
            headers=world.member_headers,
        )
        assert resp.status_code == 400

    def test_parse_month(self):
        assert attendance_service.parse_month("2025-02") == dt.date(2025, 2, 1)
        assert attendance_service.parse_month("2025-02-17") == dt.date(2025, 2, 17)

    @pytest.mark.asyncio
    async def test_current_month_shows_todays_image(self, client: AsyncClient, world):
        await _mark(client, world)
        resp = await client.get(
            "/api/attendance/me",
            params={"workspace_id": str(world.workspace.id)},
            headers=world.member_headers,
        )
        records = resp.json()["attendances"]
        assert len(records) == 1
        assert records[0]["image_url"]

    @pytest.mark.asyncio
    async def test_only_own_records(self, client: AsyncClient, session, world):
        await _seed(session, world, dt.date(2025, 2, 3))
        resp = await client.get(
            "/api/attendance/me",
            params={"workspace_id": str(world.workspace.id), "month": "2025-02-01"},
            headers=world.peer_headers,
        )
        assert resp.json()["attendances"] == []


class TestRoster:
    @pytest.mark.asyncio
    async def test_by_date_lists_every_member(self, client: AsyncClient, session, world):
        await _seed(session, world, dt.date(2025, 2, 3))

        resp = await client.get(
            "/api/attendance/by-date",
            params={"workspace_id": str(world.workspace.id), "date": "2025-02-03"},
            headers=world.root_headers,
        )
        assert resp.status_code == 200
        records = resp.json()["records"]
        assert [r["user"]["email"] for r in records] == [
            "alice@example.com",
            "mark@example.com",
            "pat@example.com",
        ]
        marked = records[1]["attendance"]
        assert marked["image_url"].endswith("2025-02-03.png")
        assert records[0]["attendance"] is None

    @pytest.mark.asyncio
    async def test_by_date_requires_global_admin(self, client: AsyncClient, world):
        resp = await client.get(
            "/api/attendance/by-date",
            params={"workspace_id": str(world.workspace.id), "date": "2025-02-03"},
            headers=world.admin_headers,
        )
        assert resp.status_code == 403


class TestRangeDelete:
    @pytest.mark.asyncio
    async def test_delete_window(self, client: AsyncClient, session, world, storage, session_factory):
        await _seed(session, world, dt.date(2025, 2, 3), dt.date(2025, 2, 20), dt.date(2025, 3, 1))

        resp = await client.post(
            "/api/attendance/delete",
            json={
                "workspace_id": str(world.workspace.id),
                "start_date": "2025-02-01",
                "end_date": "2025-02-28",
            },
            headers=world.root_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["count"] == 2
        assert len(storage.batches) == 1
        assert sorted(storage.batches[0]) == [
            "attendance/mark-example-com/2025-02-03.png",
            "attendance/mark-example-com/2025-02-20.png",
        ]

        async with session_factory() as s:
            left = (await s.execute(select(Attendance.date))).all()
        assert [r[0] for r in left] == [dt.date(2025, 3, 1)]

    @pytest.mark.asyncio
    async def test_inverted_range(self, client: AsyncClient, world):
        resp = await client.post(
            "/api/attendance/delete",
            json={
                "workspace_id": str(world.workspace.id),
                "start_date": "2025-03-01",
                "end_date": "2025-02-01",
            },
            headers=world.root_headers,
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_requires_global_admin(self, client: AsyncClient, world):
        resp = await client.post(
            "/api/attendance/delete",
            json={
                "workspace_id": str(world.workspace.id),
                "start_date": "2025-02-01",
                "end_date": "2025-02-28",
            },
            headers=world.admin_headers,
        )
        assert resp.status_code == 403
