"""
Attendance service: one proof-of-presence photo per (workspace, user, day).

Days are UTC calendar days. A second mark on the same day is rejected before
anything is uploaded; the unique constraint on (workspace_id, user_id, date)
catches the concurrent case, in which the fresh upload is purged again.
"""

from __future__ import annotations

import calendar
import datetime as dt
import uuid
from typing import Optional, Sequence

import structlog
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import Principal
from app.core.errors import ConflictError, ValidationError
from app.core.storage import InvalidImageError, ObjectStorage, purge_images, sanitize_folder
from app.models.attendance import Attendance
from app.models.user import User
from app.models.workspace import WorkspaceMember
from app.services.policies import can_see_attendance_image
from crewdesk_shared.schemas.attendance import AttendanceDayRecord, AttendanceRead
from crewdesk_shared.schemas.users import UserRead

log = structlog.get_logger()


def today() -> dt.date:
    return dt.datetime.now(dt.timezone.utc).date()


def parse_month(value: str) -> dt.date:
    """Accept ``YYYY-MM`` or a full ``YYYY-MM-DD`` date."""
    value = value.strip()
    try:
        if len(value) == 7:
            return dt.datetime.strptime(value, "%Y-%m").date()
        return dt.date.fromisoformat(value)
    except ValueError:
        raise ValidationError("month: expected YYYY-MM or YYYY-MM-DD") from None


def month_bounds(day: dt.date) -> tuple[dt.date, dt.date]:
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


def to_read(record: Attendance, viewer: Principal, on: Optional[dt.date] = None) -> AttendanceRead:
    visible = can_see_attendance_image(viewer, record, on or today())
    return AttendanceRead(
        id=record.id,
        workspace_id=record.workspace_id,
        user_id=record.user_id,
        date=record.date,
        image_url=record.image_url if visible else None,
        created_at=record.created_at,
    )


async def find_for_day(
    session: AsyncSession, workspace_id: uuid.UUID, user_id: uuid.UUID, day: dt.date
) -> Optional[Attendance]:
    result = await session.execute(
        select(Attendance).where(
            Attendance.workspace_id == workspace_id,
            Attendance.user_id == user_id,
            Attendance.date == day,
        )
    )
    return result.scalars().first()


async def mark_attendance(
    session: AsyncSession,
    storage: ObjectStorage,
    principal: Principal,
    workspace_id: uuid.UUID,
    image_base64: str,
) -> Attendance:
    day = today()
    if await find_for_day(session, workspace_id, principal.user_id, day):
        raise ConflictError("Attendance already marked for today")

    folder = f"attendance/{sanitize_folder(principal.email or str(principal.user_id))}"
    try:
        image_url = await storage.upload(image_base64, folder)
    except InvalidImageError as exc:
        raise ValidationError(str(exc)) from exc

    record = Attendance(
        workspace_id=workspace_id,
        user_id=principal.user_id,
        date=day,
        image_url=image_url,
    )
    session.add(record)
    try:
        await session.flush()
    except IntegrityError:
        # a concurrent mark won the race; nothing else was written in this request
        await session.rollback()
        await purge_images(storage, [image_url])
        log.warning("attendance.duplicate_race", workspace_id=str(workspace_id), user_id=str(principal.user_id))
        raise ConflictError("Attendance already marked for today")

    log.info("attendance.marked", workspace_id=str(workspace_id), user_id=str(principal.user_id), date=day.isoformat())
    return record


async def my_attendance(
    session: AsyncSession,
    principal: Principal,
    workspace_id: uuid.UUID,
    month: Optional[dt.date] = None,
) -> list[AttendanceRead]:
    current = today()
    start, end = month_bounds(month or current)
    result = await session.execute(
        select(Attendance)
        .where(
            Attendance.workspace_id == workspace_id,
            Attendance.user_id == principal.user_id,
            Attendance.date >= start,
            Attendance.date <= end,
        )
        .order_by(Attendance.date)
    )
    return [to_read(r, principal, current) for r in result.scalars().all()]


async def attendance_by_date(
    session: AsyncSession,
    principal: Principal,
    workspace_id: uuid.UUID,
    day: dt.date,
) -> list[AttendanceDayRecord]:
    """One row per workspace member, with their record for ``day`` or None."""
    result = await session.execute(
        select(User)
        .join(WorkspaceMember, WorkspaceMember.user_id == User.id)
        .where(WorkspaceMember.workspace_id == workspace_id)
        .order_by(User.email)
    )
    members: Sequence[User] = result.scalars().all()

    result = await session.execute(
        select(Attendance).where(Attendance.workspace_id == workspace_id, Attendance.date == day)
    )
    by_user = {r.user_id: r for r in result.scalars().all()}

    current = today()
    return [
        AttendanceDayRecord(
            user=UserRead.model_validate(user),
            attendance=to_read(by_user[user.id], principal, current) if user.id in by_user else None,
        )
        for user in members
    ]


async def delete_range(
    session: AsyncSession,
    storage: ObjectStorage,
    workspace_id: uuid.UUID,
    start: dt.date,
    end: dt.date,
) -> int:
    """Purge the images (best effort), then delete the records. Returns the record count."""
    if start > end:
        raise ValidationError("start_date must not be after end_date")

    window = (
        Attendance.workspace_id == workspace_id,
        Attendance.date >= start,
        Attendance.date <= end,
    )
    result = await session.execute(select(Attendance.image_url).where(*window))
    batches = await purge_images(storage, [row[0] for row in result.all()])

    result = await session.execute(delete(Attendance).where(*window))
    count = result.rowcount or 0
    log.info(
        "attendance.range_deleted",
        workspace_id=str(workspace_id),
        start=start.isoformat(),
        end=end.isoformat(),
        count=count,
        image_batches=batches,
    )
    return count
