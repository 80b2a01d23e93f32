"""
Attendance endpoints.

- Mark / own history: workspace members
- Day roster and range delete: global admin only
"""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Principal, get_principal, require_global_admin
from app.core.database import get_session
from app.core.storage import ObjectStorage, get_storage
from app.services import attendance as attendance_service, policies
from crewdesk_shared.schemas.attendance import (
    AttendanceDayResponse,
    AttendanceDeleteResponse,
    AttendanceListResponse,
    AttendanceMark,
    AttendanceRangeDelete,
    AttendanceRead,
)

router = APIRouter()


@router.post("", response_model=AttendanceRead, status_code=201)
async def mark_attendance(
    body: AttendanceMark,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_storage),
):
    """Upload today's photo. A second mark on the same day is a 409."""
    await policies.ensure_workspace_member(session, principal, body.workspace_id)
    record = await attendance_service.mark_attendance(
        session, storage, principal, body.workspace_id, body.image_base64
    )
    await session.commit()
    return attendance_service.to_read(record, principal)


@router.get("/me", response_model=AttendanceListResponse)
async def my_attendance(
    workspace_id: uuid.UUID,
    month: Optional[str] = None,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    """The caller's records for ``month`` (YYYY-MM or any date in it; default: now)."""
    await policies.ensure_workspace_member(session, principal, workspace_id)
    day = attendance_service.parse_month(month) if month else None
    records = await attendance_service.my_attendance(session, principal, workspace_id, day)
    return AttendanceListResponse(attendances=records)


@router.get("/by-date", response_model=AttendanceDayResponse)
async def attendance_by_date(
    workspace_id: uuid.UUID,
    date: dt.date,
    principal: Principal = Depends(require_global_admin),
    session: AsyncSession = Depends(get_session),
):
    records = await attendance_service.attendance_by_date(session, principal, workspace_id, date)
    return AttendanceDayResponse(records=records)


@router.post("/delete", response_model=AttendanceDeleteResponse)
async def delete_attendance_range(
    body: AttendanceRangeDelete,
    principal: Principal = Depends(require_global_admin),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_storage),
):
    """Delete every record in [start_date, end_date] along with its photo."""
    count = await attendance_service.delete_range(
        session, storage, body.workspace_id, body.start_date, body.end_date
    )
    await session.commit()
    return AttendanceDeleteResponse(count=count)
