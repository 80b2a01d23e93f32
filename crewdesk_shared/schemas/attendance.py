"""Attendance schemas."""

from __future__ import annotations

import datetime as dt
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .users import UserRead


class AttendanceMark(BaseModel):
    workspace_id: UUID
    image_base64: str = Field(min_length=1)


class AttendanceRead(BaseModel):
    id: UUID
    workspace_id: UUID
    user_id: UUID
    date: dt.date
    image_url: Optional[str] = None  # hidden unless the viewer may see it
    created_at: dt.datetime


class AttendanceListResponse(BaseModel):
    attendances: List[AttendanceRead]


class AttendanceDayRecord(BaseModel):
    user: UserRead
    attendance: Optional[AttendanceRead] = None


class AttendanceDayResponse(BaseModel):
    records: List[AttendanceDayRecord]


class AttendanceRangeDelete(BaseModel):
    workspace_id: UUID
    start_date: dt.date
    end_date: dt.date


class AttendanceDeleteResponse(BaseModel):
    count: int
    message: str = "Attendance deleted"
