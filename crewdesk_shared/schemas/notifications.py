"""Notification schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class NotificationCreate(BaseModel):
    workspace_id: UUID
    title: str = Field(min_length=1)
    subtitle: Optional[str] = None
    button_name: Optional[str] = None
    button_url: Optional[str] = None
    open_in_new_tab: bool = False


class NotificationUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    subtitle: Optional[str] = None
    button_name: Optional[str] = None
    button_url: Optional[str] = None
    open_in_new_tab: Optional[bool] = None


class NotificationRead(BaseModel):
    # str rather than UUID: the attendance reminder uses a fixed synthetic id
    id: str
    workspace_id: Optional[UUID] = None
    title: str
    subtitle: Optional[str] = None
    button_name: Optional[str] = None
    button_url: Optional[str] = None
    open_in_new_tab: bool = False
    created_at: datetime
    updated_at: datetime


class NotificationListResponse(BaseModel):
    notifications: List[NotificationRead]


class NotificationResponse(BaseModel):
    notification: NotificationRead
    delivered: int = 0
    message: str = "Notification created"
