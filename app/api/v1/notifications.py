"""
Notification endpoints.

Members read their workspace's notifications; only global admins write them.
Creating a notification emails every current workspace member.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import request_origin
from app.core.auth import Principal, get_principal, require_global_admin
from app.core.database import get_session
from app.core.mail import Mailer, get_mailer
from app.services import notifications as notification_service, policies
from crewdesk_shared.schemas.common import MessageResponse, SessionRole
from crewdesk_shared.schemas.notifications import (
    NotificationCreate,
    NotificationListResponse,
    NotificationRead,
    NotificationResponse,
    NotificationUpdate,
)

router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    workspace_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_session),
):
    await policies.ensure_workspace_member(session, principal, workspace_id)
    remind = principal.user_id if principal.role == SessionRole.MEMBER else None
    items = await notification_service.list_notifications(
        session, workspace_id, remind_user_id=remind
    )
    return NotificationListResponse(notifications=items)


@router.post("", response_model=NotificationResponse, status_code=201)
async def create_notification(
    body: NotificationCreate,
    principal: Principal = Depends(require_global_admin),
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
    origin: str = Depends(request_origin),
):
    notification = await notification_service.create_notification(session, body)
    await session.commit()
    delivered = await notification_service.broadcast(session, mailer, notification, origin)
    return NotificationResponse(
        notification=notification_service.to_read(notification),
        delivered=len(delivered),
    )


@router.patch("/{notification_id}", response_model=NotificationRead)
async def update_notification(
    notification_id: uuid.UUID,
    body: NotificationUpdate,
    principal: Principal = Depends(require_global_admin),
    session: AsyncSession = Depends(get_session),
):
    notification = await notification_service.get_notification_or_404(session, notification_id)
    await notification_service.update_notification(session, notification, body)
    await session.commit()
    return notification_service.to_read(notification)


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(
    notification_id: uuid.UUID,
    principal: Principal = Depends(require_global_admin),
    session: AsyncSession = Depends(get_session),
):
    notification = await notification_service.get_notification_or_404(session, notification_id)
    await notification_service.delete_notification(session, notification)
    await session.commit()
    return MessageResponse(message="Notification deleted successfully")
