"""
Notification service: workspace broadcasts and the daily attendance reminder.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import NotFoundError
from app.core.mail import Mailer
from app.models.attendance import Attendance
from app.models.notification import Notification
from app.models.user import User
from app.models.workspace import Workspace, WorkspaceMember
from app.services import attendance as attendance_service, emails
from crewdesk_shared.schemas.notifications import (
    NotificationCreate,
    NotificationRead,
    NotificationUpdate,
)

log = structlog.get_logger()

ATTENDANCE_REMINDER_ID = "attendance_reminder"


def to_read(n: Notification) -> NotificationRead:
    return NotificationRead(
        id=str(n.id),
        workspace_id=n.workspace_id,
        title=n.title,
        subtitle=n.subtitle,
        button_name=n.button_name,
        button_url=n.button_url,
        open_in_new_tab=n.open_in_new_tab,
        created_at=n.created_at,
        updated_at=n.updated_at,
    )


def attendance_reminder(workspace_id: uuid.UUID) -> NotificationRead:
    now = datetime.now(timezone.utc)
    return NotificationRead(
        id=ATTENDANCE_REMINDER_ID,
        workspace_id=workspace_id,
        title="Mark attendance",
        subtitle="Please mark your attendance for today.",
        button_name="Mark now",
        button_url="/attendance",
        open_in_new_tab=False,
        created_at=now,
        updated_at=now,
    )


async def get_notification_or_404(session: AsyncSession, notification_id: uuid.UUID) -> Notification:
    notification = await session.get(Notification, notification_id)
    if not notification:
        raise NotFoundError("Notification not found")
    return notification


async def list_notifications(
    session: AsyncSession,
    workspace_id: uuid.UUID,
    *,
    remind_user_id: Optional[uuid.UUID] = None,
) -> list[NotificationRead]:
    """Newest first. When ``remind_user_id`` is given and that user has no
    attendance today, a synthetic reminder is prepended."""
    result = await session.execute(
        select(Notification)
        .where(Notification.workspace_id == workspace_id)
        .order_by(Notification.created_at.desc())
    )
    items = [to_read(n) for n in result.scalars().all()]

    if remind_user_id is not None:
        day = attendance_service.today()
        marked = await session.execute(
            select(Attendance.id).where(
                Attendance.workspace_id == workspace_id,
                Attendance.user_id == remind_user_id,
                Attendance.date == day,
            )
        )
        if marked.first() is None:
            items.insert(0, attendance_reminder(workspace_id))
    return items


async def create_notification(session: AsyncSession, req: NotificationCreate) -> Notification:
    if not await session.get(Workspace, req.workspace_id):
        raise NotFoundError("Workspace not found")

    notification = Notification(
        workspace_id=req.workspace_id,
        title=req.title,
        subtitle=req.subtitle or None,
        button_name=req.button_name or None,
        button_url=req.button_url or None,
        open_in_new_tab=bool(req.open_in_new_tab),
    )
    session.add(notification)
    await session.flush()
    log.info("notification.created", notification_id=str(notification.id), workspace_id=str(req.workspace_id))
    return notification


async def broadcast(
    session: AsyncSession, mailer: Mailer, notification: Notification, origin: str = ""
) -> list[str]:
    """Email every current workspace member about a committed notification.

    Recipients are resolved now, at dispatch time. Delivery is best effort;
    the stored notification is kept whatever the mail outcome.
    """
    result = await session.execute(
        select(User.email)
        .join(WorkspaceMember, WorkspaceMember.user_id == User.id)
        .where(WorkspaceMember.workspace_id == notification.workspace_id)
    )
    recipients = [row[0] for row in result.all()]
    subject, html = emails.notification_broadcast(
        origin,
        notification.title,
        notification.subtitle,
        notification.button_name,
        notification.button_url,
        notification.open_in_new_tab,
    )
    delivered = await mailer.notify(recipients, subject, html)
    log.info(
        "notification.dispatched",
        notification_id=str(notification.id),
        recipients=len(recipients),
        delivered=len(delivered),
    )
    return delivered


async def update_notification(
    session: AsyncSession, notification: Notification, req: NotificationUpdate
) -> Notification:
    changes = req.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if field in ("title", "open_in_new_tab") and value is None:
            continue
        setattr(notification, field, value)
    session.add(notification)
    await session.flush()
    log.info("notification.updated", notification_id=str(notification.id), fields=sorted(changes))
    return notification


async def delete_notification(session: AsyncSession, notification: Notification) -> None:
    await session.delete(notification)
    await session.flush()
    log.info("notification.deleted", notification_id=str(notification.id))
