"""
HTML bodies for the transactional emails. All interpolated values are escaped.
"""

from __future__ import annotations

from datetime import datetime
from html import escape
from typing import Optional

_BUTTON_STYLE = (
    "background-color: #007bff; padding: 12px 24px; border-radius: 5px; color: #fff; "
    "font-weight: 600; font-size: 16px; text-decoration: none; display: inline-block; "
    "margin-bottom: 16px;"
)


def _wrap(origin: str, inner: str) -> str:
    return (
        '<div style="max-width: 600px;">'
        f'<a href="{escape(origin or "")}" style="{_BUTTON_STYLE}">Go To Workspace</a>'
        f"{inner}</div>"
    )


def workspace_invitation(origin: str, workspace_name: str, email: str, temp_password: str) -> tuple[str, str]:
    body = (
        f"<h2>You have been invited to {escape(workspace_name)}</h2>"
        "<p>Your login credentials:</p>"
        f"<p><strong>Email:</strong> {escape(email)}</p>"
        f"<p><strong>Password:</strong> {escape(temp_password)}</p>"
        "<p>Please login and change your password after first login.</p>"
    )
    return "Workspace Invitation", _wrap(origin, body)


def project_invitation(origin: str, project_name: str, email: str, temp_password: str) -> tuple[str, str]:
    body = (
        f"<h2>You have been added to the project {escape(project_name)}</h2>"
        "<p>Your login credentials:</p>"
        f"<p><strong>Email:</strong> {escape(email)}</p>"
        f"<p><strong>Password:</strong> {escape(temp_password)}</p>"
        "<p>Please login and change your password after first login.</p>"
    )
    return "You have been invited", _wrap(origin, body)


def task_assignment(
    origin: str, title: str, description: Optional[str], due_date: Optional[datetime]
) -> tuple[str, str]:
    due = due_date.strftime("%Y-%m-%d") if due_date else "None"
    body = (
        "<h2>Hello</h2>"
        '<p style="font-size: 16px;">A new task has been assigned to you:</p>'
        f'<p style="font-size: 18px; font-weight: bold; color: #007bff;">{escape(title)}</p>'
        '<div style="border: 1px solid #ddd; padding: 12px 16px; border-radius: 6px;">'
        f"<p><strong>Description:</strong> {escape(description or '')}</p>"
        f"<p><strong>Due Date:</strong> {escape(due)}</p>"
        "</div>"
        '<p style="font-size: 14px; color: #6c757d;">'
        "Please make sure to review and complete it before the due date.</p>"
    )
    return "New Task Assignment", _wrap(origin, body)


def group_added(origin: str, group_name: str, workspace_name: str) -> tuple[str, str]:
    body = (
        f"<h2>You have been added to the group {escape(group_name)}</h2>"
        f"<p>Workspace: {escape(workspace_name)}</p>"
    )
    return f"Added to group {group_name}", _wrap(origin, body)


def notification_broadcast(
    origin: str,
    title: str,
    subtitle: Optional[str],
    button_name: Optional[str],
    button_url: Optional[str],
    open_in_new_tab: bool,
) -> tuple[str, str]:
    body = f"<h2>{escape(title)}</h2>"
    if subtitle:
        body += f"<p>{escape(subtitle)}</p>"
    if button_name and button_url:
        target = "_blank" if open_in_new_tab else "_self"
        body += f'<p><a href="{escape(button_url)}" target="{target}">{escape(button_name)}</a></p>'
    return f"New notification: {title}", _wrap(origin, body)
