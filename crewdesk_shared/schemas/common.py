from enum import Enum
from typing import Optional

from pydantic import BaseModel


class SessionRole(str, Enum):
    """Role claim carried by a session token (set once, at login)."""
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class WorkspaceRole(str, Enum):
    """Effective role of a user inside one workspace."""
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"
    NONE = "NONE"


class ProjectStatus(str, Enum):
    PLANNING = "PLANNING"
    ACTIVE = "ACTIVE"
    ON_HOLD = "ON_HOLD"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Priority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class TaskStatus(str, Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


class TaskType(str, Enum):
    TASK = "TASK"
    BUG = "BUG"
    FEATURE = "FEATURE"
    IMPROVEMENT = "IMPROVEMENT"
    OTHER = "OTHER"


def normalize_member_role(value: Optional[str]) -> WorkspaceRole:
    """Anything other than a case-insensitive "admin" becomes MEMBER."""
    return WorkspaceRole.ADMIN if str(value or "").strip().upper() == "ADMIN" else WorkspaceRole.MEMBER


class MessageResponse(BaseModel):
    message: str
