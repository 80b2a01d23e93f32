# SQLModel table definitions, imported so the metadata is populated for init_db().
from .base import CreatedAtMixin, TimestampMixin, UUIDMixin  # noqa: F401
from .user import User  # noqa: F401
from .workspace import Workspace, WorkspaceMember  # noqa: F401
from .group import Group, GroupMember, GroupMessage  # noqa: F401
from .project import Project  # noqa: F401
from .task import Comment, Task  # noqa: F401
from .assignments import ProjectGroup, ProjectMember, TaskAssignee, TaskGroup  # noqa: F401
from .notification import Notification  # noqa: F401
from .attendance import Attendance  # noqa: F401
