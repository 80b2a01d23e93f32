"""
API Router

Every resource is mounted under /api. All routes except /api/auth/login
require a bearer token.
"""

from fastapi import APIRouter

from . import attendance, auth, comments, groups, notifications, projects, tasks, workspaces

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(workspaces.router, prefix="/workspaces", tags=["Workspaces"])
router.include_router(projects.router, prefix="/projects", tags=["Projects"])
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
router.include_router(comments.router, prefix="/comments", tags=["Comments"])
router.include_router(groups.router, prefix="/groups", tags=["Groups"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
router.include_router(attendance.router, prefix="/attendance", tags=["Attendance"])


@router.get("", tags=["API"])
async def api_root():
    """API root: version and available resources."""
    return {
        "api": "crewdesk",
        "version": "0.1.0",
        "endpoints": [
            "/auth",
            "/workspaces",
            "/projects",
            "/tasks",
            "/comments",
            "/groups",
            "/notifications",
            "/attendance",
        ],
    }
