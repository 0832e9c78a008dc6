"""Database package for leave management records."""

from app.db.database import get_db, init_db
from app.db.models import Base, Team, User, Leave, Task, Project
from app.db.leave_store import LeaveStore, SqlLeaveSource
from app.db.project_store import ProjectStore

__all__ = [
    "get_db",
    "init_db",
    "Base",
    "Team",
    "User",
    "Leave",
    "Task",
    "Project",
    "LeaveStore",
    "SqlLeaveSource",
    "ProjectStore",
]
