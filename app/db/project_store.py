"""
Project queries for the request layer.

Pending hours here are the same open-work signal the impact model reads:
estimated hours on tasks that are not DONE, missing estimates counted as 0.
"""

from datetime import date
from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import and_, case, func, or_

from app.db.leave_store import DONE_STATUS
from app.db.models import Project, Task

PENDING_HOURS = func.coalesce(
    func.sum(case((Task.status != DONE_STATUS, func.coalesce(Task.estimated_hours, 0)), else_=0)),
    0,
)


class ProjectStore:
    """Projects visible to a user: their team's, plus any they hold tasks in."""

    def __init__(self, db: Session):
        self.db = db

    def _visible_to(self, user_id: int, team_id: Optional[int]):
        """Projects joined to the user's own tasks, filtered to what they may see."""
        return self.db.query(Project).outerjoin(
            Task, and_(Task.project_id == Project.id, Task.assigned_to == user_id)
        ).filter(
            or_(Project.team_id == team_id, Task.assigned_to == user_id)
        )

    def get_projects_for_user(self, user_id: int, team_id: Optional[int]) -> List[Project]:
        """Visible projects, earliest deadline first."""
        return self._visible_to(user_id, team_id).distinct().order_by(
            Project.deadline.asc(), Project.id.asc()
        ).all()

    def get_task_stats(self, user_id: int, project_ids: List[int]) -> Dict[int, dict]:
        """Per project: the user's total tasks, pending tasks and pending hours."""
        if not project_ids:
            return {}
        rows = self.db.query(
            Task.project_id,
            func.count(Task.id),
            func.count(case((Task.status != DONE_STATUS, 1))),
            PENDING_HOURS,
        ).filter(
            Task.assigned_to == user_id,
            Task.project_id.in_(project_ids),
        ).group_by(Task.project_id).all()

        return {
            project_id: {"total": total, "pending": pending, "pendingHours": float(pending_hours or 0)}
            for project_id, total, pending, pending_hours in rows
        }

    def get_upcoming_deadlines(
        self,
        user_id: int,
        team_id: Optional[int],
        today: date,
        limit: int = 10,
    ) -> List[dict]:
        """Visible projects with a deadline today or later, soonest first."""
        rows = self.db.query(
            Project.id,
            Project.name,
            Project.deadline,
            func.count(Task.id),
            PENDING_HOURS,
        ).outerjoin(
            Task, and_(Task.project_id == Project.id, Task.assigned_to == user_id)
        ).filter(
            or_(Project.team_id == team_id, Task.assigned_to == user_id),
            Project.deadline.isnot(None),
            Project.deadline >= today,
        ).group_by(
            Project.id, Project.name, Project.deadline
        ).order_by(Project.deadline.asc(), Project.id.asc()).limit(limit).all()

        return [
            {
                "projectId": project_id,
                "projectName": name,
                "deadline": deadline.isoformat(),
                "myTaskCount": task_count,
                "pendingHours": float(pending_hours or 0),
            }
            for project_id, name, deadline, task_count, pending_hours in rows
        ]

    def get_project(self, project_id: int) -> Optional[Project]:
        return self.db.query(Project).filter(Project.id == project_id).first()

    def get_user_tasks(self, project_id: int, user_id: int) -> List[Task]:
        """The user's tasks in one project, by due date."""
        return self.db.query(Task).filter(
            Task.project_id == project_id,
            Task.assigned_to == user_id,
        ).order_by(Task.due_date.asc(), Task.id.asc()).all()
