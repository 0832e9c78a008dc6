"""
Leave store for team, leave and task records.

LeaveStore wraps a single Session for the request layer. SqlLeaveSource
adapts it to the async read capabilities the decision engine consumes.
"""

import asyncio
import logging
from datetime import date
from typing import Callable, Optional, List
from sqlalchemy.orm import Session
from sqlalchemy import and_, desc, func

from app.db.models import Leave, Task, Team, User
from app.policy.errors import InvalidInput
from app.policy.models import (
    ACTIVE_STATUSES, COMMITTED_STATUSES, MANAGER_STATUSES,
    LeaveStatus, TeamSnapshot, WorkItem,
)

logger = logging.getLogger(__name__)

DONE_STATUS = "DONE"


def _status_values(statuses) -> List[str]:
    return [status.value for status in statuses]


def _overlaps(start: date, end: date):
    """Inclusive interval intersection with a leave record."""
    return and_(Leave.start_date <= end, Leave.end_date >= start)


class LeaveStore:
    """Queries and updates for leave management data."""

    def __init__(self, db: Session):
        self.db = db

    # =============================================================================
    # Team capacity
    # =============================================================================

    def get_team_member_count(self, team_id: int) -> int:
        return self.db.query(func.count(User.id)).filter(User.team_id == team_id).scalar() or 0

    def get_team_leave_count(self, team_id: int, start: date, end: date) -> int:
        """Distinct members holding committed leave that overlaps the window."""
        return self.db.query(func.count(func.distinct(Leave.user_id))).filter(
            Leave.team_id == team_id,
            Leave.status.in_(_status_values(COMMITTED_STATUSES)),
            _overlaps(start, end),
        ).scalar() or 0

    def get_team_snapshot(self, team_id: int, start: date, end: date) -> TeamSnapshot:
        return TeamSnapshot(
            total_members=self.get_team_member_count(team_id),
            committed_on_leave=self.get_team_leave_count(team_id, start, end),
        )

    def count_active_leaves(self, team_id: int, on_date: date) -> int:
        """Committed leave records covering a single day."""
        return self.db.query(func.count(Leave.id)).filter(
            Leave.team_id == team_id,
            Leave.status.in_(_status_values(COMMITTED_STATUSES)),
            _overlaps(on_date, on_date),
        ).scalar() or 0

    # =============================================================================
    # Workload
    # =============================================================================

    def get_open_work_items(self, user_id: int, start: date, end: date) -> List[WorkItem]:
        """Tasks not yet done whose due date falls inside [start, end]."""
        tasks = self.db.query(Task).filter(
            Task.assigned_to == user_id,
            Task.status != DONE_STATUS,
            Task.due_date >= start,
            Task.due_date <= end,
        ).all()
        return [
            WorkItem(task_id=task.id, due_date=task.due_date, estimated_hours=task.estimated_hours)
            for task in tasks
        ]

    # =============================================================================
    # Leave records
    # =============================================================================

    def check_overlap(self, user_id: int, start: date, end: date) -> bool:
        """True if the user already has pending or approved leave in the window."""
        existing = self.db.query(Leave.id).filter(
            Leave.user_id == user_id,
            Leave.status.in_(_status_values(ACTIVE_STATUSES)),
            _overlaps(start, end),
        ).first()
        return existing is not None

    def create_leave(
        self,
        user_id: int,
        team_id: int,
        start: date,
        end: date,
        reason: Optional[str],
        status: LeaveStatus,
    ) -> Leave:
        leave = Leave(
            user_id=user_id,
            team_id=team_id,
            start_date=start,
            end_date=end,
            reason=reason,
            status=LeaveStatus(status).value,
        )
        self.db.add(leave)
        self.db.commit()
        self.db.refresh(leave)
        logger.info(f"Created leave {leave.id} for user {user_id} with status {leave.status}")
        return leave

    def get_leaves_by_user(self, user_id: int) -> List[Leave]:
        """Leave history for a user, newest first."""
        return self.db.query(Leave).filter(
            Leave.user_id == user_id
        ).order_by(desc(Leave.created_at), desc(Leave.id)).all()

    def get_leave_by_id(self, leave_id: int) -> Optional[Leave]:
        return self.db.query(Leave).filter(Leave.id == leave_id).first()

    def update_leave_status(
        self,
        leave_id: int,
        status: str,
        manager_id: int,
        manager_note: Optional[str] = None,
    ) -> Optional[Leave]:
        """
        Apply a manager's final decision.

        Raises:
            InvalidInput: if status is not APPROVED or REJECTED
        """
        if status not in _status_values(MANAGER_STATUSES):
            raise InvalidInput("status must be 'APPROVED' or 'REJECTED'")

        leave = self.get_leave_by_id(leave_id)
        if not leave:
            return None

        leave.status = status
        leave.manager_id = manager_id
        leave.manager_note = manager_note
        self.db.commit()
        self.db.refresh(leave)
        logger.info(f"Leave {leave_id} set to {status} by manager {manager_id}")
        return leave

    # =============================================================================
    # People and teams
    # =============================================================================

    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_team(self, team_id: int) -> Optional[Team]:
        return self.db.query(Team).filter(Team.id == team_id).first()

    def get_team_members(self, team_id: int) -> List[User]:
        return self.db.query(User).filter(User.team_id == team_id).order_by(User.name).all()


class SqlLeaveSource:
    """
    Async team and task query capabilities backed by the database.

    Each read opens its own session on a worker thread, so the two reads of
    one evaluation can run at the same time.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def _read(self, method: str, *args):
        db = self.session_factory()
        try:
            return getattr(LeaveStore(db), method)(*args)
        finally:
            db.close()

    async def get_team_snapshot(self, team_id: int, window_start: date, window_end: date) -> TeamSnapshot:
        return await asyncio.to_thread(self._read, "get_team_snapshot", team_id, window_start, window_end)

    async def get_open_work_items(self, user_id: int, window_start: date, window_end: date) -> List[WorkItem]:
        return await asyncio.to_thread(self._read, "get_open_work_items", user_id, window_start, window_end)
