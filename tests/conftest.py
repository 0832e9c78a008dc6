"""Shared fixtures for leaveflow tests."""

from datetime import date, timedelta
from typing import List, Optional

import pytest
from sqlalchemy.orm import sessionmaker

from app.db.database import init_db, make_engine
from app.db.models import Team, User, Task, Leave, Project
from app.policy.models import LeaveRequest, TeamSnapshot, WorkItem

TODAY = date(2026, 3, 2)


class FakeLeaveSource:
    """In-memory team and task queries with call recording."""

    def __init__(
        self,
        total_members: int = 10,
        on_leave: int = 0,
        items: Optional[List[WorkItem]] = None,
        team_error: Optional[Exception] = None,
        task_error: Optional[Exception] = None,
    ):
        self.snapshot = TeamSnapshot(total_members=total_members, committed_on_leave=on_leave)
        self.items = items or []
        self.team_error = team_error
        self.task_error = task_error
        self.team_calls = []
        self.task_calls = []

    async def get_team_snapshot(self, team_id, window_start, window_end):
        self.team_calls.append((team_id, window_start, window_end))
        if self.team_error:
            raise self.team_error
        return self.snapshot

    async def get_open_work_items(self, user_id, window_start, window_end):
        self.task_calls.append((user_id, window_start, window_end))
        if self.task_error:
            raise self.task_error
        return list(self.items)


def hours(*values) -> List[WorkItem]:
    return [WorkItem(estimated_hours=v) for v in values]


def make_request(start_offset: int = 1, days: int = 1, start: Optional[date] = None) -> LeaveRequest:
    """Leave request starting `start_offset` days after TODAY, `days` long."""
    first = start or TODAY + timedelta(days=start_offset)
    return LeaveRequest(
        requester_id=7,
        team_id=3,
        start_date=first,
        end_date=first + timedelta(days=days - 1),
        reason="Family trip",
    )


@pytest.fixture
def fake_source():
    return FakeLeaveSource()


@pytest.fixture
def session_factory(tmp_path):
    """Session factory bound to a fresh SQLite file."""
    engine = make_engine(f"sqlite:///{tmp_path / 'leaveflow-test.db'}")
    init_db(engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded(db):
    """
    One team of four: a manager and three employees.

    Returns a dict of ids for convenience.
    """
    team = Team(name="Platform", description="Core services")
    other = Team(name="Design")
    db.add_all([team, other])
    db.flush()

    manager = User(name="Ada", email="ada@example.com", role="MANAGER", team_id=team.id)
    alice = User(name="Alice", email="alice@example.com", team_id=team.id)
    bob = User(name="Bob", email="bob@example.com", team_id=team.id)
    carol = User(name="Carol", email="carol@example.com", team_id=team.id)
    outsider = User(name="Zed", email="zed@example.com", role="MANAGER", team_id=other.id)
    db.add_all([manager, alice, bob, carol, outsider])
    db.commit()

    return {
        "team": team.id,
        "other_team": other.id,
        "manager": manager.id,
        "alice": alice.id,
        "bob": bob.id,
        "carol": carol.id,
        "outsider": outsider.id,
    }


def add_leave(db, user_id, team_id, start, end, status):
    leave = Leave(user_id=user_id, team_id=team_id, start_date=start, end_date=end, status=status)
    db.add(leave)
    db.commit()
    return leave


def add_task(db, user_id, due, estimated_hours, status="TODO", title="Task", project_id=None):
    task = Task(
        title=title, assigned_to=user_id, due_date=due,
        estimated_hours=estimated_hours, status=status, project_id=project_id,
    )
    db.add(task)
    db.commit()
    return task


def add_project(db, team_id, name, deadline=None, status="ACTIVE"):
    project = Project(name=name, team_id=team_id, deadline=deadline, status=status)
    db.add(project)
    db.commit()
    return project
