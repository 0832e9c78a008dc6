import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import date
from typing import Dict, Optional
from fastapi import Depends, FastAPI, Header, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session
from dotenv import load_dotenv

from app.db.database import SessionLocal, get_db
from app.db.leave_store import LeaveStore, SqlLeaveSource
from app.db.models import Leave, Project, Task, User
from app.db.project_store import ProjectStore
from app.policy import dates
from app.policy.config import load_policy_config
from app.policy.decision import LeaveDecisionEngine
from app.policy.errors import DataUnavailable, InvalidInput
from app.policy.models import LeaveRequest, LeaveStatus

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="leaveflow",
    description="Automatic leave approval based on team capacity and workload",
    version="0.1.0"
)

# Policy thresholds, read once at import
policy_config = load_policy_config()


class ApplyLeaveBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start_date: Optional[str] = Field(None, alias="startDate")
    end_date: Optional[str] = Field(None, alias="endDate")
    reason: Optional[str] = None


class PreviewBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start_date: Optional[str] = Field(None, alias="startDate")
    end_date: Optional[str] = Field(None, alias="endDate")


class UpdateStatusBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: Optional[str] = None
    manager_note: Optional[str] = Field(None, alias="managerNote")


# =============================================================================
# Dependencies
# =============================================================================

def get_store(db: Session = Depends(get_db)) -> LeaveStore:
    return LeaveStore(db)


def get_project_store(db: Session = Depends(get_db)) -> ProjectStore:
    return ProjectStore(db)


def get_decision_engine() -> LeaveDecisionEngine:
    source = SqlLeaveSource(SessionLocal)
    return LeaveDecisionEngine(source, source, policy_config)


def get_current_user(
    x_user_id: Optional[int] = Header(None),
    store: LeaveStore = Depends(get_store),
) -> User:
    """Resolve the caller. Token issuance lives outside this service."""
    if x_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    user = store.get_user(x_user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
    return user


def _leave_request(user: User, start: Optional[str], end: Optional[str], reason: Optional[str] = None) -> LeaveRequest:
    if not user.team_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User is not assigned to any team")
    try:
        return LeaveRequest(
            requester_id=user.id,
            team_id=user.team_id,
            start_date=dates.normalize_date(start),
            end_date=dates.normalize_date(end),
            reason=reason,
        )
    except InvalidInput as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def _serialize_leave(leave: Leave) -> dict:
    return {
        "id": leave.id,
        "startDate": leave.start_date.isoformat(),
        "endDate": leave.end_date.isoformat(),
        "status": leave.status,
        "reason": leave.reason,
        "managerNote": leave.manager_note,
        "createdAt": leave.created_at.isoformat() if leave.created_at else None,
    }




def _serialize_project(project: Project) -> dict:
    return {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "deadline": project.deadline.isoformat() if project.deadline else None,
        "status": project.status,
        "createdAt": project.created_at.isoformat() if project.created_at else None,
    }


def _serialize_task(task: Task) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "status": task.status,
        "estimatedHours": task.estimated_hours,
        "dueDate": task.due_date.isoformat() if task.due_date else None,
    }


class UserLocks:
    """
    One asyncio.Lock per user, held while a request is checked, evaluated
    and stored. Locks are dropped once nobody holds or waits on them.

    Covers a single process; several workers need a database-level guard.
    """

    def __init__(self):
        self._locks: Dict[int, asyncio.Lock] = {}
        self._holders: Dict[int, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, user_id: int):
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._holders[user_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._holders[user_id] -= 1
            if not self._holders[user_id]:
                del self._holders[user_id]
                del self._locks[user_id]

    def __len__(self):
        return len(self._locks)


apply_locks = UserLocks()


# =============================================================================
# Routes
# =============================================================================

@app.get("/")
async def root():
    """API root - shows available endpoints."""
    return {
        "service": "leaveflow",
        "version": "0.1.0",
        "docs": "/docs",
        "endpoints": {
            "health": "/health",
            "apply": "/leaves/apply",
            "preview": "/leaves/preview",
            "my_leaves": "/leaves/my",
            "update_status": "/leaves/{leave_id}/status",
            "my_team": "/team/my-team",
            "team_info": "/team/info",
            "team_members": "/team/members",
            "my_projects": "/projects/my-projects",
            "deadlines": "/projects/deadlines",
            "project": "/projects/{project_id}",
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "service": "leaveflow"}


@app.post("/leaves/apply", status_code=status.HTTP_201_CREATED)
async def apply_leave(
    body: ApplyLeaveBody,
    user: User = Depends(get_current_user),
    store: LeaveStore = Depends(get_store),
    engine: LeaveDecisionEngine = Depends(get_decision_engine),
):
    """Submit a leave request and return the automatic decision."""
    if not body.start_date or not body.end_date or not body.reason:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="startDate, endDate, and reason are required"
        )
    request = _leave_request(user, body.start_date, body.end_date, body.reason)

    if dates.is_invalid_range(request.start_date, request.end_date):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="startDate cannot be after endDate")

    # Overlap check and insert must not interleave with another request from the same user
    async with apply_locks.hold(user.id):
        overlap = await asyncio.to_thread(
            store.check_overlap, user.id, request.start_date, request.end_date
        )
        if overlap:
            logger.info(f"Refused overlapping leave request from user {user.id}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You already have an approved or pending leave request in this period"
            )

        try:
            decision = await engine.evaluate(request)
        except DataUnavailable as e:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

        leave = await asyncio.to_thread(
            store.create_leave,
            user.id, request.team_id, request.start_date, request.end_date,
            request.reason, LeaveStatus(decision.status.value)
        )

    return {
        **decision.to_payload(),
        "leaveId": leave.id,
        "message": "Leave request submitted successfully",
    }


@app.post("/leaves/preview")
async def preview_leave(
    body: PreviewBody,
    user: User = Depends(get_current_user),
    engine: LeaveDecisionEngine = Depends(get_decision_engine),
):
    """Show impact and team absence for a window without submitting it."""
    if not body.start_date or not body.end_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="startDate and endDate are required")
    request = _leave_request(user, body.start_date, body.end_date)

    try:
        preview = await engine.preview(request)
    except InvalidInput as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except DataUnavailable as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return {**preview.to_payload(), "message": "Impact preview calculated"}


@app.get("/leaves/my")
def my_leaves(
    user: User = Depends(get_current_user),
    store: LeaveStore = Depends(get_store),
):
    """Leave history for the caller."""
    leaves = [_serialize_leave(leave) for leave in store.get_leaves_by_user(user.id)]
    return {"leaves": leaves, "count": len(leaves)}


@app.patch("/leaves/{leave_id}/status")
def update_leave_status(
    leave_id: int,
    body: UpdateStatusBody,
    user: User = Depends(get_current_user),
    store: LeaveStore = Depends(get_store),
):
    """Manager approves or rejects a leave on their own team."""
    if user.role != "MANAGER":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden - Insufficient permissions")
    if body.status not in (LeaveStatus.APPROVED.value, LeaveStatus.REJECTED.value):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="status must be 'APPROVED' or 'REJECTED'")

    leave = store.get_leave_by_id(leave_id)
    if not leave:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Leave request not found")
    if leave.team_id != user.team_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only manage leaves from your own team")

    store.update_leave_status(leave_id, body.status, user.id, body.manager_note)
    return {
        "message": f"Leave {body.status.lower()} successfully",
        "leaveId": leave_id,
        "status": body.status,
    }


# =============================================================================
# Team
# =============================================================================

def _require_team(user: User, store: LeaveStore):
    if not user.team_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User is not assigned to any team")
    team = store.get_team(user.team_id)
    if not team:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team not found")
    return team


@app.get("/team/my-team")
def my_team(
    user: User = Depends(get_current_user),
    store: LeaveStore = Depends(get_store),
):
    """Caller's team and headcount."""
    team = _require_team(user, store)
    return {
        "team": {"id": team.id, "name": team.name, "description": team.description},
        "memberCount": store.get_team_member_count(team.id),
        "myUserId": user.id,
    }


@app.get("/team/info")
def team_info(
    user: User = Depends(get_current_user),
    store: LeaveStore = Depends(get_store),
):
    """Caller's team with headcount and people on leave today."""
    team = _require_team(user, store)
    return {
        "team": {
            "id": team.id,
            "name": team.name,
            "description": team.description,
            "createdAt": team.created_at.isoformat() if team.created_at else None,
        },
        "statistics": {
            "totalMembers": store.get_team_member_count(team.id),
            "activeLeaves": store.count_active_leaves(team.id, date.today()),
        },
    }


@app.get("/team/members")
def team_members(
    user: User = Depends(get_current_user),
    store: LeaveStore = Depends(get_store),
):
    """Everyone on the caller's team."""
    if not user.team_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User is not assigned to any team")
    members = [
        {"id": m.id, "name": m.name, "email": m.email, "role": m.role}
        for m in store.get_team_members(user.team_id)
    ]
    return {"members": members, "count": len(members), "teamId": user.team_id}


# =============================================================================
# Projects
# =============================================================================

@app.get("/projects/my-projects")
def my_projects(
    user: User = Depends(get_current_user),
    projects: ProjectStore = Depends(get_project_store),
):
    """Team projects plus any project the caller holds tasks in, with their own task load."""
    visible = projects.get_projects_for_user(user.id, user.team_id)
    stats = projects.get_task_stats(user.id, [p.id for p in visible])
    empty = {"total": 0, "pending": 0, "pendingHours": 0.0}
    result = [
        {**_serialize_project(p), "myTasks": stats.get(p.id, empty)}
        for p in visible
    ]
    return {"projects": result, "count": len(result)}


@app.get("/projects/deadlines")
def project_deadlines(
    user: User = Depends(get_current_user),
    projects: ProjectStore = Depends(get_project_store),
):
    """The next ten project deadlines the caller can see."""
    deadlines = projects.get_upcoming_deadlines(user.id, user.team_id, date.today())
    return {"deadlines": deadlines, "count": len(deadlines)}


@app.get("/projects/{project_id}")
def project_detail(
    project_id: int,
    user: User = Depends(get_current_user),
    projects: ProjectStore = Depends(get_project_store),
):
    """One project of the caller's team, with the caller's tasks in it."""
    project = projects.get_project(project_id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    if project.team_id != user.team_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied: You are not part of this project"
        )

    tasks = [_serialize_task(t) for t in projects.get_user_tasks(project.id, user.id)]
    return {"project": {**_serialize_project(project), "myTasks": tasks}}
