"""Data models for the leave decision core."""

from datetime import date
from enum import Enum
from typing import Optional, Dict, Any, List, Protocol
from pydantic import BaseModel, ConfigDict, Field, model_validator


class DecisionStatus(str, Enum):
    """Outcome of evaluating a single leave request."""
    AUTO_APPROVED = "AUTO_APPROVED"
    AUTO_REJECTED = "AUTO_REJECTED"
    PENDING_MANAGER_REVIEW = "PENDING_MANAGER_REVIEW"


class LeaveStatus(str, Enum):
    """Statuses a persisted leave record can hold."""
    AUTO_APPROVED = "AUTO_APPROVED"
    AUTO_REJECTED = "AUTO_REJECTED"
    PENDING_MANAGER_REVIEW = "PENDING_MANAGER_REVIEW"
    APPROVED = "APPROVED"  # Manager override
    REJECTED = "REJECTED"  # Manager override


# Leave that counts toward team capacity
COMMITTED_STATUSES = (LeaveStatus.AUTO_APPROVED, LeaveStatus.APPROVED)

# Leave that blocks a new overlapping request from the same user
ACTIVE_STATUSES = (
    LeaveStatus.PENDING_MANAGER_REVIEW,
    LeaveStatus.AUTO_APPROVED,
    LeaveStatus.APPROVED,
)

# Terminal states a manager may set by hand
MANAGER_STATUSES = (LeaveStatus.APPROVED, LeaveStatus.REJECTED)


class PolicyConfig(BaseModel):
    """Fixed business thresholds used by the rule evaluator."""
    model_config = ConfigDict(frozen=True)

    max_leave_days: int = Field(15, gt=0)
    workday_hours: float = Field(8, gt=0)
    overload_percent: float = 50.0  # Strictly above rejects
    fast_track_max_days: int = 2  # Inclusive
    fast_track_max_absence: float = 30.0  # Inclusive
    fast_track_max_impact: float = 0.3  # Strictly below qualifies
    high_impact_threshold: float = 0.6  # Strictly above rejects


class LeaveRequest(BaseModel):
    """A leave request as handed to the decision core."""
    requester_id: int
    team_id: int
    start_date: date
    end_date: date
    reason: Optional[str] = None


class Decision(BaseModel):
    """Immutable result of one evaluation."""
    model_config = ConfigDict(frozen=True)

    status: DecisionStatus
    reason: Optional[str] = None  # Only on rejection
    impact_score: Optional[float] = None  # Rounded to 2 dp
    team_absence: Optional[float] = None  # Rounded to 2 dp

    @model_validator(mode="after")
    def _check_shape(self):
        if self.status == DecisionStatus.AUTO_REJECTED:
            if not self.reason:
                raise ValueError("A rejection must carry a reason")
        elif self.impact_score is None or self.team_absence is None:
            raise ValueError(f"{self.status.value} must carry impact_score and team_absence")
        return self

    @classmethod
    def rejected(cls, reason: str) -> "Decision":
        return cls(status=DecisionStatus.AUTO_REJECTED, reason=reason)

    @classmethod
    def with_metrics(
        cls, status: DecisionStatus, impact_score: float, team_absence: float
    ) -> "Decision":
        return cls(
            status=status,
            impact_score=round(impact_score, 2),
            team_absence=round(team_absence, 2),
        )

    @property
    def is_rejected(self) -> bool:
        return self.status == DecisionStatus.AUTO_REJECTED

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the wire shape used by the HTTP layer."""
        if self.is_rejected:
            return {"status": self.status.value, "reason": self.reason}
        return {
            "status": self.status.value,
            "impactScore": self.impact_score,
            "teamAbsence": self.team_absence,
        }


class ImpactPreview(BaseModel):
    """Metrics for a prospective leave window, without a policy verdict."""
    leave_days: int
    impact_score: float
    team_absence: float

    def to_payload(self) -> Dict[str, Any]:
        return {
            "leaveDays": self.leave_days,
            "impactScore": self.impact_score,
            "teamAbsence": self.team_absence,
        }


class TeamSnapshot(BaseModel):
    """Team headcount and committed absences for a window, read at decision time."""
    total_members: int = Field(ge=0)
    committed_on_leave: int = Field(ge=0)


class WorkItem(BaseModel):
    """An open task due inside the leave window."""
    estimated_hours: Optional[float] = None  # Missing effort counts as 0
    task_id: Optional[int] = None
    due_date: Optional[date] = None


class TeamQuery(Protocol):
    """Read capability for team capacity."""

    async def get_team_snapshot(
        self, team_id: int, window_start: date, window_end: date
    ) -> TeamSnapshot:
        ...


class TaskQuery(Protocol):
    """Read capability for a user's open, due-in-window work."""

    async def get_open_work_items(
        self, user_id: int, window_start: date, window_end: date
    ) -> List[WorkItem]:
        ...
