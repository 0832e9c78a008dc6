"""Leave policy engine - decision core for leave requests."""

from app.policy.models import (
    Decision, DecisionStatus, LeaveRequest, LeaveStatus, PolicyConfig,
    TeamSnapshot, WorkItem, ImpactPreview,
)
from app.policy.errors import InvalidInput, InvalidDate, DataUnavailable
from app.policy.decision import LeaveDecisionEngine, evaluate_leave
from app.policy.scoring import compute_impact
from app.policy.capacity import compute_team_absence
from app.policy.config import load_policy_config

__all__ = [
    "Decision",
    "DecisionStatus",
    "LeaveRequest",
    "LeaveStatus",
    "PolicyConfig",
    "TeamSnapshot",
    "WorkItem",
    "ImpactPreview",
    "InvalidInput",
    "InvalidDate",
    "DataUnavailable",
    "LeaveDecisionEngine",
    "evaluate_leave",
    "compute_impact",
    "compute_team_absence",
    "load_policy_config",
]
