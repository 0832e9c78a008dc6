"""
Leave policy rules.

Each gate returns a RuleResult. Thresholds are exclusive on the side that
defines overload and inclusive on the safe side:

- duration:     leave_days > max_leave_days rejects
- overload:     team_absence > overload_percent rejects (exactly 50 passes)
- fast-track:   leave_days <= 2 AND team_absence <= 30 AND impact < 0.3
- high impact:  impact > 0.6 rejects
"""

from datetime import date
from typing import Optional
from pydantic import BaseModel
from app.policy import dates
from app.policy.models import PolicyConfig


REASON_INVALID_RANGE = "End date cannot be before start date"
REASON_PAST_LEAVE = "Cannot apply for leave in the past"


class RuleResult(BaseModel):
    """Result of a single policy gate."""
    rule: str
    passed: bool
    reason: Optional[str] = None  # Set when the gate fails


def _passed(rule: str) -> RuleResult:
    return RuleResult(rule=rule, passed=True)


def _failed(rule: str, reason: str) -> RuleResult:
    return RuleResult(rule=rule, passed=False, reason=reason)


def check_date_order(start: date, end: date) -> RuleResult:
    if dates.is_invalid_range(start, end):
        return _failed("date_order", REASON_INVALID_RANGE)
    return _passed("date_order")


def check_not_in_past(start: date, today: date) -> RuleResult:
    if dates.is_past(start, today=today):
        return _failed("not_in_past", REASON_PAST_LEAVE)
    return _passed("not_in_past")


def check_duration(leave_days: int, config: PolicyConfig) -> RuleResult:
    if leave_days > config.max_leave_days:
        return _failed(
            "max_duration",
            f"Leave duration exceeds maximum limit of {config.max_leave_days} days",
        )
    return _passed("max_duration")


def check_team_overload(team_absence: float, config: PolicyConfig) -> RuleResult:
    if team_absence > config.overload_percent:
        return _failed(
            "team_overload",
            f"Team overload: {team_absence:.1f}% already on leave",
        )
    return _passed("team_overload")


def check_high_impact(impact_score: float, config: PolicyConfig) -> RuleResult:
    if impact_score > config.high_impact_threshold:
        return _failed(
            "high_impact",
            f"High workload impact: {impact_score:.2f}",
        )
    return _passed("high_impact")


def qualifies_for_fast_track(
    leave_days: int,
    team_absence: float,
    impact_score: float,
    config: PolicyConfig,
) -> bool:
    """Short, low-absence, low-impact requests are approved without a manager."""
    return (
        leave_days <= config.fast_track_max_days
        and team_absence <= config.fast_track_max_absence
        and impact_score < config.fast_track_max_impact
    )


def check_request_window(
    start: date,
    end: date,
    today: date,
    config: PolicyConfig,
) -> RuleResult:
    """
    Run the gates that need no data reads, in order.

    Returns the first failing result, or a passing "window" result.
    """
    for result in (check_date_order(start, end), check_not_in_past(start, today)):
        if not result.passed:
            return result

    # Order is validated above, so the count is defined
    leave_days = dates.inclusive_day_count(start, end)
    duration = check_duration(leave_days, config)
    if not duration.passed:
        return duration

    return _passed("window")
