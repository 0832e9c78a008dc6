"""
Workload impact model.

Impact score = (estimated hours of open work due in the leave window)
             / (nominal working hours in the window)

0 means the requester has nothing due while away. There is no upper bound:
work far exceeding the available time yields a score above 1.
"""

from typing import Iterable
from app.policy import dates
from app.policy.models import PolicyConfig, TaskQuery, WorkItem


def total_effort_hours(items: Iterable[WorkItem]) -> float:
    """Sum estimated hours, counting missing effort as 0."""
    return sum((item.estimated_hours or 0) for item in items)


def impact_from_items(
    items: Iterable[WorkItem],
    leave_days: int,
    workday_hours: float = 8,
) -> float:
    """Score a set of already-fetched work items against a window length."""
    available_hours = leave_days * workday_hours
    if available_hours <= 0:
        return 0.0
    return total_effort_hours(items) / available_hours


async def compute_impact(
    source: TaskQuery,
    user_id: int,
    start: dates.DateLike,
    end: dates.DateLike,
    config: PolicyConfig = PolicyConfig(),
) -> float:
    """
    Calculate the workload impact of a leave window for one user.

    Args:
        source: Task query capability
        user_id: Requester
        start: First day of leave
        end: Last day of leave (inclusive)
        config: Policy config (for the workday length)

    Returns:
        Impact score >= 0
    """
    start_day = dates.normalize_date(start)
    end_day = dates.normalize_date(end)
    leave_days = dates.inclusive_day_count(start_day, end_day)

    items = await source.get_open_work_items(user_id, start_day, end_day)
    return impact_from_items(items, leave_days, config.workday_hours)

