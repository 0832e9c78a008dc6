"""
Team capacity aggregation.

Team absence = distinct members on committed leave overlapping the window
             / total team members * 100
"""

from app.policy import dates
from app.policy.models import TeamQuery, TeamSnapshot


def team_absence_percent(snapshot: TeamSnapshot) -> float:
    """Share of the team already away, as a percentage. Empty teams report 0."""
    if snapshot.total_members == 0:
        return 0.0
    return snapshot.committed_on_leave / snapshot.total_members * 100


async def compute_team_absence(
    source: TeamQuery,
    team_id: int,
    start: dates.DateLike,
    end: dates.DateLike,
) -> float:
    """Fetch the team snapshot for a window and convert it to a percentage."""
    snapshot = await source.get_team_snapshot(
        team_id, dates.normalize_date(start), dates.normalize_date(end)
    )
    return team_absence_percent(snapshot)
