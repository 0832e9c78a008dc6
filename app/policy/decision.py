"""
Decision engine - classifies a leave request as approved, rejected or
pending manager review.

This is the core intelligence layer: all business policy and the order in
which it is applied lives here.
"""

import asyncio
import logging
from datetime import date
from typing import Callable, Optional, Tuple
from app.policy import dates
from app.policy.capacity import compute_team_absence
from app.policy.errors import DataUnavailable, InvalidInput
from app.policy.models import (
    Decision,
    DecisionStatus,
    ImpactPreview,
    LeaveRequest,
    PolicyConfig,
    TaskQuery,
    TeamQuery,
)
from app.policy.rules import (
    check_high_impact,
    check_request_window,
    check_team_overload,
    qualifies_for_fast_track,
)
from app.policy.scoring import compute_impact

logger = logging.getLogger(__name__)


class LeaveDecisionEngine:
    """
    Rule evaluator for leave requests.

    Evaluation order (first failure wins):
    1. end before start        -> AUTO_REJECTED
    2. start in the past       -> AUTO_REJECTED
    3. longer than max days    -> AUTO_REJECTED
    4. team absence > 50%      -> AUTO_REJECTED
    5. impact score computed
    6. fast-track conditions   -> AUTO_APPROVED
    7. impact > 0.6            -> AUTO_REJECTED
    8. otherwise               -> PENDING_MANAGER_REVIEW

    The team and workload reads are independent and are fetched together,
    but steps 4-8 always run in the order above.
    """

    def __init__(
        self,
        team_source: TeamQuery,
        task_source: TaskQuery,
        config: Optional[PolicyConfig] = None,
        clock: Callable[[], date] = date.today,
    ):
        self.team_source = team_source
        self.task_source = task_source
        self.config = config or PolicyConfig()
        self.clock = clock

    async def evaluate(self, request: LeaveRequest) -> Decision:
        """
        Decide what happens to a leave request.

        Returns:
            Decision with status, plus reason (rejections) or metrics

        Raises:
            InvalidInput: missing identifiers
            DataUnavailable: a data read failed
        """
        _require_identifiers(request)
        start, end = request.start_date, request.end_date

        window = check_request_window(start, end, self.clock(), self.config)
        if not window.passed:
            return self._log(request, Decision.rejected(window.reason))

        leave_days = dates.inclusive_day_count(start, end)
        team_absence, impact_score = await self._fetch_metrics(request)

        overload = check_team_overload(team_absence, self.config)
        if not overload.passed:
            return self._log(request, Decision.rejected(overload.reason))

        if qualifies_for_fast_track(leave_days, team_absence, impact_score, self.config):
            return self._log(request, Decision.with_metrics(
                DecisionStatus.AUTO_APPROVED, impact_score, team_absence
            ))

        high_impact = check_high_impact(impact_score, self.config)
        if not high_impact.passed:
            return self._log(request, Decision.rejected(high_impact.reason))

        return self._log(request, Decision.with_metrics(
            DecisionStatus.PENDING_MANAGER_REVIEW, impact_score, team_absence
        ))

    async def preview(self, request: LeaveRequest) -> ImpactPreview:
        """
        Compute the metrics a request would be judged on, without a verdict.

        Raises:
            InvalidInput: missing identifiers or end before start
            DataUnavailable: a data read failed
        """
        _require_identifiers(request)
        leave_days = dates.inclusive_day_count(request.start_date, request.end_date)
        team_absence, impact_score = await self._fetch_metrics(request)
        return ImpactPreview(
            leave_days=leave_days,
            impact_score=round(impact_score, 2),
            team_absence=round(team_absence, 2),
        )

    async def _fetch_metrics(self, request: LeaveRequest) -> Tuple[float, float]:
        """Run both data reads concurrently. Returns (team_absence, impact_score)."""
        results = await asyncio.gather(
            compute_team_absence(
                self.team_source, request.team_id, request.start_date, request.end_date
            ),
            compute_impact(
                self.task_source, request.requester_id,
                request.start_date, request.end_date, self.config
            ),
            return_exceptions=True,
        )

        team_absence, impact_score = results
        for source, result in (("team snapshot", team_absence), ("work item", impact_score)):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(
                    f"{source} read failed for user {request.requester_id} "
                    f"team {request.team_id}: {result}",
                    exc_info=result,
                )
                raise DataUnavailable(source, result) from result

        return team_absence, impact_score

    def _log(self, request: LeaveRequest, decision: Decision) -> Decision:
        if decision.is_rejected:
            logger.info(
                f"Leave {request.start_date}..{request.end_date} for user {request.requester_id} "
                f"-> {decision.status.value}: {decision.reason}"
            )
        else:
            logger.info(
                f"Leave {request.start_date}..{request.end_date} for user {request.requester_id} "
                f"-> {decision.status.value} (impact {decision.impact_score}, "
                f"team absence {decision.team_absence}%)"
            )
        return decision


def _require_identifiers(request: LeaveRequest):
    if not request.requester_id or not request.team_id:
        raise InvalidInput("Requester and team are required to evaluate leave")


async def evaluate_leave(
    team_source: TeamQuery,
    task_source: TaskQuery,
    requester_id: int,
    team_id: int,
    start_date: dates.DateLike,
    end_date: dates.DateLike,
    config: Optional[PolicyConfig] = None,
) -> Decision:
    """
    One-shot evaluation from raw identifiers and date strings.

    Raises:
        InvalidInput: malformed dates or missing identifiers
        DataUnavailable: a data read failed
    """
    if not requester_id or not team_id:
        raise InvalidInput("Requester and team are required to evaluate leave")
    request = LeaveRequest(
        requester_id=requester_id,
        team_id=team_id,
        start_date=dates.normalize_date(start_date),
        end_date=dates.normalize_date(end_date),
    )
    engine = LeaveDecisionEngine(team_source, task_source, config)
    return await engine.evaluate(request)
