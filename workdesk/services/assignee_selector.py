import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from workdesk.core.config import settings
from workdesk.core.constants import (
    ASSIGNABLE_ROLES,
    BURNOUT_UTILIZATION,
    DEFAULT_LEAD_TIME_HOURS,
)
from workdesk.core.exceptions import NoEligibleAssigneeError, TeamNotFoundError
from workdesk.repositories.task_repository import TaskRepository
from workdesk.repositories.team_repository import TeamRepository
from workdesk.repositories.user_repository import UserRepository
from workdesk.schemas.assignment import AssignmentConfigData
from workdesk.schemas.common import FallbackStrategy, MatchingMode, Role
from workdesk.schemas.workload import WorkloadSnapshot
from workdesk.services.workload import WorkloadCalculator

logger = logging.getLogger(__name__)

# Skill component values
_SKILL_EXACT = 1.0
_SKILL_PARTIAL = 0.6
_SKILL_NEUTRAL = 0.5
_SKILL_NONE = 0.0


@dataclass
class CandidateScore:
    """Composite score breakdown of one candidate."""

    user_id: UUID
    name: str
    utilization: float
    workload: float
    skill: float
    sla: float
    random: float
    total: float


def is_assignable(user) -> bool:
    """Active, present, and in a role that receives work."""
    return bool(user.is_active) and not user.is_absent and Role(user.role) in ASSIGNABLE_ROLES


def sla_compliance(rows: Iterable) -> Dict[UUID, float]:
    """On-time ratio of finished tasks that had an SLA deadline, per assignee."""
    totals: Dict[UUID, int] = {}
    on_time: Dict[UUID, int] = {}
    for row in rows:
        if row.sla_deadline is None or row.completed_at is None:
            continue
        totals[row.assignee_id] = totals.get(row.assignee_id, 0) + 1
        if row.completed_at <= row.sla_deadline:
            on_time[row.assignee_id] = on_time.get(row.assignee_id, 0) + 1
    return {uid: on_time.get(uid, 0) / count for uid, count in totals.items()}


def deadline_fit(
    snapshot: WorkloadSnapshot,
    deadline: datetime,
    now: datetime,
    grace_percent: float,
) -> float:
    """How comfortably this worker's expected lead time fits before *deadline*.

    Expected hours grow with current utilization; the remaining window is
    widened by the SLA grace percentage.  Returns a value in ``[0, 1]``.
    """
    remaining = (deadline - now).total_seconds() / 3600
    if remaining <= 0:
        return 0.0
    lead_hours = snapshot.avg_lead_time_days * 24 or DEFAULT_LEAD_TIME_HOURS
    expected = lead_hours * (1 + snapshot.utilization)
    allowed = remaining * (1 + grace_percent / 100)
    if expected <= allowed:
        return 1.0
    return allowed / expected


class AssigneeSelector:
    """Rank team members for a work item and return the best fit.

    Composite score per candidate::

        w_workload * (1 - utilization)
      + w_skill    * skill
      + w_sla      * sla
      + w_random   * jitter
      + seniorityBoost * performance - burnoutPenalty (utilization >= 0.8)

    Workers at their WIP limit and workers blocked by a guardrail (daily
    cap, cooldown) never make it to scoring.
    """

    def __init__(
        self,
        user_repo: UserRepository,
        team_repo: TeamRepository,
        task_repo: TaskRepository,
        workload: WorkloadCalculator,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._user_repo = user_repo
        self._team_repo = team_repo
        self._task_repo = task_repo
        self._workload = workload
        self._rng = rng or random.Random()

    async def find_best_assignee(
        self,
        request_id: Optional[UUID],
        team_id: UUID,
        category_id: Optional[UUID],
        config: AssignmentConfigData,
        deadline: Optional[datetime] = None,
        request_created_at: Optional[datetime] = None,
        exclude: Optional[Sequence[UUID]] = None,
    ) -> CandidateScore:
        """Return the highest-scoring eligible worker.

        Raises:
            TeamNotFoundError: *team_id* does not exist.
            NoEligibleAssigneeError: nobody can take the item.  ``code`` is
                ``wip_limit_exceeded`` when every eligible member is at
                capacity, ``no_eligible_assignee`` otherwise.
        """
        team = await self._team_repo.get_by_id(team_id)
        if team is None:
            raise TeamNotFoundError()

        excluded = set(exclude or ())
        members = await self._user_repo.get_team_members(team_id)
        eligible = [m for m in members if is_assignable(m) and m.id not in excluded]
        if not eligible:
            raise NoEligibleAssigneeError("No eligible assignees found in team")

        snapshots = await self._workload.snapshots_for(members, team)
        pool = [m for m in eligible if not snapshots[m.id].is_at_limit]
        if not pool:
            logger.warning("Request %s: all members of team %s at WIP limit", request_id, team_id)
            raise NoEligibleAssigneeError(
                "All team members are at WIP limit", code="wip_limit_exceeded"
            )

        now = datetime.now(timezone.utc)
        advanced = config.advanced_settings
        pool = await self._apply_guardrails(pool, advanced.guardrails, now)

        # Skill fit
        skill_scores: Dict[UUID, float] = {m.id: _SKILL_NEUTRAL for m in pool}
        exact_ids: List[UUID] = []
        partial_ids: List[UUID] = []
        if category_id is not None:
            experience: Dict[UUID, int] = {}
            if advanced.matching.allow_partial_match:
                experience = await self._task_repo.count_completed_in_category(
                    [m.id for m in pool], category_id
                )
            partial_value = min(
                _SKILL_PARTIAL + advanced.score_modifiers.cross_skill_boost, _SKILL_EXACT
            )
            for m in pool:
                if category_id in (m.skill_category_ids or []):
                    skill_scores[m.id] = _SKILL_EXACT
                    exact_ids.append(m.id)
                elif experience.get(m.id, 0) > 0:
                    skill_scores[m.id] = partial_value
                    partial_ids.append(m.id)
                else:
                    skill_scores[m.id] = _SKILL_NONE

            mode = advanced.matching.mode
            if mode == MatchingMode.strict:
                matched = [m for m in pool if m.id in exact_ids or m.id in partial_ids]
                if matched:
                    pool = matched
                else:
                    strategy = advanced.matching.fallback_strategy
                    logger.info(
                        "Request %s: no skill match in team %s, falling back to %s",
                        request_id,
                        team_id,
                        strategy.value,
                    )
                    if strategy == FallbackStrategy.manual_gate:
                        raise NoEligibleAssigneeError(
                            "No team member matches the required skill; manual assignment required"
                        )
                    if strategy == FallbackStrategy.round_robin:
                        last_assigned = await self._task_repo.last_assigned_at_by_assignees(
                            [m.id for m in pool]
                        )
                        oldest = min(
                            pool,
                            key=lambda m: (
                                last_assigned.get(m.id) is not None,
                                last_assigned.get(m.id) or now,
                                m.name,
                            ),
                        )
                        pool = [oldest]
                    elif strategy == FallbackStrategy.random_spread:
                        pool = [self._rng.choice(pool)]
            elif mode == MatchingMode.balanced and advanced.matching.prioritize_exact_match:
                exact = [m for m in pool if m.id in exact_ids]
                if exact:
                    pool = exact

        # SLA reliability
        since = now - timedelta(days=settings.LEAD_TIME_WINDOW_DAYS)
        completed = await self._task_repo.get_completed_since([m.id for m in pool], since)
        compliance = sla_compliance(completed)

        aging_factor = 1.0
        if request_created_at is not None and advanced.guardrails.backlog_aging_boost:
            age_hours = (now - request_created_at).total_seconds() / 3600
            if age_hours >= advanced.automation.auto_assign_backlog_older_than_hours:
                aging_factor += advanced.guardrails.backlog_aging_boost

        modifiers = advanced.score_modifiers
        scored: List[CandidateScore] = []
        for m in pool:
            snapshot = snapshots[m.id]
            workload_component = max(0.0, 1 - snapshot.utilization)
            sla_component = compliance.get(m.id, 1.0)
            if deadline is not None:
                fit = deadline_fit(snapshot, deadline, now, advanced.guardrails.sla_grace_percent)
                sla_component = 0.5 * sla_component + 0.5 * fit
            sla_component *= aging_factor
            jitter = self._rng.random()

            total = (
                config.weight_workload * workload_component
                + config.weight_skill * skill_scores[m.id]
                + config.weight_sla * sla_component
                + config.weight_random * jitter
                + modifiers.seniority_boost * min(max(m.performance_score or 0.0, 0.0), 1.0)
            )
            if snapshot.utilization >= BURNOUT_UTILIZATION:
                total -= modifiers.burnout_penalty

            scored.append(
                CandidateScore(
                    user_id=m.id,
                    name=m.name,
                    utilization=snapshot.utilization,
                    workload=workload_component,
                    skill=skill_scores[m.id],
                    sla=sla_component,
                    random=jitter,
                    total=total,
                )
            )

        scored.sort(key=lambda c: c.total, reverse=True)
        best = scored[0]
        logger.info(
            "Request %s: best assignee %s (score=%.3f, utilization=%.0f%%, "
            "workload=%.3f skill=%.3f sla=%.3f random=%.3f)",
            request_id,
            best.user_id,
            best.total,
            best.utilization * 100,
            best.workload,
            best.skill,
            best.sla,
            best.random,
        )
        return best

    async def _apply_guardrails(self, pool: List, guardrails, now: datetime) -> List:
        """Drop workers over the daily cap or still in cooldown.  ``0`` disables a rule."""
        ids = [m.id for m in pool]

        if guardrails.max_assignments_per_user_per_day:
            start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
            today = await self._task_repo.count_assigned_since(ids, start_of_day)
            pool = [
                m
                for m in pool
                if today.get(m.id, 0) < guardrails.max_assignments_per_user_per_day
            ]

        if guardrails.cooldown_minutes and pool:
            last = await self._task_repo.last_assigned_at_by_assignees([m.id for m in pool])
            cutoff = now - timedelta(minutes=guardrails.cooldown_minutes)
            pool = [m for m in pool if last.get(m.id) is None or last[m.id] <= cutoff]

        if not pool:
            raise NoEligibleAssigneeError(
                "All team members are blocked by assignment guardrails (daily cap or cooldown)"
            )
        return pool
