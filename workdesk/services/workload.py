"""Workload calculation, WIP gate and team rebalancing.

Capacity resolution order for one worker:

1. the worker's own ``wip_limit``;
2. the team's ``wip_limit``;
3. a synthetic ``max(member_count * DEFAULT_MEMBER_WIP_LIMIT, 1)``.

Capacity therefore never resolves to zero.  Active counts are read fresh
on every call and never cached.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from workdesk.core.config import settings
from workdesk.core.constants import (
    PRIORITY_RANK,
    REBALANCE_MAX_MOVES_PER_MEMBER,
    REBALANCE_OVERLOADED_ABOVE,
    REBALANCE_UNDERLOADED_BELOW,
)
from workdesk.core.exceptions import TeamNotFoundError, UserNotFoundError
from workdesk.repositories.task_repository import TaskRepository
from workdesk.repositories.team_repository import TeamRepository
from workdesk.repositories.user_repository import UserRepository
from workdesk.schemas.common import Priority
from workdesk.schemas.workload import (
    MemberWorkload,
    RebalancePlan,
    RebalanceSuggestion,
    TeamWorkload,
    TeamWorkloadSummary,
    WIPCheck,
    WorkloadSnapshot,
)

logger = logging.getLogger(__name__)

_SECONDS_PER_DAY = 86_400


def effective_wip_limit(
    user_limit: Optional[int], team_limit: Optional[int], member_count: int
) -> int:
    """Resolve the capacity that applies to one worker."""
    if user_limit:
        return user_limit
    if team_limit:
        return team_limit
    return max(member_count * settings.DEFAULT_MEMBER_WIP_LIMIT, 1)


def build_snapshot(
    worker_id: UUID, active_count: int, limit: int, avg_lead_time_days: float = 0.0
) -> WorkloadSnapshot:
    utilization = active_count / limit
    return WorkloadSnapshot(
        worker_id=worker_id,
        active_count=active_count,
        limit=limit,
        utilization=utilization,
        is_at_limit=active_count >= limit,
        is_overloaded=active_count > limit,
        avg_lead_time_days=avg_lead_time_days,
    )


def wip_check(active_count: int, limit: int) -> WIPCheck:
    """At-limit counts as exceeded: the gate blocks the item that would reach the cap."""
    return WIPCheck(
        exceeded=active_count >= limit,
        current=active_count,
        limit=limit,
        utilization_percent=round(active_count / limit * 100),
    )


def average_lead_times(rows: Iterable) -> Dict[UUID, float]:
    """Average ``completed_at - created_at`` in days per assignee."""
    totals: Dict[UUID, float] = defaultdict(float)
    counts: Dict[UUID, int] = defaultdict(int)
    for row in rows:
        if row.completed_at is None or row.created_at is None:
            continue
        totals[row.assignee_id] += (row.completed_at - row.created_at).total_seconds()
        counts[row.assignee_id] += 1
    return {
        assignee_id: totals[assignee_id] / counts[assignee_id] / _SECONDS_PER_DAY
        for assignee_id in counts
    }


class WorkloadCalculator:
    """Read-only capacity queries over users, teams and tasks."""

    def __init__(
        self,
        user_repo: UserRepository,
        team_repo: TeamRepository,
        task_repo: TaskRepository,
    ) -> None:
        self._user_repo = user_repo
        self._team_repo = team_repo
        self._task_repo = task_repo

    async def _get_user(self, user_id: UUID):
        user = await self._user_repo.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    async def resolve_limit(self, user) -> int:
        """Effective WIP limit for an already loaded user row."""
        if user.wip_limit:
            return user.wip_limit
        team_limit = None
        member_count = 0
        if user.team_id is not None:
            team = await self._team_repo.get_by_id(user.team_id)
            team_limit = team.wip_limit if team is not None else None
            if not team_limit:
                member_count = await self._user_repo.count_team_members(user.team_id)
        return effective_wip_limit(None, team_limit, member_count)

    def _lead_time_since(self) -> datetime:
        return datetime.now(timezone.utc) - timedelta(days=settings.LEAD_TIME_WINDOW_DAYS)

    async def calculate_workload(self, user_id: UUID) -> WorkloadSnapshot:
        user = await self._get_user(user_id)
        limit = await self.resolve_limit(user)
        active = await self._task_repo.count_active_for_assignee(user.id)
        completed = await self._task_repo.get_completed_since([user.id], self._lead_time_since())
        lead_time = average_lead_times(completed).get(user.id, 0.0)
        return build_snapshot(user.id, active, limit, lead_time)

    async def check_wip_limit(self, user_id: UUID) -> WIPCheck:
        """Pure read: would one more item put *user_id* at or over capacity?"""
        user = await self._get_user(user_id)
        limit = await self.resolve_limit(user)
        active = await self._task_repo.count_active_for_assignee(user.id)
        return wip_check(active, limit)

    async def snapshots_for(
        self, members: Sequence, team=None
    ) -> Dict[UUID, WorkloadSnapshot]:
        """Batch snapshots for a set of team members (two queries)."""
        if not members:
            return {}
        ids = [m.id for m in members]
        active_counts = await self._task_repo.count_active_by_assignees(ids)
        completed = await self._task_repo.get_completed_since(ids, self._lead_time_since())
        lead_times = average_lead_times(completed)
        team_limit = team.wip_limit if team is not None else None
        member_count = sum(1 for m in members if m.is_active)
        return {
            m.id: build_snapshot(
                m.id,
                active_counts.get(m.id, 0),
                effective_wip_limit(m.wip_limit, team_limit, member_count),
                lead_times.get(m.id, 0.0),
            )
            for m in members
        }

    async def get_team_workload(self, team_id: UUID) -> TeamWorkload:
        team = await self._team_repo.get_by_id(team_id)
        if team is None:
            raise TeamNotFoundError()
        members = [m for m in await self._user_repo.get_team_members(team_id) if m.is_active]
        snapshots = await self.snapshots_for(members, team)

        rows = [
            MemberWorkload(name=m.name, **snapshots[m.id].model_dump()) for m in members
        ]
        total = len(rows)
        summary = TeamWorkloadSummary(
            total_members=total,
            total_active_tasks=sum(r.active_count for r in rows),
            members_at_capacity=sum(1 for r in rows if r.is_at_limit),
            average_utilization=(sum(r.utilization for r in rows) / total) if total else 0.0,
        )
        return TeamWorkload(team_id=team_id, members=rows, summary=summary)

    async def rebalance_tasks(self, team_id: UUID) -> RebalancePlan:
        """Suggest TODO moves from overloaded to underloaded members.

        Read-only: nothing is reassigned.  Each overloaded member gives up
        at most two tasks (highest priority, then earliest deadline) to the
        currently least-loaded underloaded member.
        """
        workload = await self.get_team_workload(team_id)
        overloaded = [
            m for m in workload.members if m.utilization > REBALANCE_OVERLOADED_ABOVE
        ]
        underloaded = [
            m
            for m in workload.members
            if m.utilization < REBALANCE_UNDERLOADED_BELOW and not m.is_at_limit
        ]
        plan = RebalancePlan(
            team_id=team_id,
            overloaded_members=[m.worker_id for m in overloaded],
            underloaded_members=[m.worker_id for m in underloaded],
            suggestions=[],
        )
        if not overloaded or not underloaded:
            return plan

        todo = await self._task_repo.get_todo_tasks_for_assignees(
            [m.worker_id for m in overloaded]
        )
        by_owner: Dict[UUID, List] = defaultdict(list)
        for task in todo:
            by_owner[task.assignee_id].append(task)

        # Projected active counts so one receiver is not flooded
        projected = {m.worker_id: m.active_count for m in underloaded}
        limits = {m.worker_id: m.limit for m in underloaded}

        for member in sorted(overloaded, key=lambda m: m.utilization, reverse=True):
            tasks = sorted(by_owner.get(member.worker_id, []), key=_rebalance_order)
            for task in tasks[:REBALANCE_MAX_MOVES_PER_MEMBER]:
                open_receivers = [
                    wid for wid in projected if projected[wid] < limits[wid]
                ]
                if not open_receivers:
                    break
                target = min(open_receivers, key=lambda wid: projected[wid] / limits[wid])
                projected[target] += 1
                request = getattr(task, "request", None)
                priority = Priority(request.priority) if request is not None else None
                plan.suggestions.append(
                    RebalanceSuggestion(
                        task_id=task.id,
                        task_title=task.title,
                        priority=priority,
                        from_user_id=member.worker_id,
                        to_user_id=target,
                        reason=(
                            f"Move from {member.name} "
                            f"({member.utilization:.0%} utilized) to a member "
                            f"below {REBALANCE_UNDERLOADED_BELOW:.0%}"
                        ),
                    )
                )

        logger.info(
            "Rebalance for team %s: %d overloaded, %d underloaded, %d suggestions",
            team_id,
            len(overloaded),
            len(underloaded),
            len(plan.suggestions),
        )
        return plan


def _rebalance_order(task):
    """Highest priority first, then earliest deadline (no deadline last)."""
    request = getattr(task, "request", None)
    rank = PRIORITY_RANK.get(Priority(request.priority), 0) if request is not None else 0
    deadline = request.deadline if request is not None else None
    return (
        -rank,
        deadline is None,
        deadline or datetime.max.replace(tzinfo=timezone.utc),
    )
