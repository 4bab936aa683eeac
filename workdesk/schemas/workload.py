"""Workload, WIP gate and rebalance schemas."""

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from workdesk.schemas.common import Priority


class WorkloadSnapshot(BaseModel):
    """Derived capacity picture for one worker.  Never stored."""

    worker_id: UUID
    active_count: int
    limit: int
    utilization: float
    is_at_limit: bool
    is_overloaded: bool
    avg_lead_time_days: float


class WIPCheck(BaseModel):
    exceeded: bool
    current: int
    limit: int
    utilization_percent: int


class MemberWorkload(WorkloadSnapshot):
    name: str


class TeamWorkloadSummary(BaseModel):
    total_members: int
    total_active_tasks: int
    members_at_capacity: int
    average_utilization: float


class TeamWorkload(BaseModel):
    team_id: UUID
    members: List[MemberWorkload]
    summary: TeamWorkloadSummary


class RebalanceSuggestion(BaseModel):
    """Proposed move of one TODO task from an overloaded to an underloaded member."""

    task_id: UUID
    task_title: str
    priority: Optional[Priority] = None
    from_user_id: UUID
    to_user_id: UUID
    reason: str


class RebalancePlan(BaseModel):
    team_id: UUID
    overloaded_members: List[UUID]
    underloaded_members: List[UUID]
    suggestions: List[RebalanceSuggestion]
