from uuid import UUID

from fastapi import APIRouter, Depends

from workdesk.api.deps import get_current_actor, get_workload_calculator
from workdesk.schemas.assignment import Actor
from workdesk.schemas.workload import RebalancePlan, TeamWorkload
from workdesk.services.workload import WorkloadCalculator

router = APIRouter(prefix="/teams", tags=["Teams"])


@router.get("/{team_id}/workload", response_model=TeamWorkload)
async def get_team_workload(
    team_id: UUID,
    actor: Actor = Depends(get_current_actor),
    workload: WorkloadCalculator = Depends(get_workload_calculator),
) -> TeamWorkload:
    return await workload.get_team_workload(team_id)


@router.get("/{team_id}/rebalance", response_model=RebalancePlan)
async def get_rebalance_suggestions(
    team_id: UUID,
    actor: Actor = Depends(get_current_actor),
    workload: WorkloadCalculator = Depends(get_workload_calculator),
) -> RebalancePlan:
    """Suggested TODO moves; nothing is reassigned."""
    return await workload.rebalance_tasks(team_id)
