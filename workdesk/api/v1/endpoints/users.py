from uuid import UUID

from fastapi import APIRouter, Depends

from workdesk.api.deps import (
    get_assignment_service,
    get_current_actor,
    get_workload_calculator,
)
from workdesk.schemas.assignment import Actor, WIPLimitUpdateRequest, WIPLimitUpdateResult
from workdesk.schemas.workload import WIPCheck, WorkloadSnapshot
from workdesk.services.assignment_service import AssignmentService
from workdesk.services.workload import WorkloadCalculator

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/{user_id}/workload", response_model=WorkloadSnapshot)
async def get_user_workload(
    user_id: UUID,
    actor: Actor = Depends(get_current_actor),
    workload: WorkloadCalculator = Depends(get_workload_calculator),
) -> WorkloadSnapshot:
    return await workload.calculate_workload(user_id)


@router.get("/{user_id}/wip-check", response_model=WIPCheck)
async def check_user_wip(
    user_id: UUID,
    actor: Actor = Depends(get_current_actor),
    workload: WorkloadCalculator = Depends(get_workload_calculator),
) -> WIPCheck:
    return await workload.check_wip_limit(user_id)


@router.put("/{user_id}/wip-limit", response_model=WIPLimitUpdateResult)
async def update_wip_limit(
    user_id: UUID,
    body: WIPLimitUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    service: AssignmentService = Depends(get_assignment_service),
) -> WIPLimitUpdateResult:
    """Change a worker's WIP limit; rejected below their active task count."""
    return await service.update_user_wip_limit(user_id, body.wip_limit, actor)
