from uuid import UUID

from fastapi import APIRouter, Depends

from workdesk.api.deps import get_assignment_service, get_current_actor
from workdesk.schemas.assignment import (
    Actor,
    ManualAssignRequest,
    ManualAssignResult,
    ReassignRequest,
    ReassignResult,
)
from workdesk.services.assignment_service import AssignmentService

router = APIRouter(prefix="/tasks", tags=["Tasks"])


@router.post("/{task_id}/assign", response_model=ManualAssignResult)
async def assign_task(
    task_id: UUID,
    body: ManualAssignRequest,
    actor: Actor = Depends(get_current_actor),
    service: AssignmentService = Depends(get_assignment_service),
) -> ManualAssignResult:
    """Manually assign a task.

    An over-capacity target without ``override`` returns a warning payload
    (``success=false, warning=true``) so the client can offer an override.
    """
    return await service.manual_assign_with_check(
        task_id, body.assignee_id, actor, override=body.override
    )


@router.post("/{task_id}/reassign", response_model=ReassignResult)
async def reassign_task(
    task_id: UUID,
    body: ReassignRequest,
    actor: Actor = Depends(get_current_actor),
    service: AssignmentService = Depends(get_assignment_service),
) -> ReassignResult:
    return await service.reassign_task(task_id, body.new_assignee_id, body.reason, actor)
