from fastapi import APIRouter, Depends

from workdesk.api.deps import get_assignment_service, get_current_actor
from workdesk.schemas.assignment import Actor, AssignmentConfigPatch, AssignmentConfigResponse
from workdesk.services.assignment_service import AssignmentService

router = APIRouter(prefix="/admin/assignment-config", tags=["Assignment config"])


@router.get("", response_model=AssignmentConfigResponse)
async def get_assignment_config(
    actor: Actor = Depends(get_current_actor),
    service: AssignmentService = Depends(get_assignment_service),
) -> AssignmentConfigResponse:
    """Persisted config, or the documented defaults with ``is_default=true``."""
    return await service.get_assignment_config()


@router.put("", response_model=AssignmentConfigResponse)
async def update_assignment_config(
    patch: AssignmentConfigPatch,
    actor: Actor = Depends(get_current_actor),
    service: AssignmentService = Depends(get_assignment_service),
) -> AssignmentConfigResponse:
    return await service.update_assignment_config(patch, actor)
