from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request

from workdesk.api.deps import get_assignment_service, get_current_actor, get_priority_engine
from workdesk.core.rate_limit import limiter
from workdesk.schemas.assignment import Actor, AutoAssignResult
from workdesk.schemas.priority import (
    CalculationResult,
    ManualPriorityRequest,
    PriorityPreviewRequest,
    RequestPriorityResponse,
)
from workdesk.services.assignment_service import AssignmentService
from workdesk.services.priority_scoring import PriorityScoringEngine

router = APIRouter(prefix="/requests", tags=["Requests"])


@router.post("/priority/preview", response_model=Optional[CalculationResult])
async def preview_priority(
    body: PriorityPreviewRequest,
    actor: Actor = Depends(get_current_actor),
    engine: PriorityScoringEngine = Depends(get_priority_engine),
) -> Optional[CalculationResult]:
    """Score ratings without touching any request.  ``null`` when no rating is given."""
    return await engine.calculate_priority_score(body.scores, body.requester_type)


@router.post("/{request_id}/priority/recalculate", response_model=RequestPriorityResponse)
async def recalculate_priority(
    request_id: UUID,
    actor: Actor = Depends(get_current_actor),
    engine: PriorityScoringEngine = Depends(get_priority_engine),
) -> RequestPriorityResponse:
    return await engine.update_request_priority(request_id)


@router.put("/{request_id}/priority", response_model=RequestPriorityResponse)
async def set_manual_priority(
    request_id: UUID,
    body: ManualPriorityRequest,
    actor: Actor = Depends(get_current_actor),
    engine: PriorityScoringEngine = Depends(get_priority_engine),
) -> RequestPriorityResponse:
    """Store a manual level; customer requests are bumped one level."""
    return await engine.apply_manual_priority(request_id, body.priority)


@router.post("/{request_id}/auto-assign", response_model=AutoAssignResult)
@limiter.limit("30/minute")
async def auto_assign_request(
    request: Request,
    request_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: AssignmentService = Depends(get_assignment_service),
) -> AutoAssignResult:
    """Auto-assign the request's open task.

    Capacity exhaustion is a normal ``success=false`` response, not an error.
    """
    return await service.auto_assign_request(request_id, actor)
