"""Priority scoring schemas (rating input, calculation result, rubric rows)."""

from typing import Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from workdesk.schemas.common import Priority, RequesterType


class ScoreInput(BaseModel):
    """Per-request 1–5 ratings.  Every field is optional.

    Range checks happen in the scoring engine so that the error names the
    offending field in the domain's own wording.
    """

    urgency: Optional[int] = None
    impact: Optional[int] = None
    risk: Optional[int] = None
    custom: Dict[str, int] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        """Return ``True`` when no rating at all was supplied."""
        return (
            self.urgency is None
            and self.impact is None
            and self.risk is None
            and not self.custom
        )


class CalculationResult(BaseModel):
    total_score: float
    priority: Priority
    reason: str


class CriterionRule(BaseModel):
    """Active rubric criterion as consumed by the engine (and cached)."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[UUID] = None
    question: str
    field_key: Optional[str] = None
    weight: float
    order: int = 0


class ThresholdRule(BaseModel):
    """Half-open score bucket ``[min_score, max_score)``."""

    model_config = ConfigDict(from_attributes=True)

    min_score: float
    max_score: float
    priority: Priority


# ---------------------------------------------------------------------------
# HTTP payloads
# ---------------------------------------------------------------------------


class PriorityPreviewRequest(BaseModel):
    scores: ScoreInput
    requester_type: RequesterType = RequesterType.INTERNAL


class ManualPriorityRequest(BaseModel):
    priority: Priority


class RequestPriorityResponse(BaseModel):
    """Priority state of a request after a recalculation or manual entry.

    ``updated`` is ``False`` when the request carried no ratings and its
    existing (manual) priority was kept.
    """

    request_id: UUID
    priority: Priority
    calculated_score: Optional[float] = None
    priority_reason: Optional[str] = None
    updated: bool
