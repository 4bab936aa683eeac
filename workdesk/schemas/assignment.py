"""Assignment configuration, actor and orchestration result schemas.

Advanced settings are stored and exposed with camelCase keys
(``prioritizeExactMatch``, ``cooldownMinutes`` ...) while Python code
reads them through snake_case attributes.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from workdesk.schemas.common import FallbackStrategy, MatchingMode, Role, SuccessResponse


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Advanced settings blocks
# ---------------------------------------------------------------------------


class MatchingSettings(_CamelModel):
    mode: MatchingMode
    prioritize_exact_match: bool
    allow_partial_match: bool
    fallback_strategy: FallbackStrategy


class GuardrailSettings(_CamelModel):
    """Pool-narrowing caps.  ``0`` disables a guardrail."""

    max_assignments_per_user_per_day: int = Field(..., ge=0)
    cooldown_minutes: int = Field(..., ge=0)
    sla_grace_percent: float = Field(..., ge=0)
    backlog_aging_boost: float = Field(..., ge=0)


class NotificationSettings(_CamelModel):
    notify_on_overload: bool
    notify_on_sla_risk: bool
    send_weekly_digest: bool


class AutomationSettings(_CamelModel):
    auto_escalate_stalled: bool
    escalate_after_hours: float = Field(..., gt=0)
    auto_assign_backlog_older_than_hours: float = Field(..., ge=0)


class ScoreModifiers(_CamelModel):
    seniority_boost: float = Field(..., ge=0)
    cross_skill_boost: float = Field(..., ge=0)
    burnout_penalty: float = Field(..., ge=0)


class AdvancedSettings(_CamelModel):
    matching: MatchingSettings
    guardrails: GuardrailSettings
    notifications: NotificationSettings
    automation: AutomationSettings
    score_modifiers: ScoreModifiers


# ---------------------------------------------------------------------------
# Resolved configuration
# ---------------------------------------------------------------------------


class AssignmentConfigData(BaseModel):
    """Fully resolved selector configuration passed into each operation."""

    weight_workload: float = Field(..., ge=0)
    weight_skill: float = Field(..., ge=0)
    weight_sla: float = Field(..., ge=0)
    weight_random: float = Field(..., ge=0)
    enable_auto_assign: bool
    advanced_settings: AdvancedSettings
    is_default: bool = False

    def weights(self) -> Dict[str, float]:
        return {
            "weight_workload": self.weight_workload,
            "weight_skill": self.weight_skill,
            "weight_sla": self.weight_sla,
            "weight_random": self.weight_random,
        }

    def to_storage(self) -> Dict[str, Any]:
        """Column values for the ``assignment_configs`` row."""
        return {
            **self.weights(),
            "enable_auto_assign": self.enable_auto_assign,
            "advanced_settings": self.advanced_settings.model_dump(
                by_alias=True, mode="json"
            ),
        }


class AssignmentConfigPatch(BaseModel):
    """Partial update.  ``advanced_settings`` is merged field by field.

    Advanced settings stay a raw mapping here so that a partial block such
    as ``{"guardrails": {"cooldownMinutes": 30}}`` validates.  Keys may be
    camelCase or snake_case; the service normalises them, rejects unknown
    ones and validates the merged result as a whole.
    """

    weight_workload: Optional[float] = Field(None, ge=0)
    weight_skill: Optional[float] = Field(None, ge=0)
    weight_sla: Optional[float] = Field(None, ge=0)
    weight_random: Optional[float] = Field(None, ge=0)
    enable_auto_assign: Optional[bool] = None
    advanced_settings: Optional[Dict[str, Dict[str, Any]]] = None


class AssignmentConfigResponse(SuccessResponse):
    config: AssignmentConfigData
    is_default: bool


# ---------------------------------------------------------------------------
# Actor and orchestration payloads
# ---------------------------------------------------------------------------


class Actor(BaseModel):
    """Authenticated caller of an orchestration operation."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    role: Role
    team_id: Optional[UUID] = None


class ManualAssignRequest(BaseModel):
    assignee_id: UUID
    override: bool = False


class ReassignRequest(BaseModel):
    new_assignee_id: UUID
    reason: str


class WIPLimitUpdateRequest(BaseModel):
    wip_limit: int = Field(..., gt=0)


class AutoAssignResult(BaseModel):
    """Outcome of auto-assignment.

    Capacity exhaustion and disabled auto-assignment are expected business
    outcomes and come back as ``success=False`` with ``error``/``code``.
    """

    success: bool
    request_id: UUID
    task_id: Optional[UUID] = None
    assignee_id: Optional[UUID] = None
    assignee_name: Optional[str] = None
    score: Optional[float] = None
    error: Optional[str] = None
    code: Optional[str] = None


class ManualAssignResult(BaseModel):
    """Outcome of a manual assignment.

    When the target is at capacity and no override was requested the
    result is a warning (``success=False, warning=True``) and
    ``can_override`` tells the caller whether retrying with override is
    allowed for them.
    """

    success: bool
    task_id: UUID
    assignee_id: UUID
    warning: bool = False
    can_override: bool = False
    override_applied: bool = False
    current: Optional[int] = None
    limit: Optional[int] = None
    code: Optional[str] = None
    message: Optional[str] = None


class ReassignResult(SuccessResponse):
    task_id: UUID
    old_assignee_id: Optional[UUID] = None
    new_assignee_id: UUID
    reason: str


class WIPLimitUpdateResult(SuccessResponse):
    user_id: UUID
    old_limit: Optional[int] = None
    new_limit: int
    active_tasks: int

