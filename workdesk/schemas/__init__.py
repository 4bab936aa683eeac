"""Pydantic schemas package – re-exports for convenience."""

# Common enums
from workdesk.schemas.common import (
    Priority as Priority,
    RequesterType as RequesterType,
    Role as Role,
    RequestStatus as RequestStatus,
    TaskStatus as TaskStatus,
    AuditAction as AuditAction,
    MatchingMode as MatchingMode,
    FallbackStrategy as FallbackStrategy,
    SuccessResponse as SuccessResponse,
)

# Priority schemas
from workdesk.schemas.priority import (
    ScoreInput as ScoreInput,
    CalculationResult as CalculationResult,
    CriterionRule as CriterionRule,
    ThresholdRule as ThresholdRule,
)

# Workload schemas
from workdesk.schemas.workload import (
    WorkloadSnapshot as WorkloadSnapshot,
    WIPCheck as WIPCheck,
    TeamWorkload as TeamWorkload,
    RebalancePlan as RebalancePlan,
)

# Assignment schemas
from workdesk.schemas.assignment import (
    Actor as Actor,
    AdvancedSettings as AdvancedSettings,
    AssignmentConfigData as AssignmentConfigData,
    AssignmentConfigPatch as AssignmentConfigPatch,
    AutoAssignResult as AutoAssignResult,
    ManualAssignResult as ManualAssignResult,
    ReassignResult as ReassignResult,
    WIPLimitUpdateResult as WIPLimitUpdateResult,
)
