from enum import Enum
from pydantic import BaseModel


class Priority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class RequesterType(str, Enum):
    INTERNAL = "INTERNAL"
    CUSTOMER = "CUSTOMER"


class Role(str, Enum):
    ADMIN = "ADMIN"
    LEADER = "LEADER"
    USER = "USER"


class RequestStatus(str, Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    CANCELLED = "CANCELLED"
    ARCHIVED = "ARCHIVED"


class TaskStatus(str, Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    IN_REVIEW = "IN_REVIEW"
    BLOCKED = "BLOCKED"
    DONE = "DONE"
    CANCELLED = "CANCELLED"


class AuditAction(str, Enum):
    ASSIGNED = "ASSIGNED"
    REASSIGNED = "REASSIGNED"
    WIP_LIMIT_CHANGED = "WIP_LIMIT_CHANGED"
    CONFIG_UPDATED = "CONFIG_UPDATED"


class MatchingMode(str, Enum):
    strict = "strict"
    balanced = "balanced"
    flexible = "flexible"


class FallbackStrategy(str, Enum):
    smart_balance = "smart_balance"
    round_robin = "round_robin"
    manual_gate = "manual_gate"
    random_spread = "random_spread"


class SuccessResponse(BaseModel):
    """Generic success response base."""

    success: bool = True
