from workdesk.models.base import Base
from workdesk.models.team import Team
from workdesk.models.user import User
from workdesk.models.category import Category
from workdesk.models.request import Request
from workdesk.models.task import Task
from workdesk.models.priority import PriorityCriterion, PriorityThreshold
from workdesk.models.assignment_config import AssignmentConfig
from workdesk.models.audit_log import AuditLog

# Import event listeners to register them
from workdesk.models import listeners  # noqa: F401

__all__ = [
    "Base",
    "Team",
    "User",
    "Category",
    "Request",
    "Task",
    "PriorityCriterion",
    "PriorityThreshold",
    "AssignmentConfig",
    "AuditLog",
]
