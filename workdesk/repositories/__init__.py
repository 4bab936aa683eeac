"""Repository layer – all database access goes through here.

Repositories encapsulate SQLAlchemy queries so that the service layer
only contains business logic.
"""

from workdesk.repositories.user_repository import UserRepository
from workdesk.repositories.team_repository import TeamRepository
from workdesk.repositories.request_repository import RequestRepository
from workdesk.repositories.task_repository import TaskRepository
from workdesk.repositories.priority_repository import PriorityRepository
from workdesk.repositories.assignment_config_repository import AssignmentConfigRepository
from workdesk.repositories.audit_repository import AuditRepository

__all__ = [
    "UserRepository",
    "TeamRepository",
    "RequestRepository",
    "TaskRepository",
    "PriorityRepository",
    "AssignmentConfigRepository",
    "AuditRepository",
]
