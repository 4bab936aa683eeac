"""API-layer dependency functions.

Re-exports all dependency factories from ``workdesk.dependencies`` so that
endpoint modules only need to import from ``workdesk.api.deps``.
"""

from workdesk.dependencies import (
    # Repository factories
    get_user_repo,
    get_team_repo,
    get_request_repo,
    get_task_repo,
    get_priority_repo,
    # Identity
    get_current_actor,
    # Service factories
    get_priority_engine,
    get_workload_calculator,
    get_assignment_service,
    # Redis
    get_redis_client,
    get_cache_service,
)

__all__ = [
    "get_user_repo",
    "get_team_repo",
    "get_request_repo",
    "get_task_repo",
    "get_priority_repo",
    "get_current_actor",
    "get_priority_engine",
    "get_workload_calculator",
    "get_assignment_service",
    "get_redis_client",
    "get_cache_service",
]
