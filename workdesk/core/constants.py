from typing import Dict, FrozenSet

from workdesk.schemas.common import Priority, RequestStatus, Role, TaskStatus

# Statuses that count toward a worker's WIP
ACTIVE_TASK_STATUSES: FrozenSet[str] = frozenset(
    {
        TaskStatus.TODO.value,
        TaskStatus.IN_PROGRESS.value,
        TaskStatus.IN_REVIEW.value,
        TaskStatus.BLOCKED.value,
    }
)

TASK_STATUS_CHECK_CLAUSE: str = (
    f"status IN ({', '.join(repr(s.value) for s in TaskStatus)})"
)

REQUEST_STATUS_CHECK_CLAUSE: str = (
    f"status IN ({', '.join(repr(s.value) for s in RequestStatus)})"
)

PRIORITY_CHECK_CLAUSE: str = (
    f"priority IN ({', '.join(repr(p.value) for p in Priority)})"
)

ROLE_CHECK_CLAUSE: str = f"role IN ({', '.join(repr(r.value) for r in Role)})"

# URGENT > HIGH > MEDIUM > LOW
PRIORITY_RANK: Dict[Priority, int] = {
    Priority.LOW: 1,
    Priority.MEDIUM: 2,
    Priority.HIGH: 3,
    Priority.URGENT: 4,
}

PRIORITY_LADDER = (Priority.LOW, Priority.MEDIUM, Priority.HIGH, Priority.URGENT)

# Roles that may override the WIP gate, reassign, and manage capacity
PRIVILEGED_ROLES: FrozenSet[Role] = frozenset({Role.LEADER, Role.ADMIN})

# Roles that can receive work from the selector
ASSIGNABLE_ROLES: FrozenSet[Role] = frozenset({Role.USER, Role.LEADER})

SCORE_MIN: int = 1
SCORE_MAX: int = 5

# Minimum length of a reassignment reason after stripping whitespace
MIN_REASSIGN_REASON_LENGTH: int = 3

# Rebalance watermarks (utilization ratios)
REBALANCE_OVERLOADED_ABOVE: float = 0.9
REBALANCE_UNDERLOADED_BELOW: float = 0.5
REBALANCE_MAX_MOVES_PER_MEMBER: int = 2

# Utilization at which the burnout penalty starts to apply
BURNOUT_UTILIZATION: float = 0.8

# Assumed lead time for workers without completed history
DEFAULT_LEAD_TIME_HOURS: float = 24.0

# Cache keys
PRIORITY_CRITERIA_CACHE_KEY = "priority:criteria"
PRIORITY_THRESHOLDS_CACHE_KEY = "priority:thresholds"
ASSIGNMENT_CONFIG_CACHE_KEY = "assignment:config"
ASSIGNMENT_CONFIG_NAME = "default"
