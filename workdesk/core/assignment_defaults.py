"""Documented default assignment configuration.

Used whenever no ``assignment_configs`` row exists yet.  These values are
part of the public contract: ``get_assignment_config()`` must reproduce
them exactly and flag the result with ``is_default=True``.
"""

from copy import deepcopy
from typing import Any, Dict

DEFAULT_WEIGHTS: Dict[str, float] = {
    "weight_workload": 0.4,
    "weight_skill": 0.3,
    "weight_sla": 0.2,
    "weight_random": 0.1,
}

DEFAULT_ENABLE_AUTO_ASSIGN: bool = True

DEFAULT_ADVANCED_SETTINGS: Dict[str, Dict[str, Any]] = {
    "matching": {
        "mode": "balanced",
        "prioritizeExactMatch": True,
        "allowPartialMatch": True,
        "fallbackStrategy": "smart_balance",
    },
    "guardrails": {
        "maxAssignmentsPerUserPerDay": 0,
        "cooldownMinutes": 0,
        "slaGracePercent": 15,
        "backlogAgingBoost": 0,
    },
    "notifications": {
        "notifyOnOverload": True,
        "notifyOnSlaRisk": True,
        "sendWeeklyDigest": False,
    },
    "automation": {
        "autoEscalateStalled": False,
        "escalateAfterHours": 12,
        "autoAssignBacklogOlderThanHours": 24,
    },
    "scoreModifiers": {
        "seniorityBoost": 0.1,
        "crossSkillBoost": 0.1,
        "burnoutPenalty": 0.15,
    },
}


def default_assignment_config() -> Dict[str, Any]:
    """Return a fresh copy of the default config payload."""
    return {
        **DEFAULT_WEIGHTS,
        "enable_auto_assign": DEFAULT_ENABLE_AUTO_ASSIGN,
        "advanced_settings": deepcopy(DEFAULT_ADVANCED_SETTINGS),
    }
