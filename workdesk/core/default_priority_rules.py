"""Canonical default priority rubric.

Seeded into ``priority_criteria`` / ``priority_thresholds`` when the tables
are empty (see ``PriorityRepository.seed_if_empty`` and the seed migration).
Ratings are 1–5, so with these weights the score range is [0, 25]; the URGENT
bucket extends past 25 so an all-5 rating still lands in a threshold.
"""

from typing import Any, Dict, List

DEFAULT_PRIORITY_CRITERIA: List[Dict[str, Any]] = [
    {
        "question": "Urgency (1=Not urgent, 5=Extremely urgent)",
        "field_key": "URGENCY",
        "weight": 1.5,
        "order": 1,
        "is_active": True,
    },
    {
        "question": "Impact (1=Few people, 5=Whole organisation)",
        "field_key": "IMPACT",
        "weight": 2.0,
        "order": 2,
        "is_active": True,
    },
    {
        "question": "Risk if late (1=Negligible, 5=Severe)",
        "field_key": "RISK",
        "weight": 1.5,
        "order": 3,
        "is_active": True,
    },
]

DEFAULT_PRIORITY_THRESHOLDS: List[Dict[str, Any]] = [
    {"min_score": 0, "max_score": 7.5, "priority": "LOW"},
    {"min_score": 7.5, "max_score": 12.5, "priority": "MEDIUM"},
    {"min_score": 12.5, "max_score": 17.5, "priority": "HIGH"},
    {"min_score": 17.5, "max_score": 26, "priority": "URGENT"},
]
