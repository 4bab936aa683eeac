import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from workdesk.core.cache import CacheService
from workdesk.core.config import settings
from workdesk.core.constants import (
    PRIORITY_CRITERIA_CACHE_KEY,
    PRIORITY_LADDER,
    PRIORITY_RANK,
    PRIORITY_THRESHOLDS_CACHE_KEY,
    SCORE_MAX,
    SCORE_MIN,
)
from workdesk.core.exceptions import (
    ConfigurationError,
    RequestNotFoundError,
    ValidationError,
)
from workdesk.repositories.priority_repository import PriorityRepository
from workdesk.repositories.request_repository import RequestRepository
from workdesk.schemas.common import Priority, RequesterType
from workdesk.schemas.priority import (
    CalculationResult,
    CriterionRule,
    RequestPriorityResponse,
    ScoreInput,
    ThresholdRule,
)

logger = logging.getLogger(__name__)

# Appended to the reason text of customer requests
CUSTOMER_TIE_NOTE = " (customer request: higher priority on ties)"

# Tagged field keys stored on PriorityCriterion.field_key
FIELD_URGENCY = "URGENCY"
FIELD_IMPACT = "IMPACT"
FIELD_RISK = "RISK"
CUSTOM_PREFIX = "CUSTOM:"

# Question-text keywords for criteria saved without a field_key
_LEGACY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("urgency", ("khẩn cấp", "urgency")),
    ("impact", ("tác động", "impact")),
    ("risk", ("rủi ro", "risk")),
)

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_key(name: str) -> str:
    """Lower-case *name* and strip everything but ``[a-z0-9]``."""
    return _NON_ALNUM.sub("", name.lower())


def score_label(field: str, name: Optional[str] = None) -> str:
    """Human label of a rating, e.g. ``Urgency score`` or ``Custom score 'x'``."""
    if field == "custom":
        return f"Custom score '{name}'" if name is not None else "Custom scores"
    return f"{field.capitalize()} score"


def validate_scores(scores: ScoreInput) -> None:
    """Raise ``ValidationError`` naming the first out-of-range rating."""

    def _check(label: str, value: Any) -> None:
        if isinstance(value, bool) or not isinstance(value, int) or not (
            SCORE_MIN <= value <= SCORE_MAX
        ):
            raise ValidationError(
                f"{label} must be between {SCORE_MIN} and {SCORE_MAX}, got: {value}",
                code="invalid_score",
            )

    for field in ("urgency", "impact", "risk"):
        value = getattr(scores, field)
        if value is not None:
            _check(score_label(field), value)
    for name, value in scores.custom.items():
        _check(score_label("custom", name), value)


def _match_custom(custom: Mapping[str, int], wanted: str) -> Optional[Tuple[str, int]]:
    key = normalize_key(wanted)
    if not key:
        return None
    for name, value in custom.items():
        if normalize_key(name) == key:
            return name, value
    return None


def match_criterion(
    criterion: CriterionRule, scores: ScoreInput
) -> Optional[Tuple[str, int]]:
    """Return ``(label, value)`` of the rating *criterion* reads, or ``None``.

    ``field_key`` decides when set.  Older rows without one fall back to
    keyword search over the question text.
    """
    if criterion.field_key:
        tag = criterion.field_key.strip()
        upper = tag.upper()
        if upper.startswith(CUSTOM_PREFIX):
            return _match_custom(scores.custom, tag[len(CUSTOM_PREFIX):])
        for label, field in (
            ("urgency", FIELD_URGENCY),
            ("impact", FIELD_IMPACT),
            ("risk", FIELD_RISK),
        ):
            if upper == field:
                value = getattr(scores, label)
                return (label, value) if value is not None else None
        logger.warning("Unknown priority field_key %r on criterion %s", tag, criterion.id)
        return None

    question = criterion.question.lower()
    for label, keywords in _LEGACY_KEYWORDS:
        if any(keyword in question for keyword in keywords):
            value = getattr(scores, label)
            return (label, value) if value is not None else None
    return _match_custom(scores.custom, criterion.question)


def resolve_priority(
    score: float, thresholds: List[ThresholdRule], requester_type: RequesterType
) -> Priority:
    """Map *score* onto a level using half-open ``[min, max)`` buckets.

    Overlapping buckets are resolved by requester class: customers get the
    highest candidate level, internal requesters the lowest.
    """
    candidates = [t.priority for t in thresholds if t.min_score <= score < t.max_score]
    if not candidates:
        raise ConfigurationError(
            f"No priority threshold found for score: {score}",
            code="no_priority_threshold",
        )
    if len(candidates) == 1:
        return candidates[0]

    ranked = sorted(candidates, key=lambda level: PRIORITY_RANK[level])
    if requester_type == RequesterType.CUSTOMER:
        return ranked[-1]
    return ranked[0]


class PriorityScoringEngine:
    """Turn 1–5 business ratings into a score, a level and a justification.

    Active criteria and thresholds come from ``PriorityRepository`` and are
    cached as JSON for ``CONFIG_CACHE_TTL`` seconds.  Scoring is opt-in:
    a request without any rating keeps its manually entered priority.
    """

    def __init__(
        self,
        priority_repo: PriorityRepository,
        cache: Optional[CacheService] = None,
        request_repo: Optional[RequestRepository] = None,
    ) -> None:
        self._priority_repo = priority_repo
        self._cache = cache or CacheService()
        self._request_repo = request_repo

    # ------------------------------------------------------------------
    # Rubric loading
    # ------------------------------------------------------------------

    async def _load_criteria(self) -> List[CriterionRule]:
        cached = await self._cache.get_json(PRIORITY_CRITERIA_CACHE_KEY)
        if cached is not None:
            try:
                return [CriterionRule.model_validate(row) for row in cached]
            except PydanticValidationError:
                logger.warning("Discarding malformed cached priority criteria")

        rows = await self._priority_repo.get_active_criteria()
        criteria = [CriterionRule.model_validate(row) for row in rows]
        await self._cache.set_json(
            PRIORITY_CRITERIA_CACHE_KEY,
            [c.model_dump(mode="json") for c in criteria],
            ttl=settings.CONFIG_CACHE_TTL,
        )
        return criteria

    async def _load_thresholds(self) -> List[ThresholdRule]:
        cached = await self._cache.get_json(PRIORITY_THRESHOLDS_CACHE_KEY)
        if cached is not None:
            try:
                return [ThresholdRule.model_validate(row) for row in cached]
            except PydanticValidationError:
                logger.warning("Discarding malformed cached priority thresholds")

        rows = await self._priority_repo.get_thresholds()
        thresholds = [ThresholdRule.model_validate(row) for row in rows]
        await self._cache.set_json(
            PRIORITY_THRESHOLDS_CACHE_KEY,
            [t.model_dump(mode="json") for t in thresholds],
            ttl=settings.CONFIG_CACHE_TTL,
        )
        return thresholds

    async def invalidate_rules(self) -> None:
        """Drop cached criteria and thresholds after an admin edit."""
        await self._cache.delete(PRIORITY_CRITERIA_CACHE_KEY, PRIORITY_THRESHOLDS_CACHE_KEY)

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    async def calculate_priority_score(
        self,
        scores: Union[ScoreInput, Dict[str, Any]],
        requester_type: RequesterType = RequesterType.INTERNAL,
    ) -> Optional[CalculationResult]:
        """Compute score, level and reason text for a set of ratings.

        Returns ``None`` when no rating is present.  Criteria that match no
        supplied rating are skipped and their weight does not contribute.

        Raises:
            ValidationError: a rating is not an integer in ``[1, 5]``.
            ConfigurationError: no active criteria, or no threshold covers
                the resulting score.
        """
        if not isinstance(scores, ScoreInput):
            try:
                scores = ScoreInput.model_validate(scores or {})
            except PydanticValidationError as exc:
                first = exc.errors()[0]
                loc = [str(part) for part in first["loc"]]
                label = (
                    score_label(loc[0], loc[1] if len(loc) > 1 else None) if loc else "Scores"
                )
                raise ValidationError(
                    f"{label} must be between {SCORE_MIN} and {SCORE_MAX}, "
                    f"got: {first.get('input')}",
                    code="invalid_score",
                ) from exc

        if scores.is_empty():
            return None

        validate_scores(scores)

        criteria = await self._load_criteria()
        if not criteria:
            raise ConfigurationError(
                "No active priority configurations found",
                code="no_priority_configuration",
            )

        total = 0.0
        terms: List[str] = []
        for criterion in criteria:
            matched = match_criterion(criterion, scores)
            if matched is None:
                continue
            label, value = matched
            total += value * criterion.weight
            terms.append(f"{label}({value})×{criterion.weight:g}")

        priority = await self.map_score_to_priority(total, requester_type)

        reason = f"Auto: {' + '.join(terms)} = {total:.1f}"
        if requester_type == RequesterType.CUSTOMER:
            reason += CUSTOMER_TIE_NOTE

        logger.debug("Priority score %.2f -> %s (%s)", total, priority.value, requester_type.value)
        return CalculationResult(total_score=total, priority=priority, reason=reason)

    async def map_score_to_priority(
        self, score: float, requester_type: RequesterType = RequesterType.INTERNAL
    ) -> Priority:
        thresholds = await self._load_thresholds()
        return resolve_priority(score, thresholds, requester_type)

    @staticmethod
    def apply_tie_breaker(level: Priority, requester_type: RequesterType) -> Priority:
        """Bump a manually chosen level one step for customer requests.

        Saturates at ``URGENT``; internal requests are returned unchanged.
        """
        if requester_type != RequesterType.CUSTOMER:
            return level
        index = PRIORITY_LADDER.index(level)
        return PRIORITY_LADDER[min(index + 1, len(PRIORITY_LADDER) - 1)]

    # ------------------------------------------------------------------
    # Request helpers
    # ------------------------------------------------------------------

    def _require_request_repo(self) -> RequestRepository:
        if self._request_repo is None:
            raise RuntimeError("PriorityScoringEngine was built without a RequestRepository")
        return self._request_repo

    async def _get_request(self, request_id: UUID):
        request = await self._require_request_repo().get_by_id(request_id)
        if request is None:
            raise RequestNotFoundError()
        return request

    @staticmethod
    def _scores_for(request) -> ScoreInput:
        return ScoreInput(
            urgency=request.urgency_score,
            impact=request.impact_score,
            risk=request.risk_score,
            custom=dict(request.custom_scores or {}),
        )

    async def calculate_request_priority(self, request_id: UUID) -> Optional[CalculationResult]:
        """Score a stored request from its saved ratings and requester type."""
        request = await self._get_request(request_id)
        return await self.calculate_priority_score(
            self._scores_for(request), RequesterType(request.requester_type)
        )

    async def update_request_priority(self, request_id: UUID) -> RequestPriorityResponse:
        """Recalculate and persist a request's priority.

        Without ratings the stored priority is left untouched.  Validation
        and configuration errors propagate before any write.
        """
        repo = self._require_request_repo()
        request = await self._get_request(request_id)
        result = await self.calculate_priority_score(
            self._scores_for(request), RequesterType(request.requester_type)
        )
        if result is None:
            return RequestPriorityResponse(
                request_id=request.id,
                priority=Priority(request.priority),
                calculated_score=request.calculated_score,
                priority_reason=request.priority_reason,
                updated=False,
            )

        await repo.update_priority(
            request.id, result.priority.value, result.total_score, result.reason
        )
        await repo.commit()
        await self._cache.invalidate_view(f"/requests/{request.id}")
        logger.info(
            "Request %s priority set to %s (score %.1f)",
            request.id,
            result.priority.value,
            result.total_score,
        )
        return RequestPriorityResponse(
            request_id=request.id,
            priority=result.priority,
            calculated_score=result.total_score,
            priority_reason=result.reason,
            updated=True,
        )

    async def apply_manual_priority(
        self, request_id: UUID, level: Priority
    ) -> RequestPriorityResponse:
        """Store a manually chosen level after the customer tie-break bump."""
        repo = self._require_request_repo()
        request = await self._get_request(request_id)
        final = self.apply_tie_breaker(level, RequesterType(request.requester_type))
        await repo.set_priority(request.id, final.value)
        await repo.commit()
        await self._cache.invalidate_view(f"/requests/{request.id}")
        logger.info("Request %s manual priority %s -> %s", request.id, level.value, final.value)
        return RequestPriorityResponse(
            request_id=request.id,
            priority=final,
            calculated_score=request.calculated_score,
            priority_reason=request.priority_reason,
            updated=True,
        )
