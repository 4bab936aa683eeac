"""Loading, merging and validating the singleton assignment configuration."""

import logging
from copy import deepcopy
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from workdesk.core.assignment_defaults import (
    DEFAULT_ADVANCED_SETTINGS,
    default_assignment_config,
)
from workdesk.core.cache import CacheService
from workdesk.core.config import settings
from workdesk.core.constants import ASSIGNMENT_CONFIG_CACHE_KEY
from workdesk.core.exceptions import ValidationError
from workdesk.repositories.assignment_config_repository import AssignmentConfigRepository
from workdesk.schemas.assignment import AdvancedSettings, AssignmentConfigData

logger = logging.getLogger(__name__)

WEIGHT_FIELDS = ("weight_workload", "weight_skill", "weight_sla", "weight_random")


def validate_weights(weights: Mapping[str, float]) -> None:
    """Require the four weights to sum to exactly 1.0.

    Summation goes through ``Decimal(str(w))`` so ``0.4 + 0.3 + 0.2 + 0.1``
    is exact while ``0.5 + 0.3 + 0.1 + 0.05`` is rejected.
    """
    total = sum((Decimal(str(weights[name])) for name in WEIGHT_FIELDS), Decimal("0"))
    if total != Decimal("1"):
        raise ValidationError(
            f"Assignment weights must sum to 1.0 (got {total})",
            code="weights_must_sum_to_one",
        )


def _accepted_keys(model) -> Dict[str, str]:
    """Map every field name and alias of *model* to the stored camelCase key."""
    keys: Dict[str, str] = {}
    for name, field in model.model_fields.items():
        alias = field.alias or to_camel(name)
        keys[name] = alias
        keys[alias] = alias
    return keys


_BLOCK_KEYS = _accepted_keys(AdvancedSettings)
_BLOCK_FIELD_KEYS = {
    field.alias or to_camel(name): _accepted_keys(field.annotation)
    for name, field in AdvancedSettings.model_fields.items()
}


def merge_advanced_settings(
    base: Mapping[str, Any], patch: Optional[Mapping[str, Any]]
) -> Dict[str, Any]:
    """Merge *patch* into *base* block by block, field by field.

    A partial block only overwrites the keys it names, so unrelated
    settings survive.  Block and field names may be given in camelCase or
    snake_case and are stored in camelCase; unknown names are rejected.
    """
    merged = deepcopy(dict(base))
    for block, values in (patch or {}).items():
        block_key = _BLOCK_KEYS.get(block)
        if block_key is None:
            raise ValidationError(
                f"Unknown advanced settings block: {block}", code="unknown_advanced_setting"
            )
        if not isinstance(values, Mapping):
            raise ValidationError(f"Advanced settings block '{block}' must be an object")
        field_keys = _BLOCK_FIELD_KEYS[block_key]
        target = merged.setdefault(block_key, {})
        for name, value in values.items():
            key = field_keys.get(name)
            if key is None:
                raise ValidationError(
                    f"Unknown advanced setting: {block}.{name}", code="unknown_advanced_setting"
                )
            target[key] = value
    return merged


def parse_advanced_settings(raw: Mapping[str, Any]) -> AdvancedSettings:
    try:
        return AdvancedSettings.model_validate(raw)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ValidationError(
            f"Invalid advanced setting {location}: {first['msg']}"
        ) from exc


def config_from_storage(row: Any) -> AssignmentConfigData:
    """Build resolved config from a stored row; missing keys take defaults."""
    advanced = merge_advanced_settings(DEFAULT_ADVANCED_SETTINGS, row.advanced_settings or {})
    return AssignmentConfigData(
        weight_workload=row.weight_workload,
        weight_skill=row.weight_skill,
        weight_sla=row.weight_sla,
        weight_random=row.weight_random,
        enable_auto_assign=row.enable_auto_assign,
        advanced_settings=parse_advanced_settings(advanced),
        is_default=False,
    )


def default_config() -> AssignmentConfigData:
    data = default_assignment_config()
    return AssignmentConfigData(
        **{name: data[name] for name in WEIGHT_FIELDS},
        enable_auto_assign=data["enable_auto_assign"],
        advanced_settings=parse_advanced_settings(data["advanced_settings"]),
        is_default=True,
    )


class AssignmentConfigProvider:
    """Resolve the active assignment config once per operation.

    The resolved value is cached for ``CONFIG_CACHE_TTL`` seconds; writers
    call :meth:`invalidate` in the same call as the write.
    """

    def __init__(
        self,
        config_repo: AssignmentConfigRepository,
        cache: Optional[CacheService] = None,
    ) -> None:
        self._repo = config_repo
        self._cache = cache or CacheService()

    async def load(self) -> AssignmentConfigData:
        cached = await self._cache.get_json(ASSIGNMENT_CONFIG_CACHE_KEY)
        if cached is not None:
            try:
                return AssignmentConfigData.model_validate(cached)
            except PydanticValidationError:
                logger.warning("Discarding malformed cached assignment config")

        row = await self._repo.get_singleton()
        config = config_from_storage(row) if row is not None else default_config()
        await self._cache.set_json(
            ASSIGNMENT_CONFIG_CACHE_KEY,
            config.model_dump(mode="json", by_alias=True),
            ttl=settings.CONFIG_CACHE_TTL,
        )
        return config

    async def invalidate(self) -> None:
        await self._cache.delete(ASSIGNMENT_CONFIG_CACHE_KEY)
