import logging
from typing import List

from sqlalchemy import select, func

from workdesk.models.priority import PriorityCriterion, PriorityThreshold
from workdesk.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class PriorityRepository(BaseRepository):
    """Encapsulates queries against the priority rubric tables."""

    async def get_active_criteria(self) -> List[PriorityCriterion]:
        """Return active criteria ordered by display order."""
        result = await self._db.execute(
            select(PriorityCriterion)
            .where(PriorityCriterion.is_active.is_(True))
            .order_by(PriorityCriterion.order, PriorityCriterion.question)
        )
        return list(result.scalars().all())

    async def get_thresholds(self) -> List[PriorityThreshold]:
        result = await self._db.execute(
            select(PriorityThreshold).order_by(PriorityThreshold.min_score)
        )
        return list(result.scalars().all())

    async def seed_if_empty(self) -> None:
        """Insert the default rubric when both tables are empty.

        Idempotent: a table that already has rows is left alone.

        The canonical definitions live in
        ``workdesk.core.default_priority_rules``.
        """
        from workdesk.core.default_priority_rules import (
            DEFAULT_PRIORITY_CRITERIA,
            DEFAULT_PRIORITY_THRESHOLDS,
        )

        criteria_count = (
            await self._db.execute(select(func.count()).select_from(PriorityCriterion))
        ).scalar()
        if not criteria_count:
            logger.info("priority_criteria table is empty, seeding defaults")
            for row in DEFAULT_PRIORITY_CRITERIA:
                self._db.add(PriorityCriterion(**row))

        threshold_count = (
            await self._db.execute(select(func.count()).select_from(PriorityThreshold))
        ).scalar()
        if not threshold_count:
            logger.info("priority_thresholds table is empty, seeding defaults")
            for row in DEFAULT_PRIORITY_THRESHOLDS:
                self._db.add(PriorityThreshold(**row))

        await self._db.flush()
