import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from workdesk.core.cache import CacheService
from workdesk.core.config import settings
from workdesk.repositories.assignment_config_repository import AssignmentConfigRepository
from workdesk.repositories.task_repository import TaskRepository
from workdesk.services.assignment_config import AssignmentConfigProvider
from workdesk.services.assignment_service import build_assignment_service

logger = logging.getLogger(__name__)


async def escalate_stalled_tasks(
    session_factory: Callable[..., AsyncSession],
    cache: Optional[CacheService] = None,
) -> int:
    """One-shot: hand stalled TODO tasks to another team member.

    A task is stalled when it was assigned more than
    ``automation.escalateAfterHours`` ago and never started.  Does nothing
    unless ``automation.autoEscalateStalled`` is enabled.

    Parameters:
        session_factory: An async context-manager callable that yields
            an ``AsyncSession`` (e.g. ``AsyncSessionLocal``).

    Returns the number of escalated tasks.
    """
    escalated = 0

    async with session_factory() as session:
        config = await AssignmentConfigProvider(
            AssignmentConfigRepository(session), cache
        ).load()
        automation = config.advanced_settings.automation
        if not automation.auto_escalate_stalled:
            return 0

        cutoff = datetime.now(timezone.utc) - timedelta(hours=automation.escalate_after_hours)
        task_repo = TaskRepository(session)
        stalled_ids = [task.id for task in await task_repo.find_stalled(cutoff)]
        if not stalled_ids:
            return 0

        logger.info("Found %d stalled task(s) for escalation", len(stalled_ids))
        service = build_assignment_service(session, cache)
        reason = (
            f"Auto-escalated: not started within {automation.escalate_after_hours:g} hours"
        )

        for task_id in stalled_ids:
            try:
                # Re-read: rollback after a failed item expires loaded rows
                task = await task_repo.get_by_id(task_id)
                if task is None or task.started_at is not None:
                    continue
                result = await service.escalate_task(task, reason)
                if result is not None:
                    escalated += 1
                    logger.info(
                        "Escalated task %s: %s -> %s",
                        task_id,
                        result.old_assignee_id,
                        result.new_assignee_id,
                    )
            except Exception:
                logger.warning("Failed to escalate task %s", task_id, exc_info=True)
                await session.rollback()

    return escalated


async def start_stalled_escalation_loop(
    session_factory: Callable[..., AsyncSession],
    cache: Optional[CacheService] = None,
) -> None:
    """Infinite loop that runs stalled-task escalation on a fixed interval."""
    logger.info(
        "Stalled-task escalation started (interval=%ds)",
        settings.STALLED_CHECK_INTERVAL_SECONDS,
    )
    while True:
        try:
            count = await escalate_stalled_tasks(session_factory, cache)
            if count:
                logger.info("Escalation cycle complete: %d task(s)", count)
        except Exception:
            logger.error("Stalled-task escalation cycle failed", exc_info=True)
        await asyncio.sleep(settings.STALLED_CHECK_INTERVAL_SECONDS)
