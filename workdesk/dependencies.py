import logging
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from workdesk.core.cache import CacheService
from workdesk.core.config import settings
from workdesk.core.database import get_db
from workdesk.core.exceptions import AuthenticationError
from workdesk.schemas.assignment import Actor

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Redis client factory
# ---------------------------------------------------------------------------


async def get_redis_client() -> Optional[Redis]:
    """Get an async Redis client, or ``None`` when Redis is unreachable."""
    try:
        client = Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
        await client.ping()
        return client
    except Exception:
        logger.warning("Redis unavailable – caching disabled for this request")
        return None


async def get_cache_service(
    redis_client: Optional[Redis] = Depends(get_redis_client),
) -> CacheService:
    """Build a :class:`CacheService` backed by the shared Redis client."""
    return CacheService(redis_client=redis_client)


# ---------------------------------------------------------------------------
# Repository factory functions (one per repository, each gets the shared db)
# ---------------------------------------------------------------------------


async def get_user_repo(
    db: AsyncSession = Depends(get_db),
):
    from workdesk.repositories.user_repository import UserRepository

    return UserRepository(db)


async def get_team_repo(
    db: AsyncSession = Depends(get_db),
):
    from workdesk.repositories.team_repository import TeamRepository

    return TeamRepository(db)


async def get_request_repo(
    db: AsyncSession = Depends(get_db),
):
    from workdesk.repositories.request_repository import RequestRepository

    return RequestRepository(db)


async def get_task_repo(
    db: AsyncSession = Depends(get_db),
):
    from workdesk.repositories.task_repository import TaskRepository

    return TaskRepository(db)


async def get_priority_repo(
    db: AsyncSession = Depends(get_db),
):
    from workdesk.repositories.priority_repository import PriorityRepository

    return PriorityRepository(db)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


async def get_current_actor(
    x_user_id: Optional[str] = Header(None),
    user_repo=Depends(get_user_repo),
) -> Actor:
    """Resolve the caller from the ``X-User-Id`` header.

    Missing, malformed or unknown ids are treated as unauthenticated.
    """
    if not x_user_id:
        raise AuthenticationError()
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise AuthenticationError("Invalid X-User-Id header") from None
    user = await user_repo.get_by_id(user_id)
    if user is None or not user.is_active:
        raise AuthenticationError()
    return Actor.model_validate(user)


# ---------------------------------------------------------------------------
# Service factory functions
# ---------------------------------------------------------------------------


async def get_priority_engine(
    priority_repo=Depends(get_priority_repo),
    request_repo=Depends(get_request_repo),
    cache: CacheService = Depends(get_cache_service),
):
    """Build a :class:`PriorityScoringEngine` with injected repositories."""
    from workdesk.services.priority_scoring import PriorityScoringEngine

    return PriorityScoringEngine(priority_repo, cache=cache, request_repo=request_repo)


async def get_workload_calculator(
    user_repo=Depends(get_user_repo),
    team_repo=Depends(get_team_repo),
    task_repo=Depends(get_task_repo),
):
    from workdesk.services.workload import WorkloadCalculator

    return WorkloadCalculator(user_repo, team_repo, task_repo)


async def get_assignment_service(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
):
    """Build an :class:`AssignmentService` whose repositories share *db*."""
    from workdesk.services.assignment_service import build_assignment_service

    return build_assignment_service(db, cache)
