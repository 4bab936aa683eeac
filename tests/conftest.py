from types import SimpleNamespace
from typing import TYPE_CHECKING, AsyncGenerator, Callable
from unittest.mock import AsyncMock
from uuid import uuid4

if TYPE_CHECKING:
    from workdesk.core.cache import CacheService

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from workdesk.main import app
from workdesk.schemas.assignment import Actor
from workdesk.schemas.common import Role


@pytest_asyncio.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Yield an ``httpx.AsyncClient`` wired to the FastAPI app.

    Dependency overrides set by a test are cleared afterwards.
    """
    from workdesk.api.deps import get_cache_service
    from workdesk.core.cache import CacheService

    app.dependency_overrides[get_cache_service] = lambda: CacheService()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Return an ``AsyncMock`` that behaves like ``redis.asyncio.Redis``."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock()
    redis.setex = AsyncMock()
    redis.delete = AsyncMock()
    redis.ping = AsyncMock()
    return redis


@pytest.fixture
def mock_cache(mock_redis) -> "CacheService":
    """Return a ``CacheService`` backed by the mock Redis client."""
    from workdesk.core.cache import CacheService

    return CacheService(redis_client=mock_redis)


@pytest.fixture
def make_user() -> Callable[..., SimpleNamespace]:
    """Factory for lightweight user rows."""

    def _make(
        *,
        name: str = "worker",
        role: str = "USER",
        team_id=None,
        wip_limit=None,
        performance_score: float = 0.0,
        skill_category_ids=None,
        is_active: bool = True,
        is_absent: bool = False,
    ) -> SimpleNamespace:
        return SimpleNamespace(
            id=uuid4(),
            name=name,
            role=role,
            team_id=team_id,
            wip_limit=wip_limit,
            performance_score=performance_score,
            skill_category_ids=skill_category_ids or [],
            is_active=is_active,
            is_absent=is_absent,
        )

    return _make


@pytest.fixture
def team() -> SimpleNamespace:
    return SimpleNamespace(id=uuid4(), name="Platform", wip_limit=5)


@pytest.fixture
def admin(team) -> Actor:
    return Actor(id=uuid4(), name="Ada Admin", role=Role.ADMIN, team_id=None)


@pytest.fixture
def leader(team) -> Actor:
    return Actor(id=uuid4(), name="Lee Leader", role=Role.LEADER, team_id=team.id)


@pytest.fixture
def member(team) -> Actor:
    return Actor(id=uuid4(), name="Uma User", role=Role.USER, team_id=team.id)
