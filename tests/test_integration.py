import asyncio
import os
from typing import AsyncGenerator
from uuid import uuid4

import asyncpg
import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from workdesk.models import AuditLog, Base, Request, Task, Team, User
from workdesk.schemas.assignment import Actor, AssignmentConfigPatch
from workdesk.schemas.common import Priority, RequesterType, Role

_PG_HOST = os.getenv("TEST_PG_HOST", "localhost")
_PG_PORT = int(os.getenv("TEST_PG_PORT", "5433"))
_PG_USER = os.getenv("TEST_PG_USER", "postgres")
_PG_PASS = os.getenv("TEST_PG_PASSWORD", "postgres")
_TEST_DB = "workdesk_test_db"

_TEST_DB_URL = (
    f"postgresql+asyncpg://{_PG_USER}:{_PG_PASS}@{_PG_HOST}:{_PG_PORT}/{_TEST_DB}"
)


@pytest_asyncio.fixture
async def _ensure_pg_database():
    """Create the test database if needed.

    Skips every test in this module when PostgreSQL cannot be reached.
    """
    try:
        conn = await asyncpg.connect(
            user=_PG_USER,
            password=_PG_PASS,
            host=_PG_HOST,
            port=_PG_PORT,
            database="postgres",
        )
        exists = await conn.fetchval(
            "SELECT 1 FROM pg_database WHERE datname = $1", _TEST_DB
        )
        if not exists:
            await conn.execute(f'CREATE DATABASE "{_TEST_DB}"')
        await conn.close()
    except (OSError, asyncpg.PostgresError, ConnectionRefusedError) as exc:
        pytest.skip(f"PostgreSQL not available ({_PG_HOST}:{_PG_PORT}): {exc}")


@pytest_asyncio.fixture
async def session_factory(_ensure_pg_database) -> AsyncGenerator[async_sessionmaker, None]:
    """Create all tables before each test and drop them after."""
    engine = create_async_engine(_TEST_DB_URL, echo=False, future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


async def _seed_team(session_factory, *, wip_limit=3, active=2):
    """One team, one worker with *active* tasks in progress, one leader."""
    async with session_factory() as session:
        team = Team(name=f"Team {uuid4().hex[:6]}")
        session.add(team)
        await session.flush()
        worker = User(
            name="Solo Worker",
            email=f"worker_{uuid4().hex[:8]}@example.com",
            role="USER",
            team_id=team.id,
            wip_limit=wip_limit,
        )
        leader = User(
            name="Team Leader",
            email=f"leader_{uuid4().hex[:8]}@example.com",
            role="LEADER",
            team_id=team.id,
            is_absent=True,
        )
        session.add_all([worker, leader])
        await session.flush()
        for _ in range(active):
            request = Request(title="existing work", team_id=team.id)
            session.add(request)
            await session.flush()
            session.add(
                Task(
                    request_id=request.id,
                    title="existing work",
                    assignee_id=worker.id,
                    status="IN_PROGRESS",
                )
            )
        await session.commit()
        actor = Actor(id=leader.id, name=leader.name, role=Role.LEADER, team_id=team.id)
        return team.id, worker.id, actor


async def _new_request(session_factory, team_id, **fields):
    async with session_factory() as session:
        request = Request(title="incoming", team_id=team_id, **fields)
        session.add(request)
        await session.commit()
        return request.id


class TestPriorityIntegration:
    @pytest.mark.asyncio
    async def test_seeded_rubric_scores_requests(self, session_factory):
        from workdesk.repositories.priority_repository import PriorityRepository
        from workdesk.repositories.request_repository import RequestRepository
        from workdesk.services.priority_scoring import PriorityScoringEngine

        async with session_factory() as session:
            repo = PriorityRepository(session)
            await repo.seed_if_empty()
            await repo.seed_if_empty()
            await repo.commit()
            assert len(await repo.get_active_criteria()) == 3

        request_id = await _new_request(
            session_factory,
            None,
            urgency_score=5,
            impact_score=5,
            risk_score=5,
            requester_type=RequesterType.CUSTOMER.value,
        )

        async with session_factory() as session:
            engine = PriorityScoringEngine(
                PriorityRepository(session), request_repo=RequestRepository(session)
            )
            response = await engine.update_request_priority(request_id)

        assert response.priority == Priority.URGENT
        assert response.calculated_score == pytest.approx(25.0)

        async with session_factory() as session:
            stored = await session.get(Request, request_id)
            assert stored.priority == "URGENT"
            assert stored.priority_reason.startswith("Auto: ")


class TestAssignmentIntegration:
    @pytest.mark.asyncio
    async def test_auto_assign_persists_task_and_audit(self, session_factory):
        from workdesk.services.assignment_service import build_assignment_service

        team_id, worker_id, actor = await _seed_team(session_factory)
        request_id = await _new_request(session_factory, team_id)

        async with session_factory() as session:
            result = await build_assignment_service(session).auto_assign_request(
                request_id, actor
            )

        assert result.success is True
        assert result.assignee_id == worker_id

        async with session_factory() as session:
            task = await session.get(Task, result.task_id)
            assert task.assignee_id == worker_id
            assert task.assigned_at is not None
            entries = (
                await session.execute(select(AuditLog).where(AuditLog.entity_id == task.id))
            ).scalars().all()
            assert [e.action for e in entries] == ["ASSIGNED"]
            assert entries[0].actor_id == actor.id

    @pytest.mark.asyncio
    async def test_concurrent_sessions_never_overcommit(self, session_factory):
        """Separate sessions and slot guards: only the row lock serialises them."""
        from workdesk.services.assignment_service import build_assignment_service
        from workdesk.services.slot_guard import WorkerSlotGuard

        team_id, worker_id, actor = await _seed_team(session_factory)
        request_ids = [await _new_request(session_factory, team_id) for _ in range(4)]

        async def _attempt(request_id):
            async with session_factory() as session:
                service = build_assignment_service(session, slot_guard=WorkerSlotGuard())
                return await service.auto_assign_request(request_id, actor)

        results = await asyncio.gather(*(_attempt(r) for r in request_ids))

        assert sum(1 for r in results if r.success) == 1
        assert all(r.code == "wip_limit_exceeded" for r in results if not r.success)

        async with session_factory() as session:
            active = (
                await session.execute(
                    select(func.count(Task.id)).where(
                        Task.assignee_id == worker_id, Task.status.in_(["TODO", "IN_PROGRESS"])
                    )
                )
            ).scalar()
        assert active == 3

    @pytest.mark.asyncio
    async def test_wip_limit_floor(self, session_factory):
        from workdesk.core.exceptions import ValidationError
        from workdesk.services.assignment_service import build_assignment_service

        _, worker_id, actor = await _seed_team(session_factory, wip_limit=5, active=2)

        async with session_factory() as session:
            service = build_assignment_service(session)
            with pytest.raises(ValidationError):
                await service.update_user_wip_limit(worker_id, 1, actor)
            result = await service.update_user_wip_limit(worker_id, 2, actor)

        assert result.old_limit == 5
        async with session_factory() as session:
            assert (await session.get(User, worker_id)).wip_limit == 2

    @pytest.mark.asyncio
    async def test_config_update_round_trip(self, session_factory):
        from workdesk.services.assignment_service import build_assignment_service

        async with session_factory() as session:
            row = User(name="Admin", email=f"admin_{uuid4().hex[:8]}@example.com", role="ADMIN")
            session.add(row)
            await session.commit()
            admin = Actor.model_validate(row)

        async with session_factory() as session:
            service = build_assignment_service(session)
            assert (await service.get_assignment_config()).is_default is True
            await service.update_assignment_config(
                AssignmentConfigPatch(
                    weight_workload=0.7,
                    weight_skill=0.1,
                    weight_sla=0.1,
                    weight_random=0.1,
                    advanced_settings={"matching": {"mode": "strict"}},
                ),
                admin,
            )

        async with session_factory() as session:
            response = await build_assignment_service(session).get_assignment_config()

        assert response.is_default is False
        assert response.config.weight_workload == pytest.approx(0.7)
        assert response.config.advanced_settings.matching.mode.value == "strict"
        assert response.config.advanced_settings.matching.prioritize_exact_match is True
