from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from httpx import ASGITransport, AsyncClient

from workdesk.api.deps import (
    get_assignment_service,
    get_current_actor,
    get_priority_engine,
    get_user_repo,
    get_workload_calculator,
)
from workdesk.core.exceptions import (
    AuthorizationError,
    CapacityError,
    ConfigurationError,
    TaskNotFoundError,
    ValidationError,
)
from workdesk.main import app
from workdesk.schemas.assignment import AutoAssignResult, ManualAssignResult
from workdesk.schemas.common import Priority
from workdesk.schemas.priority import CalculationResult
from workdesk.schemas.workload import WIPCheck


@pytest.fixture
def service() -> AsyncMock:
    service = AsyncMock()
    app.dependency_overrides[get_assignment_service] = lambda: service
    return service


@pytest.fixture
def as_leader(leader):
    app.dependency_overrides[get_current_actor] = lambda: leader
    return leader


class TestCORSMiddleware:
    """Verify that CORS headers are present on responses."""

    @pytest.mark.asyncio
    async def test_cors_headers_on_preflight(self, async_client):
        """OPTIONS request should return Access-Control-Allow-Origin."""
        response = await async_client.options(
            "/api/v1/health",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "GET",
            },
        )
        assert "access-control-allow-origin" in response.headers

    @pytest.mark.asyncio
    async def test_cors_returns_configured_origin(self, async_client):
        response = await async_client.get(
            "/api/v1/health", headers={"Origin": "http://localhost:3000"}
        )
        assert response.status_code == 200
        assert response.headers.get("access-control-allow-origin") == "http://localhost:3000"


class TestHealthEndpoint:
    @pytest.mark.asyncio
    async def test_health_reports_cache_state(self, async_client):
        response = await async_client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "cache": "down"}


class TestIdentity:
    """The caller is resolved from the X-User-Id header."""

    @pytest.fixture(autouse=True)
    def _users(self, service):
        self.user_repo = AsyncMock()
        self.user_repo.get_by_id = AsyncMock(return_value=None)
        app.dependency_overrides[get_user_repo] = lambda: self.user_repo

    @pytest.mark.asyncio
    async def test_missing_header(self, async_client):
        response = await async_client.post(f"/api/v1/requests/{uuid4()}/auto-assign")
        assert response.status_code == 401
        assert response.json()["type"] == "not_authenticated"

    @pytest.mark.asyncio
    async def test_malformed_header(self, async_client):
        response = await async_client.post(
            f"/api/v1/requests/{uuid4()}/auto-assign", headers={"X-User-Id": "nobody"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_user(self, async_client):
        response = await async_client.post(
            f"/api/v1/requests/{uuid4()}/auto-assign", headers={"X-User-Id": str(uuid4())}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_known_user_becomes_actor(self, async_client, service, team):
        user = SimpleNamespace(
            id=uuid4(), name="Uma", role="USER", team_id=team.id, is_active=True
        )
        self.user_repo.get_by_id = AsyncMock(return_value=user)
        request_id = uuid4()
        service.auto_assign_request = AsyncMock(
            return_value=AutoAssignResult(success=True, request_id=request_id)
        )

        response = await async_client.post(
            f"/api/v1/requests/{request_id}/auto-assign", headers={"X-User-Id": str(user.id)}
        )

        assert response.status_code == 200
        actor = service.auto_assign_request.await_args.args[1]
        assert actor.id == user.id
        assert actor.role.value == "USER"


class TestAssignmentEndpoints:
    @pytest.mark.asyncio
    async def test_auto_assign_capacity_outcome_is_200(self, async_client, service, as_leader):
        request_id = uuid4()
        service.auto_assign_request = AsyncMock(
            return_value=AutoAssignResult(
                success=False,
                request_id=request_id,
                error="Cannot auto-assign: every eligible team member has reached their WIP limit",
                code="wip_limit_exceeded",
            )
        )

        response = await async_client.post(f"/api/v1/requests/{request_id}/auto-assign")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "wip_limit_exceeded"

    @pytest.mark.asyncio
    async def test_manual_assign_warning_payload(self, async_client, service, as_leader):
        task_id, assignee_id = uuid4(), uuid4()
        service.manual_assign_with_check = AsyncMock(
            return_value=ManualAssignResult(
                success=False,
                task_id=task_id,
                assignee_id=assignee_id,
                warning=True,
                can_override=True,
                current=5,
                limit=5,
                code="wip_limit_exceeded",
            )
        )

        response = await async_client.post(
            f"/api/v1/tasks/{task_id}/assign", json={"assignee_id": str(assignee_id)}
        )

        assert response.status_code == 200
        assert response.json()["can_override"] is True
        args = service.manual_assign_with_check.await_args
        assert args.kwargs["override"] is False

    @pytest.mark.asyncio
    async def test_override_forbidden_is_403(self, async_client, service, as_leader):
        service.manual_assign_with_check = AsyncMock(
            side_effect=AuthorizationError(
                "Only Leader and Admin can override the WIP limit", code="override_forbidden"
            )
        )

        response = await async_client.post(
            f"/api/v1/tasks/{uuid4()}/assign",
            json={"assignee_id": str(uuid4()), "override": True},
        )

        assert response.status_code == 403
        assert response.json()["type"] == "override_forbidden"

    @pytest.mark.asyncio
    async def test_overloaded_reassign_is_409(self, async_client, service, as_leader):
        service.reassign_task = AsyncMock(
            side_effect=CapacityError(
                "Wes is overloaded (5/5 active tasks)",
                code="assignee_overloaded",
                current=5,
                limit=5,
            )
        )

        response = await async_client.post(
            f"/api/v1/tasks/{uuid4()}/reassign",
            json={"new_assignee_id": str(uuid4()), "reason": "Vacation cover"},
        )

        assert response.status_code == 409
        assert response.json() == {
            "detail": "Wes is overloaded (5/5 active tasks)",
            "type": "assignee_overloaded",
            "current": 5,
            "limit": 5,
        }

    @pytest.mark.asyncio
    async def test_unknown_task_is_404(self, async_client, service, as_leader):
        service.reassign_task = AsyncMock(side_effect=TaskNotFoundError())

        response = await async_client.post(
            f"/api/v1/tasks/{uuid4()}/reassign",
            json={"new_assignee_id": str(uuid4()), "reason": "Vacation cover"},
        )

        assert response.status_code == 404
        assert response.json()["type"] == "task_not_found"

    @pytest.mark.asyncio
    async def test_wip_limit_below_active_is_422(self, async_client, service, as_leader):
        service.update_user_wip_limit = AsyncMock(
            side_effect=ValidationError(
                "New WIP limit (1) must be greater than or equal to the number of "
                "tasks currently in progress (3)",
                code="wip_limit_below_active",
            )
        )

        response = await async_client.put(
            f"/api/v1/users/{uuid4()}/wip-limit", json={"wip_limit": 1}
        )

        assert response.status_code == 422
        assert response.json()["type"] == "wip_limit_below_active"

    @pytest.mark.asyncio
    async def test_non_positive_wip_limit_fails_request_validation(
        self, async_client, service, as_leader
    ):
        response = await async_client.put(
            f"/api/v1/users/{uuid4()}/wip-limit", json={"wip_limit": 0}
        )

        assert response.status_code == 422
        body = response.json()
        assert body["type"] == "validation_error"
        assert "errors" in body
        service.update_user_wip_limit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bad_weights_is_422(self, async_client, service, as_leader):
        service.update_assignment_config = AsyncMock(
            side_effect=ValidationError(
                "Assignment weights must sum to 1.0 (got 0.95)",
                code="weights_must_sum_to_one",
            )
        )

        response = await async_client.put(
            "/api/v1/admin/assignment-config",
            json={
                "weight_workload": 0.5,
                "weight_skill": 0.3,
                "weight_sla": 0.1,
                "weight_random": 0.05,
            },
        )

        assert response.status_code == 422
        assert response.json()["type"] == "weights_must_sum_to_one"


class TestReadEndpoints:
    @pytest.mark.asyncio
    async def test_wip_check(self, async_client, as_leader):
        workload = AsyncMock()
        workload.check_wip_limit = AsyncMock(
            return_value=WIPCheck(exceeded=True, current=5, limit=5, utilization_percent=100)
        )
        app.dependency_overrides[get_workload_calculator] = lambda: workload

        response = await async_client.get(f"/api/v1/users/{uuid4()}/wip-check")

        assert response.status_code == 200
        assert response.json() == {
            "exceeded": True,
            "current": 5,
            "limit": 5,
            "utilization_percent": 100,
        }

    @pytest.mark.asyncio
    async def test_priority_preview(self, async_client, as_leader):
        engine = AsyncMock()
        engine.calculate_priority_score = AsyncMock(
            return_value=CalculationResult(
                total_score=3.9, priority=Priority.HIGH, reason="Auto: ... = 3.9"
            )
        )
        app.dependency_overrides[get_priority_engine] = lambda: engine

        response = await async_client.post(
            "/api/v1/requests/priority/preview",
            json={"scores": {"urgency": 4, "impact": 3, "risk": 5}, "requester_type": "CUSTOMER"},
        )

        assert response.status_code == 200
        assert response.json()["priority"] == "HIGH"
        scores, requester_type = engine.calculate_priority_score.await_args.args
        assert scores.urgency == 4
        assert requester_type.value == "CUSTOMER"

    @pytest.mark.asyncio
    async def test_missing_rubric_is_503(self, async_client, as_leader):
        engine = AsyncMock()
        engine.update_request_priority = AsyncMock(
            side_effect=ConfigurationError(
                "No active priority configurations found", code="no_priority_configuration"
            )
        )
        app.dependency_overrides[get_priority_engine] = lambda: engine

        response = await async_client.post(f"/api/v1/requests/{uuid4()}/priority/recalculate")

        assert response.status_code == 503
        assert response.json()["type"] == "no_priority_configuration"


class TestUnhandledErrors:
    @pytest.mark.asyncio
    async def test_unexpected_exception_is_generic_500(self, service, as_leader):
        from workdesk.api.deps import get_cache_service
        from workdesk.core.cache import CacheService

        app.dependency_overrides[get_cache_service] = lambda: CacheService()
        service.get_assignment_config = AsyncMock(side_effect=RuntimeError("boom"))
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        try:
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                response = await client.get("/api/v1/admin/assignment-config")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json()["type"] == "internal_server_error"
        assert "boom" not in response.text
