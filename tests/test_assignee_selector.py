"""Tests for the AssigneeSelector ranking and filtering rules."""

import random
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from workdesk.core.assignment_defaults import DEFAULT_ADVANCED_SETTINGS
from workdesk.core.exceptions import NoEligibleAssigneeError, TeamNotFoundError
from workdesk.schemas.assignment import AssignmentConfigData
from workdesk.services.assignee_selector import (
    AssigneeSelector,
    deadline_fit,
    is_assignable,
    sla_compliance,
)
from workdesk.services.assignment_config import merge_advanced_settings, parse_advanced_settings
from workdesk.services.workload import WorkloadCalculator, build_snapshot


def _config(weights=(0.5, 0.3, 0.2, 0.0), **blocks) -> AssignmentConfigData:
    """Selector config; random weight defaults to 0 so rankings are deterministic."""
    workload, skill, sla, rand = weights
    return AssignmentConfigData(
        weight_workload=workload,
        weight_skill=skill,
        weight_sla=sla,
        weight_random=rand,
        enable_auto_assign=True,
        advanced_settings=parse_advanced_settings(
            merge_advanced_settings(DEFAULT_ADVANCED_SETTINGS, blocks)
        ),
    )


def _selector(team, members, active=None, task_repo=None):
    user_repo = AsyncMock()
    user_repo.get_team_members = AsyncMock(return_value=members)
    team_repo = AsyncMock()
    team_repo.get_by_id = AsyncMock(return_value=team)
    if task_repo is None:
        task_repo = AsyncMock()
    task_repo.count_active_by_assignees = AsyncMock(return_value=active or {})
    task_repo.get_completed_since = AsyncMock(return_value=[])
    task_repo.count_completed_in_category = AsyncMock(return_value={})
    task_repo.count_assigned_since = AsyncMock(return_value={})
    task_repo.last_assigned_at_by_assignees = AsyncMock(return_value={})
    workload = WorkloadCalculator(user_repo, team_repo, task_repo)
    selector = AssigneeSelector(
        user_repo, team_repo, task_repo, workload, rng=random.Random(7)
    )
    return selector, task_repo


class TestLoadBalancing:
    @pytest.mark.asyncio
    async def test_least_loaded_member_wins(self, make_user, team):
        busy = make_user(name="Busy", team_id=team.id)
        free = make_user(name="Free", team_id=team.id)
        selector, _ = _selector(team, [busy, free], active={busy.id: 4, free.id: 1})

        best = await selector.find_best_assignee(uuid4(), team.id, None, _config())

        assert best.user_id == free.id
        assert best.utilization == pytest.approx(0.2)

    @pytest.mark.asyncio
    async def test_member_at_limit_is_never_selected(self, make_user, team):
        full = make_user(name="Full", team_id=team.id, performance_score=1.0)
        almost = make_user(name="Almost", team_id=team.id)
        selector, _ = _selector(team, [full, almost], active={full.id: 5, almost.id: 4})

        best = await selector.find_best_assignee(uuid4(), team.id, None, _config())

        assert best.user_id == almost.id

    @pytest.mark.asyncio
    async def test_everyone_at_limit(self, make_user, team):
        a = make_user(name="A", team_id=team.id)
        b = make_user(name="B", team_id=team.id, wip_limit=2)
        selector, _ = _selector(team, [a, b], active={a.id: 5, b.id: 2})

        with pytest.raises(NoEligibleAssigneeError) as exc_info:
            await selector.find_best_assignee(uuid4(), team.id, None, _config())
        assert exc_info.value.code == "wip_limit_exceeded"

    @pytest.mark.asyncio
    async def test_burnout_penalty_applies_at_high_utilization(self, make_user, team):
        hot = make_user(name="Hot", team_id=team.id)
        selector, _ = _selector(team, [hot], active={hot.id: 4})

        best = await selector.find_best_assignee(uuid4(), team.id, None, _config())

        # 0.5 * 0.2 + 0.3 * 0.5 + 0.2 * 1.0 - 0.15
        assert best.total == pytest.approx(0.3)

    @pytest.mark.asyncio
    async def test_seniority_boost_breaks_ties(self, make_user, team):
        junior = make_user(name="Junior", team_id=team.id, performance_score=0.1)
        senior = make_user(name="Senior", team_id=team.id, performance_score=0.9)
        selector, _ = _selector(team, [junior, senior])

        best = await selector.find_best_assignee(uuid4(), team.id, None, _config())

        assert best.user_id == senior.id


class TestEligibility:
    def test_is_assignable(self, make_user):
        assert is_assignable(make_user())
        assert is_assignable(make_user(role="LEADER"))
        assert not is_assignable(make_user(role="ADMIN"))
        assert not is_assignable(make_user(is_active=False))
        assert not is_assignable(make_user(is_absent=True))

    @pytest.mark.asyncio
    async def test_no_eligible_members(self, make_user, team):
        members = [
            make_user(name="Admin", role="ADMIN", team_id=team.id),
            make_user(name="Away", is_absent=True, team_id=team.id),
        ]
        selector, _ = _selector(team, members)

        with pytest.raises(NoEligibleAssigneeError) as exc_info:
            await selector.find_best_assignee(uuid4(), team.id, None, _config())
        assert exc_info.value.code == "no_eligible_assignee"

    @pytest.mark.asyncio
    async def test_excluded_member_is_skipped(self, make_user, team):
        a = make_user(name="A", team_id=team.id)
        b = make_user(name="B", team_id=team.id)
        selector, _ = _selector(team, [a, b], active={b.id: 3})

        best = await selector.find_best_assignee(
            uuid4(), team.id, None, _config(), exclude=[a.id]
        )

        assert best.user_id == b.id

    @pytest.mark.asyncio
    async def test_unknown_team(self):
        selector, _ = _selector(None, [])
        with pytest.raises(TeamNotFoundError):
            await selector.find_best_assignee(uuid4(), uuid4(), None, _config())


class TestSkillMatching:
    @pytest.mark.asyncio
    async def test_balanced_mode_prefers_exact_match(self, make_user, team):
        category = uuid4()
        expert = make_user(name="Expert", team_id=team.id, skill_category_ids=[category])
        novice = make_user(name="Novice", team_id=team.id)
        selector, _ = _selector(team, [expert, novice], active={expert.id: 3})

        best = await selector.find_best_assignee(uuid4(), team.id, category, _config())

        assert best.user_id == expert.id
        assert best.skill == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_partial_match_from_category_history(self, make_user, team):
        category = uuid4()
        seasoned = make_user(name="Seasoned", team_id=team.id)
        fresh = make_user(name="Fresh", team_id=team.id)
        selector, task_repo = _selector(team, [seasoned, fresh])
        task_repo.count_completed_in_category = AsyncMock(return_value={seasoned.id: 2})

        best = await selector.find_best_assignee(uuid4(), team.id, category, _config())

        assert best.user_id == seasoned.id
        # 0.6 plus the default cross-skill boost
        assert best.skill == pytest.approx(0.7)

    @pytest.mark.asyncio
    async def test_partial_match_disabled(self, make_user, team):
        category = uuid4()
        seasoned = make_user(name="Seasoned", team_id=team.id)
        selector, task_repo = _selector(team, [seasoned])

        await selector.find_best_assignee(
            uuid4(),
            team.id,
            category,
            _config(matching={"allowPartialMatch": False}),
        )

        task_repo.count_completed_in_category.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_strict_manual_gate_without_match(self, make_user, team):
        selector, _ = _selector(team, [make_user(team_id=team.id)])

        with pytest.raises(NoEligibleAssigneeError):
            await selector.find_best_assignee(
                uuid4(),
                team.id,
                uuid4(),
                _config(matching={"mode": "strict", "fallbackStrategy": "manual_gate"}),
            )

    @pytest.mark.asyncio
    async def test_strict_round_robin_picks_longest_idle(self, make_user, team):
        recent = make_user(name="Recent", team_id=team.id)
        never = make_user(name="Never", team_id=team.id)
        selector, task_repo = _selector(team, [recent, never], active={never.id: 3})
        task_repo.last_assigned_at_by_assignees = AsyncMock(
            return_value={recent.id: datetime.now(timezone.utc) - timedelta(days=1)}
        )

        best = await selector.find_best_assignee(
            uuid4(),
            team.id,
            uuid4(),
            _config(matching={"mode": "strict", "fallbackStrategy": "round_robin"}),
        )

        assert best.user_id == never.id

    @pytest.mark.asyncio
    async def test_strict_keeps_only_matching_members(self, make_user, team):
        category = uuid4()
        expert = make_user(name="Expert", team_id=team.id, skill_category_ids=[category])
        idle = make_user(name="Idle", team_id=team.id)
        selector, _ = _selector(team, [expert, idle], active={expert.id: 4})

        best = await selector.find_best_assignee(
            uuid4(), team.id, category, _config(matching={"mode": "strict"})
        )

        assert best.user_id == expert.id


class TestGuardrails:
    @pytest.mark.asyncio
    async def test_daily_cap_blocks_member(self, make_user, team):
        capped = make_user(name="Capped", team_id=team.id)
        other = make_user(name="Other", team_id=team.id)
        selector, task_repo = _selector(team, [capped, other], active={other.id: 3})
        task_repo.count_assigned_since = AsyncMock(return_value={capped.id: 2})

        best = await selector.find_best_assignee(
            uuid4(),
            team.id,
            None,
            _config(guardrails={"maxAssignmentsPerUserPerDay": 2}),
        )

        assert best.user_id == other.id

    @pytest.mark.asyncio
    async def test_cooldown_blocks_recent_assignee(self, make_user, team):
        recent = make_user(name="Recent", team_id=team.id)
        other = make_user(name="Other", team_id=team.id)
        selector, task_repo = _selector(team, [recent, other], active={other.id: 3})
        task_repo.last_assigned_at_by_assignees = AsyncMock(
            return_value={recent.id: datetime.now(timezone.utc) - timedelta(minutes=5)}
        )

        best = await selector.find_best_assignee(
            uuid4(), team.id, None, _config(guardrails={"cooldownMinutes": 30})
        )

        assert best.user_id == other.id

    @pytest.mark.asyncio
    async def test_all_blocked_by_guardrails(self, make_user, team):
        only = make_user(team_id=team.id)
        selector, task_repo = _selector(team, [only])
        task_repo.count_assigned_since = AsyncMock(return_value={only.id: 1})

        with pytest.raises(NoEligibleAssigneeError):
            await selector.find_best_assignee(
                uuid4(),
                team.id,
                None,
                _config(guardrails={"maxAssignmentsPerUserPerDay": 1}),
            )

    @pytest.mark.asyncio
    async def test_disabled_guardrails_do_not_query(self, make_user, team):
        selector, task_repo = _selector(team, [make_user(team_id=team.id)])

        await selector.find_best_assignee(uuid4(), team.id, None, _config())

        task_repo.count_assigned_since.assert_not_awaited()
        task_repo.last_assigned_at_by_assignees.assert_not_awaited()


class TestSlaComponent:
    def test_compliance_ratio(self):
        worker = uuid4()
        due = datetime(2026, 3, 1, tzinfo=timezone.utc)
        rows = [
            SimpleNamespace(assignee_id=worker, sla_deadline=due, completed_at=due),
            SimpleNamespace(
                assignee_id=worker, sla_deadline=due, completed_at=due + timedelta(hours=1)
            ),
            SimpleNamespace(assignee_id=worker, sla_deadline=None, completed_at=due),
        ]
        assert sla_compliance(rows) == {worker: pytest.approx(0.5)}

    def test_deadline_fit(self):
        now = datetime(2026, 3, 1, tzinfo=timezone.utc)
        snapshot = build_snapshot(uuid4(), 0, 5, avg_lead_time_days=1.0)

        assert deadline_fit(snapshot, now - timedelta(hours=1), now, 15) == 0.0
        assert deadline_fit(snapshot, now + timedelta(days=3), now, 15) == 1.0
        # 24h expected vs 12h * 1.15 allowed
        assert deadline_fit(snapshot, now + timedelta(hours=12), now, 15) == pytest.approx(
            13.8 / 24
        )

    @pytest.mark.asyncio
    async def test_reliable_member_preferred(self, make_user, team):
        late = make_user(name="Late", team_id=team.id)
        punctual = make_user(name="Punctual", team_id=team.id)
        selector, task_repo = _selector(team, [late, punctual])
        due = datetime.now(timezone.utc) - timedelta(days=1)
        task_repo.get_completed_since = AsyncMock(
            return_value=[
                SimpleNamespace(
                    assignee_id=late.id,
                    created_at=due - timedelta(days=2),
                    sla_deadline=due,
                    completed_at=due + timedelta(hours=5),
                ),
                SimpleNamespace(
                    assignee_id=punctual.id,
                    created_at=due - timedelta(days=2),
                    sla_deadline=due,
                    completed_at=due - timedelta(hours=5),
                ),
            ]
        )

        best = await selector.find_best_assignee(uuid4(), team.id, None, _config())

        assert best.user_id == punctual.id
