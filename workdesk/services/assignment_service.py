import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from workdesk.core.cache import CacheService
from workdesk.core.config import settings
from workdesk.core.constants import MIN_REASSIGN_REASON_LENGTH, PRIVILEGED_ROLES
from workdesk.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    CapacityError,
    NoEligibleAssigneeError,
    RequestNotFoundError,
    TaskNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from workdesk.repositories.assignment_config_repository import AssignmentConfigRepository
from workdesk.repositories.audit_repository import AuditRepository
from workdesk.repositories.request_repository import RequestRepository
from workdesk.repositories.task_repository import TaskRepository
from workdesk.repositories.team_repository import TeamRepository
from workdesk.repositories.user_repository import UserRepository
from workdesk.schemas.assignment import (
    Actor,
    AssignmentConfigData,
    AssignmentConfigPatch,
    AssignmentConfigResponse,
    AutoAssignResult,
    ManualAssignResult,
    ReassignResult,
    WIPLimitUpdateResult,
)
from workdesk.schemas.common import AuditAction, Role, TaskStatus
from workdesk.services.assignee_selector import AssigneeSelector, is_assignable
from workdesk.services.assignment_config import (
    AssignmentConfigProvider,
    WEIGHT_FIELDS,
    config_from_storage,
    default_config,
    merge_advanced_settings,
    parse_advanced_settings,
    validate_weights,
)
from workdesk.services.slot_guard import WorkerSlotGuard, worker_slot_guard
from workdesk.services.workload import WorkloadCalculator

logger = logging.getLogger(__name__)

WIP_EXHAUSTED_MESSAGE = "Cannot auto-assign: every eligible team member has reached their WIP limit"
OVERRIDE_FORBIDDEN_MESSAGE = "Only Leader and Admin can override the WIP limit"
ALREADY_ASSIGNED_MESSAGE = "Task is already assigned to this user"


def _require_actor(actor: Optional[Actor]) -> Actor:
    if actor is None:
        raise AuthenticationError()
    return actor


def _str_or_none(value: Optional[UUID]) -> Optional[str]:
    return str(value) if value is not None else None


class AssignmentService:
    """Side-effecting assignment operations.

    Every write follows the same commit path: take the in-process slot
    lock for the target worker, lock the worker's row ``FOR UPDATE``,
    re-check the WIP gate, write the assignment plus its audit entry, and
    commit.  Two callers racing for a worker's last open slot therefore
    cannot both succeed; the loser sees a ``CapacityError``.

    Authorization and validation run before any write.
    """

    def __init__(
        self,
        request_repo: RequestRepository,
        task_repo: TaskRepository,
        user_repo: UserRepository,
        config_repo: AssignmentConfigRepository,
        audit_repo: AuditRepository,
        workload: WorkloadCalculator,
        selector: AssigneeSelector,
        cache: Optional[CacheService] = None,
        slot_guard: Optional[WorkerSlotGuard] = None,
    ) -> None:
        self._request_repo = request_repo
        self._task_repo = task_repo
        self._user_repo = user_repo
        self._config_repo = config_repo
        self._audit_repo = audit_repo
        self._workload = workload
        self._selector = selector
        self._cache = cache or CacheService()
        self._slot_guard = slot_guard or worker_slot_guard
        self._config = AssignmentConfigProvider(config_repo, self._cache)

    # ------------------------------------------------------------------
    # Commit path
    # ------------------------------------------------------------------

    async def _commit_assignment(
        self,
        assignee_id: UUID,
        *,
        actor_id: Optional[UUID],
        action: AuditAction,
        task_id: Optional[UUID] = None,
        new_task: Optional[Dict[str, Any]] = None,
        old_value: Optional[Dict[str, Any]] = None,
        new_value: Optional[Dict[str, Any]] = None,
        reason: Optional[str] = None,
        enforce_limit: bool = True,
    ) -> UUID:
        """Atomically (re)assign a task, creating it first when *task_id* is ``None``.

        Raises ``CapacityError`` when *enforce_limit* is set and the worker
        is at capacity once the locks are held.  Nothing is written then.
        """
        async with self._slot_guard.hold(assignee_id):
            try:
                locked = await self._user_repo.lock_for_update(assignee_id)
                if locked is None:
                    raise UserNotFoundError("Assignee not found")
                if enforce_limit:
                    check = await self._workload.check_wip_limit(assignee_id)
                    if check.exceeded:
                        logger.info(
                            "Commit rejected: worker %s at %d/%d",
                            assignee_id,
                            check.current,
                            check.limit,
                        )
                        raise CapacityError(
                            f"Assignee has reached the WIP limit ({check.current}/{check.limit})",
                            current=check.current,
                            limit=check.limit,
                        )

                now = datetime.now(timezone.utc)
                if task_id is None:
                    task = await self._task_repo.create(
                        **(new_task or {}), assignee_id=assignee_id, assigned_at=now
                    )
                    task_id = task.id
                else:
                    await self._task_repo.set_assignee(task_id, assignee_id, now)

                await self._audit_repo.append(
                    action=action.value,
                    entity="Task",
                    entity_id=task_id,
                    actor_id=actor_id,
                    old_value=old_value,
                    new_value={**(new_value or {}), "assigneeId": str(assignee_id)},
                    reason=reason,
                )
                await self._task_repo.commit()
            except Exception:
                await self._task_repo.rollback()
                raise

        logger.info("Task %s assigned to %s (%s)", task_id, assignee_id, action.value)
        return task_id

    async def _invalidate(self, *paths: str) -> None:
        await self._cache.invalidate_view(*paths)

    # ------------------------------------------------------------------
    # Auto assignment
    # ------------------------------------------------------------------

    async def auto_assign_request(
        self, request_id: UUID, actor: Optional[Actor]
    ) -> AutoAssignResult:
        """Pick and commit the best assignee for a request's open task.

        A lost commit race triggers reselection against fresh workload, up
        to ``ASSIGN_MAX_ATTEMPTS`` times.  Capacity exhaustion and disabled
        auto-assignment come back as ``success=False`` results.
        """
        actor = _require_actor(actor)
        request = await self._request_repo.get_by_id(request_id)
        if request is None:
            raise RequestNotFoundError()
        if request.team_id is None:
            raise ValidationError(
                "Request has not been assigned to a team", code="request_has_no_team"
            )

        config = await self._config.load()
        if not config.enable_auto_assign:
            return AutoAssignResult(
                success=False,
                request_id=request_id,
                error="Auto-assignment is disabled",
                code="auto_assign_disabled",
            )

        # Plain values survive the rollback of a lost race
        team_id = request.team_id
        category_id = request.category_id
        deadline = request.deadline
        created_at = request.created_at
        title = request.title

        for attempt in range(1, settings.ASSIGN_MAX_ATTEMPTS + 1):
            try:
                best = await self._selector.find_best_assignee(
                    request_id,
                    team_id,
                    category_id,
                    config,
                    deadline=deadline,
                    request_created_at=created_at,
                )
            except NoEligibleAssigneeError as exc:
                if exc.code == "wip_limit_exceeded":
                    return AutoAssignResult(
                        success=False,
                        request_id=request_id,
                        error=WIP_EXHAUSTED_MESSAGE,
                        code=exc.code,
                    )
                return AutoAssignResult(
                    success=False, request_id=request_id, error=exc.detail, code=exc.code
                )

            open_task = await self._task_repo.get_unassigned_for_request(request_id)
            try:
                task_id = await self._commit_assignment(
                    best.user_id,
                    actor_id=actor.id,
                    action=AuditAction.ASSIGNED,
                    task_id=open_task.id if open_task is not None else None,
                    new_task={
                        "request_id": request_id,
                        "title": title,
                        "status": TaskStatus.TODO.value,
                        "sla_deadline": deadline,
                    },
                    old_value={"assigneeId": None},
                    new_value={"score": round(best.total, 4), "auto": True},
                    reason="Auto-assigned by load balancer",
                )
            except CapacityError:
                logger.warning(
                    "Request %s: lost race for worker %s (attempt %d/%d), reselecting",
                    request_id,
                    best.user_id,
                    attempt,
                    settings.ASSIGN_MAX_ATTEMPTS,
                )
                continue

            await self._invalidate(f"/requests/{request_id}", f"/tasks/{task_id}")
            return AutoAssignResult(
                success=True,
                request_id=request_id,
                task_id=task_id,
                assignee_id=best.user_id,
                assignee_name=best.name,
                score=best.total,
            )

        return AutoAssignResult(
            success=False,
            request_id=request_id,
            error=WIP_EXHAUSTED_MESSAGE,
            code="wip_limit_exceeded",
        )

    # ------------------------------------------------------------------
    # Manual assignment and reassignment
    # ------------------------------------------------------------------

    async def _load_target(self, task_id: UUID, assignee_id: UUID):
        task = await self._task_repo.get_by_id(task_id)
        if task is None:
            raise TaskNotFoundError()
        assignee = await self._user_repo.get_by_id(assignee_id)
        if assignee is None:
            raise UserNotFoundError("Assignee not found")
        if not is_assignable(assignee):
            raise ValidationError("Assignee is inactive, absent, or cannot receive tasks")
        return task, assignee

    @staticmethod
    def _check_team_scope(actor: Actor, assignee) -> None:
        if actor.role != Role.ADMIN and assignee.team_id != actor.team_id:
            raise AuthorizationError("You can only assign work to members of your own team")

    async def manual_assign_with_check(
        self,
        task_id: UUID,
        assignee_id: UUID,
        actor: Optional[Actor],
        override: bool = False,
    ) -> ManualAssignResult:
        """Assign a task to a chosen worker, gated by the WIP check.

        Over capacity without *override* returns a warning result instead of
        raising, so the caller can retry with override.  Override is only
        honoured for Leader and Admin.
        Assigning a task to its current owner is rejected.
        """
        actor = _require_actor(actor)
        task, assignee = await self._load_target(task_id, assignee_id)
        self._check_team_scope(actor, assignee)
        if task.assignee_id == assignee_id:
            raise ValidationError(ALREADY_ASSIGNED_MESSAGE, code="already_assigned")

        can_override = actor.role in PRIVILEGED_ROLES
        check = await self._workload.check_wip_limit(assignee.id)

        def _warning(current: int, limit: int) -> ManualAssignResult:
            return ManualAssignResult(
                success=False,
                task_id=task_id,
                assignee_id=assignee_id,
                warning=True,
                can_override=can_override,
                current=current,
                limit=limit,
                code="wip_limit_exceeded",
                message=(
                    f"{assignee.name} has reached the WIP limit "
                    f"({current}/{limit} active tasks)"
                ),
            )

        if check.exceeded and not override:
            return _warning(check.current, check.limit)
        if check.exceeded and not can_override:
            raise AuthorizationError(OVERRIDE_FORBIDDEN_MESSAGE, code="override_forbidden")

        override_applied = check.exceeded and override
        request_id = task.request_id
        old_assignee = task.assignee_id
        try:
            await self._commit_assignment(
                assignee_id,
                actor_id=actor.id,
                action=AuditAction.ASSIGNED,
                task_id=task_id,
                old_value={"assigneeId": _str_or_none(old_assignee)},
                new_value={"overrideApplied": override_applied, "assignedBy": str(actor.id)},
                reason="WIP limit override" if override_applied else None,
                enforce_limit=not override_applied,
            )
        except CapacityError as exc:
            return _warning(exc.current or check.current, exc.limit or check.limit)

        if override_applied:
            logger.warning(
                "WIP override by %s (%s): task %s -> %s at %d/%d",
                actor.id,
                actor.role.value,
                task_id,
                assignee_id,
                check.current,
                check.limit,
            )
        await self._invalidate(f"/tasks/{task_id}", f"/requests/{request_id}")
        return ManualAssignResult(
            success=True,
            task_id=task_id,
            assignee_id=assignee_id,
            override_applied=override_applied,
            can_override=can_override,
            current=check.current + 1,
            limit=check.limit,
        )

    async def reassign_task(
        self,
        task_id: UUID,
        new_assignee_id: UUID,
        reason: str,
        actor: Optional[Actor],
    ) -> ReassignResult:
        """Move a task to another worker.  Leader/Admin only; no override path."""
        actor = _require_actor(actor)
        if actor.role not in PRIVILEGED_ROLES:
            raise AuthorizationError("Only Leader and Admin can reassign tasks")
        reason = (reason or "").strip()
        if len(reason) < MIN_REASSIGN_REASON_LENGTH:
            raise ValidationError(
                f"A reassignment reason of at least {MIN_REASSIGN_REASON_LENGTH} "
                "characters is required"
            )

        task, assignee = await self._load_target(task_id, new_assignee_id)
        self._check_team_scope(actor, assignee)
        old_assignee_id = task.assignee_id
        if old_assignee_id == new_assignee_id:
            raise ValidationError(ALREADY_ASSIGNED_MESSAGE, code="already_assigned")

        return await self._reassign(
            task_id,
            task.request_id,
            old_assignee_id,
            new_assignee_id,
            assignee_name=assignee.name,
            reason=reason,
            actor_id=actor.id,
            reassigned_by=str(actor.id),
        )

    async def _reassign(
        self,
        task_id: UUID,
        request_id: UUID,
        old_assignee_id: Optional[UUID],
        new_assignee_id: UUID,
        *,
        assignee_name: str,
        reason: str,
        actor_id: Optional[UUID],
        reassigned_by: str,
    ) -> ReassignResult:
        check = await self._workload.check_wip_limit(new_assignee_id)
        if check.exceeded:
            raise CapacityError(
                f"{assignee_name} is overloaded ({check.current}/{check.limit} active tasks)",
                code="assignee_overloaded",
                current=check.current,
                limit=check.limit,
            )
        try:
            await self._commit_assignment(
                new_assignee_id,
                actor_id=actor_id,
                action=AuditAction.REASSIGNED,
                task_id=task_id,
                old_value={"assigneeId": _str_or_none(old_assignee_id)},
                new_value={"reason": reason, "reassignedBy": reassigned_by},
                reason=reason,
            )
        except CapacityError as exc:
            raise CapacityError(
                f"{assignee_name} is overloaded ({exc.current}/{exc.limit} active tasks)",
                code="assignee_overloaded",
                current=exc.current,
                limit=exc.limit,
            ) from exc

        await self._invalidate(f"/tasks/{task_id}", f"/requests/{request_id}")
        return ReassignResult(
            task_id=task_id,
            old_assignee_id=old_assignee_id,
            new_assignee_id=new_assignee_id,
            reason=reason,
        )

    async def escalate_task(self, task, reason: str) -> Optional[ReassignResult]:
        """Hand a stalled task to the best other team member (system actor).

        Returns ``None`` when nobody else can take it.
        """
        request = task.request
        if request is None or request.team_id is None:
            return None
        config = await self._config.load()
        try:
            best = await self._selector.find_best_assignee(
                request.id,
                request.team_id,
                request.category_id,
                config,
                deadline=request.deadline,
                request_created_at=request.created_at,
                exclude=[task.assignee_id] if task.assignee_id else None,
            )
        except NoEligibleAssigneeError as exc:
            logger.info("Task %s not escalated: %s", task.id, exc.detail)
            return None
        return await self._reassign(
            task.id,
            request.id,
            task.assignee_id,
            best.user_id,
            assignee_name=best.name,
            reason=reason,
            actor_id=None,
            reassigned_by="system",
        )

    # ------------------------------------------------------------------
    # Capacity administration
    # ------------------------------------------------------------------

    async def update_user_wip_limit(
        self, user_id: UUID, new_limit: int, actor: Optional[Actor]
    ) -> WIPLimitUpdateResult:
        """Set a worker's WIP limit; never below their current active count."""
        actor = _require_actor(actor)
        if actor.role not in PRIVILEGED_ROLES:
            raise AuthorizationError("Only Leader and Admin can change WIP limits")
        if new_limit < 1:
            raise ValidationError("WIP limit must be at least 1")

        user = await self._user_repo.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError()
        if actor.role == Role.LEADER and user.team_id != actor.team_id:
            raise AuthorizationError("Leaders can only change WIP limits of their own team")
        old_limit = user.wip_limit

        async with self._slot_guard.hold(user_id):
            try:
                await self._user_repo.lock_for_update(user_id)
                active = await self._task_repo.count_active_for_assignee(user_id)
                if new_limit < active:
                    raise ValidationError(
                        f"New WIP limit ({new_limit}) must be greater than or equal to "
                        f"the number of tasks currently in progress ({active})",
                        code="wip_limit_below_active",
                    )
                await self._user_repo.update_wip_limit(user_id, new_limit)
                await self._audit_repo.append(
                    action=AuditAction.WIP_LIMIT_CHANGED.value,
                    entity="User",
                    entity_id=user_id,
                    actor_id=actor.id,
                    old_value={"wipLimit": old_limit},
                    new_value={"wipLimit": new_limit},
                )
                await self._user_repo.commit()
            except Exception:
                await self._user_repo.rollback()
                raise

        logger.info("WIP limit of %s changed %s -> %d by %s", user_id, old_limit, new_limit, actor.id)
        await self._invalidate("/admin/users")
        return WIPLimitUpdateResult(
            user_id=user_id, old_limit=old_limit, new_limit=new_limit, active_tasks=active
        )

    # ------------------------------------------------------------------
    # Assignment configuration
    # ------------------------------------------------------------------

    async def get_assignment_config(self) -> AssignmentConfigResponse:
        config = await self._config.load()
        return AssignmentConfigResponse(config=config, is_default=config.is_default)

    async def update_assignment_config(
        self, patch: AssignmentConfigPatch, actor: Optional[Actor]
    ) -> AssignmentConfigResponse:
        """Apply a partial config update.  Admin only; weights must sum to 1.0."""
        actor = _require_actor(actor)
        if actor.role != Role.ADMIN:
            raise AuthorizationError("Only Admin can update the assignment configuration")

        row = await self._config_repo.get_singleton()
        current = config_from_storage(row) if row is not None else default_config()

        weights = current.weights()
        for name in WEIGHT_FIELDS:
            value = getattr(patch, name)
            if value is not None:
                weights[name] = value
        validate_weights(weights)

        advanced = parse_advanced_settings(
            merge_advanced_settings(
                current.advanced_settings.model_dump(by_alias=True, mode="json"),
                patch.advanced_settings,
            )
        )
        updated = AssignmentConfigData(
            **weights,
            enable_auto_assign=(
                patch.enable_auto_assign
                if patch.enable_auto_assign is not None
                else current.enable_auto_assign
            ),
            advanced_settings=advanced,
            is_default=False,
        )

        try:
            saved = await self._config_repo.upsert(updated.to_storage(), updated_by=actor.id)
            await self._audit_repo.append(
                action=AuditAction.CONFIG_UPDATED.value,
                entity="AssignmentConfig",
                entity_id=saved.id,
                actor_id=actor.id,
                old_value=current.to_storage() if row is not None else None,
                new_value=updated.to_storage(),
            )
            await self._config_repo.commit()
        except Exception:
            await self._config_repo.rollback()
            raise

        await self._config.invalidate()
        await self._invalidate("/admin/assignment-config")
        logger.info("Assignment config updated by %s: %s", actor.id, weights)
        return AssignmentConfigResponse(config=updated, is_default=False)


def build_assignment_service(
    db, cache: Optional[CacheService] = None, slot_guard: Optional[WorkerSlotGuard] = None
) -> AssignmentService:
    """Wire an ``AssignmentService`` whose repositories share one session."""
    user_repo = UserRepository(db)
    team_repo = TeamRepository(db)
    task_repo = TaskRepository(db)
    workload = WorkloadCalculator(user_repo, team_repo, task_repo)
    return AssignmentService(
        request_repo=RequestRepository(db),
        task_repo=task_repo,
        user_repo=user_repo,
        config_repo=AssignmentConfigRepository(db),
        audit_repo=AuditRepository(db),
        workload=workload,
        selector=AssigneeSelector(user_repo, team_repo, task_repo, workload),
        cache=cache,
        slot_guard=slot_guard,
    )
