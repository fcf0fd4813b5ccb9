"""Handover engine: bulk reassignment of a person's pending tasks.

Two phases:
- preview(): resolve the affected set and report its size. Read-only,
  lock-free, no audit events; safe to call any number of times.
- execute(): resolve the set again (never trusting an earlier preview,
  which may be stale) and reassign each task independently.

The unit of atomicity is one task. Every per-task write is conditional
on the task still being pending and still owned by the person handing
over; if that no longer holds, or the task was deleted underneath us,
the failure is recorded in the result and the remaining tasks are
processed. Only StorageUnavailable aborts the batch.
"""

from __future__ import annotations

from typing import Optional

from pitchside.directory.roster import RoleDirectory
from pitchside.errors import InvalidRequest, NotFound, WriteConflict
from pitchside.models.handover import (
    HandoverRequest,
    HandoverResult,
    HandoverScope,
    HandoverTarget,
)
from pitchside.models.task import HandoverReassignment, Task, TaskFilter
from pitchside.observability import get_logger_for_service
from pitchside.persistence.audit_log import AuditEventType, AuditLog
from pitchside.persistence.task_store import TaskStore
from pitchside.policy.resolver import EnginePolicy


class HandoverEngine:
    """Computes and applies handovers.

    Usage:
        engine = HandoverEngine(store, audit_log, policy, directory=roster)
        request = HandoverRequest(
            club_id="club-1", from_person_id="alice",
            scope=HandoverScope.FIXTURE, fixture_id="F1",
            target=HandoverTarget.PERSON, to_person_id="bob",
        )
        preview = engine.preview(request)
        result = engine.execute("admin", request)
    """

    def __init__(
        self,
        store: TaskStore,
        audit_log: AuditLog,
        policy: EnginePolicy,
        directory: Optional[RoleDirectory] = None,
    ) -> None:
        self._store = store
        self._audit = audit_log
        self._policy = policy
        self._directory = directory
        self._log = get_logger_for_service("HandoverEngine")

    # ------------------------------------------------------------------
    # Validation and resolution
    # ------------------------------------------------------------------

    def validate(self, request: HandoverRequest) -> None:
        """Reject a malformed request before any resolution work."""
        if not request.club_id:
            raise InvalidRequest("Handover request missing club_id")
        if not request.from_person_id:
            raise InvalidRequest("Handover request missing from_person_id")

        if request.scope == HandoverScope.FIXTURE and not request.fixture_id:
            raise InvalidRequest("scope=fixture requires fixture_id")
        if request.scope == HandoverScope.PACK and not request.template_pack_id:
            raise InvalidRequest("scope=pack requires template_pack_id")

        if request.target == HandoverTarget.PERSON:
            if not request.to_person_id:
                raise InvalidRequest("target=person requires to_person_id")
            if (request.to_person_id == request.from_person_id
                    and not self._policy.allow_self_target()):
                raise InvalidRequest(
                    "Cannot hand tasks over to the person they are taken from"
                )
        if request.target == HandoverTarget.ROLE and not request.to_role:
            raise InvalidRequest("target=role requires to_role")

    def resolve_affected_tasks(self, request: HandoverRequest) -> list[Task]:
        """Pending tasks explicitly owned by the source person, in scope.

        Returned in TaskStore.list order, which is also the order execute()
        processes them in.
        """
        self.validate(request)
        task_filter = TaskFilter(
            club_id=request.club_id,
            owner_person_id=request.from_person_id,
            fixture_id=(
                request.fixture_id if request.scope == HandoverScope.FIXTURE else None
            ),
            template_pack_id=(
                request.template_pack_id
                if request.scope == HandoverScope.PACK else None
            ),
            include_completed=False,
        )
        return self._store.list(task_filter)

    def list_candidates(
        self, club_id: str, fixture_id: Optional[str] = None,
    ) -> list[str]:
        """People who own at least one pending task ("hand over from" list).

        Ordered by first appearance in store order.
        """
        tasks = self._store.list(TaskFilter(
            club_id=club_id, fixture_id=fixture_id, include_completed=False,
        ))
        seen: dict[str, None] = {}
        for task in tasks:
            if task.owner_person_id:
                seen.setdefault(task.owner_person_id, None)
        return list(seen)

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    def preview(self, request: HandoverRequest) -> HandoverResult:
        """What execute() would touch right now. Writes nothing."""
        tasks = self.resolve_affected_tasks(request)
        return HandoverResult(
            success=True,
            tasks_affected=len(tasks),
            errors=[],
            task_ids=[t.task_id for t in tasks],
        )

    # ------------------------------------------------------------------
    # Execute
    # ------------------------------------------------------------------

    def execute(self, actor_id: str, request: HandoverRequest) -> HandoverResult:
        """Reassign every affected task, one independent write per task.

        Raises:
            InvalidRequest: malformed request (nothing processed).
            StorageUnavailable: backend outage (propagated unchanged;
                tasks already reassigned stay reassigned).
        """
        if not actor_id or not actor_id.strip():
            raise InvalidRequest("Handover requires an actor_id")
        tasks = self.resolve_affected_tasks(request)
        log = self._log.bind(
            club_id=request.club_id,
            from_person_id=request.from_person_id,
            scope=request.scope.value,
            target=request.target.value,
        )

        if request.target == HandoverTarget.ROLE and self._directory is not None:
            if not self._directory.members_of(request.club_id, request.to_role):
                log.warning("handover_role_has_no_members", role=request.to_role)

        errors: list[str] = []
        moved: list[str] = []
        for task in tasks:
            mutation, skip_reason = self._mutation_for(task, request)
            if mutation is None:
                errors.append(f"Task {task.describe()} {skip_reason}")
                log.info("handover_task_skipped", task_id=task.task_id, reason=skip_reason)
                continue

            try:
                updated = self._store.update(
                    task.task_id,
                    mutation,
                    precondition=lambda t: _still_handed_over(t, request.from_person_id),
                )
            except NotFound:
                errors.append(f"Task {task.describe()} no longer exists")
                log.info("handover_task_failed", task_id=task.task_id, reason="not_found")
                continue
            except WriteConflict as conflict:
                errors.append(f"Task {task.describe()} was not reassigned: {conflict.reason}")
                log.info(
                    "handover_task_failed",
                    task_id=task.task_id, reason=conflict.reason,
                )
                continue

            payload = {
                "from": request.from_person_id,
                "to": mutation.owner_person_id or mutation.owner_role,
                "target": request.target.value,
                "task_label": updated.label,
            }
            payload.update(request.scope_payload())
            self._audit.record(
                updated.club_id,
                actor_id,
                AuditEventType.HANDOVER_EXECUTED,
                payload,
                fixture_id=updated.fixture_id,
                task_id=updated.task_id,
            )
            moved.append(updated.task_id)

        log.info(
            "handover_executed",
            actor_id=actor_id,
            tasks_affected=len(moved),
            error_count=len(errors),
        )
        return HandoverResult(
            success=not errors,
            tasks_affected=len(moved),
            errors=errors,
            task_ids=moved,
        )

    @staticmethod
    def _mutation_for(
        task: Task, request: HandoverRequest,
    ) -> tuple[Optional[HandoverReassignment], Optional[str]]:
        """New ownership for one task, or (None, reason) if it cannot move.

        - person: new owner; backup kept unless it is the new owner.
        - role: no owner, role-claimable by to_role; backup kept.
        - backup: the backup is promoted to owner and its slot cleared.
        """
        if request.target == HandoverTarget.PERSON:
            backup = task.backup_person_id
            if backup == request.to_person_id:
                backup = None
            return HandoverReassignment(
                owner_person_id=request.to_person_id,
                owner_role=None,
                backup_person_id=backup,
            ), None
        if request.target == HandoverTarget.ROLE:
            return HandoverReassignment(
                owner_person_id=None,
                owner_role=request.to_role,
                backup_person_id=task.backup_person_id,
            ), None
        if not task.backup_person_id:
            return None, "has no backup person set"
        if task.backup_person_id == request.from_person_id:
            return None, "lists the person handing over as its own backup"
        return HandoverReassignment(
            owner_person_id=task.backup_person_id,
            owner_role=None,
            backup_person_id=None,
        ), None


def _still_handed_over(task: Task, from_person_id: str) -> Optional[str]:
    """Precondition for a per-task handover write."""
    if task.is_completed:
        return "completed in the meantime"
    if task.owner_person_id != from_person_id:
        return f"owner changed to {task.owner_person_id or 'nobody'}"
    return None
