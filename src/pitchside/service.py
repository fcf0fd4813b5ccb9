"""Ops task service: unified facade for the task ownership engine.

This is the interface the dashboard, bulk-operation CLIs and scheduled
jobs call. It wires the subsystems together:
- Task queries (scoped lists, effective owner, club statistics)
- Claims (race-safe claim, unassign)
- Direct reassignment and completion toggles
- Handover (preview, execute, candidate list)
- Audit history (by fixture, by task, filtered/paged, per-person activity)

Single-task operations fail fast with the errors in pitchside.errors.
Handover collects per-task failures into its result instead. Every state
change is written to the task store first and then recorded in the audit
log; a storage outage in either propagates as StorageUnavailable.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from pitchside.directory.roster import RoleDirectory
from pitchside.errors import InvalidRequest, WriteConflict
from pitchside.handover.engine import HandoverEngine
from pitchside.models.handover import HandoverRequest, HandoverResult
from pitchside.models.task import ReassignOwnership, SetCompletion, Task, TaskFilter
from pitchside.observability import get_logger_for_service
from pitchside.ownership.claims import ClaimService
from pitchside.ownership.resolver import EffectiveOwner, OwnershipKind, OwnershipResolver
from pitchside.persistence.audit_log import AuditEvent, AuditEventType, AuditLog
from pitchside.persistence.task_store import TaskStore
from pitchside.policy.resolver import BackupOnOwnerChange, EnginePolicy


class _Unchanged:
    """Sentinel: leave the backup slot to the reassignment policy."""

    def __repr__(self) -> str:
        return "UNCHANGED"


UNCHANGED: Any = _Unchanged()


class OpsTaskService:
    """Task ownership engine facade.

    Usage:
        policy = EnginePolicy.from_config_dir(config_dir)
        service = OpsTaskService(policy, roster)

        tasks = service.list_tasks(TaskFilter(club_id="club-1"))
        service.claim_task("T-1", "carol")
        preview = service.preview_handover(request)
        result = service.execute_handover("admin", request)

    Persistence (optional):
        service = OpsTaskService(
            policy, roster,
            store=TaskStore(Path("data/tasks.json")),
            audit_log=AuditLog(Path("data/audit.jsonl")),
        )
    """

    def __init__(
        self,
        policy: EnginePolicy,
        directory: RoleDirectory,
        store: Optional[TaskStore] = None,
        audit_log: Optional[AuditLog] = None,
    ) -> None:
        self._policy = policy
        self._directory = directory
        self._store = store if store is not None else TaskStore()
        self._audit = audit_log if audit_log is not None else AuditLog()

        self._resolver = OwnershipResolver(directory)
        self._claims = ClaimService(self._store, self._audit, self._resolver, policy)
        self._handover = HandoverEngine(
            self._store, self._audit, policy, directory=directory,
        )
        self._log = get_logger_for_service("OpsTaskService")

    @property
    def store(self) -> TaskStore:
        return self._store

    @property
    def audit_log(self) -> AuditLog:
        return self._audit

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_tasks(self, task_filter: TaskFilter) -> list[Task]:
        return self._store.list(task_filter)

    def get_task(self, task_id: str) -> Task:
        return self._store.get(task_id)

    def effective_owner(self, task_id: str) -> EffectiveOwner:
        return self._resolver.resolve(self._store.get(task_id))

    def task_stats(self, club_id: str) -> dict[str, int]:
        """Counts by completion and ownership state for a club."""
        stats = {
            "total": 0,
            "pending": 0,
            "completed": 0,
            OwnershipKind.EXPLICIT_OWNER.value: 0,
            OwnershipKind.ROLE_CLAIMABLE.value: 0,
            OwnershipKind.UNASSIGNED.value: 0,
        }
        for task in self._store.list(TaskFilter(club_id=club_id)):
            stats["total"] += 1
            if task.is_completed:
                stats["completed"] += 1
                continue
            stats["pending"] += 1
            stats[self._resolver.resolve(task).kind.value] += 1
        return stats

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    def claim_task(self, task_id: str, person_id: str) -> Task:
        return self._claims.claim(task_id, person_id)

    def unassign_task(self, task_id: str, actor_id: str) -> Task:
        return self._claims.unassign(task_id, actor_id)

    # ------------------------------------------------------------------
    # Direct reassignment
    # ------------------------------------------------------------------

    def reassign_task(
        self,
        task_id: str,
        owner_id: Optional[str],
        actor_id: str,
        backup_id: Any = UNCHANGED,
    ) -> Task:
        """Set a task's owner (None clears it) and optionally its backup.

        When backup_id is omitted and the owner changes, the existing
        backup is kept or cleared according to
        reassignment.backup_on_owner_change. A kept backup that is the
        new owner is always cleared.

        Raises:
            NotFound: no such task.
            InvalidRequest: blank IDs, or an explicit backup equal to the owner.
        """
        if not actor_id or not actor_id.strip():
            raise InvalidRequest("Reassignment requires an actor_id")

        while True:
            task = self._store.get(task_id)
            backup = self._next_backup(task, owner_id, backup_id)
            mutation = ReassignOwnership(owner_id, backup)
            if (task.owner_person_id == mutation.owner_person_id
                    and task.backup_person_id == mutation.backup_person_id):
                return task
            try:
                updated = self._store.update(
                    task_id,
                    mutation,
                    precondition=lambda t, seen=task: (
                        None
                        if (t.owner_person_id, t.backup_person_id)
                        == (seen.owner_person_id, seen.backup_person_id)
                        else "ownership changed concurrently"
                    ),
                )
                break
            except WriteConflict:
                continue

        self._audit.record(
            updated.club_id,
            actor_id,
            AuditEventType.TASK_REASSIGNED,
            {
                "task_label": updated.label,
                "from": task.owner_person_id,
                "to": updated.owner_person_id,
                "backup_from": task.backup_person_id,
                "backup_to": updated.backup_person_id,
            },
            fixture_id=updated.fixture_id,
            task_id=updated.task_id,
        )
        self._log.info(
            "task_reassigned",
            task_id=task_id,
            from_owner=task.owner_person_id,
            to_owner=updated.owner_person_id,
        )
        return updated

    def _next_backup(
        self, task: Task, owner_id: Optional[str], backup_id: Any,
    ) -> Optional[str]:
        if backup_id is not UNCHANGED:
            return backup_id
        backup = task.backup_person_id
        if (owner_id != task.owner_person_id
                and self._policy.backup_on_owner_change() == BackupOnOwnerChange.CLEAR):
            backup = None
        if backup is not None and backup == owner_id:
            backup = None
        return backup

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def toggle_completion(self, task_id: str, completed: bool, actor_id: str) -> Task:
        """Mark a task completed or reopen it.

        Setting the state the task is already in changes nothing and
        records nothing.
        """
        mutation = SetCompletion(completed, actor_id)
        task = self._store.get(task_id)
        if task.is_completed == completed:
            return task

        try:
            updated = self._store.update(
                task_id,
                mutation,
                precondition=lambda t: (
                    None if t.is_completed != completed else "already in that state"
                ),
            )
        except WriteConflict as conflict:
            return conflict.current

        event_type = (
            AuditEventType.TASK_COMPLETED if completed
            else AuditEventType.TASK_REOPENED
        )
        self._audit.record(
            updated.club_id,
            mutation.actor_id,
            event_type,
            {"task_label": updated.label},
            fixture_id=updated.fixture_id,
            task_id=updated.task_id,
        )
        self._log.info(
            "task_completion_toggled", task_id=task_id, completed=completed,
        )
        return updated

    # ------------------------------------------------------------------
    # Handover
    # ------------------------------------------------------------------

    def preview_handover(self, request: HandoverRequest) -> HandoverResult:
        return self._handover.preview(request)

    def execute_handover(self, actor_id: str, request: HandoverRequest) -> HandoverResult:
        return self._handover.execute(actor_id, request)

    def list_handover_candidates(
        self, club_id: str, fixture_id: Optional[str] = None,
    ) -> list[str]:
        return self._handover.list_candidates(club_id, fixture_id)

    # ------------------------------------------------------------------
    # Audit history
    # ------------------------------------------------------------------

    def list_audit_events(
        self,
        fixture_id: Optional[str] = None,
        task_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        """History for one fixture or one task, oldest first."""
        if (fixture_id is None) == (task_id is None):
            raise InvalidRequest("Pass exactly one of fixture_id or task_id")
        if fixture_id is not None:
            return self._audit.list_by_fixture(fixture_id)
        return self._audit.list_by_task(task_id)

    def query_audit_events(
        self,
        club_id: str,
        fixture_id: Optional[str] = None,
        task_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        event_types: Optional[Iterable[AuditEventType]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[AuditEvent]:
        """Filtered page of a club's history, oldest first.

        limit defaults to the configured page size and is capped at the
        configured maximum.
        """
        default_size, max_size = self._policy.audit_page_sizes()
        if limit is None:
            limit = default_size
        if limit <= 0 or offset < 0:
            raise InvalidRequest("limit must be positive and offset non-negative")
        return self._audit.query(
            club_id,
            fixture_id=fixture_id,
            task_id=task_id,
            actor_id=actor_id,
            event_types=event_types,
            limit=min(limit, max_size),
            offset=offset,
        )

    def user_activity(
        self, club_id: str, person_id: str, limit: int = 20,
    ) -> list[AuditEvent]:
        """A person's most recent actions, newest first."""
        events = self._audit.query(club_id, actor_id=person_id)
        return list(reversed(events))[:limit]
