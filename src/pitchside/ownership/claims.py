"""Claim service: lets a person take ownership of a role-claimable task.

A claim is a single conditional write: "set the owner only if there is
no owner right now". Two people racing for the same task therefore get
exactly one success and one AlreadyOwned; a person repeating their own
successful claim gets a silent success and no second audit event.

The task's owner_role is left in place on claim, so the record of who
was eligible survives for history.
"""

from __future__ import annotations

from typing import Optional

from pitchside.errors import AlreadyOwned, NotClaimable, WriteConflict
from pitchside.models.task import ClaimOwnership, ReleaseOwnership, Task
from pitchside.observability import get_logger_for_service
from pitchside.ownership.resolver import OwnershipKind, OwnershipResolver, effective_owner
from pitchside.persistence.audit_log import AuditEventType, AuditLog
from pitchside.persistence.task_store import TaskStore
from pitchside.policy.resolver import EnginePolicy


def _owner_is_empty(task: Task) -> Optional[str]:
    if task.owner_person_id:
        return f"owned by {task.owner_person_id}"
    return None


class ClaimService:
    """Claim and unassign operations on single tasks.

    Usage:
        claims = ClaimService(store, audit_log, resolver, policy)
        task = claims.claim("T-1", "carol")
    """

    def __init__(
        self,
        store: TaskStore,
        audit_log: AuditLog,
        resolver: OwnershipResolver,
        policy: EnginePolicy,
    ) -> None:
        self._store = store
        self._audit = audit_log
        self._resolver = resolver
        self._policy = policy
        self._log = get_logger_for_service("ClaimService")

    def claim(self, task_id: str, person_id: str) -> Task:
        """Make person_id the explicit owner of a task.

        Raises:
            NotFound: no such task.
            AlreadyOwned: someone else owns it (including a concurrent
                claim that won the race).
            NotClaimable: the task has no claimable role, or the person
                does not hold it and membership is enforced.
        """
        mutation = ClaimOwnership(person_id)
        person_id = mutation.person_id
        task = self._store.get(task_id)

        members = self._resolver.role_members(task)
        owner = effective_owner(task, members)
        if owner.kind == OwnershipKind.EXPLICIT_OWNER:
            if owner.person_id == person_id:
                return task
            raise AlreadyOwned(task_id, owner.person_id)
        if owner.kind == OwnershipKind.UNASSIGNED:
            raise NotClaimable(
                task_id, "no owner role with members; assign it explicitly",
            )
        if self._policy.enforce_role_membership() and person_id not in members:
            raise NotClaimable(
                task_id, f"{person_id} does not hold role {owner.role}",
            )

        try:
            claimed = self._store.update(
                task_id, mutation, precondition=_owner_is_empty,
            )
        except WriteConflict as conflict:
            current_owner = conflict.current.owner_person_id
            if current_owner == person_id:
                # Our own earlier claim landed first
                return conflict.current
            self._log.info(
                "claim_lost_race",
                task_id=task_id, person_id=person_id, owner_id=current_owner,
            )
            raise AlreadyOwned(task_id, current_owner) from None

        self._audit.record(
            claimed.club_id,
            person_id,
            AuditEventType.TASK_CLAIMED,
            {"task_label": claimed.label, "role": claimed.owner_role},
            fixture_id=claimed.fixture_id,
            task_id=claimed.task_id,
        )
        self._log.info(
            "task_claimed",
            task_id=task_id, person_id=person_id, role=claimed.owner_role,
        )
        return claimed

    def unassign(self, task_id: str, actor_id: str) -> Task:
        """Clear the explicit owner.

        If the task also has no owner_role it becomes genuinely unowned.
        Unassigning a task with no owner is a no-op and records nothing.
        """
        while True:
            task = self._store.get(task_id)
            previous = task.owner_person_id
            if previous is None:
                return task
            try:
                released = self._store.update(
                    task_id,
                    ReleaseOwnership(),
                    precondition=lambda t, p=previous: (
                        None if t.owner_person_id == p
                        else f"owner changed to {t.owner_person_id}"
                    ),
                )
                break
            except WriteConflict:
                # Owner changed between read and write; record the real one
                continue

        self._audit.record(
            released.club_id,
            actor_id,
            AuditEventType.TASK_REASSIGNED,
            {"task_label": released.label, "from": previous, "to": None},
            fixture_id=released.fixture_id,
            task_id=released.task_id,
        )
        self._log.info("task_unassigned", task_id=task_id, previous_owner=previous)
        return released
