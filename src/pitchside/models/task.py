"""Task data model and the mutation intents that may be applied to it.

A Task is a unit of delegable work tied to a fixture or a template pack.
Ownership has three slots:
- owner_person_id: the explicit owner (at most one at a time).
- backup_person_id: who takes over if the owner hands over to "backup".
- owner_role: fallback role; only consulted while owner_person_id is empty,
  and only to let a holder of that role claim the task.

Tasks are immutable values. Every write path goes through one of the
mutation intents below, each with a fixed and validated shape, so the
store never receives an open bag of fields.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional, Union

from pitchside.errors import InvalidRequest


@dataclass(frozen=True)
class Task:
    """A task record as held by the TaskStore."""
    task_id: str
    club_id: str
    label: str
    fixture_id: Optional[str] = None
    template_pack_id: Optional[str] = None
    sort_order: int = 0

    is_completed: bool = False
    completed_by: Optional[str] = None
    completed_at: Optional[datetime] = None

    owner_person_id: Optional[str] = None
    backup_person_id: Optional[str] = None
    owner_role: Optional[str] = None

    due_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return not self.is_completed

    def describe(self) -> str:
        """Short human-readable reference used in error messages."""
        return f"'{self.label}' ({self.task_id})"


@dataclass(frozen=True)
class TaskFilter:
    """Scoped query over a club's tasks.

    None means "do not filter on this field". include_completed=False
    restricts the result to pending work.
    """
    club_id: str
    fixture_id: Optional[str] = None
    template_pack_id: Optional[str] = None
    owner_person_id: Optional[str] = None
    include_completed: bool = True

    def matches(self, task: Task) -> bool:
        if task.club_id != self.club_id:
            return False
        if self.fixture_id is not None and task.fixture_id != self.fixture_id:
            return False
        if (self.template_pack_id is not None
                and task.template_pack_id != self.template_pack_id):
            return False
        if (self.owner_person_id is not None
                and task.owner_person_id != self.owner_person_id):
            return False
        if not self.include_completed and task.is_completed:
            return False
        return True


# ---------------------------------------------------------------------------
# Mutation intents
# ---------------------------------------------------------------------------

def _require_id(value: Optional[str], what: str) -> str:
    if value is None or not value.strip():
        raise InvalidRequest(f"{what} must be a non-empty identifier")
    return value.strip()


def _optional_id(value: Optional[str], what: str) -> Optional[str]:
    if value is None:
        return None
    return _require_id(value, what)


@dataclass(frozen=True)
class ClaimOwnership:
    """A person becomes the explicit owner. owner_role is preserved."""
    person_id: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "person_id", _require_id(self.person_id, "person_id"))

    def apply(self, task: Task, now: datetime) -> Task:
        return replace(task, owner_person_id=self.person_id, updated_at=now)


@dataclass(frozen=True)
class ReleaseOwnership:
    """Clear the explicit owner. Backup and role are untouched."""

    def apply(self, task: Task, now: datetime) -> Task:
        return replace(task, owner_person_id=None, updated_at=now)


@dataclass(frozen=True)
class ReassignOwnership:
    """Set owner and backup explicitly (None clears the slot)."""
    owner_person_id: Optional[str]
    backup_person_id: Optional[str]

    def __post_init__(self) -> None:
        owner = _optional_id(self.owner_person_id, "owner_person_id")
        backup = _optional_id(self.backup_person_id, "backup_person_id")
        if owner is not None and owner == backup:
            raise InvalidRequest("Backup cannot be the same person as the owner")
        object.__setattr__(self, "owner_person_id", owner)
        object.__setattr__(self, "backup_person_id", backup)

    def apply(self, task: Task, now: datetime) -> Task:
        return replace(
            task,
            owner_person_id=self.owner_person_id,
            backup_person_id=self.backup_person_id,
            updated_at=now,
        )


@dataclass(frozen=True)
class SetCompletion:
    """Mark a task completed (recording who and when) or reopen it."""
    completed: bool
    actor_id: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "actor_id", _require_id(self.actor_id, "actor_id"))

    def apply(self, task: Task, now: datetime) -> Task:
        if self.completed:
            return replace(
                task,
                is_completed=True,
                completed_by=self.actor_id,
                completed_at=now,
                updated_at=now,
            )
        return replace(
            task,
            is_completed=False,
            completed_by=None,
            completed_at=None,
            updated_at=now,
        )


@dataclass(frozen=True)
class HandoverReassignment:
    """Per-task write produced by a handover.

    Exactly one of owner_person_id / owner_role is set: a person target
    (or backup promotion) sets the owner, a role target clears the owner
    and makes the task role-claimable.
    """
    owner_person_id: Optional[str]
    owner_role: Optional[str]
    backup_person_id: Optional[str]

    def __post_init__(self) -> None:
        owner = _optional_id(self.owner_person_id, "owner_person_id")
        role = _optional_id(self.owner_role, "owner_role")
        if (owner is None) == (role is None):
            raise InvalidRequest(
                "Handover reassignment needs exactly one of owner or role"
            )
        object.__setattr__(self, "owner_person_id", owner)
        object.__setattr__(self, "owner_role", role)

    def apply(self, task: Task, now: datetime) -> Task:
        if self.owner_role is not None:
            return replace(
                task,
                owner_person_id=None,
                owner_role=self.owner_role,
                backup_person_id=self.backup_person_id,
                updated_at=now,
            )
        return replace(
            task,
            owner_person_id=self.owner_person_id,
            backup_person_id=self.backup_person_id,
            updated_at=now,
        )


TaskMutation = Union[
    ClaimOwnership,
    ReleaseOwnership,
    ReassignOwnership,
    SetCompletion,
    HandoverReassignment,
]
