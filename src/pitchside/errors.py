"""Error taxonomy for the task ownership engine.

Single-entity operations (claim, toggle, reassign) raise these directly.
Bulk handover collects per-task failures as strings instead of raising,
except for StorageUnavailable, which always propagates.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from pitchside.models.task import Task


class TaskEngineError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)


class NotFound(TaskEngineError):
    """A referenced task (or other entity) no longer exists."""

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class AlreadyOwned(TaskEngineError):
    """Claim conflict: the task is explicitly owned by someone else."""

    def __init__(self, task_id: str, owner_id: Optional[str]) -> None:
        self.task_id = task_id
        self.owner_id = owner_id
        super().__init__(f"Task {task_id} is already owned by {owner_id}")


class NotClaimable(TaskEngineError):
    """The task cannot be claimed by this person through role fallback."""

    def __init__(self, task_id: str, reason: str) -> None:
        self.task_id = task_id
        self.reason = reason
        super().__init__(f"Task {task_id} is not claimable: {reason}")


class InvalidRequest(TaskEngineError):
    """Malformed command. Rejected before any work is done."""


class StorageUnavailable(TaskEngineError):
    """The backing store could not be read or written. Fatal."""


class WriteConflict(TaskEngineError):
    """A conditional write found the task in an unexpected state.

    Carries the current task so callers can decide how to report it.
    """

    def __init__(self, current: Task, reason: str) -> None:
        self.current = current
        self.reason = reason
        super().__init__(f"Write conflict on task {current.task_id}: {reason}")
