"""Task store: canonical Task records with scoped queries.

Holds every task for every club in memory, optionally backed by a JSON
file that is rewritten on each change. Production deployments would swap
this for a database table while keeping the same interface:
- list(filter) in stable display order (sort_order, created_at, insertion)
- get(task_id), raising NotFound
- update(task_id, mutation, precondition), the single conditional write
- add / delete, used by the fixture and template collaborators

The store never emits audit events. Callers record what changed, so the
write and the reason it was recorded can be tested independently.
"""

from __future__ import annotations

import json
import threading
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from pitchside.errors import InvalidRequest, NotFound, StorageUnavailable, WriteConflict
from pitchside.models.task import Task, TaskFilter, TaskMutation

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Returns None if the write may proceed, else the reason it may not.
Precondition = Callable[[Task], Optional[str]]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken to be UTC; aware ones are converted."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _format_ts(value: Optional[datetime]) -> Optional[str]:
    return value.strftime(TIMESTAMP_FORMAT) if value else None


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def task_to_dict(task: Task) -> dict[str, Any]:
    return {
        "task_id": task.task_id,
        "club_id": task.club_id,
        "fixture_id": task.fixture_id,
        "template_pack_id": task.template_pack_id,
        "label": task.label,
        "sort_order": task.sort_order,
        "is_completed": task.is_completed,
        "completed_by": task.completed_by,
        "completed_at": _format_ts(task.completed_at),
        "owner_person_id": task.owner_person_id,
        "backup_person_id": task.backup_person_id,
        "owner_role": task.owner_role,
        "due_at": _format_ts(task.due_at),
        "created_at": _format_ts(task.created_at),
        "updated_at": _format_ts(task.updated_at),
    }


def task_from_dict(data: dict[str, Any]) -> Task:
    return Task(
        task_id=data["task_id"],
        club_id=data["club_id"],
        label=data["label"],
        fixture_id=data.get("fixture_id"),
        template_pack_id=data.get("template_pack_id"),
        sort_order=data.get("sort_order", 0),
        is_completed=data.get("is_completed", False),
        completed_by=data.get("completed_by"),
        completed_at=_parse_ts(data.get("completed_at")),
        owner_person_id=data.get("owner_person_id"),
        backup_person_id=data.get("backup_person_id"),
        owner_role=data.get("owner_role"),
        due_at=_parse_ts(data.get("due_at")),
        created_at=_parse_ts(data.get("created_at")),
        updated_at=_parse_ts(data.get("updated_at")),
    )


class TaskStore:
    """Thread-safe task store with optional JSON file persistence.

    Usage:
        store = TaskStore(Path("data/tasks.json"))
        store.add(Task(task_id="T-1", club_id="club-1", label="Kit wash"))
        pending = store.list(TaskFilter(club_id="club-1", include_completed=False))
        store.update("T-1", ClaimOwnership("alice"),
                     precondition=lambda t: None if t.owner_person_id is None else "owned")

    Every public call takes the internal lock for its own duration only.
    """

    def __init__(
        self,
        storage_path: Optional[Path] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._path = storage_path
        self._clock = clock
        self._lock = threading.Lock()
        self._tasks: dict[str, Task] = {}
        # Insertion sequence: final tie-breaker for a deterministic order
        self._seq: dict[str, int] = {}
        self._next_seq = 0

        if storage_path and storage_path.exists():
            self._load()

    # ------------------------------------------------------------------
    # Collaborator entry points
    # ------------------------------------------------------------------

    def add(self, task: Task) -> Task:
        """Insert a new task.

        Stamps created_at if the caller did not, and normalises every
        timestamp to UTC.
        """
        if not task.task_id.strip():
            raise InvalidRequest("Cannot add task with blank ID")
        if not task.club_id.strip():
            raise InvalidRequest("Cannot add task with blank club ID")
        task = replace(
            task,
            created_at=_as_utc(task.created_at or self._clock()),
            completed_at=_as_utc(task.completed_at),
            due_at=_as_utc(task.due_at),
            updated_at=_as_utc(task.updated_at),
        )

        with self._lock:
            if task.task_id in self._tasks:
                raise InvalidRequest(f"Duplicate task ID: {task.task_id}")
            self._tasks[task.task_id] = task
            self._seq[task.task_id] = self._next_seq
            self._next_seq += 1

            def _rollback() -> None:
                del self._tasks[task.task_id]
                del self._seq[task.task_id]

            self._save_or_rollback(_rollback)
        return task

    def delete(self, task_id: str) -> None:
        """Remove a task (parent fixture or custom entry was removed)."""
        with self._lock:
            task = self._tasks.pop(task_id, None)
            if task is None:
                raise NotFound("Task", task_id)
            seq = self._seq.pop(task_id)

            def _rollback() -> None:
                self._tasks[task_id] = task
                self._seq[task_id] = seq

            self._save_or_rollback(_rollback)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFound("Task", task_id)
        return task

    def list(self, task_filter: TaskFilter) -> list[Task]:
        """Tasks matching the filter, ordered by sort_order then creation."""
        with self._lock:
            matched = [
                (task, self._seq[task.task_id])
                for task in self._tasks.values()
                if task_filter.matches(task)
            ]
        matched.sort(key=lambda pair: (
            pair[0].sort_order,
            pair[0].created_at or datetime.min.replace(tzinfo=timezone.utc),
            pair[1],
        ))
        return [task for task, _ in matched]

    @property
    def count(self) -> int:
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Conditional write
    # ------------------------------------------------------------------

    def update(
        self,
        task_id: str,
        mutation: TaskMutation,
        precondition: Optional[Precondition] = None,
    ) -> Task:
        """Apply a mutation intent atomically and return the new task.

        Raises:
            NotFound: the task no longer exists (deleted underneath).
            WriteConflict: precondition rejected the current state;
                nothing was written.
            StorageUnavailable: the durable write failed; the in-memory
                change was rolled back.
        """
        with self._lock:
            current = self._tasks.get(task_id)
            if current is None:
                raise NotFound("Task", task_id)
            if precondition is not None:
                reason = precondition(current)
                if reason is not None:
                    raise WriteConflict(current, reason)

            updated = mutation.apply(current, _as_utc(self._clock()))
            self._tasks[task_id] = updated

            def _rollback() -> None:
                self._tasks[task_id] = current

            self._save_or_rollback(_rollback)
        return updated

    # ------------------------------------------------------------------
    # File persistence
    # ------------------------------------------------------------------

    def _save_or_rollback(self, on_rollback: Callable[[], None]) -> None:
        if self._path is None:
            return
        ordered = sorted(self._tasks.values(), key=lambda t: self._seq[t.task_id])
        document = {"tasks": [task_to_dict(t) for t in ordered]}
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, sort_keys=True, ensure_ascii=False)
        except OSError as e:
            on_rollback()
            raise StorageUnavailable(f"Task store write failed: {e}") from e

    def _load(self) -> None:
        try:
            with self._path.open("r", encoding="utf-8") as f:
                document = json.load(f)
        except OSError as e:
            raise StorageUnavailable(f"Task store read failed: {e}") from e
        for data in document.get("tasks", []):
            task = task_from_dict(data)
            if task.task_id in self._tasks:
                raise ValueError(f"Duplicate task ID in store file: {task.task_id}")
            self._tasks[task.task_id] = task
            self._seq[task.task_id] = self._next_seq
            self._next_seq += 1
